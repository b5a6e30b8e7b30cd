# display.py
"""
FILE: display.py
DESCRIPTION:
  Console stand-in for the OLED display. Only the main loop talks to it.
"""
from __future__ import annotations

from measurement import Measurement, human_readable


class ConsoleDisplay:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.wifi_up = False
        self.broker_up = False
        self.ip_address = ""
        self.last_text = ""

    def _status_line(self) -> str:
        wifi = "WiFi" if self.wifi_up else "----"
        broker = "MQTT" if self.broker_up else "----"
        ip = f" IP: {self.ip_address}" if self.ip_address else ""
        return f"{wifi} {broker}{ip}"

    def show(self, text: str) -> None:
        self.last_text = text
        if not self.enabled:
            return
        print(f"[DISPLAY] {self._status_line()} | {text}")

    def show_measurement(self, measurement: Measurement) -> None:
        self.show(human_readable(measurement))

    def set_connectivity(self, wifi_up: bool, broker_up: bool) -> None:
        self.wifi_up = wifi_up
        self.broker_up = broker_up

    def set_enabled(self, enabled: bool) -> None:
        if enabled == self.enabled:
            return
        self.enabled = enabled
        print(f"[DISPLAY] Display turned {'on' if enabled else 'off'}.")
