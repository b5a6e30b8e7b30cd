# app_state.py
"""
FILE: app_state.py
DESCRIPTION:
  Shared state between the sensor task and the main loop, passed explicitly
  to each component. One lock per logical resource.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field

from config_store import ConfigStore, defaults, keys
from measurement import Measurement


@dataclass
class AppState:
    report_interval_s: int = defaults.REPORT_INTERVAL * 60
    display_interval_ms: int = defaults.DISPLAY_INTERVAL * 1000
    fan_speed: int = defaults.FAN_SPEED
    fan_on: bool = True
    display_enabled: bool = defaults.ENABLE_DISPLAY
    update_in_progress: bool = False

    # Sensor bus (I2C on the board) and the latest readings buffer.
    bus_lock: threading.Lock = field(default_factory=threading.Lock)
    measurements_lock: threading.Lock = field(default_factory=threading.Lock)
    measurements: list[Measurement] = field(default_factory=list)

    @classmethod
    def from_store(cls, store: ConfigStore) -> "AppState":
        speed = max(0, min(100, store.get_int(keys.FAN_SPEED, defaults.FAN_SPEED)))
        return cls(
            report_interval_s=store.get_int(keys.REPORT_INTERVAL, defaults.REPORT_INTERVAL) * 60,
            display_interval_ms=store.get_int(keys.DISPLAY_INTERVAL, defaults.DISPLAY_INTERVAL) * 1000,
            fan_speed=speed,
            fan_on=speed > 0,
            display_enabled=store.get_bool(keys.ENABLE_DISPLAY, defaults.ENABLE_DISPLAY),
        )

    def set_measurements(self, measurements: list[Measurement]) -> None:
        with self.measurements_lock:
            self.measurements = list(measurements)

    def snapshot(self) -> list[Measurement]:
        with self.measurements_lock:
            return list(self.measurements)
