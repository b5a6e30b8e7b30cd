# integration.py
"""
FILE: integration.py
DESCRIPTION:
  Home Assistant integration for one device.
  - begin(): creates the controllable entities (display switch, intervals, fan)
    and the diagnostic sensors (IP address, sensor health).
  - add_sensor() / report(): measurement sensors fed from the acquisition task.
  - loop(): services the broker connection, detects reconnects and flushes
    state reports.

  Command side effects (all run inside the transport's message delivery):
    display_toggle   -> display callback, config save (enable_display), forced report
    display_interval -> config save (display_interval, seconds), forced report
    report_interval  -> config save (report_interval, minutes), forced report
    fan on/off       -> fan callback (on, None), forced report
    fan speed        -> fan callback (True, speed); 0 turns the fan off (False, None)

  A single RLock guards the entity map and the transport; callbacks fired
  from inside loop() may re-enter any public method.
"""
from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional

from config_store import keys
from device import Device
from entities import Fan, Number, Sensor, Switch
from entity_manager import EntityManager
from measurement import Measurement, MeasurementType

FanCallback = Callable[[bool, Optional[int]], None]
DisplayCallback = Callable[[bool], None]
ConfigSaveCallback = Callable[[str, int], None]
ReconnectedCallback = Callable[[], None]


class Integration:
    def __init__(self, device: Device, mqtt, discovery_prefix: str | None = None, manager: EntityManager | None = None):
        self.device = device
        self.mqtt = mqtt
        self.discovery_prefix = discovery_prefix or device.discovery_prefix
        self.manager = manager or EntityManager(device, mqtt)

        self.fan: Fan | None = None
        self.display_switch: Switch | None = None
        self.display_interval: Number | None = None
        self.report_interval: Number | None = None
        self.ip_sensor: Sensor | None = None
        self.health_sensor: Sensor | None = None
        self.sensors: dict[MeasurementType, Sensor] = {}

        self._fan_cb: FanCallback | None = None
        self._display_cb: DisplayCallback | None = None
        self._config_save_cb: ConfigSaveCallback | None = None
        self._reconnected_cb: ReconnectedCallback | None = None

        self.needs_report = False
        self._last_connected = False
        self._lock = threading.RLock()

    @property
    def device_id(self) -> str:
        return self.device.device_id

    # --- Callbacks ---

    def set_fan_callback(self, cb: FanCallback) -> None:
        self._fan_cb = cb

    def set_display_callback(self, cb: DisplayCallback) -> None:
        self._display_cb = cb

    def set_config_save_callback(self, cb: ConfigSaveCallback) -> None:
        self._config_save_cb = cb

    def set_reconnected_callback(self, cb: ReconnectedCallback) -> None:
        with self._lock:
            self._reconnected_cb = cb

    # --- Setup ---

    def begin(self) -> None:
        with self._lock:
            self._setup_controls()

    def _setup_controls(self):
        d = self.device
        p = self.discovery_prefix

        self.display_switch = Switch(d, "display_toggle", "Display Enabled", self._on_display_toggle, discovery_prefix=p)
        self.manager.add_entity(self.display_switch)

        self.display_interval = Number(
            d, "display_interval", "Display Interval (s)", 5, 15, 5, self._on_display_interval, discovery_prefix=p
        )
        self.manager.add_entity(self.display_interval)

        self.report_interval = Number(
            d, "report_interval", "Report Interval (m)", 1, 15, 1, self._on_report_interval, discovery_prefix=p
        )
        self.manager.add_entity(self.report_interval)

        self.fan = Fan(d, "fan", "Fan", self._on_fan_state, self._on_fan_speed, discovery_prefix=p)
        self.manager.add_entity(self.fan)

        self.ip_sensor = Sensor(
            d, "ip_address", "IP Address", discovery_prefix=p, category="diagnostic", icon="mdi:ip-network-outline"
        )
        self.manager.add_entity(self.ip_sensor)

        self.health_sensor = Sensor(
            d, "sensor_health", "Sensor Health", discovery_prefix=p, category="diagnostic", icon="mdi:heart-pulse"
        )
        self.manager.add_entity(self.health_sensor)

    def add_sensor(self, mtype: MeasurementType, object_id: str, name: str, device_class: str, unit: str) -> Sensor:
        with self._lock:
            sensor = Sensor(self.device, object_id, name, device_class, unit, discovery_prefix=self.discovery_prefix)
            self.manager.add_entity(sensor)
            self.sensors[mtype] = sensor
            return sensor

    # --- Command handlers ---

    def _save(self, key: str, value: int) -> None:
        if self._config_save_cb:
            self._config_save_cb(key, value)

    def _on_display_toggle(self, state: bool) -> None:
        if self._display_cb:
            self._display_cb(state)
        self._save(keys.ENABLE_DISPLAY, state)
        print(f"[HA] Display {'enabled' if state else 'disabled'} via MQTT")
        self.force_report()

    def _on_display_interval(self, value: float) -> None:
        self._save(keys.DISPLAY_INTERVAL, int(value))
        print(f"[HA] Display interval: {value:.1f}s")
        self.force_report()

    def _on_report_interval(self, value: float) -> None:
        self._save(keys.REPORT_INTERVAL, int(value))
        print(f"[HA] Report interval: {value:.1f}m")
        self.force_report()

    def _on_fan_state(self, state: bool) -> None:
        # None: keep the current speed
        if self._fan_cb:
            self._fan_cb(state, None)
        print(f"[HA] Fan turned {'on' if state else 'off'} via MQTT")
        self.force_report()

    def _on_fan_speed(self, speed: int) -> None:
        # 0% from HA means off; the previous speed is kept for the next ON.
        if speed == 0:
            self.fan.update_state(False)
        if self._fan_cb:
            self._fan_cb(speed > 0, speed or None)
        print(f"[HA] Fan speed: {speed}%")
        self.force_report()

    # --- Application -> entities ---

    def report(self, measurements: Iterable[Measurement]) -> None:
        with self._lock:
            updated = False
            for m in measurements:
                sensor = self.sensors.get(m.type)
                if sensor is None:
                    continue
                sensor.update_state(m.formatted_value)
                updated = True
            if updated:
                self.needs_report = True

    def update_sensor_health(self, status: str) -> None:
        with self._lock:
            if self.health_sensor is None:
                return
            if self.health_sensor.state_payload() == status:
                return
            self.health_sensor.update_state(status)
            self.needs_report = True

    def update_ip_address(self, ip: str) -> None:
        with self._lock:
            if self.ip_sensor is None:
                return
            self.ip_sensor.update_state(ip)
            self.force_report()

    def sync_state(
        self,
        display_enabled: bool,
        display_interval_ms: int,
        report_interval_s: int,
        fan_speed: int,
        fan_on: bool,
    ) -> None:
        with self._lock:
            if self.display_switch:
                self.display_switch.update_state(display_enabled)
            if self.display_interval:
                self.display_interval.update_value(display_interval_ms / 1000.0)
            if self.report_interval:
                self.report_interval.update_value(report_interval_s / 60.0)
            if self.fan:
                # update_speed() may turn the fan on; fan_on is applied last.
                self.fan.update_speed(fan_speed)
                self.fan.update_state(fan_on)
            self.force_report()

    def request_report(self) -> None:
        with self._lock:
            self.needs_report = True

    def force_report(self) -> bool:
        with self._lock:
            return self.manager.report_state(force=True)

    # --- Main loop ---

    def loop(self) -> None:
        with self._lock:
            self.mqtt.loop()

            if not self.mqtt.is_connected():
                if self._last_connected:
                    print("[HA] WARNING: MQTT connection lost; entities will be re-announced on reconnect.")
                self._last_connected = False
                return

            if not self._last_connected:
                self._last_connected = True
                print("[HA] MQTT Reconnected")
                if self._reconnected_cb:
                    self._reconnected_cb()
                self.mqtt.publish(self.device.availability_topic, self.device.online_payload, retain=True)

            self.manager.report_state()

            if self.needs_report and self.manager.report_state(force=True):
                self.needs_report = False
