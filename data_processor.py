# data_processor.py
"""
FILE: data_processor.py
DESCRIPTION:
  Sensor acquisition task.
  - poll_once(): reads every driver (under the bus lock) and replaces the
    shared "latest readings" buffer in AppState.
  - start_poll_loop(): background thread body, polls every interval.
  - suspend() / resume(): used by safe mode during a firmware update.
  - health(): short status string published as the Sensor Health entity.
"""
from __future__ import annotations

import threading

import config
from app_state import AppState
from sensors import SensorDriver


class SensorPoller:
    def __init__(self, state: AppState, sensors: list[SensorDriver], interval: float | None = None):
        self.state = state
        self.sensors = list(sensors)
        self.interval = config.SENSOR_POLL_INTERVAL if interval is None else interval

        self._failing: dict[str, bool] = {}
        self._health_lock = threading.Lock()

        self._running = threading.Event()
        self._running.set()
        self._stop = threading.Event()

    def begin(self) -> None:
        for sensor in self.sensors:
            ok = sensor.begin()
            if not ok:
                print(f"[SENSOR] WARNING: {sensor.name} failed to initialize.")
            with self._health_lock:
                self._failing[sensor.name] = not ok

    def poll_once(self):
        """Read all drivers once. Returns the readings that were collected."""
        readings = []
        for sensor in self.sensors:
            try:
                with self.state.bus_lock:
                    values = sensor.provide_measurements() or []
            except Exception as e:
                print(f"[SENSOR] ERROR: {sensor.name} read failed: {type(e).__name__}: {e}")
                values = []

            if not values:
                print(f"[SENSOR] WARNING: {sensor.name} returned no data.")
            with self._health_lock:
                self._failing[sensor.name] = not values
            readings.extend(values)

        if readings:
            self.state.set_measurements(readings)
        return readings

    def health(self) -> str:
        with self._health_lock:
            failing = sorted(name for name, bad in self._failing.items() if bad)
        if not failing:
            return "OK"
        return "Failing: " + ", ".join(failing)

    # --- Task control ---

    def suspend(self) -> None:
        if self._running.is_set():
            print("[SENSOR] Acquisition suspended.")
        self._running.clear()

    def resume(self) -> None:
        if not self._running.is_set():
            print("[SENSOR] Acquisition resumed.")
        self._running.set()

    @property
    def suspended(self) -> bool:
        return not self._running.is_set()

    def stop(self) -> None:
        self._stop.set()
        self._running.set()

    def start_poll_loop(self) -> None:
        """Thread body. Polls every `interval` seconds until stop()."""
        print(f"[SENSOR] Polling {len(self.sensors)} sensors every {self.interval:g} seconds.")
        while not self._stop.is_set():
            self._running.wait()
            if self._stop.is_set():
                break
            self.poll_once()
            self._stop.wait(self.interval)
