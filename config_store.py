# config_store.py
"""
FILE: config_store.py
DESCRIPTION:
  Persistent key/value store for values the user can change at runtime
  (from Home Assistant or the web portal). Backed by a JSON file that is
  rewritten atomically on every put.
"""
from __future__ import annotations

import json
import os
import threading


class keys:
    FRIENDLY_NAME = "friendly_name"
    HOST_NAME = "host_name"
    REPORT_INTERVAL = "report_interval"      # minutes
    DISPLAY_INTERVAL = "display_interval"    # seconds
    ENABLE_DISPLAY = "enable_display"
    FAN_SPEED = "fan_speed"                  # percent


class defaults:
    FRIENDLY_NAME = "Smart Air Quality Monitor"
    HOST_NAME = "smaq"
    REPORT_INTERVAL = 5
    DISPLAY_INTERVAL = 10
    ENABLE_DISPLAY = True
    FAN_SPEED = 20


class ConfigStore:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._data = self._load()

    def _load(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            print(f"[CONFIG] WARNING: Ignoring unreadable store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save_locked(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    def _put(self, key: str, value) -> None:
        with self._lock:
            self._data[key] = value
            self._save_locked()

    def get_string(self, key: str, default: str = "") -> str:
        with self._lock:
            v = self._data.get(key)
        return default if v is None else str(v)

    def get_int(self, key: str, default: int = 0) -> int:
        with self._lock:
            v = self._data.get(key)
        if v is None:
            return default
        try:
            return int(v)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        with self._lock:
            v = self._data.get(key)
        if v is None:
            return default
        if isinstance(v, bool):
            return v
        if isinstance(v, (int, float)):
            return v != 0
        return str(v).strip().lower() in {"1", "true", "on", "yes"}

    def put_string(self, key: str, value: str) -> None:
        self._put(key, str(value))

    def put_int(self, key: str, value: int) -> None:
        self._put(key, int(value))

    def put_bool(self, key: str, value: bool) -> None:
        self._put(key, bool(value))

    def host_name(self, mac_id: str, default: str = defaults.HOST_NAME) -> str:
        """Configured host name suffixed with the last 4 chars of the mac id."""
        name = self.get_string(keys.HOST_NAME, default) or default
        suffix = mac_id[-4:] if len(mac_id) >= 4 else "0000"
        return f"{name}-{suffix}"
