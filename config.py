# config.py
"""
FILE: config.py
DESCRIPTION:
  Process-level settings, read once at import.
  - Layering: built-in defaults < options.json < SMAQ_* environment variables.
  - Runtime-changeable values (display, intervals, fan speed) live in the
    config store instead (see config_store.py); these are only the defaults
    the store is seeded with.
"""
import json
import os

OPTIONS_FILE = os.getenv("SMAQ_OPTIONS_FILE", "/data/options.json")


def _load_options(path):
    """Return the options.json dict, or {} when missing or unreadable."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        print(f"[CONFIG] WARNING: Could not read {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


_OPTIONS = _load_options(OPTIONS_FILE)


def _opt(key, default):
    env_val = os.getenv(f"SMAQ_{key.upper()}")
    if env_val is not None:
        return env_val
    return _OPTIONS.get(key, default)


def _opt_int(key, default):
    try:
        return int(_opt(key, default))
    except (TypeError, ValueError):
        return default


def _opt_float(key, default):
    try:
        return float(_opt(key, default))
    except (TypeError, ValueError):
        return default


def _opt_bool(key, default):
    v = _opt(key, default)
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "on"}


# --- Broker ---
MQTT_SETTINGS = {
    "host": str(_opt("mqtt_host", "localhost")),
    "port": _opt_int("mqtt_port", 1883),
    "user": str(_opt("mqtt_user", "") or ""),
    "pass": str(_opt("mqtt_pass", "") or ""),
    "keepalive": _opt_int("mqtt_keepalive", 60),
}

# Reconnect backoff (seconds). Doubles after each failed attempt.
BACKOFF_MIN = _opt_float("backoff_min", 1.0)
BACKOFF_MAX = _opt_float("backoff_max", 60.0)
CONNECT_TIMEOUT = _opt_float("connect_timeout", 5.0)

# --- Device identity / Home Assistant ---
DEVICE_PREFIX = str(_opt("device_prefix", "smaq_"))
DISCOVERY_PREFIX = str(_opt("discovery_prefix", "homeassistant"))
MAC_ID = str(_opt("mac_id", "") or "")
# Fallbacks until the user renames the device from Home Assistant.
FRIENDLY_NAME = str(_opt("friendly_name", "Smart Air Quality Monitor"))
HOST_NAME = str(_opt("host_name", "smaq"))

# --- Reporting ---
# Minimum spacing between unforced state reports.
REPORT_MIN_INTERVAL = _opt_float("report_min_interval", 30.0)
SENSOR_POLL_INTERVAL = _opt_float("sensor_poll_interval", 10.0)
MAIN_LOOP_INTERVAL = _opt_float("main_loop_interval", 0.1)
WATCHDOG_TIMEOUT = _opt_float("watchdog_timeout", 30.0)

# --- Persistent store (user-changeable values) ---
CONFIG_STORE_PATH = str(_opt("config_store_path", "/data/smaq_store.json"))

# --- Logging ---
VERBOSE_TRANSMISSIONS = _opt_bool("verbose_transmissions", False)
