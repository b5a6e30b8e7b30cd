#!/usr/bin/env python3
"""
FILE: main.py
DESCRIPTION:
  The main executable script.
  - Installs the timestamped/colorized console logger.
  - Builds the device identity, broker connection and HA integration.
  - Starts the sensor acquisition task and the watchdog.
  - Runs the main control loop: broker servicing, reporting, display.
"""
import os
import sys
import re

# --- 0. FORCE COLOR ENVIRONMENT ---
os.environ["TERM"] = "xterm-256color"
os.environ["CLICOLOR_FORCE"] = "1"

import builtins
from datetime import datetime
import signal
import threading
import time
import importlib.util

# --- 1. GLOBAL LOGGING & COLOR SETUP ---
c_cyan    = "\033[1;36m"   # Bold Cyan (Source tags / JSON Keys)
c_magenta = "\033[1;35m"   # Bold Magenta (System Tags / DEBUG Header)
c_blue    = "\033[1;34m"   # Bold Blue (Logo)
c_green   = "\033[1;32m"   # Bold Green (DATA Header / INFO)
c_yellow  = "\033[1;33m"   # Bold Yellow (WARN Only)
c_red     = "\033[1;31m"   # Bold Red (ERROR)
c_white   = "\033[1;37m"   # Bold White (Values / Brackets / Colons)
c_dim     = "\033[37m"     # Standard White (Timestamp)
c_reset   = "\033[0m"

_original_print = builtins.print

def get_source_color(clean_text):
    clean = clean_text.lower()
    if "mqtt" in clean: return c_magenta
    if "startup" in clean: return c_magenta
    if "ha" == clean: return c_magenta
    if "watchdog" in clean: return c_red
    if "ota" in clean: return c_yellow
    return c_cyan

def highlight_json(text):
    text = re.sub(r'("[^"]+")\s*:', f'{c_cyan}\\1{c_reset}{c_white}:{c_reset}', text)
    text = re.sub(r':\s*("[^"]+")', f': {c_white}\\1{c_reset}', text)
    text = re.sub(r':\s*(-?\d+\.?\d*)', f': {c_white}\\1{c_reset}', text)
    text = re.sub(r':\s*(true|false|null)', f': {c_white}\\1{c_reset}', text)
    return text

def timestamped_print(*args, **kwargs):
    now = datetime.now().strftime("%H:%M:%S")
    time_prefix = f"{c_dim}[{now}]{c_reset}"
    msg = " ".join(map(str, args))
    lower_msg = msg.lower()

    header = f"{c_green}INFO{c_reset}{c_white}:{c_reset}"
    special_formatting_applied = False

    if any(x in lower_msg for x in ["error", "critical", "failed", "crashed"]):
        header = f"{c_red}ERROR{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("CRITICAL:", "").replace("ERROR:", "").strip()
    elif "warning" in lower_msg:
        header = f"{c_yellow}WARN{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("WARNING:", "").strip()
    elif "debug" in lower_msg:
        header = f"{c_magenta}DEBUG{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("[DEBUG]", "").replace("[debug]", "").strip()
        if "{" in msg and "}" in msg: msg = highlight_json(msg)
    elif "-> tx" in lower_msg:
        header = f"{c_green}DATA{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("-> TX", "").strip()
        match = re.match(r".*?\[(.*?)(?:\])?:\s+(.*)", msg)
        if match:
            src_text = match.group(1).replace("]", "")
            val = match.group(2)
            if "{" in val and "}" in val: val = highlight_json(val)
            msg = f"{c_white}[{c_reset}{c_cyan}{src_text}{c_reset}{c_white}]:{c_reset} {c_white}{val}{c_reset}"
            special_formatting_applied = True

    if not special_formatting_applied:
        match = re.match(r"^\[(.*?)\]\s*(.*)", msg)
        if match:
            src_text = match.group(1)
            rest_of_msg = match.group(2)
            rest_of_msg = re.sub(r"^:\s*", "", rest_of_msg).strip()
            s_color = get_source_color(src_text)
            msg = f"{c_white}[{c_reset}{s_color}{src_text}{c_reset}{c_white}]:{c_reset} {rest_of_msg}"

    _original_print(f"{time_prefix} {header} {msg}", flush=True, **kwargs)

builtins.print = timestamped_print

def check_dependencies():
    if importlib.util.find_spec("paho") is None:
        print("CRITICAL: Python dependency 'paho-mqtt' not found.")
        sys.exit(1)



import config
from actuators import PWMFan
from app_state import AppState
from config_store import ConfigStore, keys
from data_processor import SensorPoller
from device import Device
from display import ConsoleDisplay
from integration import Integration
from measurement import MeasurementType
from sensors import default_sensors
from utils import get_ip_address, get_mac_id, network_link_up
from watchdog import SafeModeGuard, Watchdog

# (type, object_id, name, device_class, unit)
SENSOR_ENTITIES = [
    (MeasurementType.TEMPERATURE, "temp", "Temperature", "temperature", "°C"),
    (MeasurementType.HUMIDITY, "hum", "Humidity", "humidity", "%"),
    (MeasurementType.PM1, "pm1", "PM1", "pm1", "µg/m³"),
    (MeasurementType.PM25, "pm25", "PM2.5", "pm25", "µg/m³"),
    (MeasurementType.PM10, "pm10", "PM10", "pm10", "µg/m³"),
    (MeasurementType.CO2, "co2", "CO2", "carbon_dioxide", "ppm"),
]


def get_version():
    """Return display version for logs/device info.

    Base version comes from config.yaml (VER.REV.PATCH).
    Optional build metadata can be supplied via SMAQ_BUILD and will be
    appended as SemVer build metadata: VER.REV.PATCH+BUILD.
    """
    from version_utils import get_display_version
    cfg_path = os.path.join(os.path.dirname(os.path.realpath(__file__)), "config.yaml")
    return get_display_version(cfg_path, prefix="v")


def show_logo(version):
    logo_lines = [
        r"   ____  __  __    _    ___  ",
        r"  / ___||  \/  |  / \  / _ \ ",
        r"  \___ \| |\/| | / _ \| | | |",
        r"   ___) | |  | |/ ___ \ |_| |",
        r"  |____/|_|  |_/_/   \_\__\_\ ",
    ]
    for line in logo_lines: sys.stdout.write(f"{c_blue}{line}{c_reset}\n")
    sys.stdout.write(f"\n{c_cyan}>>> Smart Air Quality Monitor for Home Assistant ({c_reset}{c_yellow}{version}{c_reset}{c_cyan}) <<<{c_reset}\n\n\n")
    sys.stdout.flush()


def wire_callbacks(integration, state, store, fan, display):
    """Connect HA commands to hardware, persisted config and shared state."""

    def on_fan(on, speed):
        if speed is None:
            speed = state.fan_speed
        state.fan_on = on
        if speed > 0:
            state.fan_speed = speed
            store.put_int(keys.FAN_SPEED, speed)
        if on:
            fan.turn_to_percent(state.fan_speed)
        else:
            fan.turn_off()

    def on_display(enabled):
        state.display_enabled = enabled
        display.set_enabled(enabled)

    def on_config_save(key, value):
        if isinstance(value, bool):
            store.put_bool(key, value)
            return
        store.put_int(key, value)
        if key == keys.DISPLAY_INTERVAL:
            state.display_interval_ms = int(value) * 1000
        elif key == keys.REPORT_INTERVAL:
            state.report_interval_s = int(value) * 60

    def on_reconnected():
        integration.sync_state(
            state.display_enabled,
            state.display_interval_ms,
            state.report_interval_s,
            state.fan_speed,
            state.fan_on,
        )

    integration.set_fan_callback(on_fan)
    integration.set_display_callback(on_display)
    integration.set_config_save_callback(on_config_save)
    integration.set_reconnected_callback(on_reconnected)


def install_update_signals(guard):
    """SIGUSR1 enters update safe mode, SIGUSR2 leaves it."""
    signal.signal(signal.SIGUSR1, lambda *_: guard.request(True))
    signal.signal(signal.SIGUSR2, lambda *_: guard.request(False))


def main():
    check_dependencies()
    # Imports paho; only safe once the dependency check passed.
    from mqtt_handler import LastWill, ReconnectingMQTT

    ver = get_version()
    show_logo(ver)

    store = ConfigStore(config.CONFIG_STORE_PATH)
    state = AppState.from_store(store)

    mac_id = get_mac_id()
    friendly_name = store.get_string(keys.FRIENDLY_NAME, config.FRIENDLY_NAME)
    device = Device(config.DEVICE_PREFIX, mac_id, friendly_name, ver, discovery_prefix=config.DISCOVERY_PREFIX)
    print(f"[STARTUP] Device {device.device_id} ({store.host_name(mac_id, config.HOST_NAME)})")

    mqtt_client = ReconnectingMQTT(
        client_id=device.device_id,
        will=LastWill(device.availability_topic, device.offline_payload),
        link_up=network_link_up,
    )
    integration = Integration(device, mqtt_client, config.DISCOVERY_PREFIX)

    display = ConsoleDisplay(enabled=state.display_enabled)
    fan = PWMFan()
    fan.turn_to_percent(state.fan_speed if state.fan_on else 0)

    wire_callbacks(integration, state, store, fan, display)
    integration.begin()
    for mtype, object_id, name, device_class, unit in SENSOR_ENTITIES:
        integration.add_sensor(mtype, object_id, name, device_class, unit)

    poller = SensorPoller(state, default_sensors())
    poller.begin()
    threading.Thread(target=poller.start_poll_loop, daemon=True).start()

    watchdog = Watchdog(config.WATCHDOG_TIMEOUT)
    watchdog.arm()
    threading.Thread(target=watchdog.run, daemon=True).start()

    guard = SafeModeGuard(state, poller, watchdog, fan=fan, display=display)
    install_update_signals(guard)

    ip_address = get_ip_address()
    display.ip_address = ip_address
    mqtt_client.start()
    integration.update_ip_address(ip_address)

    last_report = None
    last_display = None
    display_index = 0

    try:
        while True:
            watchdog.feed()
            guard.service()
            integration.loop()

            now = time.monotonic()
            if last_report is None or now - last_report >= state.report_interval_s:
                readings = state.snapshot()
                if readings:
                    integration.report(readings)
                    last_report = now
                integration.update_sensor_health(poller.health())

            if last_display is None or (now - last_display) * 1000 >= state.display_interval_ms:
                last_display = now
                display.set_connectivity(network_link_up(), mqtt_client.is_connected())
                readings = state.snapshot()
                if readings:
                    display_index %= len(readings)
                    display.show_measurement(readings[display_index])
                    display_index += 1
                else:
                    display.show("Waiting for sensors...")

            time.sleep(config.MAIN_LOOP_INTERVAL)
    except KeyboardInterrupt:
        print("\n[SHUTDOWN] Stopping...")
    finally:
        poller.stop()
        watchdog.stop()
        mqtt_client.stop()

if __name__ == "__main__":
    main()
