# tests/test_main.py
import builtins
import importlib
import io
import json
import sys
import pytest


_ORIG_PRINT = builtins.print


def import_main_safely():
    """
    main.py patches builtins.print at import time.
    For unit tests, we import it, then immediately restore builtins.print so it
    doesn't affect other test modules.
    """
    sys.modules.pop("main", None)
    builtins.print = _ORIG_PRINT
    m = importlib.import_module("main")

    # Undo the import-time print hook side effect
    builtins.print = _ORIG_PRINT
    if hasattr(m, "_original_print"):
        m._original_print = _ORIG_PRINT
    return m


class DummyMQTT:
    def __init__(self, client_id=None, will=None, link_up=None, **kwargs):
        self.client_id = client_id
        self.will = will
        self.connected = True
        self.published = []
        self.subscribed = []
        self.started = False
        self.stopped = False

    def start(self): self.started = True
    def stop(self): self.stopped = True
    def loop(self): pass
    def is_connected(self): return self.connected
    def set_message_callback(self, cb): self.message_cb = cb
    def add_disconnect_listener(self, listener): pass
    def subscribe(self, topic): self.subscribed.append(topic)

    def publish(self, topic, payload, retain=False):
        self.published.append((topic, payload, retain))
        return True


class DummyThread:
    def __init__(self, target=None, args=(), daemon=None):
        self.target = target
        self.args = args
    def start(self): return


def test_get_version_parses_config_yaml(mocker, monkeypatch):
    main = import_main_safely()

    # Ensure no build metadata is appended for this test
    monkeypatch.delenv("SMAQ_BUILD", raising=False)
    monkeypatch.delenv("SMAQ_TWEAK", raising=False)
    mocker.patch("builtins.open", return_value=io.StringIO('name: X\nversion: "9.9.9"\n'))

    assert main.get_version() == "v9.9.9"


def test_get_version_appends_build_metadata(mocker, monkeypatch):
    main = import_main_safely()

    monkeypatch.setenv("SMAQ_BUILD", "dev build")
    mocker.patch("builtins.open", return_value=io.StringIO('name: X\nversion: "9.9.9"\n'))

    # Space in build should be sanitized to a dash
    assert main.get_version() == "v9.9.9+dev-build"


def test_check_dependencies_missing_paho_exits(mocker):
    main = import_main_safely()

    mocker.patch("importlib.util.find_spec", return_value=None)

    with pytest.raises(SystemExit):
        main.check_dependencies()


def test_importing_main_does_not_pull_in_paho():
    sys.modules.pop("mqtt_handler", None)
    import_main_safely()
    assert "mqtt_handler" not in sys.modules


def test_check_dependencies_ok(mocker):
    main = import_main_safely()

    mocker.patch("importlib.util.find_spec", return_value=object())
    main.check_dependencies()


def test_wire_callbacks_drive_fan_store_and_state(tmp_path):
    main = import_main_safely()
    from actuators import PWMFan
    from app_state import AppState
    from config_store import ConfigStore, keys
    from display import ConsoleDisplay

    class DummyIntegration:
        def set_fan_callback(self, cb): self.fan_cb = cb
        def set_display_callback(self, cb): self.display_cb = cb
        def set_config_save_callback(self, cb): self.save_cb = cb
        def set_reconnected_callback(self, cb): self.reconnected_cb = cb
        def sync_state(self, *args): self.synced = args

    integ = DummyIntegration()
    state = AppState(fan_speed=20, fan_on=True)
    store = ConfigStore(str(tmp_path / "store.json"))
    fan = PWMFan()
    display = ConsoleDisplay()
    main.wire_callbacks(integ, state, store, fan, display)

    integ.fan_cb(True, 60)
    assert fan.percent == 60
    assert store.get_int(keys.FAN_SPEED) == 60

    integ.fan_cb(False, None)
    assert fan.percent == 0
    assert state.fan_on is False
    assert state.fan_speed == 60

    integ.fan_cb(True, None)
    assert fan.percent == 60

    integ.display_cb(False)
    assert display.enabled is False
    assert state.display_enabled is False

    integ.save_cb(keys.REPORT_INTERVAL, 3)
    integ.save_cb(keys.DISPLAY_INTERVAL, 15)
    integ.save_cb(keys.ENABLE_DISPLAY, False)
    assert state.report_interval_s == 180
    assert state.display_interval_ms == 15000
    assert store.get_int(keys.REPORT_INTERVAL) == 3
    assert store.get_bool(keys.ENABLE_DISPLAY, True) is False

    integ.reconnected_cb()
    assert integ.synced == (False, 15000, 180, 60, True)


def test_main_smoke_run_exits_cleanly(mocker, tmp_path):
    main = import_main_safely()

    # Avoid real dependency checks / banner delay
    mocker.patch.object(main, "check_dependencies", lambda: None)
    mocker.patch.object(main, "show_logo", lambda *_: None)

    created = {}

    def make_mqtt(**kwargs):
        created["mqtt"] = DummyMQTT(**kwargs)
        return created["mqtt"]

    # main() imports the transport lazily, so patch it at its source module
    mocker.patch("mqtt_handler.ReconnectingMQTT", side_effect=make_mqtt)
    mocker.patch.object(main, "get_mac_id", return_value="A1B2C3")
    mocker.patch.object(main, "get_ip_address", return_value="192.168.1.20")
    mocker.patch.object(main, "network_link_up", return_value=True)
    mocker.patch.object(main, "install_update_signals", lambda *_: None)
    mocker.patch.object(main.config, "CONFIG_STORE_PATH", str(tmp_path / "store.json"))

    # Break the infinite loop in main
    calls = {"n": 0}
    def fake_sleep(_):
        calls["n"] += 1
        if calls["n"] >= 2:
            raise KeyboardInterrupt()

    mocker.patch.object(main.time, "sleep", side_effect=fake_sleep)
    mocker.patch.object(main.threading, "Thread", DummyThread)

    main.main()

    mqtt = created["mqtt"]
    assert mqtt.client_id == "smaq_A1B2C3"
    assert mqtt.will.topic == "homeassistant/device/smaq_A1B2C3/availability"
    assert mqtt.will.payload == "offline"
    assert mqtt.started and mqtt.stopped

    topics = [t for t, _, _ in mqtt.published]
    assert ("homeassistant/device/smaq_A1B2C3/availability", "online", True) in mqtt.published
    assert "homeassistant/sensor/smaq_A1B2C3/co2/config" in topics
    assert "homeassistant/fan/smaq_A1B2C3/fan/speed/set" in mqtt.subscribed

    states = [json.loads(p) for t, p, _ in mqtt.published if t == "homeassistant/device/smaq_A1B2C3/state"]
    assert states[-1]["ip_address"] == "192.168.1.20"
    assert states[-1]["sensor_health"] == "OK"
