# tests/test_integration.py
import json

import pytest

from config_store import keys
from entity_manager import EntityManager
from integration import Integration
from measurement import Measurement, MeasurementType, MeasurementUnit


@pytest.fixture
def integration(device, transport, clock):
    manager = EntityManager(device, transport, report_interval=30.0, clock=clock)
    integ = Integration(device, transport, manager=manager)
    integ.begin()
    integ.add_sensor(MeasurementType.TEMPERATURE, "temp", "Temperature", "temperature", "°C")
    integ.add_sensor(MeasurementType.CO2, "co2", "CO2", "carbon_dioxide", "ppm")
    return integ


def _last_state(transport, device):
    docs = [json.loads(p) for t, p, _ in transport.published if t == device.state_topic]
    return docs[-1] if docs else None


def test_begin_creates_controls_in_order(integration):
    ids = [e.object_id for e in integration.manager.entities]
    assert ids == [
        "display_toggle",
        "display_interval",
        "report_interval",
        "fan",
        "ip_address",
        "sensor_health",
        "temp",
        "co2",
    ]
    assert integration.display_interval.minimum == 5
    assert integration.display_interval.step == 5
    assert integration.report_interval.maximum == 15
    assert integration.ip_sensor.category == "diagnostic"


def test_first_loop_announces_online_then_reports(integration, transport, device):
    reconnects = []
    integration.set_reconnected_callback(lambda: reconnects.append(True))
    integration.report([Measurement(MeasurementType.TEMPERATURE, MeasurementUnit.DEGREES_CELSIUS, 21.5)])

    integration.loop()

    assert reconnects == [True]
    assert (device.availability_topic, "online", True) in transport.published
    topics = transport.topics()
    first_state = topics.index(device.state_topic)
    assert all(t.endswith("/config") for t in topics[: first_state] if t != device.availability_topic)
    assert _last_state(transport, device)["temp"] == "21.50"
    assert integration.needs_report is False


def test_reconnect_edge_fires_once_per_connection(integration, transport):
    reconnects = []
    integration.set_reconnected_callback(lambda: reconnects.append(True))

    integration.loop()
    integration.loop()
    assert reconnects == [True]

    transport.drop()
    integration.loop()
    assert reconnects == [True]

    transport.connected = True
    integration.loop()
    assert reconnects == [True, True]


def test_dirty_flag_kept_until_report_succeeds(integration, transport):
    transport.connected = False
    integration.report([Measurement(MeasurementType.CO2, MeasurementUnit.PPM, 612)])
    integration.loop()
    assert integration.needs_report is True

    transport.connected = True
    integration.loop()
    assert integration.needs_report is False


def test_report_ignores_unregistered_types(integration):
    integration.report([Measurement(MeasurementType.PM10, MeasurementUnit.MICROGRAM_PER_CUBIC_METER, 3.0)])
    assert integration.needs_report is False


def test_display_toggle_command(integration, transport, device):
    displayed, saved = [], []
    integration.set_display_callback(displayed.append)
    integration.set_config_save_callback(lambda k, v: saved.append((k, v)))
    integration.loop()

    transport.deliver(integration.display_switch.command_topic, b"ON")

    assert displayed == [True]
    assert saved == [(keys.ENABLE_DISPLAY, True)]
    assert _last_state(transport, device)["display_toggle"] == "ON"


def test_interval_commands_save_integers(integration, transport, device):
    saved = []
    integration.set_config_save_callback(lambda k, v: saved.append((k, v)))
    integration.loop()

    transport.deliver(integration.display_interval.command_topic, b"15")
    transport.deliver(integration.report_interval.command_topic, b"3")
    transport.deliver(integration.report_interval.command_topic, b"soon")

    assert saved == [(keys.DISPLAY_INTERVAL, 15), (keys.REPORT_INTERVAL, 3)]
    state = _last_state(transport, device)
    assert state["display_interval"] == "15.0"
    assert state["report_interval"] == "3.0"


def test_fan_commands_reach_callback(integration, transport, device):
    calls = []
    integration.set_fan_callback(lambda on, speed: calls.append((on, speed)))
    integration.loop()

    transport.deliver(integration.fan.percentage_command_topic, b"150")
    transport.deliver(integration.fan.command_topic, b"OFF")
    transport.deliver(integration.fan.percentage_command_topic, b"")

    assert calls == [(True, 100), (False, None)]
    state = _last_state(transport, device)
    assert state["fan_state"] == "OFF"
    assert state["fan_speed"] == 100


def test_sync_state_restores_controls(integration, transport, device):
    integration.loop()
    integration.sync_state(False, 5000, 600, 35, True)

    state = _last_state(transport, device)
    assert state["display_toggle"] == "OFF"
    assert state["display_interval"] == "5.0"
    assert state["report_interval"] == "10.0"
    assert state["fan_state"] == "ON"
    assert state["fan_speed"] == 35


def test_sensor_health_only_marks_dirty_on_change(integration):
    integration.update_sensor_health("OK")
    assert integration.needs_report is True
    integration.needs_report = False
    integration.update_sensor_health("OK")
    assert integration.needs_report is False


def test_ip_address_is_reported_immediately(integration, transport, device):
    integration.loop()
    integration.update_ip_address("192.168.1.20")
    assert _last_state(transport, device)["ip_address"] == "192.168.1.20"


def test_lost_connection_logs_warning_once(integration, transport, capsys):
    integration.loop()
    capsys.readouterr()
    transport.drop()
    integration.loop()
    integration.loop()
    out = capsys.readouterr().out
    assert out.count("connection lost") == 1


def _wire_app_fan(integration):
    """Application side of the fan: remembers on/off and the last non-zero speed."""
    app = {"on": True, "speed": 20}

    def on_fan(on, speed):
        app["on"] = on
        if speed:
            app["speed"] = speed

    integration.set_fan_callback(on_fan)
    integration.set_reconnected_callback(
        lambda: integration.sync_state(True, 10000, 300, app["speed"], app["on"])
    )
    return app


def test_fan_turned_off_stays_off_across_reconnect(integration, transport, device):
    app = _wire_app_fan(integration)
    integration.loop()

    transport.deliver(integration.fan.command_topic, b"OFF")
    assert app["on"] is False

    transport.drop()
    integration.loop()
    transport.connected = True
    integration.loop()

    state = _last_state(transport, device)
    assert state["fan_state"] == "OFF"
    assert state["fan_speed"] == 20


def test_sync_state_off_with_positive_speed(integration, transport, device):
    integration.loop()
    integration.sync_state(True, 10000, 300, 55, False)
    assert integration.fan.is_on is False
    assert integration.fan.speed == 55
    assert _last_state(transport, device)["fan_state"] == "OFF"


def test_fan_speed_zero_turns_fan_off(integration, transport, device):
    calls = []
    integration.set_fan_callback(lambda on, speed: calls.append((on, speed)))
    integration.loop()

    transport.deliver(integration.fan.percentage_command_topic, b"40")
    transport.deliver(integration.fan.percentage_command_topic, b"0")

    assert calls == [(True, 40), (False, None)]
    state = _last_state(transport, device)
    assert state["fan_state"] == "OFF"
    assert state["fan_speed"] == 0
