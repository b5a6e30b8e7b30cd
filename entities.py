# entities.py
"""
FILE: entities.py
DESCRIPTION:
  Home Assistant MQTT entities exposed by the device.
  - Entity: shared topic layout, discovery document and state contribution.
  - Sensor: read-only string value.
  - Switch: ON/OFF, commandable.
  - Number: bounded float, commandable.
  - Fan: on/off + percentage on two command topics.

  handle_command() always updates the entity's cached state first and only
  then invokes the callback, so the next state report echoes the command.
  Malformed payloads are dropped without touching state or calling back.
"""
from __future__ import annotations

import math
from typing import Callable, Optional

from device import Device

PAYLOAD_ON = "ON"
PAYLOAD_OFF = "OFF"


def _value_template(key: str) -> str:
    return "{{ value_json.%s }}" % key


class Entity:
    """Base for all entity kinds. Subclasses set COMPONENT."""

    COMPONENT = ""

    def __init__(self, device: Device, object_id: str, friendly_name: str, discovery_prefix: str | None = None):
        self.device = device
        self.object_id = object_id
        self.friendly_name = friendly_name
        self.unique_id = f"{object_id}_{device.mac_id}"
        self.discovery_prefix = discovery_prefix or device.discovery_prefix
        self.base_topic = f"{self.discovery_prefix}/{self.COMPONENT}/{device.device_id}/{object_id}"

    @property
    def component(self) -> str:
        return self.COMPONENT

    @property
    def discovery_topic(self) -> str:
        return f"{self.base_topic}/config"

    @property
    def state_topic(self) -> str:
        return f"{self.discovery_prefix}/device/{self.device.device_id}/state"

    @property
    def command_topics(self) -> list[str]:
        return []

    def state_payload(self) -> str:
        return ""

    def discovery_payload(self, device: Device | None = None) -> dict:
        device = device or self.device
        return {
            "dev": device.device_info(),
            "name": self.friendly_name,
            "uniq_id": self.unique_id,
            "stat_t": self.state_topic,
            "avty_t": device.availability_topic,
            "pl_avail": device.online_payload,
            "pl_not_avail": device.offline_payload,
        }

    def handle_command(self, topic: str, payload: str) -> None:
        pass

    def populate_state(self, doc: dict) -> None:
        state = self.state_payload()
        if state:
            doc[self.object_id] = state

    def __repr__(self):
        return f"<{type(self).__name__} {self.object_id}>"


class Sensor(Entity):
    COMPONENT = "sensor"

    def __init__(
        self,
        device: Device,
        object_id: str,
        friendly_name: str,
        device_class: str = "",
        unit: str = "",
        discovery_prefix: str | None = None,
        category: str = "",
        icon: str = "",
    ):
        super().__init__(device, object_id, friendly_name, discovery_prefix)
        self.device_class = device_class or ""
        self.unit = unit or ""
        self.category = category or ""
        self.icon = icon or ""
        self._state = ""

    def update_state(self, value) -> None:
        self._state = "" if value is None else str(value)

    def state_payload(self) -> str:
        return self._state

    def discovery_payload(self, device: Device | None = None) -> dict:
        doc = super().discovery_payload(device)
        # Empty metadata is omitted rather than sent as "".
        if self.device_class:
            doc["dev_cla"] = self.device_class
        doc["val_tpl"] = _value_template(self.object_id)
        if self.unit:
            doc["unit_of_meas"] = self.unit
        if self.category:
            doc["ent_cat"] = self.category
        if self.icon:
            doc["icon"] = self.icon
        return doc


class Switch(Entity):
    COMPONENT = "switch"

    def __init__(
        self,
        device: Device,
        object_id: str,
        friendly_name: str,
        on_toggle: Optional[Callable[[bool], None]] = None,
        discovery_prefix: str | None = None,
    ):
        super().__init__(device, object_id, friendly_name, discovery_prefix)
        self.command_topic = f"{self.base_topic}/set"
        self._callback = on_toggle
        self.is_on = False

    @property
    def command_topics(self) -> list[str]:
        return [self.command_topic]

    def update_state(self, state: bool) -> None:
        self.is_on = bool(state)

    def state_payload(self) -> str:
        return PAYLOAD_ON if self.is_on else PAYLOAD_OFF

    def discovery_payload(self, device: Device | None = None) -> dict:
        doc = super().discovery_payload(device)
        doc["cmd_t"] = self.command_topic
        doc["payload_on"] = PAYLOAD_ON
        doc["payload_off"] = PAYLOAD_OFF
        doc["state_on"] = PAYLOAD_ON
        doc["state_off"] = PAYLOAD_OFF
        doc["val_tpl"] = _value_template(self.object_id)
        return doc

    def handle_command(self, topic: str, payload: str) -> None:
        if payload not in (PAYLOAD_ON, PAYLOAD_OFF):
            return
        new_state = payload == PAYLOAD_ON
        self.update_state(new_state)
        if self._callback:
            self._callback(new_state)


class Number(Entity):
    COMPONENT = "number"

    def __init__(
        self,
        device: Device,
        object_id: str,
        friendly_name: str,
        minimum: float,
        maximum: float,
        step: float,
        on_change: Optional[Callable[[float], None]] = None,
        discovery_prefix: str | None = None,
    ):
        super().__init__(device, object_id, friendly_name, discovery_prefix)
        self.command_topic = f"{self.base_topic}/set"
        self.minimum = float(minimum)
        self.maximum = float(maximum)
        self.step = float(step)
        self._callback = on_change
        self.value = 0.0

    @property
    def command_topics(self) -> list[str]:
        return [self.command_topic]

    def update_value(self, value: float) -> None:
        self.value = float(value)

    def state_payload(self) -> str:
        return str(self.value)

    def discovery_payload(self, device: Device | None = None) -> dict:
        doc = super().discovery_payload(device)
        doc["cmd_t"] = self.command_topic
        doc["min"] = self.minimum
        doc["max"] = self.maximum
        doc["step"] = self.step
        doc["val_tpl"] = _value_template(self.object_id)
        return doc

    def handle_command(self, topic: str, payload: str) -> None:
        try:
            new_val = float(payload.strip())
        except (AttributeError, ValueError):
            return
        if not math.isfinite(new_val):
            return
        self.value = new_val
        if self._callback:
            self._callback(new_val)


class Fan(Entity):
    """On/off plus percentage speed sharing one entity.

    A positive speed turns an off fan on. Speed 0 and turning the fan off
    both leave the other half of the state untouched.
    """

    COMPONENT = "fan"
    SPEED_MIN = 1
    SPEED_MAX = 100

    def __init__(
        self,
        device: Device,
        object_id: str,
        friendly_name: str,
        on_off: Optional[Callable[[bool], None]] = None,
        on_speed: Optional[Callable[[int], None]] = None,
        discovery_prefix: str | None = None,
    ):
        super().__init__(device, object_id, friendly_name, discovery_prefix)
        self.command_topic = f"{self.base_topic}/set"
        self.percentage_command_topic = f"{self.base_topic}/speed/set"
        self._on_off_callback = on_off
        self._speed_callback = on_speed
        self.is_on = False
        self.speed = 0

    @property
    def command_topics(self) -> list[str]:
        return [self.command_topic, self.percentage_command_topic]

    def update_state(self, state: bool) -> None:
        self.is_on = bool(state)

    def update_speed(self, speed: int) -> None:
        speed = max(0, min(100, int(speed)))
        self.speed = speed
        if speed > 0 and not self.is_on:
            self.is_on = True

    def discovery_payload(self, device: Device | None = None) -> dict:
        doc = super().discovery_payload(device)
        doc["cmd_t"] = self.command_topic
        doc["pct_cmd_t"] = self.percentage_command_topic
        doc["payload_on"] = PAYLOAD_ON
        doc["payload_off"] = PAYLOAD_OFF
        doc["pct_stat_t"] = self.state_topic
        doc["stat_val_tpl"] = _value_template(f"{self.object_id}_state")
        doc["pct_val_tpl"] = _value_template(f"{self.object_id}_speed")
        doc["spd_rng_min"] = self.SPEED_MIN
        doc["spd_rng_max"] = self.SPEED_MAX
        return doc

    def handle_command(self, topic: str, payload: str) -> None:
        if topic == self.command_topic:
            if payload not in (PAYLOAD_ON, PAYLOAD_OFF):
                return
            new_state = payload == PAYLOAD_ON
            self.update_state(new_state)
            if self._on_off_callback:
                self._on_off_callback(new_state)
        elif topic == self.percentage_command_topic:
            try:
                speed = int(float(payload.strip()))
            except (AttributeError, ValueError, OverflowError):
                return
            self.update_speed(speed)
            if self._speed_callback:
                self._speed_callback(self.speed)

    def populate_state(self, doc: dict) -> None:
        doc[f"{self.object_id}_state"] = PAYLOAD_ON if self.is_on else PAYLOAD_OFF
        doc[f"{self.object_id}_speed"] = self.speed
