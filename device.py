# device.py
"""
FILE: device.py
DESCRIPTION:
  Immutable identity of the physical device. Every entity embeds the
  device block and availability settings in its discovery document.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Device:
    device_prefix: str
    mac_id: str
    friendly_name: str
    firmware_version: str
    discovery_prefix: str = "homeassistant"
    online_payload: str = "online"
    offline_payload: str = "offline"
    device_id: str = field(init=False)
    availability_topic: str = field(init=False)

    def __post_init__(self):
        device_id = f"{self.device_prefix}{self.mac_id}"
        # frozen: assign derived fields through object.__setattr__
        object.__setattr__(self, "device_id", device_id)
        object.__setattr__(
            self,
            "availability_topic",
            f"{self.discovery_prefix}/device/{device_id}/availability",
        )

    @property
    def state_topic(self) -> str:
        """Single state topic shared by every entity of this device."""
        return f"{self.discovery_prefix}/device/{self.device_id}/state"

    def device_info(self) -> dict:
        return {
            "ids": [self.device_id],
            "name": self.friendly_name,
            "sw": self.firmware_version,
        }
