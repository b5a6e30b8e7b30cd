# entity_manager.py
"""
FILE: entity_manager.py
DESCRIPTION:
  Owns the entities of one device.
  - add_entity(): registers an entity and subscribes its command topics once.
  - publish_discovery(): retained discovery documents, all-or-nothing per batch.
  - report_state(): one flat JSON state document on the shared state topic.
  - handle_message(): routes inbound command messages by exact topic.

  Discovery for a connection epoch always completes before the first state
  report of that epoch. Any observed disconnect invalidates discovery.
"""
from __future__ import annotations

import json
import threading
import time

import config
from device import Device
from entities import Entity


class EntityManager:
    def __init__(self, device: Device, mqtt, report_interval: float | None = None, clock=time.monotonic):
        self.device = device
        self.mqtt = mqtt
        self.report_interval = config.REPORT_MIN_INTERVAL if report_interval is None else report_interval
        self._clock = clock

        self._entities: list[Entity] = []
        self._routes: dict[str, Entity] = {}
        self._subscribed: set[str] = set()

        self.discovery_published = False
        self.last_report_time: float | None = None

        self._lock = threading.RLock()

        mqtt.set_message_callback(self.handle_message)
        mqtt.add_disconnect_listener(self.invalidate_discovery)

    @property
    def entities(self) -> list[Entity]:
        with self._lock:
            return list(self._entities)

    def get(self, object_id: str) -> Entity | None:
        with self._lock:
            for entity in self._entities:
                if entity.object_id == object_id:
                    return entity
        return None

    def add_entity(self, entity: Entity) -> None:
        with self._lock:
            self._entities.append(entity)
            for topic in entity.command_topics:
                if not topic:
                    continue
                self._routes[topic] = entity
                if topic not in self._subscribed:
                    self.mqtt.subscribe(topic)
                    self._subscribed.add(topic)

    def invalidate_discovery(self) -> None:
        with self._lock:
            self.discovery_published = False

    def publish_discovery(self, force: bool = False) -> bool:
        """Publish every discovery document (retained).

        The flag is only set when every publish in the batch succeeded, so a
        partial failure retries the whole batch next time.
        """
        with self._lock:
            if self.discovery_published and not force:
                return True

            all_published = True
            for entity in self._entities:
                payload = json.dumps(entity.discovery_payload(self.device))
                if not self.mqtt.publish(entity.discovery_topic, payload, retain=True):
                    all_published = False

            if not all_published:
                print(f"[HA] WARNING: Discovery incomplete for {self.device.device_id}; will retry.")
            elif self._entities:
                print(f"[HA] Published discovery for {len(self._entities)} entities.")

            self.discovery_published = all_published
            return all_published

    def build_state(self) -> dict:
        doc: dict = {}
        with self._lock:
            for entity in self._entities:
                entity.populate_state(doc)
        return doc

    def report_state(self, force: bool = False) -> bool:
        """Publish the batched state document. Returns True when published."""
        with self._lock:
            if not self.mqtt.is_connected():
                self.discovery_published = False
                return False

            was_published = self.discovery_published
            if not self.discovery_published:
                self.publish_discovery()
            if not self.discovery_published:
                return False

            # First report after (re)discovery is never throttled.
            if not was_published:
                force = True

            now = self._clock()
            if (
                not force
                and self.last_report_time is not None
                and now - self.last_report_time < self.report_interval
            ):
                return False

            doc = self.build_state()
            if not doc:
                return False

            payload = json.dumps(doc)
            if not self.mqtt.publish(self.device.state_topic, payload, retain=False):
                print(f"[HA] WARNING: State publish failed for {self.device.device_id}.")
                return False

            self.last_report_time = now
            if config.VERBOSE_TRANSMISSIONS:
                print(f" -> TX {self.device.friendly_name} [state]: {payload}")
            return True

    def handle_message(self, topic: str, payload) -> None:
        """Transport message callback. Unknown topics are dropped silently."""
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError:
                return
        with self._lock:
            entity = self._routes.get(topic)
            if entity is None:
                return
            entity.handle_command(topic, payload)
