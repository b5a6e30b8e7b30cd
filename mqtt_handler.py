# mqtt_handler.py
"""
FILE: mqtt_handler.py
DESCRIPTION:
  Manages the connection to the MQTT Broker.
  - One logical connection over an unreliable link, serviced from loop().
  - Reconnects with exponential backoff (BACKOFF_MIN doubling to BACKOFF_MAX).
  - Registers an "offline" last will before every connect attempt.
  - Re-subscribes every registered topic after each successful connect.
  - Publish failures are returned to the caller, never retried here.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

import config

DISCONNECTED = "disconnected"
CONNECTING = "connecting"
CONNECTED = "connected"


@dataclass(frozen=True)
class LastWill:
    topic: str
    payload: str
    retain: bool = True
    qos: int = 0


class ReconnectingMQTT:
    def __init__(
        self,
        client_id: str,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        will: Optional[LastWill] = None,
        link_up: Optional[Callable[[], bool]] = None,
        min_backoff: float | None = None,
        max_backoff: float | None = None,
        connect_timeout: float | None = None,
        keepalive: int | None = None,
        clock=time.monotonic,
    ):
        self.client_id = client_id
        self.host = host if host is not None else config.MQTT_SETTINGS["host"]
        self.port = int(port if port is not None else config.MQTT_SETTINGS["port"])
        self.keepalive = int(keepalive if keepalive is not None else config.MQTT_SETTINGS.get("keepalive", 60))
        self.will = will
        self.min_backoff = float(config.BACKOFF_MIN if min_backoff is None else min_backoff)
        self.max_backoff = float(config.BACKOFF_MAX if max_backoff is None else max_backoff)
        self.connect_timeout = float(config.CONNECT_TIMEOUT if connect_timeout is None else connect_timeout)
        self._link_up = link_up or (lambda: True)
        self._clock = clock

        self.client = mqtt.Client(callback_api_version=CallbackAPIVersion.VERSION2, client_id=client_id)
        user = config.MQTT_SETTINGS["user"] if username is None else username
        if user:
            self.client.username_pw_set(user, config.MQTT_SETTINGS["pass"] if password is None else password)
        if will is not None:
            self.client.will_set(will.topic, will.payload, qos=will.qos, retain=will.retain)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self.state = DISCONNECTED
        self.backoff = self.min_backoff
        self.next_attempt_at: float | None = None
        self.attempts = 0

        # Ordered so resubscription follows registration order.
        self._topics: dict[str, None] = {}
        self._message_callback: Optional[Callable[[str, bytes], None]] = None
        self._disconnect_listeners: list[Callable[[], None]] = []

        self._lock = threading.RLock()

    # --- Contract ---

    def is_connected(self) -> bool:
        return self.state == CONNECTED

    def set_message_callback(self, callback: Callable[[str, bytes], None]) -> None:
        self._message_callback = callback

    def add_disconnect_listener(self, listener: Callable[[], None]) -> None:
        self._disconnect_listeners.append(listener)

    def subscribe(self, topic: str) -> None:
        with self._lock:
            if topic in self._topics:
                return
            self._topics[topic] = None
            if self.state == CONNECTED:
                self.client.subscribe(topic)

    def publish(self, topic: str, payload, retain: bool = False) -> bool:
        with self._lock:
            if self.state != CONNECTED:
                return False
            info = self.client.publish(topic, payload, retain=retain)
            if info.rc == mqtt.MQTT_ERR_SUCCESS:
                return True
            print(f"[MQTT] Publish to {topic} failed (rc={info.rc}).")
            if info.rc == mqtt.MQTT_ERR_NO_CONN:
                self._link_lost()
            return False

    def loop(self) -> None:
        """Service the connection. Call this regularly from the main loop."""
        with self._lock:
            if self.state == CONNECTED:
                rc = self.client.loop(timeout=0.0)
                if rc != mqtt.MQTT_ERR_SUCCESS and self.state == CONNECTED:
                    print(f"[MQTT] WARNING: Connection lost (rc={rc}).")
                    self._link_lost()
                return

            if not self._link_up():
                return

            now = self._clock()
            if self.next_attempt_at is not None and now < self.next_attempt_at:
                return

            self._attempt_connect(now)

    # --- Lifecycle helpers ---

    def start(self) -> None:
        print(f"[STARTUP] Connecting to MQTT Broker at {self.host}:{self.port}...")
        self.loop()

    def stop(self) -> None:
        with self._lock:
            was_connected = self.state == CONNECTED
            # A clean disconnect suppresses the will, so publish it ourselves.
            if was_connected and self.will is not None:
                self.client.publish(self.will.topic, self.will.payload, retain=self.will.retain)
            self.state = DISCONNECTED
            self.client.disconnect()
            if was_connected:
                # Flush the queued packets.
                self.client.loop(timeout=0.1)

    # --- Internals ---

    def _attempt_connect(self, now: float) -> None:
        self.state = CONNECTING
        self.attempts += 1
        try:
            self.client.connect(self.host, self.port, keepalive=self.keepalive)
        except OSError as e:
            self._connect_failed(now, f"{type(e).__name__}: {e}")
            return

        # Wait for CONNACK, bounded by connect_timeout.
        deadline = self._clock() + self.connect_timeout
        while self.state == CONNECTING and self._clock() < deadline:
            rc = self.client.loop(timeout=0.1)
            if rc != mqtt.MQTT_ERR_SUCCESS:
                break

        if self.state == CONNECTED:
            self._connect_succeeded()
        else:
            self._connect_failed(now, "no CONNACK" if self.state == CONNECTING else "refused")

    def _connect_succeeded(self) -> None:
        self.backoff = self.min_backoff
        self.next_attempt_at = None
        print(f"[MQTT] Connected Successfully (attempt {self.attempts}).")
        self.attempts = 0
        for topic in self._topics:
            self.client.subscribe(topic)

    def _connect_failed(self, now: float, reason: str) -> None:
        self.state = DISCONNECTED
        self.next_attempt_at = now + self.backoff
        print(f"[MQTT] WARNING: Connection attempt {self.attempts} failed ({reason}); retrying in {self.backoff:g}s.")
        self.backoff = min(self.backoff * 2, self.max_backoff)
        self._force_close()

    def _force_close(self) -> None:
        # Drop any half-open socket so the next attempt starts clean.
        sock = self.client.socket()
        if sock is not None:
            sock.close()

    def _link_lost(self) -> None:
        self.state = DISCONNECTED
        self.backoff = self.min_backoff
        self.next_attempt_at = None
        self._force_close()
        for listener in list(self._disconnect_listeners):
            listener()

    # --- paho callbacks (run inside client.loop) ---

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            self.state = CONNECTED
        else:
            print(f"[MQTT] Connection Failed! Code: {reason_code}")
            self.state = DISCONNECTED

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        if self.state == CONNECTED:
            print(f"[MQTT] WARNING: Disconnected from broker (code: {reason_code}).")
            self._link_lost()

    def _on_message(self, client, userdata, msg):
        if self._message_callback is not None:
            self._message_callback(msg.topic, msg.payload)
