import pytest

from device import Device


class FakeTransport:
    """In-memory stand-in for ReconnectingMQTT."""

    def __init__(self, connected=True):
        self.connected = connected
        self.published = []
        self.subscriptions = []
        self.fail_topics = set()
        self.loops = 0
        self._message_cb = None
        self._disconnect_listeners = []

    def is_connected(self):
        return self.connected

    def set_message_callback(self, cb):
        self._message_cb = cb

    def add_disconnect_listener(self, listener):
        self._disconnect_listeners.append(listener)

    def subscribe(self, topic):
        self.subscriptions.append(topic)

    def publish(self, topic, payload, retain=False):
        if not self.connected or topic in self.fail_topics:
            return False
        self.published.append((topic, payload, retain))
        return True

    def loop(self):
        self.loops += 1

    # --- test helpers ---

    def deliver(self, topic, payload):
        self._message_cb(topic, payload)

    def drop(self):
        self.connected = False
        for listener in self._disconnect_listeners:
            listener()

    def topics(self):
        return [t for t, _, _ in self.published]


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def device():
    return Device("smaq_", "A1B2C3", "Living Room", "v1.0.0")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock(1000.0)
