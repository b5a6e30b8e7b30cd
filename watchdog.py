# watchdog.py
"""
FILE: watchdog.py
DESCRIPTION:
  - Watchdog: expects feed() from the main loop while armed; calls on_expire
    when the loop stalls for longer than the timeout.
  - SafeModeGuard: brackets a long foreground operation (firmware update).
    Suspends sensor acquisition, disarms the watchdog and parks the fan;
    stop() restores normal operation. Both calls are idempotent.
    request() records a transition from a signal handler; service() applies it.
"""
from __future__ import annotations

import os
import threading
import time


def _hard_reset():
    print("[WATCHDOG] CRITICAL: Main loop stalled. Restarting.")
    os._exit(1)


class Watchdog:
    def __init__(self, timeout: float, on_expire=None, clock=time.monotonic):
        self.timeout = timeout
        self.on_expire = on_expire or _hard_reset
        self._clock = clock
        self._last_feed = clock()
        self._armed = False
        # Reentrant: feed() may be interrupted by a signal handler on the same thread.
        self._lock = threading.RLock()
        self._stop = threading.Event()

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._armed

    def arm(self) -> None:
        with self._lock:
            self._armed = True
            self._last_feed = self._clock()

    def disarm(self) -> None:
        with self._lock:
            self._armed = False

    def feed(self) -> None:
        with self._lock:
            self._last_feed = self._clock()

    def check(self) -> bool:
        """Return True (and fire on_expire) if armed and starved."""
        with self._lock:
            expired = self._armed and (self._clock() - self._last_feed) > self.timeout
            if expired:
                self._armed = False
        if expired:
            self.on_expire()
        return expired

    def run(self) -> None:
        """Thread body."""
        interval = max(0.5, self.timeout / 4)
        while not self._stop.wait(interval):
            self.check()

    def stop(self) -> None:
        self._stop.set()


class SafeModeGuard:
    def __init__(self, state, poller, watchdog: Watchdog, fan=None, display=None):
        self.state = state
        self.poller = poller
        self.watchdog = watchdog
        self.fan = fan
        self.display = display
        self._pending = None

    def request(self, enter: bool) -> None:
        """Record a safe-mode transition for service() to apply.

        Safe to call from a signal handler: it only stores a flag.
        """
        self._pending = enter

    def service(self) -> None:
        """Apply a pending request. Called from the main loop."""
        pending, self._pending = self._pending, None
        if pending is True:
            self.start()
        elif pending is False:
            self.stop()

    def start(self) -> None:
        if self.state.update_in_progress:
            return
        self.state.update_in_progress = True
        print("[OTA] Entering safe mode.")
        self.watchdog.disarm()
        if self.fan is not None:
            self.fan.turn_off()
        self.poller.suspend()
        if self.display is not None:
            self.display.show("Updating...")

    def stop(self) -> None:
        if not self.state.update_in_progress:
            return
        self.state.update_in_progress = False
        self.watchdog.arm()
        self.poller.resume()
        if self.fan is not None and self.state.fan_on:
            self.fan.turn_to_percent(self.state.fan_speed)
        print("[OTA] Safe mode ended.")
