"""One-shot SIGINT latch.

arm() installs a handler that records the interrupt and immediately puts
the previous handler back, so each registration catches exactly one
delivery. The engine re-arms after it has handled the pause; a second
Ctrl-C while the operator is still at the prompt therefore reaches the
default handler (KeyboardInterrupt) and ends the program.

signal.signal() only works from the main thread, which is where the
engine loop runs.
"""
from __future__ import annotations

import logging
import signal
import threading

log = logging.getLogger(__name__)


class InterruptLatch:
    def __init__(self, signum: int = signal.SIGINT) -> None:
        self._signum = signum
        self._event = threading.Event()
        self._previous = None
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def is_set(self) -> bool:
        return self._event.is_set()

    def arm(self) -> None:
        """Register for the next delivery of the signal."""
        if self._armed:
            return
        self._previous = signal.signal(self._signum, self._handle)
        self._armed = True

    def disarm(self) -> None:
        if not self._armed:
            return
        signal.signal(self._signum, self._previous)
        self._armed = False

    def trigger(self) -> None:
        """Record an interrupt without a real signal (tests, other threads)."""
        self._event.set()

    def consume(self) -> bool:
        """Return True and reset if an interrupt is pending."""
        if self._event.is_set():
            self._event.clear()
            return True
        return False

    def _handle(self, signum, frame) -> None:
        log.debug("Caught signal %d", signum)
        self.disarm()
        self._event.set()
