"""Periodic clock driving the countdown and rest timers."""

import logging
import threading
import time
from typing import Callable, Optional

from ..config import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class SessionTicker(threading.Thread):
    """Daemon thread calling ``callback(elapsed_seconds)`` every *interval*.

    The callback must route through the controller's lock; the ticker never
    touches session state itself.
    """

    def __init__(self, callback: Callable[[float], object],
                 interval: float = TICK_INTERVAL_SECONDS):
        super().__init__(name="session-ticker", daemon=True)
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}.")
        self.callback = callback
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self):
        last = time.monotonic()
        while not self._stop_event.wait(self.interval):
            now = time.monotonic()
            self.callback(now - last)
            last = now
        logger.debug("Ticker stopped")

    def stop(self, timeout: Optional[float] = 1.0) -> None:
        self._stop_event.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)
