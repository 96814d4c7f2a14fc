"""
Broadcasting and throttling of download progress.
"""

import logging
import time
from collections.abc import Callable

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class ProgressChannel:
    """
    A single-producer, multi-consumer broadcast of a byte counter.

    Subscribers only ever see the latest value; there is no buffering or
    backpressure. A subscriber that raises is dropped without affecting the
    producer or the other subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: list[ProgressCallback] = []
        self._latest = 0
        self._closed = False

    @property
    def latest(self) -> int:
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Registers a callback and returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: int) -> None:
        if self._closed:
            return
        self._latest = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                log.warning(f"Dropping failing progress subscriber {callback!r}: {e}")
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

    def close(self) -> None:
        self._closed = True
        self._subscribers.clear()


class ProgressThrottle:
    """
    Decides which progress values are worth reporting.

    A value is let through once `min_interval` seconds have passed or
    `min_percent` of the total has been transferred since the last reported
    value. The final value (position == total) is always let through.
    """

    def __init__(
        self,
        total: int,
        min_interval: float = 0.25,
        min_percent: float = 25.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.total = total
        self.min_interval = min_interval
        self.min_percent = min_percent
        self._clock = clock
        self._last_position = 0
        self._last_time = clock()

    def should_emit(self, position: int) -> tuple[bool, float]:
        """
        Returns whether `position` should be reported and, if so, the speed in
        bytes per second since the previous report.
        """
        now = self._clock()
        delta_pos = position - self._last_position
        delta_time = now - self._last_time
        delta_percent = delta_pos * 100 / self.total if self.total else 100.0

        if (
            position != self.total
            and delta_percent < self.min_percent
            and delta_time < self.min_interval
        ):
            return False, 0.0

        speed = delta_pos / delta_time if delta_time > 0 else 0.0
        self._last_position = position
        self._last_time = now
        return True, speed
