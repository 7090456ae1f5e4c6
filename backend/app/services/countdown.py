"""
Wall-clock countdown behind a listing OTP.

Remaining time is always derived from the clock and the deadline, so a late or
skipped tick can never stretch the validity window. Any number of observers can
subscribe to the remaining seconds; the expiry callback fires exactly once and
never after cancel().
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Listener = Callable[[int], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Countdown:
    def __init__(
        self,
        deadline: datetime,
        on_expire: Optional[Callable[[], None]] = None,
        clock: Optional[Clock] = None,
    ):
        self.deadline = deadline
        self._on_expire = on_expire
        self._clock = clock or utcnow
        self._listeners: List[Listener] = []
        self._task: Optional[asyncio.Task] = None
        self.cancelled = False
        self.fired = False

    @classmethod
    def for_seconds(
        cls,
        seconds: float,
        on_expire: Optional[Callable[[], None]] = None,
        clock: Optional[Clock] = None,
    ) -> "Countdown":
        clock = clock or utcnow
        return cls(clock() + timedelta(seconds=seconds), on_expire=on_expire, clock=clock)

    @property
    def remaining_seconds(self) -> int:
        left = (self.deadline - self._clock()).total_seconds()
        if left <= 0:
            return 0
        return math.ceil(left)

    @property
    def done(self) -> bool:
        return self.cancelled or self.fired

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Observe remaining seconds on every tick. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def tick(self) -> int:
        """Publish remaining seconds; fire expiry once when it reaches zero."""
        remaining = self.remaining_seconds
        if self.done:
            return remaining
        for listener in list(self._listeners):
            try:
                listener(remaining)
            except Exception:
                logger.exception("Countdown listener failed")
        if remaining == 0:
            self._fire()
        return remaining

    def _fire(self) -> None:
        if self.done:
            return
        self.fired = True
        self._listeners.clear()
        if self._on_expire is not None:
            self._on_expire()

    async def run(self, interval: float = 1.0) -> None:
        while not self.done:
            await asyncio.sleep(interval)
            self.tick()

    def start(self, interval: float = 1.0) -> asyncio.Task:
        """Schedule run() on the running event loop."""
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self.run(interval))
        return self._task

    def cancel(self) -> None:
        """Stop ticking. After this no expiry will ever be reported."""
        self.cancelled = True
        self._listeners.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
