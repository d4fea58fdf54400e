"""Cancellable fire-once timers on the running event loop."""

import asyncio
import contextvars
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None] | None]


@dataclass
class ScheduledTask:
    """Handle for a callback scheduled to run once after a delay."""

    delay_seconds: float
    callback: TimerCallback
    name: str = "timer"
    _handle: asyncio.TimerHandle | None = field(default=None, init=False)
    _task: asyncio.Task[None] | None = field(default=None, init=False)
    _cancelled: bool = field(default=False, init=False)
    _fired: bool = field(default=False, init=False)

    @classmethod
    def start(
        cls, delay_seconds: float, callback: TimerCallback, name: str = "timer"
    ) -> "ScheduledTask":
        """Arm a timer on the running loop and return its handle."""
        scheduled = cls(delay_seconds=delay_seconds, callback=callback, name=name)
        loop = asyncio.get_running_loop()
        scheduled._handle = loop.call_later(
            max(delay_seconds, 0), scheduled._fire, context=contextvars.Context()
        )
        return scheduled

    @property
    def active(self) -> bool:
        """Return true while the timer can still fire."""
        return not (self._cancelled or self._fired)

    def cancel(self) -> None:
        """Cancel the timer; safe to call any number of times."""
        if not self.active:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()

    def _fire(self) -> None:
        if not self.active:
            return
        self._fired = True
        result = self.callback()
        if asyncio.iscoroutine(result):
            self._task = asyncio.ensure_future(self._run(result))

    async def _run(self, coroutine: Awaitable[None]) -> None:
        try:
            await coroutine
        except Exception:
            _logger.exception("Scheduled callback %s failed", self.name)
