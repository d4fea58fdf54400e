"""In-process publish/subscribe bus with a bounded event log."""

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass, field

from retail_coordinator.domain.events import DomainEvent, build_event

EventHandler = Callable[[DomainEvent], Awaitable[None] | None]
Unsubscribe = Callable[[], None]

DEFAULT_LOG_CAPACITY = 10_000

_logger = logging.getLogger(__name__)

# Topics whose queue is being drained by the current task (or its children).
_draining: ContextVar[frozenset[str]] = ContextVar("_draining", default=frozenset())


@dataclass
class _TopicQueue:
    pending: deque[tuple[DomainEvent, asyncio.Future[None]]] = field(
        default_factory=deque
    )
    draining: bool = False


@dataclass
class EventBus:
    """Topic-based pub/sub; delivery order within a topic equals publish order."""

    capacity: int = DEFAULT_LOG_CAPACITY
    _subscribers: dict[str, list[EventHandler]] = field(default_factory=dict)
    _log: deque[DomainEvent] = field(init=False)
    _queues: dict[str, _TopicQueue] = field(default_factory=dict)
    _background: set[asyncio.Task[None]] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError("Event log capacity must be positive")
        self._log = deque(maxlen=self.capacity)

    def subscribe(self, topic: str, handler: EventHandler) -> Unsubscribe:
        """Register a handler for an exact topic and return its unsubscriber."""
        self._subscribers.setdefault(topic, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(self, topic: str, data: dict[str, object]) -> DomainEvent:
        """Log an event and deliver it to the topic's subscribers."""
        event = build_event(topic, data)
        self._log.append(event)

        queue = self._queues.setdefault(topic, _TopicQueue())
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        queue.pending.append((event, done))

        if queue.draining and topic in _draining.get():
            # Published from one of this topic's own handlers; the active
            # drain delivers it after the current event.
            return event
        if queue.draining:
            await done
            return event
        await self._drain(topic, queue)
        return event

    async def publish_to_topic(
        self, domain: str, event_type: str, data: dict[str, object]
    ) -> DomainEvent:
        """Publish to ``<domain>.<event_type>``."""
        return await self.publish(f"{domain}.{event_type}", data)

    def get_log(
        self, topic_filter: str | None = None, limit: int = 100
    ) -> list[DomainEvent]:
        """Return the most recent events, optionally filtered by topic or domain."""
        if limit <= 0:
            return []
        entries = list(self._log)
        if topic_filter:
            entries = [
                event for event in entries if _topic_matches(event.topic, topic_filter)
            ]
        return entries[-limit:]

    def subscriber_count(self, topic: str) -> int:
        """Return how many handlers listen on a topic."""
        return len(self._subscribers.get(topic, []))

    async def _drain(self, topic: str, queue: _TopicQueue) -> None:
        queue.draining = True
        token = _draining.set(_draining.get() | {topic})
        try:
            while queue.pending:
                event, done = queue.pending.popleft()
                try:
                    await self._deliver(event)
                finally:
                    if not done.done():
                        done.set_result(None)
        finally:
            _draining.reset(token)
            queue.draining = False
            if queue.pending:
                # Drain was cancelled mid-delivery; hand the rest to a new task.
                task = asyncio.ensure_future(self._drain(topic, queue))
                self._background.add(task)
                task.add_done_callback(self._background.discard)

    async def _deliver(self, event: DomainEvent) -> None:
        for handler in list(self._subscribers.get(event.topic, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _logger.exception("Event handler failed for topic %s", event.topic)


def _topic_matches(topic: str, topic_filter: str) -> bool:
    return topic == topic_filter or topic.startswith(f"{topic_filter}.")
