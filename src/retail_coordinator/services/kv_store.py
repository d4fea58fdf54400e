"""Expiring key-value storage backing sessions."""

import asyncio
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from retail_coordinator.scheduling import ScheduledTask


class KeyValueStore(Protocol):
    """Key-value interface with optional per-key TTL."""

    def get(self, key: str) -> object | None:
        """Return a stored value if present and not expired."""

    def set(self, key: str, value: object, ttl_seconds: float | None = None) -> None:
        """Store a value, optionally expiring after a TTL in seconds."""

    def delete(self, key: str) -> None:
        """Remove a value and cancel its eviction."""

    def list(self, pattern: str) -> list[str]:
        """Return keys matching a ``*`` wildcard pattern."""


@dataclass
class _StoreEntry:
    value: object
    created: float
    ttl_seconds: float | None


@dataclass
class ExpiringStore(KeyValueStore):
    """In-process store with cancellable eviction timers; nothing persists."""

    clock: Callable[[], float] = time.monotonic
    _entries: dict[str, _StoreEntry] = field(default_factory=dict)
    _timers: dict[str, ScheduledTask] = field(default_factory=dict)

    def get(self, key: str) -> object | None:
        """Return a value, treating logically expired entries as absent."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.ttl_seconds is not None:
            age = self.clock() - entry.created
            if age > entry.ttl_seconds:
                self.delete(key)
                return None
        return entry.value

    def set(self, key: str, value: object, ttl_seconds: float | None = None) -> None:
        """Store a value and (re)arm its eviction timer."""
        self._cancel_timer(key)
        self._entries[key] = _StoreEntry(
            value=value, created=self.clock(), ttl_seconds=ttl_seconds
        )
        if ttl_seconds is not None and _has_running_loop():
            self._timers[key] = ScheduledTask.start(
                ttl_seconds, lambda: self._evict(key), name=f"evict:{key}"
            )

    def delete(self, key: str) -> None:
        """Remove a value and cancel its timer."""
        self._entries.pop(key, None)
        self._cancel_timer(key)

    def exists(self, key: str) -> bool:
        """Return true when a live value is stored under the key."""
        return self.get(key) is not None

    def increment(self, key: str, amount: int = 1) -> int:
        """Add to a numeric counter, keeping any remaining TTL."""
        current = self.get(key)
        if current is not None and not isinstance(current, int):
            raise TypeError(f"Value at {key!r} is not a counter")
        value = (current or 0) + amount
        entry = self._entries.get(key)
        if entry is None:
            self.set(key, value)
        else:
            entry.value = value
        return value

    def list(self, pattern: str) -> list[str]:
        """Return live keys matching a ``*`` wildcard pattern."""
        regex = re.compile(
            "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
        )
        return [key for key in list(self._entries) if regex.match(key) and self.exists(key)]

    def flush(self) -> None:
        """Drop every entry and cancel all timers."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._entries.clear()

    def _evict(self, key: str) -> None:
        self._timers.pop(key, None)
        self._entries.pop(key, None)

    def _cancel_timer(self, key: str) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
