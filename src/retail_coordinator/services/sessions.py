"""Session lifecycle, cart mutation and cross-session cart merge."""

import logging
from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime
from uuid import uuid4

from retail_coordinator.domain.sessions import CartItem, Channel, Session
from retail_coordinator.errors import NotFoundError
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.kv_store import KeyValueStore

_SESSION_PREFIX = "session:"
_UPDATABLE_FIELDS = {
    item.name
    for item in fields(Session)
    if item.name not in {"session_id", "created_at", "last_activity"}
}

_logger = logging.getLogger(__name__)


@dataclass
class SessionService:
    """Owns sessions stored in the key-value store."""

    store: KeyValueStore
    event_bus: EventBus
    session_ttl_seconds: int = 3600

    async def create_session(
        self,
        channel: Channel,
        user_id: str | None = None,
        store_id: str | None = None,
    ) -> Session:
        """Create a session on a channel and announce it."""
        now = datetime.now(tz=UTC)
        session = Session(
            session_id=str(uuid4()),
            channel=Channel(channel),
            created_at=now,
            last_activity=now,
            ttl_seconds=self.session_ttl_seconds,
            user_id=user_id,
            store_id=store_id,
        )
        self._save(session)
        await self.event_bus.publish(
            "session.created",
            {
                "session_id": session.session_id,
                "channel": session.channel.value,
                "user_id": user_id,
            },
        )
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Return a live session, if present."""
        value = self.store.get(_key(session_id))
        return value if isinstance(value, Session) else None

    def update_session(self, session_id: str, **updates: object) -> Session:
        """Merge fields into a session and refresh its activity and TTL."""
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session fields: {sorted(unknown)}")
        session = self._require(session_id)
        updated = replace(session, **updates, last_activity=datetime.now(tz=UTC))
        self._save(updated)
        return updated

    async def add_to_cart(
        self, session_id: str, sku: str, qty: int, price: float
    ) -> Session:
        """Add units of a sku; an existing line keeps its price snapshot."""
        if qty <= 0:
            raise ValueError("Quantity must be positive")
        session = self._require(session_id)
        existing = session.context.find_item(sku)
        if existing:
            existing.qty += qty
        else:
            session.context.cart_items.append(
                CartItem(sku=sku, qty=qty, unit_price=price)
            )
        updated = self.update_session(session_id, context=session.context)
        await self.event_bus.publish(
            "cart.item_added", {"session_id": session_id, "sku": sku, "qty": qty}
        )
        return updated

    async def update_cart_quantity(self, session_id: str, sku: str, qty: int) -> Session:
        """Replace a line's quantity; zero or less removes the line."""
        session = self._require(session_id)
        existing = session.context.find_item(sku)
        if existing is None:
            raise NotFoundError(f"Sku {sku} is not in session {session_id}")
        if qty <= 0:
            return await self.remove_from_cart(session_id, sku)
        existing.qty = qty
        updated = self.update_session(session_id, context=session.context)
        await self.event_bus.publish(
            "cart.item_updated", {"session_id": session_id, "sku": sku, "qty": qty}
        )
        return updated

    async def remove_from_cart(self, session_id: str, sku: str) -> Session:
        """Delete a cart line."""
        session = self._require(session_id)
        session.context.cart_items = [
            item for item in session.context.cart_items if item.sku != sku
        ]
        updated = self.update_session(session_id, context=session.context)
        await self.event_bus.publish(
            "cart.item_removed", {"session_id": session_id, "sku": sku}
        )
        return updated

    def record_view(self, session_id: str, sku: str) -> Session:
        """Add a product to the session's browsing history."""
        session = self._require(session_id)
        if sku not in session.context.browsing_history:
            session.context.browsing_history.append(sku)
        return self.update_session(session_id, context=session.context)

    async def reset_session(self, session_id: str) -> None:
        """Destroy a session explicitly."""
        self._require(session_id)
        self.store.delete(_key(session_id))
        await self.event_bus.publish("session.reset", {"session_id": session_id})

    def get_sessions_by_user(self, user_id: str) -> list[Session]:
        """Return every live session of a user.

        Scans all session keys, O(sessions); there is no per-user index.
        """
        sessions = []
        for key in self.store.list(f"{_SESSION_PREFIX}*"):
            value = self.store.get(key)
            if isinstance(value, Session) and value.user_id == user_id:
                sessions.append(value)
        return sessions

    async def merge_session_on_hop(self, from_session_id: str, to_session_id: str) -> Session:
        """Merge the source cart and history into the destination session.

        Shared skus take the larger quantity, so re-running the merge or
        merging in the other direction converges on the same cart.
        """
        source = self._require(from_session_id)
        destination = self._require(to_session_id)

        for item in source.context.cart_items:
            existing = destination.context.find_item(item.sku)
            if existing:
                existing.qty = max(existing.qty, item.qty)
            else:
                destination.context.cart_items.append(replace(item))

        for sku in source.context.browsing_history:
            if sku not in destination.context.browsing_history:
                destination.context.browsing_history.append(sku)

        updated = self.update_session(to_session_id, context=destination.context)
        _logger.info(
            "Merged session %s into %s (%s cart lines)",
            from_session_id,
            to_session_id,
            len(updated.context.cart_items),
        )
        await self.event_bus.publish(
            "session.merged",
            {"from_session_id": from_session_id, "to_session_id": to_session_id},
        )
        return updated

    def _require(self, session_id: str) -> Session:
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def _save(self, session: Session) -> None:
        self.store.set(_key(session.session_id), session, session.ttl_seconds)


def _key(session_id: str) -> str:
    return f"{_SESSION_PREFIX}{session_id}"
