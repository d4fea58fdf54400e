"""Channel handoffs and multi-session cart synchronization."""

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

from retail_coordinator.domain.handoffs import ChannelHandoff, HandoffStatus
from retail_coordinator.domain.sessions import CartItem, Channel, Session
from retail_coordinator.errors import ConflictError, NotFoundError
from retail_coordinator.scheduling import ScheduledTask
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.sessions import SessionService

_logger = logging.getLogger(__name__)


@dataclass
class OmnichannelCoordinator:
    """Moves shopping context between channel sessions."""

    sessions: SessionService
    event_bus: EventBus
    handoff_expiry_seconds: float = 600
    _handoffs: dict[str, ChannelHandoff] = field(default_factory=dict)
    _timers: dict[str, ScheduledTask] = field(default_factory=dict)
    _affinities: dict[str, list[Channel]] = field(default_factory=dict)

    async def initiate_handoff(
        self, from_session_id: str, to_channel: Channel
    ) -> ChannelHandoff:
        """Open a destination session on another channel and copy context into it."""
        source = self.sessions.get_session(from_session_id)
        if source is None:
            raise NotFoundError(f"Session {from_session_id} not found")

        destination = await self.sessions.create_session(
            Channel(to_channel), user_id=source.user_id, store_id=source.store_id
        )
        handoff_id = str(uuid4())
        handoff = ChannelHandoff(
            handoff_id=handoff_id,
            from_channel=source.channel,
            to_channel=destination.channel,
            from_session_id=from_session_id,
            to_session_id=destination.session_id,
            qr_token=str(uuid4()),
            deep_link=f"retail://session/{destination.session_id}?handoff={handoff_id}",
            timestamp=datetime.now(tz=UTC),
        )
        self._handoffs[handoff_id] = handoff
        await self.sessions.merge_session_on_hop(from_session_id, destination.session_id)

        self._timers[handoff_id] = ScheduledTask.start(
            self.handoff_expiry_seconds,
            lambda: self._expire(handoff_id),
            name=f"handoff:{handoff_id}",
        )
        if source.user_id:
            self.record_channel_affinity(source.user_id, destination.channel)

        await self.event_bus.publish(
            "omnichannel.handoff_initiated",
            {
                "handoff_id": handoff_id,
                "from_channel": handoff.from_channel.value,
                "to_channel": handoff.to_channel.value,
                "from_session_id": from_session_id,
                "to_session_id": destination.session_id,
            },
        )
        return handoff

    async def confirm_handoff(self, handoff_id: str, to_session_id: str) -> Session:
        """Validate the destination session and return it as it stands.

        The cart was merged at initiation; edits made on the destination
        since then are kept.
        """
        handoff = self._require(handoff_id)
        if handoff.to_session_id != to_session_id:
            raise ConflictError(f"Session mismatch for handoff {handoff_id}")
        if handoff.status not in {HandoffStatus.PENDING, HandoffStatus.CONFIRMED}:
            raise ConflictError(f"Handoff {handoff_id} is {handoff.status}")
        session = self.sessions.get_session(to_session_id)
        if session is None:
            raise NotFoundError(f"Session {to_session_id} not found")

        handoff.status = HandoffStatus.CONFIRMED
        self._cancel_timer(handoff_id)
        await self.event_bus.publish(
            "omnichannel.handoff_confirmed",
            {
                "handoff_id": handoff_id,
                "from_channel": handoff.from_channel.value,
                "to_channel": handoff.to_channel.value,
            },
        )
        return session

    async def complete_handoff(self, handoff_id: str) -> ChannelHandoff:
        """Close a handoff and report how long it took."""
        handoff = self._require(handoff_id)
        if handoff.status == HandoffStatus.EXPIRED:
            raise ConflictError(f"Handoff {handoff_id} is expired")
        handoff.status = HandoffStatus.COMPLETED
        self._cancel_timer(handoff_id)
        elapsed = datetime.now(tz=UTC) - handoff.timestamp
        await self.event_bus.publish(
            "omnichannel.handoff_completed",
            {
                "handoff_id": handoff_id,
                "duration_ms": int(elapsed.total_seconds() * 1000),
            },
        )
        return handoff

    def get_handoff(self, handoff_id: str) -> ChannelHandoff | None:
        """Return a handoff by id, if known."""
        return self._handoffs.get(handoff_id)

    async def synchronize_across_channels(self, user_id: str) -> list[Session]:
        """Rewrite every session of a user to the by-sku maximum cart."""
        sessions = self.sessions.get_sessions_by_user(user_id)
        canonical: dict[str, CartItem] = {}
        for session in sessions:
            for item in session.context.cart_items:
                existing = canonical.get(item.sku)
                if existing is None:
                    canonical[item.sku] = replace(item)
                elif item.qty > existing.qty:
                    existing.qty = item.qty

        synced = []
        for session in sessions:
            context = replace(
                session.context,
                cart_items=[replace(item) for item in canonical.values()],
            )
            synced.append(self.sessions.update_session(session.session_id, context=context))

        _logger.info(
            "Synchronized %s sessions for user %s (%s skus)",
            len(synced),
            user_id,
            len(canonical),
        )
        await self.event_bus.publish(
            "omnichannel.sync_completed",
            {
                "user_id": user_id,
                "sessions_count": len(synced),
                "cart_items": len(canonical),
            },
        )
        return synced

    def record_channel_affinity(self, user_id: str, channel: Channel) -> None:
        """Remember that a user shopped on a channel, most recent last."""
        affinities = self._affinities.setdefault(user_id, [])
        if channel in affinities:
            affinities.remove(channel)
        affinities.append(Channel(channel))

    def predict_next_channel(self, user_id: str) -> Channel | None:
        """Guess the user's next channel as the one used most recently."""
        affinities = self._affinities.get(user_id)
        return affinities[-1] if affinities else None

    async def _expire(self, handoff_id: str) -> None:
        self._timers.pop(handoff_id, None)
        handoff = self._handoffs.get(handoff_id)
        if handoff is None or handoff.status != HandoffStatus.PENDING:
            return
        handoff.status = HandoffStatus.EXPIRED
        await self.event_bus.publish(
            "omnichannel.handoff_expired", {"handoff_id": handoff_id}
        )

    def _require(self, handoff_id: str) -> ChannelHandoff:
        handoff = self._handoffs.get(handoff_id)
        if handoff is None:
            raise NotFoundError(f"Handoff {handoff_id} not found")
        return handoff

    def _cancel_timer(self, handoff_id: str) -> None:
        timer = self._timers.pop(handoff_id, None)
        if timer is not None:
            timer.cancel()
