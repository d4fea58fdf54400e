"""Domain models for cross-channel handoffs."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from retail_coordinator.domain.sessions import Channel


class HandoffStatus(StrEnum):
    """Handoff lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    EXPIRED = "expired"


@dataclass
class ChannelHandoff:
    """Transfer of a shopping context from one channel session to another."""

    handoff_id: str
    from_channel: Channel
    to_channel: Channel
    from_session_id: str
    to_session_id: str
    qr_token: str
    deep_link: str
    timestamp: datetime
    status: HandoffStatus = HandoffStatus.PENDING
