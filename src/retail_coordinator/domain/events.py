"""Domain event records published on the event bus."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import ClassVar


class EventDomain(StrEnum):
    """Domains an event topic can belong to."""

    SALES = "sales"
    INVENTORY = "inventory"
    PAYMENT = "payment"
    FULFILLMENT = "fulfillment"
    LOYALTY = "loyalty"
    SESSION = "session"
    WORKFLOW = "workflow"
    SAGA = "saga"
    OMNICHANNEL = "omnichannel"


@dataclass(frozen=True)
class DomainEvent:
    """A published event as stored in the event log."""

    domain: ClassVar[EventDomain]

    topic: str
    data: dict[str, object] = field(default_factory=dict)
    ts: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def name(self) -> str:
        """Return the event name without its topic prefix."""
        return self.topic.partition(".")[2]


@dataclass(frozen=True)
class SalesEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.SALES


@dataclass(frozen=True)
class InventoryEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.INVENTORY


@dataclass(frozen=True)
class PaymentEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.PAYMENT


@dataclass(frozen=True)
class FulfillmentEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.FULFILLMENT


@dataclass(frozen=True)
class LoyaltyEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.LOYALTY


@dataclass(frozen=True)
class SessionEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.SESSION


@dataclass(frozen=True)
class WorkflowEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.WORKFLOW


@dataclass(frozen=True)
class SagaEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.SAGA


@dataclass(frozen=True)
class OmnichannelEvent(DomainEvent):
    domain: ClassVar[EventDomain] = EventDomain.OMNICHANNEL


# Topic prefix -> event variant. Cart mutations are session events.
TOPIC_VARIANTS: dict[str, type[DomainEvent]] = {
    "sales": SalesEvent,
    "inventory": InventoryEvent,
    "payment": PaymentEvent,
    "fulfillment": FulfillmentEvent,
    "loyalty": LoyaltyEvent,
    "session": SessionEvent,
    "cart": SessionEvent,
    "workflow": WorkflowEvent,
    "saga": SagaEvent,
    "omnichannel": OmnichannelEvent,
}


def build_event(
    topic: str, data: dict[str, object], ts: datetime | None = None
) -> DomainEvent:
    """Create the event variant matching the topic's domain prefix."""
    prefix, dot, name = topic.partition(".")
    if not dot or not name:
        raise ValueError(f"Topic must be '<domain>.<event>': {topic!r}")
    variant = TOPIC_VARIANTS.get(prefix)
    if variant is None:
        raise ValueError(f"Unknown event domain: {prefix!r}")
    if ts is None:
        return variant(topic=topic, data=dict(data))
    return variant(topic=topic, data=dict(data), ts=ts)
