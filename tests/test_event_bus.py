"""Tests for the event bus."""

import asyncio

import pytest

from retail_coordinator.domain.events import (
    EventDomain,
    InventoryEvent,
    SessionEvent,
    build_event,
)
from retail_coordinator.scheduling import ScheduledTask
from retail_coordinator.services.event_bus import EventBus
from tests.conftest import topics


def test_delivery_order_matches_publish_order_within_topic() -> None:
    bus = EventBus()
    received: list[int] = []

    async def slow_handler(event) -> None:  # type: ignore[no-untyped-def]
        await asyncio.sleep(0.001 * (5 - event.data["n"]))
        received.append(event.data["n"])

    bus.subscribe("sales.tick", slow_handler)

    async def scenario() -> None:
        await asyncio.gather(*(bus.publish("sales.tick", {"n": n}) for n in range(5)))

    asyncio.run(scenario())

    assert received == [0, 1, 2, 3, 4]


def test_handler_can_publish_to_its_own_topic() -> None:
    bus = EventBus()
    seen: list[str] = []

    async def handler(event) -> None:  # type: ignore[no-untyped-def]
        seen.append(event.data["step"])
        if event.data["step"] == "first":
            await bus.publish("saga.step", {"step": "second"})

    bus.subscribe("saga.step", handler)

    asyncio.run(asyncio.wait_for(bus.publish("saga.step", {"step": "first"}), 1))

    assert seen == ["first", "second"]


def test_timer_armed_in_handler_delivers_to_same_topic() -> None:
    bus = EventBus()
    seen: list[str] = []

    async def handler(event) -> None:  # type: ignore[no-untyped-def]
        seen.append(event.data["step"])
        if event.data["step"] == "first":
            ScheduledTask.start(
                0.01, lambda: bus.publish("saga.step", {"step": "later"})
            )

    bus.subscribe("saga.step", handler)

    async def scenario() -> None:
        await bus.publish("saga.step", {"step": "first"})
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert seen == ["first", "later"]


def test_failing_handler_does_not_block_others() -> None:
    bus = EventBus()
    calls: list[str] = []

    def broken(_event) -> None:  # type: ignore[no-untyped-def]
        raise RuntimeError("boom")

    bus.subscribe("payment.failed", broken)
    bus.subscribe("payment.failed", lambda event: calls.append(event.topic))

    asyncio.run(bus.publish("payment.failed", {"order_id": "o-1"}))

    assert calls == ["payment.failed"]


def test_unsubscribe_stops_delivery() -> None:
    bus = EventBus()
    calls: list[str] = []
    unsubscribe = bus.subscribe("session.created", lambda event: calls.append("x"))

    asyncio.run(bus.publish("session.created", {}))
    unsubscribe()
    unsubscribe()
    asyncio.run(bus.publish("session.created", {}))

    assert calls == ["x"]
    assert bus.subscriber_count("session.created") == 0


def test_event_log_drops_oldest_beyond_capacity() -> None:
    bus = EventBus(capacity=3)

    async def scenario() -> None:
        for n in range(5):
            await bus.publish("inventory.checked", {"n": n})

    asyncio.run(scenario())

    log = bus.get_log()
    assert [event.data["n"] for event in log] == [2, 3, 4]


def test_get_log_filters_by_domain_and_limit() -> None:
    bus = EventBus()

    async def scenario() -> None:
        await bus.publish("inventory.reserved", {})
        await bus.publish("sales.order_confirmed", {})
        await bus.publish_to_topic("inventory", "reservation_released", {})

    asyncio.run(scenario())

    assert topics(bus, "inventory") == [
        "inventory.reserved",
        "inventory.reservation_released",
    ]
    assert topics(bus, "sales.order_confirmed") == ["sales.order_confirmed"]
    assert [event.topic for event in bus.get_log(limit=1)] == [
        "inventory.reservation_released"
    ]
    assert bus.get_log(limit=0) == []


def test_build_event_selects_variant_by_prefix() -> None:
    event = build_event("inventory.reserved", {"sku": "SHOES-001"})
    cart_event = build_event("cart.item_added", {})

    assert isinstance(event, InventoryEvent)
    assert event.domain == EventDomain.INVENTORY
    assert event.name == "reserved"
    assert isinstance(cart_event, SessionEvent)


@pytest.mark.parametrize("topic", ["inventory", "inventory.", "unknown.thing"])
def test_build_event_rejects_bad_topics(topic: str) -> None:
    with pytest.raises(ValueError):
        build_event(topic, {})


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        EventBus(capacity=0)
