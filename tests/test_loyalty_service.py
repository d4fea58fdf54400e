"""Tests for loyalty and promotion pricing."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from retail_coordinator.adapters.memory_catalog_repository import (
    InMemoryCatalogRepository,
)
from retail_coordinator.domain.orders import Promotion
from retail_coordinator.domain.sessions import CartItem
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.loyalty import LoyaltyService


def _service() -> LoyaltyService:
    return LoyaltyService(catalog=InMemoryCatalogRepository.seeded(), event_bus=EventBus())


def _items() -> list[CartItem]:
    return [
        CartItem(sku="SHOES-001", qty=1, unit_price=1999.0),
        CartItem(sku="TSHIRT-001", qty=2, unit_price=500.0),
    ]


def test_price_without_customer_or_promo() -> None:
    breakdown = asyncio.run(_service().calculate_price(_items()))

    assert breakdown.subtotal == 2999.0
    assert breakdown.final_price == 2999.0
    assert breakdown.points_earned == 0


def test_percentage_promo_then_gold_loyalty() -> None:
    service = _service()

    breakdown = asyncio.run(service.calculate_price(_items(), "user_001", "SAVE10"))

    # 2999 - 299.9 = 2699.1; gold earns floor(2699.1 * 2 * 0.01) = 53 points.
    assert breakdown.promo_discount == pytest.approx(299.9)
    assert breakdown.points_earned == 53
    assert breakdown.loyalty_discount == 26.5
    assert breakdown.final_price == pytest.approx(2672.6)
    event = service.event_bus.get_log("loyalty.calculated")[0]
    assert event.data["points_earned"] == 53


def test_promo_requires_minimum_cart_value() -> None:
    items = [CartItem(sku="TSHIRT-001", qty=1, unit_price=499.0)]

    breakdown = asyncio.run(_service().calculate_price(items, promo_code="SAVE10"))

    assert breakdown.promo_discount == 0


def test_promo_limited_to_tiers() -> None:
    service = _service()

    bronze = asyncio.run(service.calculate_price(_items(), "user_003", "FLAT500"))
    gold = asyncio.run(service.calculate_price(_items(), "user_001", "FLAT500"))

    assert bronze.promo_discount == 0
    assert gold.promo_discount == 500


def test_expired_promo_ignored() -> None:
    service = _service()
    service.catalog.promotions["OLD"] = Promotion(
        code="OLD",
        type="fixed",
        value=100,
        min_cart_value=0,
        valid_until=datetime.now(tz=UTC) - timedelta(days=1),
    )

    breakdown = asyncio.run(service.calculate_price(_items(), promo_code="OLD"))

    assert breakdown.promo_discount == 0


def test_final_price_never_negative() -> None:
    service = _service()
    service.catalog.promotions["HUGE"] = Promotion(
        code="HUGE",
        type="fixed",
        value=10_000,
        min_cart_value=0,
        valid_until=datetime.now(tz=UTC) + timedelta(days=1),
    )

    breakdown = asyncio.run(service.calculate_price(_items(), "user_004", "HUGE"))

    assert breakdown.final_price == 0
    assert breakdown.loyalty_discount == 0
