"""Promotion and loyalty pricing."""

import math
from dataclasses import dataclass
from datetime import UTC, datetime

from retail_coordinator.domain.orders import CustomerProfile, PriceBreakdown, Promotion
from retail_coordinator.domain.sessions import CartItem
from retail_coordinator.services.catalog import CatalogRepository
from retail_coordinator.services.event_bus import EventBus

POINT_REDEMPTION_VALUE = 0.5


@dataclass
class LoyaltyService:
    """Prices a cart with an optional promo code and the customer's tier."""

    catalog: CatalogRepository
    event_bus: EventBus

    async def calculate_price(
        self,
        items: list[CartItem],
        user_id: str | None = None,
        promo_code: str | None = None,
    ) -> PriceBreakdown:
        """Apply the promotion first, then loyalty points on what remains.

        Points earned are ``floor((subtotal - promo) * multiplier * points_per_unit)``
        and redeem at half a currency unit each, capped at the remaining amount.
        """
        subtotal = round(sum(item.unit_price * item.qty for item in items), 2)
        customer = self.catalog.get_customer(user_id) if user_id else None

        promo_discount = 0.0
        if promo_code:
            promotion = self.catalog.get_promotion(promo_code)
            if promotion and _promotion_applies(promotion, subtotal, customer):
                promo_discount = _promotion_value(promotion, subtotal)

        loyalty_discount = 0.0
        points_earned = 0
        remaining = subtotal - promo_discount
        if customer is not None:
            rule = self.catalog.get_loyalty_rule(customer.loyalty_tier)
            if rule is not None:
                points_earned = math.floor(
                    remaining * rule.point_multiplier * rule.points_per_unit
                )
                loyalty_discount = min(points_earned * POINT_REDEMPTION_VALUE, remaining)

        breakdown = PriceBreakdown(
            subtotal=subtotal,
            loyalty_discount=round(loyalty_discount, 2),
            promo_discount=round(promo_discount, 2),
            final_price=round(max(remaining - loyalty_discount, 0.0), 2),
            points_earned=points_earned,
        )
        await self.event_bus.publish(
            "loyalty.calculated",
            {
                "user_id": user_id,
                "subtotal": breakdown.subtotal,
                "loyalty_discount": breakdown.loyalty_discount,
                "promo_discount": breakdown.promo_discount,
                "points_earned": breakdown.points_earned,
                "final_price": breakdown.final_price,
            },
        )
        return breakdown


def _promotion_applies(
    promotion: Promotion, subtotal: float, customer: CustomerProfile | None
) -> bool:
    if promotion.valid_until <= datetime.now(tz=UTC):
        return False
    if subtotal < promotion.min_cart_value:
        return False
    if promotion.applicable_tiers:
        return customer is not None and customer.loyalty_tier in promotion.applicable_tiers
    return True


def _promotion_value(promotion: Promotion, subtotal: float) -> float:
    if promotion.type == "percentage":
        return subtotal * promotion.value / 100
    return min(promotion.value, subtotal)
