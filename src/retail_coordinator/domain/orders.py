"""Domain models for orders, pricing and customers."""

from dataclasses import dataclass, field
from datetime import datetime

from retail_coordinator.domain.sessions import CartItem, Channel


@dataclass
class Order:
    """An order moving through checkout and fulfillment."""

    order_id: str
    user_id: str
    session_id: str
    channel: Channel
    items: list[CartItem]
    subtotal: float
    final_price: float
    payment_method: str
    fulfillment_type: str
    created_at: datetime
    loyalty_discount: float = 0.0
    promo_discount: float = 0.0
    payment_status: str = "pending"
    fulfillment_status: str = "pending"
    store_id: str | None = None
    delivery_address: str | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class PriceBreakdown:
    """Result of loyalty and promotion pricing."""

    subtotal: float
    loyalty_discount: float
    promo_discount: float
    final_price: float
    points_earned: int


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of one payment gateway call."""

    success: bool
    transaction_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class FulfillmentTicket:
    """A scheduled shipment, pickup or in-store hold."""

    fulfillment_id: str
    order_id: str
    type: str
    status: str
    store_id: str | None = None
    ready_by: datetime | None = None


@dataclass(frozen=True)
class CustomerProfile:
    """Customer fields the coordinator reads from the catalog."""

    user_id: str
    name: str
    loyalty_tier: str
    loyalty_points: int = 0
    preferred_channels: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Promotion:
    """A promo code definition."""

    code: str
    type: str
    value: float
    min_cart_value: float
    valid_until: datetime
    applicable_tiers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LoyaltyRule:
    """Point accrual rule for a loyalty tier."""

    tier: str
    point_multiplier: float
    points_per_unit: float
