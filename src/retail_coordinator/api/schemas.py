"""Pydantic request models for the coordinator API."""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from retail_coordinator.domain.orders import Order
from retail_coordinator.domain.sessions import CartItem, Channel


class CreateSessionRequest(BaseModel):
    """Session creation payload."""

    channel: Channel
    user_id: str | None = None
    store_id: str | None = None


class AddToCartRequest(BaseModel):
    """Cart line addition; price defaults to the catalog price."""

    session_id: str
    sku: str
    qty: int = Field(default=1, gt=0)
    price: float | None = Field(default=None, ge=0)


class CheckInventoryRequest(BaseModel):
    sku: str
    qty: int = Field(default=1, gt=0)
    radius_km: float = Field(default=25.0, gt=0)
    lat: float | None = None
    lng: float | None = None

    @property
    def origin(self) -> tuple[float, float] | None:
        if self.lat is None or self.lng is None:
            return None
        return (self.lat, self.lng)


class ReserveRequest(BaseModel):
    """Store hold payload."""

    sku: str
    store_id: str
    user_id: str
    session_id: str
    qty: int = Field(default=1, gt=0)
    hold_seconds: float | None = Field(default=None, gt=0)


class ReleaseRequest(BaseModel):
    reservation_id: str


class ItemPayload(BaseModel):
    """Cart line as sent by clients."""

    sku: str
    qty: int = Field(gt=0)
    price: float = Field(ge=0)

    def to_cart_item(self) -> CartItem:
        return CartItem(sku=self.sku, qty=self.qty, unit_price=self.price)


class OrderPayload(BaseModel):
    """Order submitted directly to a payment workflow or saga."""

    order_id: str = Field(default_factory=lambda: f"order_{uuid4()}")
    user_id: str
    session_id: str
    channel: Channel = Channel.WEB
    items: list[ItemPayload] = Field(default_factory=list)
    subtotal: float | None = None
    final_price: float = Field(ge=0)
    payment_method: str = "upi"
    fulfillment_type: str = "ship"
    store_id: str | None = None
    delivery_address: str | None = None

    def to_order(self) -> Order:
        """Build the domain order; subtotal defaults to the sum of the lines."""
        items = [item.to_cart_item() for item in self.items]
        subtotal = self.subtotal
        if subtotal is None:
            subtotal = sum(item.unit_price * item.qty for item in items)
        return Order(
            order_id=self.order_id,
            user_id=self.user_id,
            session_id=self.session_id,
            channel=self.channel,
            items=items,
            subtotal=subtotal,
            final_price=self.final_price,
            payment_method=self.payment_method,
            fulfillment_type=self.fulfillment_type,
            store_id=self.store_id,
            delivery_address=self.delivery_address,
            created_at=datetime.now(tz=UTC),
        )


class PaymentWorkflowRequest(BaseModel):
    order: OrderPayload
    max_retries: int | None = Field(default=None, ge=0)


class ExecuteSagaRequest(BaseModel):
    """Saga execution payload; an existing hold may be attached."""

    order: OrderPayload
    reservation_id: str | None = None


class CheckoutRequest(BaseModel):
    """Checkout payload for a session's cart."""

    session_id: str
    fulfillment_type: str = "ship"
    payment_method: str = "upi"
    promo_code: str | None = None
    delivery_address: str | None = None


class LoyaltyRequest(BaseModel):
    items: list[ItemPayload]
    user_id: str | None = None
    promo_code: str | None = None


class InitiateHandoffRequest(BaseModel):
    from_session_id: str
    to_channel: Channel


class ConfirmHandoffRequest(BaseModel):
    handoff_id: str
    to_session_id: str


class SyncRequest(BaseModel):
    user_id: str


class FulfillmentStatusRequest(BaseModel):
    status: str = Field(min_length=1)
