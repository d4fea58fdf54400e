"""Checkout: turn a session cart into an order and run its saga."""

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

from retail_coordinator.domain.orders import Order
from retail_coordinator.domain.workflows import Saga, SagaStatus
from retail_coordinator.errors import ConflictError, NotFoundError
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.loyalty import LoyaltyService
from retail_coordinator.services.sagas import SagaOrchestrator
from retail_coordinator.services.sessions import SessionService

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    """An order together with the saga that tried to fulfil it."""

    order: Order
    saga: Saga

    @property
    def succeeded(self) -> bool:
        return self.saga.status == SagaStatus.COMPLETED


@dataclass
class CheckoutService:
    """Prices a session's cart, places the order and clears the cart on success."""

    sessions: SessionService
    loyalty: LoyaltyService
    sagas: SagaOrchestrator
    event_bus: EventBus
    _orders: dict[str, Order] = field(default_factory=dict)

    async def checkout(  # noqa: PLR0913
        self,
        session_id: str,
        fulfillment_type: str = "ship",
        payment_method: str = "upi",
        promo_code: str | None = None,
        delivery_address: str | None = None,
    ) -> CheckoutResult:
        """Price the session's cart, run the order saga and report the outcome.

        Raises ``NotFoundError`` for an unknown session and ``ConflictError``
        for an empty cart. The cart is cleared only when the saga completes.
        """
        session = self.sessions.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        if not session.context.cart_items:
            raise ConflictError(f"Cart for session {session_id} is empty")

        items = [replace(item) for item in session.context.cart_items]
        pricing = await self.loyalty.calculate_price(items, session.user_id, promo_code)
        order = Order(
            order_id=f"order_{uuid4()}",
            user_id=session.user_id or "",
            session_id=session_id,
            channel=session.channel,
            items=items,
            subtotal=pricing.subtotal,
            loyalty_discount=pricing.loyalty_discount,
            promo_discount=pricing.promo_discount,
            final_price=pricing.final_price,
            payment_method=payment_method,
            fulfillment_type=fulfillment_type,
            store_id=session.store_id,
            delivery_address=delivery_address,
            created_at=datetime.now(tz=UTC),
        )
        self._orders[order.order_id] = order
        await self.event_bus.publish(
            "sales.order_created",
            {
                "order_id": order.order_id,
                "session_id": session_id,
                "final_price": order.final_price,
            },
        )

        saga = await self.sagas.execute_order_fulfillment_saga(order)
        result = CheckoutResult(order=order, saga=saga)
        if result.succeeded:
            current = self.sessions.get_session(session_id)
            if current is not None:
                self.sessions.update_session(
                    session_id, context=replace(current.context, cart_items=[])
                )
            await self.event_bus.publish(
                "sales.order_completed",
                {
                    "order_id": order.order_id,
                    "session_id": session_id,
                    "final_price": order.final_price,
                },
            )
        else:
            _logger.warning("Checkout of order %s failed: %s", order.order_id, saga.error)
            await self.event_bus.publish(
                "sales.order_failed", {"order_id": order.order_id, "error": saga.error}
            )
        return result

    def get_order(self, order_id: str) -> Order | None:
        """Return an order placed through checkout, if known."""
        return self._orders.get(order_id)
