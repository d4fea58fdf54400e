"""Fulfillment scheduling for shipments, pickups and in-store holds."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from retail_coordinator.domain.orders import FulfillmentTicket, Order
from retail_coordinator.services.event_bus import EventBus

SHIPMENT_DAYS = 3
IN_STORE_HOLD_DAYS = 1


@dataclass
class FulfillmentService:
    """Schedules fulfillment by order type and announces it."""

    event_bus: EventBus

    async def create_fulfillment(self, order: Order) -> FulfillmentTicket:
        """Schedule the fulfillment matching the order's type."""
        fulfillment_id = str(uuid4())
        now = datetime.now(tz=UTC)
        if order.fulfillment_type == "ship":
            ticket = FulfillmentTicket(
                fulfillment_id=fulfillment_id,
                order_id=order.order_id,
                type="shipment",
                status="scheduled",
                ready_by=now + timedelta(days=SHIPMENT_DAYS),
            )
            await self.event_bus.publish(
                "fulfillment.shipment_scheduled",
                {
                    "order_id": order.order_id,
                    "fulfillment_id": fulfillment_id,
                    "estimated_delivery": ticket.ready_by.isoformat(),
                },
            )
        elif order.fulfillment_type == "collect":
            ticket = FulfillmentTicket(
                fulfillment_id=fulfillment_id,
                order_id=order.order_id,
                type="pickup",
                status="scheduled",
                store_id=order.store_id,
            )
            await self.event_bus.publish(
                "fulfillment.pickup_scheduled",
                {
                    "order_id": order.order_id,
                    "fulfillment_id": fulfillment_id,
                    "store_id": order.store_id,
                },
            )
        else:
            ticket = FulfillmentTicket(
                fulfillment_id=fulfillment_id,
                order_id=order.order_id,
                type="reserve_in_store",
                status="scheduled",
                store_id=order.store_id,
                ready_by=now + timedelta(days=IN_STORE_HOLD_DAYS),
            )
            await self.event_bus.publish(
                "fulfillment.reserve_scheduled",
                {
                    "order_id": order.order_id,
                    "fulfillment_id": fulfillment_id,
                    "store_id": order.store_id,
                    "reserve_until": ticket.ready_by.isoformat(),
                },
            )
        order.fulfillment_status = "confirmed"
        return ticket

    async def cancel_fulfillment(self, order: Order, fulfillment_id: str) -> None:
        """Cancel a scheduled fulfillment."""
        order.fulfillment_status = "failed"
        await self.event_bus.publish(
            "fulfillment.cancelled",
            {"order_id": order.order_id, "fulfillment_id": fulfillment_id},
        )

    async def update_fulfillment_status(self, order: Order, status: str) -> None:
        """Record a fulfillment status change."""
        order.fulfillment_status = status
        await self.event_bus.publish(
            "fulfillment.status_updated",
            {"order_id": order.order_id, "status": status},
        )
