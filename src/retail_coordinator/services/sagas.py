"""Order fulfillment sagas with reverse-order compensation."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from retail_coordinator.domain.inventory import Reservation, ReservationStatus
from retail_coordinator.domain.orders import FulfillmentTicket, Order
from retail_coordinator.domain.workflows import Saga, SagaStatus, SagaStep
from retail_coordinator.errors import ConflictError, TransientError
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.payments import PaymentAgent
from retail_coordinator.services.reservations import ReservationService
from retail_coordinator.services.workflows import WorkflowEngine

ORDER_FULFILLMENT = "order_fulfillment"

_logger = logging.getLogger(__name__)


class FulfillmentScheduler(Protocol):
    """Interface for scheduling and cancelling order fulfillment."""

    async def create_fulfillment(self, order: Order) -> FulfillmentTicket:
        """Schedule fulfillment for an order."""

    async def cancel_fulfillment(self, order: Order, fulfillment_id: str) -> None:
        """Cancel a previously scheduled fulfillment."""


@dataclass
class SagaOrchestrator:
    """Runs saga steps in order and compensates completed ones on failure."""

    event_bus: EventBus
    workflows: WorkflowEngine
    reservations: ReservationService
    payments: PaymentAgent
    fulfillment: FulfillmentScheduler
    backoff_seconds: float = 1.0
    _sagas: dict[str, Saga] = field(default_factory=dict)

    async def execute_order_fulfillment_saga(
        self, order: Order, reservation: Reservation | None = None
    ) -> Saga:
        """Reserve, charge, fulfil and confirm an order as one saga."""
        held: list[str] = []
        payment: dict[str, str] = {}
        tickets: list[FulfillmentTicket] = []

        async def reserve_inventory() -> object:
            if reservation is not None:
                current = self.reservations.get_reservation(reservation.reservation_id)
                if current is None or current.status != ReservationStatus.ACTIVE:
                    raise ConflictError(
                        f"Reservation {reservation.reservation_id} is no longer active"
                    )
                if current.reservation_id not in held:
                    held.append(current.reservation_id)
                return {"reservation_ids": list(held)}
            if order.fulfillment_type == "ship" or not order.store_id:
                return {"reserved": False}
            placed = []
            for item in order.items:
                hold = await self.reservations.reserve(
                    item.sku, order.store_id, order.user_id, order.session_id, item.qty
                )
                if hold is None:
                    for reservation_id in placed:
                        await self.reservations.release_reservation(reservation_id)
                    raise ConflictError(
                        f"Insufficient stock for {item.sku} at {order.store_id}"
                    )
                placed.append(hold.reservation_id)
            held.extend(placed)
            return {"reservation_ids": list(held)}

        async def release_inventory() -> None:
            for reservation_id in held:
                await self.reservations.release_reservation(reservation_id)

        async def process_payment() -> object:
            outcome = await self.payments.authorize_payment(order)
            if outcome.status != "succeeded" or outcome.transaction_id is None:
                raise TransientError(outcome.error or "Payment failed")
            payment["transaction_id"] = outcome.transaction_id
            return {
                "transaction_id": outcome.transaction_id,
                "workflow_id": outcome.workflow_id,
            }

        async def refund_payment() -> None:
            if "transaction_id" in payment:
                await self.payments.refund(order, payment["transaction_id"])

        async def create_fulfillment() -> object:
            ticket = await self.fulfillment.create_fulfillment(order)
            tickets.append(ticket)
            return {"fulfillment_id": ticket.fulfillment_id, "type": ticket.type}

        async def cancel_fulfillment() -> None:
            for ticket in tickets:
                await self.fulfillment.cancel_fulfillment(order, ticket.fulfillment_id)

        async def send_confirmation() -> object:
            await self.event_bus.publish(
                "sales.order_confirmed",
                {
                    "order_id": order.order_id,
                    "user_id": order.user_id,
                    "channel": str(order.channel),
                    "final_price": order.final_price,
                },
            )
            return {"confirmation_sent": True}

        async def send_cancellation() -> None:
            await self.event_bus.publish(
                "sales.order_cancelled",
                {"order_id": order.order_id, "user_id": order.user_id},
            )

        saga = Saga(
            saga_id=str(uuid4()),
            type=ORDER_FULFILLMENT,
            steps=[
                SagaStep("reserve_inventory", reserve_inventory, release_inventory, 2),
                # Payment retries live in the payment workflow itself.
                SagaStep("process_payment", process_payment, refund_payment, 1),
                SagaStep("create_fulfillment", create_fulfillment, cancel_fulfillment, 1),
                SagaStep("send_confirmation", send_confirmation, send_cancellation, 1),
            ],
        )
        await self.execute(saga, context={"order_id": order.order_id})

        if saga.status == SagaStatus.COMPLETED:
            for reservation_id in held:
                await self.reservations.complete_reservation(reservation_id)
            order.completed_at = datetime.now(tz=UTC)
        return saga

    async def execute(
        self, saga: Saga, context: dict[str, object] | None = None
    ) -> Saga:
        """Run a saga to a terminal status."""
        self._sagas[saga.saga_id] = saga
        workflow = await self.workflows.start_workflow(
            saga.type,
            {
                "saga_id": saga.saga_id,
                "steps": [step.name for step in saga.steps],
                **(context or {}),
            },
        )
        saga.workflow_id = workflow.workflow_id

        try:
            for index, step in enumerate(saga.steps):
                saga.current_step = index
                saga.results[step.name] = await self._run_step(saga, step)
                saga.compensation_steps.insert(0, step)
                await self.event_bus.publish(
                    "saga.step_completed",
                    {
                        "saga_id": saga.saga_id,
                        "step_name": step.name,
                        "attempt": step.retry_count + 1,
                    },
                )
        except Exception as exc:
            await self._compensate(saga, exc)
            return saga

        saga.status = SagaStatus.COMPLETED
        await self.workflows.complete_workflow(
            workflow.workflow_id, {"results": dict(saga.results)}
        )
        await self.event_bus.publish(
            "saga.completed", {"saga_id": saga.saga_id, "type": saga.type}
        )
        return saga

    def get_saga(self, saga_id: str) -> Saga | None:
        """Return a saga by id, if known."""
        return self._sagas.get(saga_id)

    def list_sagas(self) -> list[Saga]:
        """Return every saga run by this orchestrator."""
        return list(self._sagas.values())

    async def _run_step(self, saga: Saga, step: SagaStep) -> object:
        while True:
            try:
                return await step.action()
            except Exception as exc:
                step.retry_count += 1
                if step.retry_count >= step.max_retries:
                    raise
                _logger.warning(
                    "Saga %s step %s failed (attempt %s/%s): %s",
                    saga.saga_id,
                    step.name,
                    step.retry_count,
                    step.max_retries,
                    exc,
                )
                await self.event_bus.publish(
                    "saga.step_retry",
                    {
                        "saga_id": saga.saga_id,
                        "step_name": step.name,
                        "attempt": step.retry_count,
                        "error": str(exc),
                    },
                )
                await asyncio.sleep(self.backoff_seconds * step.retry_count)

    async def _compensate(self, saga: Saga, error: Exception) -> None:
        saga.status = SagaStatus.COMPENSATING
        saga.error = str(error)
        if saga.workflow_id:
            await self.workflows.start_compensation(saga.workflow_id)
        await self.event_bus.publish(
            "saga.failed_starting_compensation",
            {
                "saga_id": saga.saga_id,
                "step_name": saga.steps[saga.current_step].name,
                "error": str(error),
            },
        )

        for step in saga.compensation_steps:
            try:
                await step.compensation()
            except Exception as exc:
                _logger.exception(
                    "Compensation failed for saga %s step %s", saga.saga_id, step.name
                )
                saga.compensation_failures.append(step.name)
                await self.event_bus.publish(
                    "saga.compensation_failed",
                    {"saga_id": saga.saga_id, "step_name": step.name, "error": str(exc)},
                )
                continue
            await self.event_bus.publish(
                "saga.compensation_step_completed",
                {"saga_id": saga.saga_id, "step_name": step.name},
            )

        saga.status = SagaStatus.FAILED
        await self.event_bus.publish(
            "saga.failed",
            {
                "saga_id": saga.saga_id,
                "type": saga.type,
                "compensation_failures": list(saga.compensation_failures),
            },
        )
