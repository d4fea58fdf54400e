"""Payment authorization driven through a payment workflow."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from retail_coordinator.domain.orders import Order, PaymentResult
from retail_coordinator.domain.workflows import WorkflowStatus
from retail_coordinator.errors import TransientError
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.workflows import WorkflowEngine

_logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    """Interface to the external payment processor."""

    async def authorize(self, amount: float, method: str, order_id: str) -> PaymentResult:
        """Authorize and capture a payment."""

    async def refund(self, transaction_id: str, amount: float) -> None:
        """Refund a captured payment."""


@dataclass(frozen=True)
class PaymentOutcome:
    """Final result of a payment workflow."""

    workflow_id: str
    status: str
    attempts: int
    transaction_id: str | None = None
    error: str | None = None


@dataclass
class PaymentAgent:
    """Retries payment attempts with linear backoff inside a workflow."""

    gateway: PaymentGateway
    workflows: WorkflowEngine
    event_bus: EventBus
    max_retries: int = 3
    backoff_seconds: float = 1.0

    async def authorize_payment(
        self, order: Order, max_retries: int | None = None
    ) -> PaymentOutcome:
        """Attempt payment until it succeeds or the workflow fails."""
        retries = self.max_retries if max_retries is None else max_retries
        workflow = await self.workflows.start_payment_flow(order, retries)
        attempts = 0
        while True:
            attempts += 1
            result = await self._attempt(order)
            if result.success:
                await self.workflows.complete_workflow(
                    workflow.workflow_id,
                    {"transaction_id": result.transaction_id, "status": "captured"},
                )
                order.payment_status = "captured"
                return PaymentOutcome(
                    workflow_id=workflow.workflow_id,
                    status="succeeded",
                    attempts=attempts,
                    transaction_id=result.transaction_id,
                )

            error = result.error or "Payment declined"
            workflow = await self.workflows.fail_workflow(workflow.workflow_id, error)
            if workflow.status == WorkflowStatus.FAILED:
                order.payment_status = "failed"
                return PaymentOutcome(
                    workflow_id=workflow.workflow_id,
                    status="failed",
                    attempts=attempts,
                    error=error,
                )
            await asyncio.sleep(self.backoff_seconds * workflow.retries)

    async def refund(self, order: Order, transaction_id: str) -> None:
        """Refund a captured payment for an order."""
        await self.gateway.refund(transaction_id, order.final_price)
        order.payment_status = "refunded"
        await self.event_bus.publish(
            "payment.refunded",
            {
                "order_id": order.order_id,
                "transaction_id": transaction_id,
                "amount": order.final_price,
            },
        )

    async def _attempt(self, order: Order) -> PaymentResult:
        try:
            result = await self.gateway.authorize(
                order.final_price, order.payment_method, order.order_id
            )
        except TransientError as exc:
            _logger.warning("Payment attempt for %s failed: %s", order.order_id, exc)
            result = PaymentResult(success=False, error=exc.message)

        if result.success:
            await self.event_bus.publish(
                "payment.authorized",
                {
                    "order_id": order.order_id,
                    "amount": order.final_price,
                    "method": order.payment_method,
                    "transaction_id": result.transaction_id,
                },
            )
        else:
            await self.event_bus.publish(
                "payment.failed",
                {
                    "order_id": order.order_id,
                    "method": order.payment_method,
                    "error": result.error,
                },
            )
        return result
