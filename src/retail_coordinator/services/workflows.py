"""Tracked workflows with timeout and retry bookkeeping."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from retail_coordinator.domain.inventory import Reservation
from retail_coordinator.domain.orders import Order
from retail_coordinator.domain.workflows import Workflow, WorkflowStatus
from retail_coordinator.errors import NotFoundError
from retail_coordinator.scheduling import ScheduledTask
from retail_coordinator.services.event_bus import EventBus

RESERVATION_HOLD = "reservation_hold"
PAYMENT_FLOW = "payment_flow"

_logger = logging.getLogger(__name__)


@dataclass
class WorkflowEngine:
    """Runs the workflow state machine: running -> succeeded|failed|compensating."""

    event_bus: EventBus
    _workflows: dict[str, Workflow] = field(default_factory=dict)
    _timers: dict[str, ScheduledTask] = field(default_factory=dict)

    async def start_workflow(
        self, workflow_type: str, state: dict[str, object], max_retries: int = 0
    ) -> Workflow:
        """Register a running workflow of any type."""
        workflow = Workflow(
            workflow_id=str(uuid4()),
            type=workflow_type,
            created_at=datetime.now(tz=UTC),
            state=dict(state),
            max_retries=max_retries,
        )
        self._workflows[workflow.workflow_id] = workflow
        await self.event_bus.publish(
            "workflow.started",
            {"workflow_id": workflow.workflow_id, "type": workflow_type},
        )
        return workflow

    async def start_reservation_flow(
        self, reservation: Reservation, duration_seconds: float = 900
    ) -> Workflow:
        """Track a hold; completes with reason ``hold_expired`` when time runs out."""
        hold_until = datetime.now(tz=UTC) + timedelta(seconds=duration_seconds)
        workflow = Workflow(
            workflow_id=str(uuid4()),
            type=RESERVATION_HOLD,
            created_at=datetime.now(tz=UTC),
            state={
                "reservation_id": reservation.reservation_id,
                "sku": reservation.sku,
                "store_id": reservation.store_id,
                "hold_until": hold_until.isoformat(),
            },
        )
        self._workflows[workflow.workflow_id] = workflow
        self._timers[workflow.workflow_id] = ScheduledTask.start(
            duration_seconds,
            lambda: self._expire_reservation_flow(workflow.workflow_id),
            name=f"workflow:{workflow.workflow_id}",
        )
        await self.event_bus.publish(
            "workflow.started",
            {
                "workflow_id": workflow.workflow_id,
                "type": RESERVATION_HOLD,
                "duration_ms": int(duration_seconds * 1000),
            },
        )
        return workflow

    async def start_payment_flow(self, order: Order, max_retries: int = 3) -> Workflow:
        """Track the attempts of an externally driven payment."""
        workflow = Workflow(
            workflow_id=str(uuid4()),
            type=PAYMENT_FLOW,
            created_at=datetime.now(tz=UTC),
            state={
                "order_id": order.order_id,
                "amount": order.final_price,
                "payment_method": order.payment_method,
                "attempt": 1,
            },
            max_retries=max_retries,
        )
        self._workflows[workflow.workflow_id] = workflow
        await self.event_bus.publish(
            "workflow.payment_started",
            {
                "workflow_id": workflow.workflow_id,
                "order_id": order.order_id,
                "amount": order.final_price,
            },
        )
        return workflow

    async def complete_workflow(
        self, workflow_id: str, result: dict[str, object] | None = None
    ) -> Workflow:
        """Mark a running workflow succeeded and merge its result."""
        workflow = self._require(workflow_id)
        if not self._is_running(workflow, "complete"):
            return workflow
        workflow.status = WorkflowStatus.SUCCEEDED
        workflow.completed_at = datetime.now(tz=UTC)
        workflow.state.update(result or {})
        self._cancel_timer(workflow_id)
        await self.event_bus.publish(
            "workflow.completed",
            {
                "workflow_id": workflow_id,
                "type": workflow.type,
                "duration_ms": _elapsed_ms(workflow),
            },
        )
        return workflow

    async def fail_workflow(self, workflow_id: str, error: str) -> Workflow:
        """Record a failed attempt; fail terminally once retries are spent."""
        workflow = self._require(workflow_id)
        if not self._is_running(workflow, "fail"):
            return workflow
        if workflow.retries < workflow.max_retries:
            workflow.retries += 1
            workflow.state["attempt"] = workflow.retries + 1
            workflow.state["last_error"] = error
            await self.event_bus.publish(
                "workflow.retry",
                {
                    "workflow_id": workflow_id,
                    "attempt": workflow.retries,
                    "max_retries": workflow.max_retries,
                },
            )
            return workflow

        workflow.status = WorkflowStatus.FAILED
        workflow.completed_at = datetime.now(tz=UTC)
        workflow.state["error"] = error
        self._cancel_timer(workflow_id)
        await self.event_bus.publish(
            "workflow.failed",
            {"workflow_id": workflow_id, "type": workflow.type, "error": error},
        )
        return workflow

    async def start_compensation(self, workflow_id: str) -> Workflow:
        """Hand a running workflow over to compensation."""
        workflow = self._require(workflow_id)
        if not self._is_running(workflow, "compensate"):
            return workflow
        workflow.status = WorkflowStatus.COMPENSATING
        self._cancel_timer(workflow_id)
        await self.event_bus.publish(
            "workflow.compensation_started",
            {
                "workflow_id": workflow_id,
                "type": workflow.type,
                "original_state": dict(workflow.state),
            },
        )
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        """Return a workflow by id, if known."""
        return self._workflows.get(workflow_id)

    def list_workflows(self) -> list[Workflow]:
        """Return every tracked workflow."""
        return list(self._workflows.values())

    async def _expire_reservation_flow(self, workflow_id: str) -> None:
        self._timers.pop(workflow_id, None)
        workflow = self._workflows.get(workflow_id)
        if workflow and workflow.status == WorkflowStatus.RUNNING:
            await self.complete_workflow(workflow_id, {"reason": "hold_expired"})

    def _is_running(self, workflow: Workflow, action: str) -> bool:
        if workflow.status == WorkflowStatus.RUNNING:
            return True
        _logger.warning(
            "Ignoring %s for workflow %s in status %s",
            action,
            workflow.workflow_id,
            workflow.status,
        )
        return False

    def _require(self, workflow_id: str) -> Workflow:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    def _cancel_timer(self, workflow_id: str) -> None:
        timer = self._timers.pop(workflow_id, None)
        if timer is not None:
            timer.cancel()


def _elapsed_ms(workflow: Workflow) -> int:
    end = workflow.completed_at or datetime.now(tz=UTC)
    return int((end - workflow.created_at).total_seconds() * 1000)
