"""JSON payload builders for API responses."""

from dataclasses import asdict

from fastapi.encoders import jsonable_encoder

from retail_coordinator.domain.events import DomainEvent
from retail_coordinator.domain.inventory import FulfillmentOption, Reservation
from retail_coordinator.domain.orders import Order
from retail_coordinator.domain.sessions import CartItem, Session
from retail_coordinator.domain.workflows import Saga, Workflow


def cart_payload(items: list[CartItem]) -> list[dict[str, object]]:
    return [asdict(item) for item in items]


def session_payload(session: Session) -> dict[str, object]:
    return jsonable_encoder(session)


def reservation_payload(reservation: Reservation) -> dict[str, object]:
    return jsonable_encoder(reservation)


def option_payload(option: FulfillmentOption) -> dict[str, object]:
    """Drop unset fields so each option type carries only its own keys."""
    payload = jsonable_encoder(option)
    return {
        key: value
        for key, value in payload.items()
        if value is not None and value != [] and not (key == "notify" and not value)
    }


def workflow_payload(workflow: Workflow) -> dict[str, object]:
    return jsonable_encoder(workflow)


def saga_payload(saga: Saga) -> dict[str, object]:
    """Summarize a saga; steps are reported by name only."""
    return {
        "saga_id": saga.saga_id,
        "type": saga.type,
        "status": saga.status.value,
        "current_step": saga.current_step,
        "total_steps": len(saga.steps),
        "steps": [step.name for step in saga.steps],
        "workflow_id": saga.workflow_id,
        "error": saga.error,
        "compensation_failures": list(saga.compensation_failures),
    }


def order_payload(order: Order) -> dict[str, object]:
    return jsonable_encoder(order)


def event_payload(event: DomainEvent) -> dict[str, object]:
    return {
        "topic": event.topic,
        "domain": event.domain.value,
        "data": jsonable_encoder(event.data),
        "ts": event.ts.isoformat(),
    }
