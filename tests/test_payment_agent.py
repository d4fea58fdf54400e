"""Tests for payment workflows."""

import asyncio
from datetime import UTC, datetime

from retail_coordinator.domain.orders import Order
from retail_coordinator.domain.sessions import Channel
from retail_coordinator.domain.workflows import WorkflowStatus
from tests.conftest import build_coordinator, topics, transient


def _order() -> Order:
    return Order(
        order_id="order-1",
        user_id="user_001",
        session_id="session-1",
        channel=Channel.MOBILE,
        items=[],
        subtotal=2999.0,
        final_price=2999.0,
        payment_method="upi",
        fulfillment_type="ship",
        created_at=datetime.now(tz=UTC),
    )


def test_payment_retries_until_success() -> None:
    app = build_coordinator(script=[False, transient()])
    order = _order()

    outcome = asyncio.run(app.payments.authorize_payment(order))

    assert outcome.status == "succeeded"
    assert outcome.attempts == 3
    assert outcome.transaction_id.startswith("txn_")
    assert order.payment_status == "captured"
    workflow = app.workflows.get_workflow(outcome.workflow_id)
    assert workflow.status == WorkflowStatus.SUCCEEDED
    assert workflow.retries == 2
    assert topics(app.event_bus, "payment") == [
        "payment.failed",
        "payment.failed",
        "payment.authorized",
    ]


def test_payment_gives_up_when_workflow_fails() -> None:
    app = build_coordinator(script=[False, False, False, True])
    order = _order()

    outcome = asyncio.run(app.payments.authorize_payment(order))

    assert outcome.status == "failed"
    assert outcome.attempts == 3
    assert outcome.error == "Payment declined"
    assert order.payment_status == "failed"
    assert len(app.gateway.calls) == 3
    assert app.workflows.get_workflow(outcome.workflow_id).status == WorkflowStatus.FAILED


def test_single_attempt_when_retries_disabled() -> None:
    app = build_coordinator(script=[False])

    outcome = asyncio.run(app.payments.authorize_payment(_order(), max_retries=0))

    assert outcome.status == "failed"
    assert outcome.attempts == 1


def test_refund_marks_order_refunded() -> None:
    app = build_coordinator()
    order = _order()

    asyncio.run(app.payments.refund(order, "txn_1"))

    assert order.payment_status == "refunded"
    assert app.gateway.refunds == [("txn_1", 2999.0)]
    assert topics(app.event_bus) == ["payment.refunded"]
