"""Shared test fixtures."""

from dataclasses import dataclass, field
from uuid import uuid4

import pytest

from retail_coordinator.adapters.memory_catalog_repository import (
    InMemoryCatalogRepository,
)
from retail_coordinator.config import Settings
from retail_coordinator.containers import AppContainer, build_container
from retail_coordinator.domain.orders import PaymentResult
from retail_coordinator.errors import TransientError
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.fulfillment import FulfillmentService
from retail_coordinator.services.kv_store import ExpiringStore
from retail_coordinator.services.payments import PaymentAgent, PaymentGateway
from retail_coordinator.services.reservations import ReservationService
from retail_coordinator.services.sagas import SagaOrchestrator
from retail_coordinator.services.sessions import SessionService
from retail_coordinator.services.workflows import WorkflowEngine


@dataclass
class ScriptedPaymentGateway(PaymentGateway):
    """Gateway that replays scripted outcomes, then approves everything.

    Script entries are ``True`` (approve), ``False`` (decline) or an exception
    instance to raise.
    """

    script: list[object] = field(default_factory=list)
    calls: list[tuple[float, str, str]] = field(default_factory=list)
    refunds: list[tuple[str, float]] = field(default_factory=list)

    async def authorize(self, amount: float, method: str, order_id: str) -> PaymentResult:
        self.calls.append((amount, method, order_id))
        outcome = self.script.pop(0) if self.script else True
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return PaymentResult(success=True, transaction_id=f"txn_{uuid4()}")
        return PaymentResult(success=False, error="Payment declined")

    async def refund(self, transaction_id: str, amount: float) -> None:
        self.refunds.append((transaction_id, amount))


@dataclass
class ManualClock:
    """Monotonic clock that only moves when told to."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Coordinator:
    """Services wired together without the HTTP layer."""

    event_bus: EventBus
    catalog: InMemoryCatalogRepository
    gateway: ScriptedPaymentGateway
    sessions: SessionService
    reservations: ReservationService
    workflows: WorkflowEngine
    payments: PaymentAgent
    fulfillment: FulfillmentService
    sagas: SagaOrchestrator


def build_coordinator(
    script: list[object] | None = None, hold_seconds: float = 900
) -> Coordinator:
    event_bus = EventBus()
    catalog = InMemoryCatalogRepository.seeded()
    gateway = ScriptedPaymentGateway(script=list(script or []))
    sessions = SessionService(store=ExpiringStore(), event_bus=event_bus)
    reservations = ReservationService(
        catalog=catalog, event_bus=event_bus, hold_seconds=hold_seconds
    )
    workflows = WorkflowEngine(event_bus)
    payments = PaymentAgent(
        gateway=gateway,
        workflows=workflows,
        event_bus=event_bus,
        max_retries=2,
        backoff_seconds=0,
    )
    fulfillment = FulfillmentService(event_bus)
    sagas = SagaOrchestrator(
        event_bus=event_bus,
        workflows=workflows,
        reservations=reservations,
        payments=payments,
        fulfillment=fulfillment,
        backoff_seconds=0,
    )
    return Coordinator(
        event_bus=event_bus,
        catalog=catalog,
        gateway=gateway,
        sessions=sessions,
        reservations=reservations,
        workflows=workflows,
        payments=payments,
        fulfillment=fulfillment,
        sagas=sagas,
    )


def topics(event_bus: EventBus, topic_filter: str | None = None) -> list[str]:
    return [event.topic for event in event_bus.get_log(topic_filter, limit=10_000)]


def transient(message: str = "gateway timeout") -> TransientError:
    return TransientError(message)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        saga_backoff_seconds=0,
        payment_backoff_seconds=0,
        payment_max_retries=1,
    )


@pytest.fixture
def payment_gateway() -> ScriptedPaymentGateway:
    return ScriptedPaymentGateway()


@pytest.fixture
def container(
    settings: Settings, payment_gateway: ScriptedPaymentGateway
) -> AppContainer:
    return build_container(
        settings,
        catalog=InMemoryCatalogRepository.seeded(),
        payment_gateway=payment_gateway,
    )
