"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from retail_coordinator.adapters.memory_catalog_repository import (
    InMemoryCatalogRepository,
)
from retail_coordinator.adapters.payment_gateway import (
    HttpxPaymentGateway,
    SimulatedPaymentGateway,
)
from retail_coordinator.adapters.supabase_catalog_repository import (
    SupabaseCatalogRepository,
)
from retail_coordinator.config import Settings
from retail_coordinator.services.catalog import CatalogRepository
from retail_coordinator.services.checkout import CheckoutService
from retail_coordinator.services.event_bus import EventBus
from retail_coordinator.services.fulfillment import FulfillmentService
from retail_coordinator.services.kv_store import ExpiringStore
from retail_coordinator.services.loyalty import LoyaltyService
from retail_coordinator.services.omnichannel import OmnichannelCoordinator
from retail_coordinator.services.payments import PaymentAgent, PaymentGateway
from retail_coordinator.services.reservations import ReservationService
from retail_coordinator.services.sagas import SagaOrchestrator
from retail_coordinator.services.sessions import SessionService
from retail_coordinator.services.workflows import WorkflowEngine


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    event_bus: EventBus
    store: ExpiringStore
    catalog: CatalogRepository
    session_service: SessionService
    reservation_service: ReservationService
    workflow_engine: WorkflowEngine
    payment_agent: PaymentAgent
    fulfillment_service: FulfillmentService
    saga_orchestrator: SagaOrchestrator
    loyalty_service: LoyaltyService
    checkout_service: CheckoutService
    omnichannel_coordinator: OmnichannelCoordinator
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    catalog: CatalogRepository | None = None,
    payment_gateway: PaymentGateway | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    if catalog is None:
        if resolved_settings.uses_supabase:
            supabase_client = create_client(
                resolved_settings.supabase_url, resolved_settings.supabase_service_key
            )
            catalog = SupabaseCatalogRepository(supabase_client)
        else:
            catalog = InMemoryCatalogRepository.seeded()

    http_gateway: HttpxPaymentGateway | None = None
    if payment_gateway is None:
        if resolved_settings.payment_gateway_url:
            http_gateway = HttpxPaymentGateway.create(
                base_url=resolved_settings.payment_gateway_url,
                api_key=resolved_settings.payment_gateway_api_key or "",
            )
            payment_gateway = http_gateway
        else:
            payment_gateway = SimulatedPaymentGateway(
                success_rate=resolved_settings.simulated_payment_success_rate
            )

    event_bus = EventBus(capacity=resolved_settings.event_log_capacity)
    store = ExpiringStore()
    session_service = SessionService(
        store=store,
        event_bus=event_bus,
        session_ttl_seconds=resolved_settings.session_ttl_seconds,
    )
    reservation_service = ReservationService(
        catalog=catalog,
        event_bus=event_bus,
        hold_seconds=resolved_settings.reservation_hold_seconds,
    )
    workflow_engine = WorkflowEngine(event_bus)
    payment_agent = PaymentAgent(
        gateway=payment_gateway,
        workflows=workflow_engine,
        event_bus=event_bus,
        max_retries=resolved_settings.payment_max_retries,
        backoff_seconds=resolved_settings.payment_backoff_seconds,
    )
    fulfillment_service = FulfillmentService(event_bus)
    saga_orchestrator = SagaOrchestrator(
        event_bus=event_bus,
        workflows=workflow_engine,
        reservations=reservation_service,
        payments=payment_agent,
        fulfillment=fulfillment_service,
        backoff_seconds=resolved_settings.saga_backoff_seconds,
    )
    loyalty_service = LoyaltyService(catalog=catalog, event_bus=event_bus)
    checkout_service = CheckoutService(
        sessions=session_service,
        loyalty=loyalty_service,
        sagas=saga_orchestrator,
        event_bus=event_bus,
    )
    omnichannel_coordinator = OmnichannelCoordinator(
        sessions=session_service,
        event_bus=event_bus,
        handoff_expiry_seconds=resolved_settings.handoff_expiry_seconds,
    )

    async def close_resources() -> None:
        store.flush()
        if http_gateway is not None:
            await http_gateway.close()

    return AppContainer(
        settings=resolved_settings,
        event_bus=event_bus,
        store=store,
        catalog=catalog,
        session_service=session_service,
        reservation_service=reservation_service,
        workflow_engine=workflow_engine,
        payment_agent=payment_agent,
        fulfillment_service=fulfillment_service,
        saga_orchestrator=saga_orchestrator,
        loyalty_service=loyalty_service,
        checkout_service=checkout_service,
        omnichannel_coordinator=omnichannel_coordinator,
        close_resources=close_resources,
    )
