"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from retail_coordinator.api.admin import router as admin_router
from retail_coordinator.api.payloads import (
    cart_payload,
    event_payload,
    option_payload,
    order_payload,
    reservation_payload,
    session_payload,
    workflow_payload,
)
from retail_coordinator.api.schemas import (
    AddToCartRequest,
    CheckInventoryRequest,
    CheckoutRequest,
    ConfirmHandoffRequest,
    CreateSessionRequest,
    ExecuteSagaRequest,
    FulfillmentStatusRequest,
    InitiateHandoffRequest,
    LoyaltyRequest,
    PaymentWorkflowRequest,
    ReleaseRequest,
    ReserveRequest,
    SyncRequest,
)
from retail_coordinator.app_logging import configure_logging
from retail_coordinator.containers import AppContainer
from retail_coordinator.errors import (
    ConflictError,
    CoordinatorError,
    NotFoundError,
    TransientError,
)


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(CoordinatorError)
    async def coordinator_error(request: Request, exc: CoordinatorError) -> JSONResponse:
        if isinstance(exc, NotFoundError):
            status_code = status.HTTP_404_NOT_FOUND
        elif isinstance(exc, ConflictError):
            status_code = status.HTTP_409_CONFLICT
        elif isinstance(exc, TransientError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        logger.info("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
        return JSONResponse(status_code=status_code, content={"error": exc.message})

    @app.exception_handler(ValueError)
    async def invalid_value(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(
        payload: CreateSessionRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        session = await state.session_service.create_session(
            payload.channel, user_id=payload.user_id, store_id=payload.store_id
        )
        if payload.user_id:
            state.omnichannel_coordinator.record_channel_affinity(
                payload.user_id, session.channel
            )
        return session_payload(session)

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str, request: Request) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        session = state.session_service.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session_payload(session)

    @app.post("/cart/add")
    async def add_to_cart(payload: AddToCartRequest, request: Request) -> dict[str, object]:
        """Add a sku to a session cart, priced from the catalog when no price is sent."""
        state: AppContainer = request.app.state.container
        price = payload.price
        if price is None:
            product = state.catalog.get_product(payload.sku)
            if product is None:
                raise NotFoundError(f"Product {payload.sku} not found")
            price = product.price
        session = await state.session_service.add_to_cart(
            payload.session_id, payload.sku, payload.qty, price
        )
        return {"cart": cart_payload(session.context.cart_items)}

    @app.post("/inventory/check")
    async def check_inventory(
        payload: CheckInventoryRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        options = await state.reservation_service.check_availability(
            payload.sku, payload.qty, radius_km=payload.radius_km, origin=payload.origin
        )
        return {
            "status": "success",
            "sku": payload.sku,
            "options": [option_payload(option) for option in options],
        }

    @app.post("/inventory/reserve", status_code=status.HTTP_201_CREATED)
    async def reserve_inventory(
        payload: ReserveRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        reservation = await state.reservation_service.reserve(
            payload.sku,
            payload.store_id,
            payload.user_id,
            payload.session_id,
            payload.qty,
            hold_seconds=payload.hold_seconds,
        )
        if reservation is None:
            raise ConflictError(
                f"Insufficient stock for {payload.sku} at {payload.store_id}"
            )
        return reservation_payload(reservation)

    @app.post("/inventory/release")
    async def release_inventory(
        payload: ReleaseRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        released = await state.reservation_service.release_reservation(
            payload.reservation_id
        )
        return {"reservation_id": payload.reservation_id, "released": released}

    @app.post("/workflows/reservation", status_code=status.HTTP_201_CREATED)
    async def reservation_workflow(
        payload: ReserveRequest, request: Request
    ) -> dict[str, object]:
        """Place a hold and track it with a reservation workflow."""
        state: AppContainer = request.app.state.container
        reservation = await state.reservation_service.reserve(
            payload.sku,
            payload.store_id,
            payload.user_id,
            payload.session_id,
            payload.qty,
            hold_seconds=payload.hold_seconds,
        )
        if reservation is None:
            raise ConflictError(
                f"Insufficient stock for {payload.sku} at {payload.store_id}"
            )
        duration = payload.hold_seconds or state.settings.reservation_hold_seconds
        workflow = await state.workflow_engine.start_reservation_flow(
            reservation, duration
        )
        return {
            "reservation_id": reservation.reservation_id,
            "workflow_id": workflow.workflow_id,
            "hold_until": reservation.hold_until.isoformat(),
            "status": reservation.status.value,
        }

    @app.post("/workflows/payment", response_model=None)
    async def payment_workflow(
        payload: PaymentWorkflowRequest, request: Request
    ) -> dict[str, object] | JSONResponse:
        state: AppContainer = request.app.state.container
        order = payload.order.to_order()
        outcome = await state.payment_agent.authorize_payment(
            order, max_retries=payload.max_retries
        )
        body: dict[str, object] = {
            "workflow_id": outcome.workflow_id,
            "order_id": order.order_id,
            "status": outcome.status,
            "attempts": outcome.attempts,
        }
        if outcome.status != "succeeded":
            body["error"] = outcome.error
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)
        body["transaction_id"] = outcome.transaction_id
        return body

    @app.get("/workflow/status")
    async def workflow_status(
        request: Request, workflow_id: str | None = None
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        if workflow_id:
            workflow = state.workflow_engine.get_workflow(workflow_id)
            if workflow is None:
                raise NotFoundError(f"Workflow {workflow_id} not found")
            return workflow_payload(workflow)
        workflows = state.workflow_engine.list_workflows()
        return {
            "workflows": [workflow_payload(workflow) for workflow in workflows],
            "count": len(workflows),
        }

    @app.post("/sagas/execute")
    async def execute_saga(
        payload: ExecuteSagaRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        reservation = None
        if payload.reservation_id:
            reservation = state.reservation_service.get_reservation(
                payload.reservation_id
            )
            if reservation is None:
                raise NotFoundError(f"Reservation {payload.reservation_id} not found")
        saga = await state.saga_orchestrator.execute_order_fulfillment_saga(
            payload.order.to_order(), reservation
        )
        return {
            "saga_id": saga.saga_id,
            "status": saga.status.value,
            "current_step": saga.current_step,
            "total_steps": len(saga.steps),
        }

    @app.post(
        "/orders/checkout", status_code=status.HTTP_201_CREATED, response_model=None
    )
    async def checkout(
        payload: CheckoutRequest, request: Request
    ) -> dict[str, object] | JSONResponse:
        state: AppContainer = request.app.state.container
        result = await state.checkout_service.checkout(
            payload.session_id,
            fulfillment_type=payload.fulfillment_type,
            payment_method=payload.payment_method,
            promo_code=payload.promo_code,
            delivery_address=payload.delivery_address,
        )
        if not result.succeeded:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": "Payment or fulfillment failed",
                    "order_id": result.order.order_id,
                    "saga_id": result.saga.saga_id,
                },
            )
        return {
            **order_payload(result.order),
            "saga_id": result.saga.saga_id,
            "saga_status": result.saga.status.value,
        }

    @app.get("/orders/{order_id}")
    async def get_order(order_id: str, request: Request) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        order = state.checkout_service.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order_payload(order)

    @app.post("/orders/{order_id}/fulfillment")
    async def update_fulfillment(
        order_id: str, payload: FulfillmentStatusRequest, request: Request
    ) -> dict[str, object]:
        """Record a fulfillment status reported by the store or carrier."""
        state: AppContainer = request.app.state.container
        order = state.checkout_service.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        await state.fulfillment_service.update_fulfillment_status(order, payload.status)
        return {"order_id": order_id, "fulfillment_status": order.fulfillment_status}

    @app.post("/loyalty/calculate")
    async def calculate_loyalty(
        payload: LoyaltyRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        breakdown = await state.loyalty_service.calculate_price(
            [item.to_cart_item() for item in payload.items],
            user_id=payload.user_id,
            promo_code=payload.promo_code,
        )
        return {
            "subtotal": breakdown.subtotal,
            "loyalty_discount": breakdown.loyalty_discount,
            "promo_discount": breakdown.promo_discount,
            "final_price": breakdown.final_price,
            "points_earned": breakdown.points_earned,
        }

    @app.post("/omnichannel/handoff/initiate")
    async def initiate_handoff(
        payload: InitiateHandoffRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        coordinator = state.omnichannel_coordinator
        handoff = await coordinator.initiate_handoff(
            payload.from_session_id, payload.to_channel
        )
        return {
            "handoff_id": handoff.handoff_id,
            "to_session_id": handoff.to_session_id,
            "qr_token": handoff.qr_token,
            "deep_link": handoff.deep_link,
            "expires_in_seconds": int(coordinator.handoff_expiry_seconds),
        }

    @app.post("/omnichannel/handoff/confirm")
    async def confirm_handoff(
        payload: ConfirmHandoffRequest, request: Request
    ) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        coordinator = state.omnichannel_coordinator
        session = await coordinator.confirm_handoff(
            payload.handoff_id, payload.to_session_id
        )
        await coordinator.complete_handoff(payload.handoff_id)
        return {
            "session_id": session.session_id,
            "cart": cart_payload(session.context.cart_items),
            "memory": dict(session.context.memory),
        }

    @app.post("/omnichannel/sync")
    async def sync_channels(payload: SyncRequest, request: Request) -> dict[str, object]:
        state: AppContainer = request.app.state.container
        sessions = await state.omnichannel_coordinator.synchronize_across_channels(
            payload.user_id
        )
        return {
            "user_id": payload.user_id,
            "synced_sessions": len(sessions),
            "sessions": [
                {
                    "session_id": session.session_id,
                    "channel": session.channel.value,
                    "cart_items": len(session.context.cart_items),
                }
                for session in sessions
            ],
        }

    @app.get("/events/stream")
    async def event_stream(
        request: Request, topic: str | None = None, limit: int = 100
    ) -> dict[str, object]:
        """Return recent events, optionally filtered by topic or domain."""
        state: AppContainer = request.app.state.container
        events = state.event_bus.get_log(topic, limit)
        return {
            "events": [event_payload(event) for event in events],
            "count": len(events),
        }

    return app
