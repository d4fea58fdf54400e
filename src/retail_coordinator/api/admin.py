"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from retail_coordinator.api.payloads import reservation_payload, saga_payload

if TYPE_CHECKING:
    from retail_coordinator.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health(request: Request) -> dict[str, object]:
    """Admin health check with coordinator counters."""
    container: AppContainer = request.app.state.container
    return {
        "status": "ok",
        "environment": container.settings.environment,
        "active_reservations": len(
            container.reservation_service.list_active_reservations()
        ),
        "workflows": len(container.workflow_engine.list_workflows()),
        "sagas": len(container.saga_orchestrator.list_sagas()),
    }


@router.get("/reservations", dependencies=[Depends(require_admin)])
async def list_reservations(request: Request) -> dict[str, object]:
    """Return holds that are still active."""
    container: AppContainer = request.app.state.container
    reservations = container.reservation_service.list_active_reservations()
    return {"reservations": [reservation_payload(item) for item in reservations]}


@router.get("/sagas", dependencies=[Depends(require_admin)])
async def list_sagas(request: Request, limit: int = 50) -> dict[str, object]:
    """Return the most recent sagas."""
    container: AppContainer = request.app.state.container
    sagas = container.saga_orchestrator.list_sagas()[-limit:]
    return {"sagas": [saga_payload(saga) for saga in sagas]}
