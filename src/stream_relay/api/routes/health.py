from fastapi import APIRouter, Depends

from ...models.schemas import HealthResponse
from ...services.relay import RelayContext
from ..dependencies import get_relay

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(relay: RelayContext = Depends(get_relay)) -> HealthResponse:
    """
    Health check endpoint.

    Returns service status, binder connection state and attached handler count.
    """
    binder = relay.binder
    return HealthResponse(
        status="healthy" if binder.is_connected else "degraded",
        profile=relay.settings.relay_profile,
        binder=binder.name,
        connected=binder.is_connected,
        subscriptions=len(relay.dispatcher.subscriptions),
    )
