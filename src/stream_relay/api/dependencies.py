"""FastAPI dependencies for reaching the relay context."""
from fastapi import HTTPException, Request, status

from ..services.dispatcher import Dispatcher
from ..services.relay import RelayContext


def get_relay(request: Request) -> RelayContext:
    """Return the relay built during application startup."""
    relay = getattr(request.app.state, "relay", None)
    if relay is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Relay not initialized",
        )
    return relay


def get_dispatcher(request: Request) -> Dispatcher:
    return get_relay(request).dispatcher
