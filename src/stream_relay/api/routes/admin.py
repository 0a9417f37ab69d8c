from fastapi import APIRouter, Depends

from ...models.messages import Role
from ...models.schemas import BindingInfo, BindingsResponse
from ...services.relay import RelayContext
from ..dependencies import get_relay

router = APIRouter(tags=["Admin"])


@router.get("/bindings", response_model=BindingsResponse)
async def list_bindings(relay: RelayContext = Depends(get_relay)) -> BindingsResponse:
    """
    List the realized bindings of the active profile.

    Note: This endpoint should be protected in production.
    """
    subscribed = relay.dispatcher.subscriptions
    bindings = [
        BindingInfo(
            channel=b.channel,
            destination=b.destination,
            role=b.role.value,
            group=b.group,
            subscribed=b.role is Role.CONSUMER and b.channel in subscribed,
        )
        for b in relay.bindings.all()
    ]
    return BindingsResponse(
        binder=relay.bindings.active_binder_id,
        count=len(bindings),
        bindings=bindings,
    )
