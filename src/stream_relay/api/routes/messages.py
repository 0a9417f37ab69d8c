import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from ...core.errors import DeliveryError, UnboundChannelError
from ...services.dispatcher import Dispatcher
from ..dependencies import get_dispatcher

router = APIRouter(tags=["Messages"])
logger = logging.getLogger(__name__)

INVOICE_CHANNEL = "invoiceOutput"
PAYMENT_CHANNEL = "paymentOutput"


async def _send(dispatcher: Dispatcher, channel: str, body: str) -> None:
    try:
        message = await dispatcher.send(channel, body)
    except UnboundChannelError as e:
        logger.error(f"Channel not bound: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except DeliveryError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    logger.info(f"Sent message {message.id} on {channel}")


@router.post("/sendInvoice", response_class=PlainTextResponse)
async def send_invoice(
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> str:
    """Send the raw request body on the invoice channel."""
    body = (await request.body()).decode("utf-8", errors="replace")
    await _send(dispatcher, INVOICE_CHANNEL, body)
    return f"Invoice message sent: {body}"


@router.post("/sendPayment", response_class=PlainTextResponse)
async def send_payment(
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> str:
    """Send the raw request body on the payment channel."""
    body = (await request.body()).decode("utf-8", errors="replace")
    await _send(dispatcher, PAYMENT_CHANNEL, body)
    return f"Payment message sent: {body}"
