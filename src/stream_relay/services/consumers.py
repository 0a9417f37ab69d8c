"""
Business consumers and the failure handler.

Consumers are looked up by channel name when the profile's
``function_definition`` lists them.
"""
import logging
from typing import Dict

from ..models.messages import FailureRecord, Message
from .dispatcher import ConsumerHandler

logger = logging.getLogger(__name__)


async def invoice_input(message: Message) -> None:
    """Consumer for invoice messages."""
    logger.info(f"Received invoice message: {message.text}")


async def order_input(message: Message) -> None:
    """Consumer for order messages."""
    logger.info(f"Received order message: {message.text}")


def error_handler(record: FailureRecord) -> None:
    """Failure handler: log every failure record."""
    logger.error(
        "Error Processing Message",
        extra={
            "failure_kind": record.kind,
            "failure_channel": record.channel,
            "failure_destination": record.destination,
            "failure_cause": record.cause,
        },
    )


CONSUMER_FUNCTIONS: Dict[str, ConsumerHandler] = {
    "invoiceInput": invoice_input,
    "orderInput": order_input,
}
