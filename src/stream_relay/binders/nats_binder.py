"""
NATS binder.

Implements the Binder interface on NATS Core pub/sub. Destinations map to
subjects one to one and consumer groups map to NATS queue groups.
"""
import logging
from typing import Dict, Optional
from uuid import uuid4

import nats
from nats.aio.client import Client as NatsClient
from nats.aio.msg import Msg
from nats.aio.subscription import Subscription

from .base import Binder, InboundHandler, PublishError, SubscriptionError
from ..models.messages import Message

logger = logging.getLogger(__name__)


class NatsBinder(Binder):
    """
    NATS binder.

    Features:
    - Automatic reconnection
    - Queue groups for consumer groups
    - Message headers carried as NATS headers
    """

    binder_id = "nats"

    def __init__(
        self,
        url: str = "nats://localhost:4222",
        reconnect_time_wait: int = 2,
        max_reconnect_attempts: int = -1,
    ):
        """
        Initialize the NATS binder.

        Args:
            url: NATS server URL
            reconnect_time_wait: Time to wait between reconnection attempts (seconds)
            max_reconnect_attempts: Max reconnection attempts (-1 for infinite)
        """
        super().__init__()
        self._url = url
        self._reconnect_time_wait = reconnect_time_wait
        self._max_reconnect_attempts = max_reconnect_attempts
        self._client: Optional[NatsClient] = None
        self._subscriptions: Dict[str, Subscription] = {}

    async def connect(self) -> None:
        """Connect to NATS server with auto-reconnection."""
        if self._client is not None and self._client.is_connected:
            logger.warning("Already connected to NATS")
            return

        logger.info(f"Connecting to NATS at {self._url}")

        try:
            self._client = await nats.connect(
                servers=[self._url],
                reconnect_time_wait=self._reconnect_time_wait,
                max_reconnect_attempts=self._max_reconnect_attempts,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback,
                closed_cb=self._closed_callback,
            )
            logger.info(f"Connected to NATS server: {self._client.connected_url}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise ConnectionError(f"Failed to connect to NATS at {self._url}: {e}") from e

    async def disconnect(self) -> None:
        """Gracefully disconnect from NATS."""
        if self._client is None:
            return

        logger.info("Disconnecting from NATS")

        for sub_id in list(self._subscriptions.keys()):
            await self.unsubscribe(sub_id)

        try:
            await self._client.drain()
        except Exception as e:
            logger.warning(f"Error draining NATS connection: {e}")

        self._client = None
        logger.info("Disconnected from NATS")

    async def publish(self, destination: str, message: Message) -> None:
        """
        Publish a message to a NATS subject.

        Args:
            destination: NATS subject (e.g., "invoice-topic")
            message: Message to publish
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to NATS")

        body, headers = message.to_wire()
        try:
            await self._client.publish(destination, body, headers=headers)
            logger.debug(f"Published message {message.id} to {destination}")
        except Exception as e:
            logger.error(f"Failed to publish to {destination}: {e}")
            raise PublishError(f"Failed to publish to {destination}: {e}") from e

    async def subscribe(
        self,
        destination: str,
        handler: InboundHandler,
        group: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> str:
        """
        Subscribe to a NATS subject.

        Args:
            destination: NATS subject
            handler: Async callback (destination, message) -> None
            group: Queue group; omitted for broadcast delivery
            subscription_id: Optional subscription identifier

        Returns:
            Subscription ID
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to NATS")

        sub_id = subscription_id or str(uuid4())

        async def nats_handler(msg: Msg) -> None:
            try:
                message = Message.from_wire(msg.data, dict(msg.headers or {}), channel=destination)
            except Exception as e:
                logger.error(f"Failed to decode message from {msg.subject}: {e}")
                self._report_error(destination, e)
                return
            try:
                await handler(destination, message)
            except Exception as e:
                logger.error(f"Error in message handler for {msg.subject}: {e}")
                self._report_error(destination, e)

        try:
            sub = await self._client.subscribe(destination, queue=group or "", cb=nats_handler)
        except Exception as e:
            logger.error(f"Failed to subscribe to {destination}: {e}")
            raise SubscriptionError(f"Failed to subscribe to {destination}: {e}") from e

        self._subscriptions[sub_id] = sub
        logger.info(f"Subscribed to {destination} (sub_id: {sub_id}, group: {group})")
        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Unsubscribe from a subscription."""
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            logger.warning(f"No subscription found for {subscription_id}")
            return

        try:
            await sub.unsubscribe()
            logger.info(f"Unsubscribed: {subscription_id}")
        except Exception as e:
            logger.warning(f"Error unsubscribing {subscription_id}: {e}")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS."""
        return self._client is not None and self._client.is_connected

    # NATS callbacks for connection lifecycle

    async def _error_callback(self, e: Exception) -> None:
        """Called on NATS errors."""
        logger.error(f"NATS error: {e}")
        self._report_error(None, e)

    async def _disconnected_callback(self) -> None:
        """Called when disconnected from NATS."""
        logger.warning("Disconnected from NATS server")

    async def _reconnected_callback(self) -> None:
        """Called when reconnected to NATS."""
        logger.info(f"Reconnected to NATS server: {self._client.connected_url}")

    async def _closed_callback(self) -> None:
        """Called when NATS connection is closed."""
        logger.info("NATS connection closed")
