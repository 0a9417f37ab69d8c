"""
In-memory binder.

This binder is primarily used for:
- Local development without a broker
- Unit testing
- Demo purposes

Messages pass through the same wire encoding as the real binders and are
delivered to subscribers directly from ``publish``.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .base import Binder, InboundHandler
from ..models.messages import Message

logger = logging.getLogger(__name__)


class MemoryBinder(Binder):
    """
    In-memory binder for development and testing.

    Features:
    - Exact destination matching (no wildcards, like topic and queue names)
    - Consumer groups: one member per group receives each message, round-robin
    - Subscribers without a group each receive every message
    - No persistence (messages published with no subscribers are dropped)
    """

    binder_id = "memory"

    def __init__(self):
        """Initialize the memory binder."""
        super().__init__()
        self._connected = False
        self._subscriptions: Dict[str, Dict[str, Any]] = {}
        # Destination -> subscription IDs in subscription order
        self._destination_subs: Dict[str, List[str]] = {}
        # (destination, group) -> current index (for round-robin)
        self._group_cursors: Dict[tuple, int] = {}

    async def connect(self) -> None:
        """Mark binder as connected."""
        if self._connected:
            logger.warning("Memory binder already connected")
            return

        self._connected = True
        logger.info("Memory binder connected (in-memory mode)")

    async def disconnect(self) -> None:
        """Disconnect and clean up subscriptions."""
        self._subscriptions.clear()
        self._destination_subs.clear()
        self._group_cursors.clear()
        self._connected = False
        logger.info("Memory binder disconnected")

    async def publish(self, destination: str, message: Message) -> None:
        """
        Publish a message to the subscribers of a destination.

        Args:
            destination: The destination to publish to
            message: The message to deliver
        """
        if not self._connected:
            raise ConnectionError("Memory binder not connected")

        logger.debug(f"Publishing message {message.id} to {destination}")

        sub_ids = self._destination_subs.get(destination, [])
        if not sub_ids:
            logger.debug(f"No subscribers for destination: {destination}")
            return

        # None key is for subscribers without a group (broadcast)
        grouped: Dict[Optional[str], List[str]] = {None: []}
        for sub_id in sub_ids:
            group = self._subscriptions[sub_id]["group"]
            grouped.setdefault(group, []).append(sub_id)

        selected = list(grouped[None])
        for group, members in grouped.items():
            if group is None or not members:
                continue
            key = (destination, group)
            cursor = self._group_cursors.get(key, 0)
            selected.append(members[cursor % len(members)])
            self._group_cursors[key] = cursor + 1

        body, headers = message.to_wire()
        deliveries = [
            self._deliver_message(self._subscriptions[sub_id]["handler"], destination, body, headers)
            for sub_id in selected
        ]
        results = await asyncio.gather(*deliveries, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                self._report_error(destination, result)

    async def subscribe(
        self,
        destination: str,
        handler: InboundHandler,
        group: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> str:
        """
        Subscribe to a destination.

        Args:
            destination: Exact destination name
            handler: Async callback function
            group: Optional consumer group
            subscription_id: Optional subscription identifier

        Returns:
            Subscription ID
        """
        if not self._connected:
            raise ConnectionError("Memory binder not connected")

        sub_id = subscription_id or str(uuid4())

        self._subscriptions[sub_id] = {
            "destination": destination,
            "handler": handler,
            "group": group,
        }
        self._destination_subs.setdefault(destination, []).append(sub_id)

        logger.info(f"Subscribed to {destination} (sub_id: {sub_id}, group: {group})")
        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Unsubscribe from a subscription."""
        if subscription_id not in self._subscriptions:
            logger.warning(f"Subscription {subscription_id} not found")
            return

        sub_data = self._subscriptions.pop(subscription_id)
        destination = sub_data["destination"]
        subs = self._destination_subs.get(destination, [])
        if subscription_id in subs:
            subs.remove(subscription_id)
        if not subs:
            self._destination_subs.pop(destination, None)

        logger.info(f"Unsubscribed: {subscription_id}")

    @property
    def is_connected(self) -> bool:
        """Check if binder is connected."""
        return self._connected

    def subscriber_count(self, destination: str) -> int:
        """Number of live subscriptions on a destination."""
        return len(self._destination_subs.get(destination, []))

    async def _deliver_message(
        self,
        handler: InboundHandler,
        destination: str,
        body: bytes,
        headers: Dict[str, str],
    ) -> None:
        """Decode a fresh copy of the message and hand it to a subscriber."""
        message = Message.from_wire(body, headers, channel=destination)
        await handler(destination, message)
