"""
Kafka binder.

Publishes through a shared ``AIOKafkaProducer`` and runs one
``AIOKafkaConsumer`` task per subscription. Consumer groups map to Kafka
group ids; subscribers without a group get a generated anonymous group so
that each of them sees every record.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError

from .base import Binder, InboundHandler, PublishError, SubscriptionError
from ..models.messages import Message

logger = logging.getLogger(__name__)


class KafkaBinder(Binder):
    """
    Kafka binder backed by aiokafka.

    Features:
    - Headers carried as Kafka record headers
    - Named groups start from ``auto_offset_reset``; anonymous groups start
      from the latest offset
    - A failing poll is reported and retried after ``retry_backoff`` seconds
    """

    binder_id = "kafka"

    def __init__(
        self,
        bootstrap_servers: str = "localhost:9092",
        client_id: str = "stream-relay",
        auto_offset_reset: str = "earliest",
        retry_backoff: float = 1.0,
    ):
        """
        Initialize the Kafka binder.

        Args:
            bootstrap_servers: Comma-separated Kafka bootstrap servers
            client_id: Client id reported to the brokers
            auto_offset_reset: Offset policy for named consumer groups
            retry_backoff: Delay before polling again after a consumer error (seconds)
        """
        super().__init__()
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._auto_offset_reset = auto_offset_reset
        self._retry_backoff = retry_backoff
        self._producer: Optional[AIOKafkaProducer] = None
        # Subscription ID -> {"consumer": ..., "task": ..., "destination": ...}
        self._subscriptions: Dict[str, Dict[str, Any]] = {}

    async def connect(self) -> None:
        """Start the shared producer."""
        if self._producer is not None:
            logger.warning("Already connected to Kafka")
            return

        logger.info(f"Connecting to Kafka at {self._bootstrap_servers}")

        producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
        )
        try:
            await producer.start()
        except Exception as e:
            logger.error(f"Failed to connect to Kafka: {e}")
            await producer.stop()
            raise ConnectionError(
                f"Failed to connect to Kafka at {self._bootstrap_servers}: {e}"
            ) from e

        self._producer = producer
        logger.info("Connected to Kafka")

    async def disconnect(self) -> None:
        """Stop all consumers, then flush and stop the producer."""
        for sub_id in list(self._subscriptions.keys()):
            await self.unsubscribe(sub_id)

        if self._producer is None:
            return

        logger.info("Disconnecting from Kafka")
        try:
            await self._producer.stop()
        except Exception as e:
            logger.warning(f"Error stopping Kafka producer: {e}")

        self._producer = None
        logger.info("Disconnected from Kafka")

    async def publish(self, destination: str, message: Message) -> None:
        """
        Publish a message to a Kafka topic and wait for the broker ack.

        Args:
            destination: Kafka topic (e.g., "invoice-topic")
            message: Message to publish
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to Kafka")

        body, headers = message.to_wire()
        try:
            await self._producer.send_and_wait(
                destination,
                value=body,
                headers=self._encode_headers(headers),
            )
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
        Start a consumer for a Kafka topic.

        Args:
            destination: Kafka topic
            handler: Async callback (destination, message) -> None
            group: Kafka group id; anonymous when omitted
            subscription_id: Optional subscription identifier

        Returns:
            Subscription ID
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to Kafka")

        sub_id = subscription_id or str(uuid4())
        group_id = group or f"anonymous.{uuid4()}"

        consumer = AIOKafkaConsumer(
            destination,
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            group_id=group_id,
            auto_offset_reset=self._auto_offset_reset if group else "latest",
            enable_auto_commit=True,
        )
        try:
            await consumer.start()
        except Exception as e:
            logger.error(f"Failed to subscribe to {destination}: {e}")
            await consumer.stop()
            raise SubscriptionError(f"Failed to subscribe to {destination}: {e}") from e

        task = asyncio.create_task(self._consume_loop(consumer, destination, handler))
        self._subscriptions[sub_id] = {
            "consumer": consumer,
            "task": task,
            "destination": destination,
        }
        logger.info(f"Subscribed to {destination} (sub_id: {sub_id}, group: {group_id})")
        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Cancel the consumer task and stop the consumer."""
        sub_data = self._subscriptions.pop(subscription_id, None)
        if sub_data is None:
            logger.warning(f"No subscription found for {subscription_id}")
            return

        task: asyncio.Task = sub_data["task"]
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        try:
            await sub_data["consumer"].stop()
            logger.info(f"Unsubscribed from {sub_data['destination']} ({subscription_id})")
        except Exception as e:
            logger.warning(f"Error stopping consumer {subscription_id}: {e}")

    @property
    def is_connected(self) -> bool:
        """Check if the producer is running."""
        return self._producer is not None

    async def _consume_loop(
        self,
        consumer: AIOKafkaConsumer,
        destination: str,
        handler: InboundHandler,
    ) -> None:
        """Poll records and hand them to the handler until cancelled."""
        while True:
            try:
                record = await consumer.getone()
            except asyncio.CancelledError:
                raise
            except KafkaError as e:
                logger.error(f"Kafka consumer error on {destination}: {e}")
                self._report_error(destination, e)
                await asyncio.sleep(self._retry_backoff)
                continue

            try:
                message = Message.from_wire(
                    record.value or b"",
                    self._decode_headers(record.headers),
                    channel=destination,
                )
            except Exception as e:
                logger.error(f"Failed to decode record from {destination}: {e}")
                self._report_error(destination, e)
                continue

            try:
                await handler(destination, message)
            except Exception as e:
                logger.error(f"Error in message handler for {destination}: {e}")
                self._report_error(destination, e)

    @staticmethod
    def _encode_headers(headers: Dict[str, str]) -> List[Tuple[str, bytes]]:
        return [(key, value.encode("utf-8")) for key, value in headers.items()]

    @staticmethod
    def _decode_headers(headers: Any) -> Dict[str, str]:
        decoded: Dict[str, str] = {}
        for key, value in headers or ():
            if value is None:
                continue
            decoded[key] = value.decode("utf-8") if isinstance(value, bytes) else str(value)
        return decoded
