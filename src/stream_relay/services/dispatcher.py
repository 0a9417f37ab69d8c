"""
Dispatcher: the only path between application code and the active binder.

Outbound, ``send`` resolves a channel's producer binding and hands the
message to the binder. Inbound, every delivery on a subscribed destination
runs its channel handler on a worker task; failures go to the error router.
"""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, Mapping, Optional, Set, Union

from ..binders.base import Binder
from ..binders.registry import BinderRegistry
from ..core.bindings import BindingTable
from ..core.errors import DeliveryError, DuplicateBindingError, HandlerFailure
from ..models.messages import Binding, FailureRecord, Message, Payload, Role
from .error_router import ErrorRouter

logger = logging.getLogger(__name__)

ConsumerHandler = Callable[[Message], Union[None, Awaitable[None]]]


class Dispatcher:
    """
    Routes messages between logical channels and the active binder.

    Handlers may be invoked concurrently (up to ``concurrency`` at once) and
    at least once per the binder's delivery semantics; the dispatcher neither
    deduplicates nor orders across destinations.
    """

    def __init__(
        self,
        bindings: BindingTable,
        registry: BinderRegistry,
        error_router: ErrorRouter,
        concurrency: int = 16,
        max_attempts: int = 1,
        retry_backoff: float = 0.0,
    ):
        """
        Args:
            bindings: Binding table of the active profile
            registry: Binder registry with exactly one active binder
            error_router: Receives every failure record
            concurrency: Maximum number of handlers running at once
            max_attempts: Handler attempts per message before it is reported
            retry_backoff: Initial delay between attempts, doubled each retry (seconds)
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._bindings = bindings
        self._registry = registry
        self._error_router = error_router
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff
        self._semaphore = asyncio.Semaphore(concurrency)
        self._in_flight: Set[asyncio.Task] = set()
        # Consumer channel -> subscription ID
        self._subscriptions: Dict[str, str] = {}
        # Channels with a binder subscription in progress
        self._pending: Set[str] = set()

        self.binder.set_error_listener(self._on_broker_error)

    @property
    def binder(self) -> Binder:
        return self._registry.active_binder()

    @property
    def bindings(self) -> BindingTable:
        return self._bindings

    @property
    def subscriptions(self) -> Dict[str, str]:
        return dict(self._subscriptions)

    # =========================================================================
    # Outbound
    # =========================================================================

    async def send(
        self,
        channel: str,
        payload: Payload,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Message:
        """
        Send a payload on a channel.

        Succeeds once the active binder has accepted the message; broker-side
        durability is the binder's business.

        Args:
            channel: Producer channel name
            payload: Text or bytes
            headers: Optional string metadata

        Returns:
            The message that was handed off

        Raises:
            UnboundChannelError: If the channel has no producer binding
            DeliveryError: If the binder rejected the hand-off
        """
        binding = self._bindings.lookup(channel, Role.PRODUCER)
        message = Message(payload=payload, channel=channel, headers=dict(headers or {}))

        try:
            await self.binder.publish(binding.destination, message)
        except Exception as e:
            logger.error(f"Failed to send on {channel} to {binding.destination}: {e}")
            self._error_router.report(
                FailureRecord.from_exception(
                    "publish",
                    e,
                    message=message,
                    channel=channel,
                    destination=binding.destination,
                )
            )
            raise DeliveryError(channel, binding.destination, e) from e

        logger.debug(f"Sent message {message.id} on {channel} to {binding.destination}")
        return message

    # =========================================================================
    # Inbound
    # =========================================================================

    async def subscribe(self, channel: str, handler: ConsumerHandler) -> Binding:
        """
        Register a handler for a consumer channel.

        Args:
            channel: Consumer channel name
            handler: Sync or async callable receiving the Message

        Returns:
            The consumer binding the handler was attached to

        Raises:
            UnboundChannelError: If the channel has no consumer binding
            DuplicateBindingError: If the channel already has a handler
        """
        binding = self._bindings.lookup(channel, Role.CONSUMER)
        if channel in self._subscriptions or channel in self._pending:
            raise DuplicateBindingError(channel, Role.CONSUMER.value)
        self._pending.add(channel)

        async def on_delivery(destination: str, message: Message) -> None:
            await self._route(binding, handler, message)

        try:
            sub_id = await self.binder.subscribe(
                binding.destination,
                on_delivery,
                group=binding.group,
                subscription_id=f"{channel}:{binding.destination}",
            )
        finally:
            self._pending.discard(channel)
        self._subscriptions[channel] = sub_id
        logger.info(f"Handler subscribed on {channel} ({binding.destination}, group: {binding.group})")
        return binding

    async def unsubscribe(self, channel: str) -> None:
        sub_id = self._subscriptions.pop(channel, None)
        if sub_id is None:
            logger.warning(f"No handler subscribed on {channel}")
            return
        await self.binder.unsubscribe(sub_id)

    async def drain(self) -> None:
        """Wait for all in-flight handler invocations to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def close(self) -> None:
        """Unsubscribe every handler and wait for running ones."""
        for channel in list(self._subscriptions):
            await self.unsubscribe(channel)
        await self.drain()

    async def _route(self, binding: Binding, handler: ConsumerHandler, message: Message) -> None:
        """Start a worker task for one delivery without waiting for a free slot."""
        inbound = message.model_copy(update={"channel": binding.channel})

        task = asyncio.create_task(self._invoke(binding, handler, inbound))
        self._in_flight.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)

    async def _invoke(self, binding: Binding, handler: ConsumerHandler, message: Message) -> None:
        async with self._semaphore:
            await self._attempt(binding, handler, message)

    async def _attempt(self, binding: Binding, handler: ConsumerHandler, message: Message) -> None:
        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._call(handler, message)
                return
            except Exception as e:
                last_error = e
                if attempt < self._max_attempts:
                    delay = self._retry_backoff * (2 ** (attempt - 1))
                    logger.warning(
                        f"Handler for {binding.channel} failed (attempt {attempt}/{self._max_attempts}), "
                        f"retrying in {delay:.2f}s: {e}"
                    )
                    if delay > 0:
                        await asyncio.sleep(delay)

        failure = HandlerFailure(binding.channel, last_error, attempts=self._max_attempts)
        logger.error(str(failure))
        self._error_router.report(
            FailureRecord.from_exception(
                "handler",
                failure,
                message=message,
                channel=binding.channel,
                destination=binding.destination,
            )
        )

    @staticmethod
    async def _call(handler: ConsumerHandler, message: Message) -> None:
        if inspect.iscoroutinefunction(handler):
            await handler(message)
            return
        result = await asyncio.to_thread(handler, message)
        if inspect.isawaitable(result):
            await result

    def _on_broker_error(self, destination: Optional[str], error: BaseException) -> None:
        channel = None
        if destination is not None:
            consumers = self._bindings.for_destination(destination, Role.CONSUMER)
            if len(consumers) == 1:
                channel = consumers[0].channel
        self._error_router.report(
            FailureRecord.from_exception("broker", error, channel=channel, destination=destination)
        )
