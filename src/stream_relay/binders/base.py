"""
Base binder interface for broker backends.

All binders must implement this interface so the dispatcher can stay
broker-agnostic: it only ever publishes to and subscribes on destinations.
"""
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from ..models.messages import Message

logger = logging.getLogger(__name__)

# Receives (destination, message) for every inbound delivery
InboundHandler = Callable[[str, Message], Awaitable[None]]

# Receives (destination, error) for broker-reported failures
ErrorListener = Callable[[Optional[str], BaseException], None]


class Binder(ABC):
    """
    Abstract base class for broker binders.

    A binder owns its broker connection and its delivery loop. It hands every
    inbound message to the handler given at subscribe time and reports any
    failure it cannot attribute to a handler through the error listener.
    """

    binder_id: str = "abstract"

    def __init__(self) -> None:
        self._error_listener: Optional[ErrorListener] = None

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the connection to the broker.

        Raises:
            ConnectionError: If unable to connect to the broker
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Gracefully disconnect from the broker.

        Stops all consumers and closes the connection.
        """
        pass

    @abstractmethod
    async def publish(self, destination: str, message: Message) -> None:
        """
        Hand a message to the broker.

        Returns once the broker client has accepted the message; broker-side
        durability is not awaited beyond what the client itself does.

        Args:
            destination: Physical topic / queue / subject name
            message: The message to publish

        Raises:
            PublishError: If the message could not be handed off
            ConnectionError: If not connected to the broker
        """
        pass

    @abstractmethod
    async def subscribe(
        self,
        destination: str,
        handler: InboundHandler,
        group: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> str:
        """
        Start consuming a destination.

        Args:
            destination: Physical topic / queue / subject name (exact match)
            handler: Async callback receiving (destination, message)
            group: Consumer group; members of a group share deliveries,
                   subscribers without a group each receive every message
            subscription_id: Optional identifier for this subscription

        Returns:
            Subscription ID that can be used to unsubscribe

        Raises:
            SubscriptionError: If the subscription could not be created
            ConnectionError: If not connected to the broker
        """
        pass

    @abstractmethod
    async def unsubscribe(self, subscription_id: str) -> None:
        """Stop a subscription. Unknown ids are logged and ignored."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True while connected to the broker."""
        pass

    @property
    def name(self) -> str:
        """Return the binder name for logging."""
        return self.__class__.__name__

    def set_error_listener(self, listener: Optional[ErrorListener]) -> None:
        """Install the callback used for broker-reported failures."""
        self._error_listener = listener

    def _report_error(self, destination: Optional[str], error: BaseException) -> None:
        """Forward a broker-side failure to the listener, or log it if there is none."""
        if self._error_listener is None:
            logger.error(f"{self.name} error on {destination}: {error}")
            return
        try:
            self._error_listener(destination, error)
        except Exception as e:
            logger.error(f"Error listener failed for {destination}: {e}")


class BinderError(Exception):
    """Base exception for binder errors."""
    pass


class PublishError(BinderError):
    """Raised when a message could not be published."""
    pass


class SubscriptionError(BinderError):
    """Raised when a subscription could not be created."""
    pass
