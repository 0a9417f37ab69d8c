"""
Error taxonomy for the relay core.

Configuration, binding and lookup errors are raised synchronously to the
caller. Handler and broker-side failures travel through the error router
instead, because the code that triggered them has usually returned already.
"""
from typing import Optional


class RelayError(Exception):
    """Base exception for relay errors."""
    pass


class ConfigurationError(RelayError):
    """Raised when the binder or binding configuration is invalid or ambiguous."""
    pass


class BinderNotFoundError(ConfigurationError):
    """Raised when a binder id has not been registered."""
    pass


class UnboundChannelError(RelayError):
    """Raised on send/subscribe for a channel with no binding for that role."""

    def __init__(self, channel: str, role: str):
        self.channel = channel
        self.role = role
        super().__init__(f"No {role} binding for channel '{channel}'")


class DuplicateBindingError(RelayError):
    """Raised when a (channel, role) pair is bound or subscribed twice."""

    def __init__(self, channel: str, role: str):
        self.channel = channel
        self.role = role
        super().__init__(f"Channel '{channel}' already has a {role} binding")


class DeliveryError(RelayError):
    """Raised when the active binder fails to accept a published message."""

    def __init__(self, channel: str, destination: str, cause: Optional[BaseException] = None):
        self.channel = channel
        self.destination = destination
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to deliver on channel '{channel}' to '{destination}'{detail}")


class HandlerFailure(RelayError):
    """Wraps an exception raised inside a consumer handler."""

    def __init__(self, channel: str, cause: BaseException, attempts: int = 1):
        self.channel = channel
        self.cause = cause
        self.attempts = attempts
        super().__init__(
            f"Handler for channel '{channel}' failed after {attempts} attempt(s): {cause}"
        )
