"""
Stream Relay - channel bindings between application code and message brokers.

Producers send on logical channels, consumers subscribe to logical channels,
and the active binder (Kafka, RabbitMQ, NATS or in-memory) moves the payloads
between the physical destinations those channels are bound to.
"""
from .core.errors import (
    ConfigurationError,
    DeliveryError,
    DuplicateBindingError,
    HandlerFailure,
    RelayError,
    UnboundChannelError,
)
from .models.messages import Binding, FailureRecord, Message, Role

__version__ = "0.1.0"

__all__ = [
    "Binding",
    "ConfigurationError",
    "DeliveryError",
    "DuplicateBindingError",
    "FailureRecord",
    "HandlerFailure",
    "Message",
    "RelayError",
    "Role",
    "UnboundChannelError",
]
