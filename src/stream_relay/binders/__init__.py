"""
Relay binders

This package provides the binder implementations for the supported broker
backends (Kafka, RabbitMQ, NATS, In-Memory) and the registry that selects
the active one.
"""
from .base import Binder, BinderError, PublishError, SubscriptionError
from .kafka_binder import KafkaBinder
from .memory_binder import MemoryBinder
from .nats_binder import NatsBinder
from .rabbit_binder import RabbitBinder
from .registry import BinderRegistry

__all__ = [
    "Binder",
    "BinderError",
    "BinderRegistry",
    "KafkaBinder",
    "MemoryBinder",
    "NatsBinder",
    "PublishError",
    "RabbitBinder",
    "SubscriptionError",
]
