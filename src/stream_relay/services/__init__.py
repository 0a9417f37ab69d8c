"""
Relay services: dispatcher, error router, consumers and the startup context.
"""
from .dispatcher import Dispatcher
from .error_router import ErrorRouter
from .relay import RelayContext

__all__ = [
    "Dispatcher",
    "ErrorRouter",
    "RelayContext",
]
