"""
Relay data models.
"""
from .messages import Binding, FailureRecord, Message, Role

__all__ = [
    "Binding",
    "FailureRecord",
    "Message",
    "Role",
]
