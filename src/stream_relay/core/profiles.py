"""
Binding profiles.

A profile names the binder to activate, the channel bindings to realize on
it, and the consumer functions to attach at startup. The built-in profiles
mirror the deployment configurations the relay ships with; a JSON document
with the same shape can replace them via ``RELAY_BINDINGS_FILE``.

Note that the ``rabbit`` profile binds the invoice consumer to
``customer-queue`` while invoices are produced to ``invoice-queue``: the
destinations do not match, so those messages are never consumed. That is how
the deployment is configured and the relay does not second-guess it.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from .config import Settings
from .errors import ConfigurationError
from ..models.messages import Role

logger = logging.getLogger(__name__)


class BindingSpec(BaseModel):
    """Declared binding for one channel."""
    destination: str = Field(..., min_length=1, description="Physical destination name")
    role: Role = Field(..., description="Producer or consumer")
    group: Optional[str] = Field(default=None, description="Consumer group (consumer only)")
    binder: Optional[str] = Field(
        default=None,
        description="Binder this binding belongs to (defaults to the profile binder)",
    )

    @model_validator(mode="after")
    def _group_only_for_consumers(self) -> "BindingSpec":
        if self.group and self.role is Role.PRODUCER:
            raise ValueError("group is only valid on consumer bindings")
        return self


class ProfileConfig(BaseModel):
    """A complete binder + bindings configuration."""
    binder: str = Field(..., min_length=1, description="Binder to activate")
    bindings: Dict[str, BindingSpec] = Field(default_factory=dict)
    function_definition: List[str] = Field(
        default_factory=list,
        description="Consumer channels whose registered functions are attached at startup",
    )

    @model_validator(mode="after")
    def _functions_are_consumers(self) -> "ProfileConfig":
        for channel in self.function_definition:
            spec = self.bindings.get(channel)
            if spec is None or spec.role is not Role.CONSUMER:
                raise ValueError(f"function '{channel}' has no consumer binding")
        return self


def _kafka_style(binder: str) -> ProfileConfig:
    return ProfileConfig(
        binder=binder,
        bindings={
            "invoiceOutput": BindingSpec(destination="invoice-topic", role=Role.PRODUCER),
            "paymentOutput": BindingSpec(destination="order-topic", role=Role.PRODUCER),
            "invoiceInput": BindingSpec(
                destination="invoice-topic", role=Role.CONSUMER, group="invoice-group"
            ),
            "orderInput": BindingSpec(
                destination="order-topic", role=Role.CONSUMER, group="order-group"
            ),
        },
        function_definition=["invoiceInput", "orderInput"],
    )


BUILTIN_PROFILES: Dict[str, ProfileConfig] = {
    "kafka": _kafka_style("kafka"),
    "nats": _kafka_style("nats"),
    "memory": _kafka_style("memory"),
    "rabbit": ProfileConfig(
        binder="rabbit",
        bindings={
            "invoiceOutput": BindingSpec(destination="invoice-queue", role=Role.PRODUCER),
            "paymentOutput": BindingSpec(destination="payment-queue", role=Role.PRODUCER),
            "invoiceInput": BindingSpec(
                destination="customer-queue", role=Role.CONSUMER, group="invoice-group"
            ),
            "orderInput": BindingSpec(
                destination="order-queue", role=Role.CONSUMER, group="order-group"
            ),
        },
        function_definition=["invoiceInput", "orderInput"],
    ),
}


def load_profile_file(path: str) -> ProfileConfig:
    """
    Load a profile from a JSON document.

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read bindings file {path}: {e}") from e

    try:
        return ProfileConfig.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid bindings file {path}: {e}") from e


def resolve_profile(settings: Settings) -> ProfileConfig:
    """
    Work out the effective profile for these settings.

    The bindings file, when set, replaces the built-in profile; the
    ``relay_active_binder`` override then replaces the binder.
    """
    if settings.relay_bindings_file:
        profile = load_profile_file(settings.relay_bindings_file)
        logger.info(f"Loaded bindings from {settings.relay_bindings_file}")
    else:
        profile = BUILTIN_PROFILES[settings.relay_profile]

    if settings.relay_active_binder:
        profile = profile.model_copy(update={"binder": settings.relay_active_binder})

    return profile
