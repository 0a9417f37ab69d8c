"""
Relay context: everything built once at startup from configuration.

The context owns the binder registry, the binding table, the error router and
the dispatcher, and drives their lifecycle. It is created per application
(stored on ``app.state``) rather than as a module-level global.
"""
import logging
from typing import Mapping, Optional

from ..binders import (
    Binder,
    BinderRegistry,
    KafkaBinder,
    MemoryBinder,
    NatsBinder,
    RabbitBinder,
)
from ..core.bindings import BindingTable
from ..core.config import Settings
from ..core.errors import ConfigurationError
from ..core.profiles import ProfileConfig, resolve_profile
from .dispatcher import ConsumerHandler, Dispatcher
from .error_router import ErrorRouter, FailureHandler

logger = logging.getLogger(__name__)

BINDER_IDS = ("kafka", "rabbit", "nats", "memory")


def create_binder(binder_id: str, settings: Settings) -> Binder:
    """Factory function to create a binder from configuration."""
    if binder_id == "kafka":
        return KafkaBinder(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            client_id=settings.kafka_client_id,
            auto_offset_reset=settings.kafka_auto_offset_reset,
        )
    elif binder_id == "rabbit":
        return RabbitBinder(
            url=settings.rabbit_url,
            prefetch_count=settings.rabbit_prefetch_count,
        )
    elif binder_id == "nats":
        return NatsBinder(
            url=settings.nats_url,
            reconnect_time_wait=settings.nats_reconnect_time_wait,
            max_reconnect_attempts=settings.nats_max_reconnect_attempts,
        )
    elif binder_id == "memory":
        return MemoryBinder()
    else:
        raise ConfigurationError(f"Unknown binder type: {binder_id}")


def build_registry(settings: Settings, active_binder_id: str) -> BinderRegistry:
    """Register every known binder and activate the selected one."""
    if active_binder_id not in BINDER_IDS:
        raise ConfigurationError(
            f"Unknown binder '{active_binder_id}', expected one of: {', '.join(BINDER_IDS)}"
        )

    registry = BinderRegistry()
    for binder_id in BINDER_IDS:
        registry.register(
            binder_id,
            create_binder(binder_id, settings),
            active=binder_id == active_binder_id,
        )
    return registry


def build_binding_table(profile: ProfileConfig) -> BindingTable:
    table = BindingTable(profile.binder)
    for channel, spec in profile.bindings.items():
        table.bind(
            channel,
            spec.destination,
            spec.role,
            group=spec.group,
            binder_id=spec.binder or profile.binder,
        )
    return table


class RelayContext:
    """
    Startup-built relay runtime.

    Usage:
        relay = RelayContext.from_settings(settings, functions=CONSUMER_FUNCTIONS)
        await relay.initialize()
        await relay.dispatcher.send("invoiceOutput", "INV-1")
        await relay.shutdown()
    """

    def __init__(
        self,
        settings: Settings,
        profile: ProfileConfig,
        registry: BinderRegistry,
        bindings: BindingTable,
        functions: Optional[Mapping[str, ConsumerHandler]] = None,
        failure_handler: Optional[FailureHandler] = None,
    ):
        self.settings = settings
        self.profile = profile
        self.registry = registry
        self.bindings = bindings
        self.functions = dict(functions or {})
        self.error_router = ErrorRouter(max_queue_size=settings.error_queue_size)
        if failure_handler is not None:
            self.error_router.on_failure(failure_handler)
        self.dispatcher = Dispatcher(
            bindings,
            registry,
            self.error_router,
            concurrency=settings.handler_concurrency,
            max_attempts=settings.handler_max_attempts,
            retry_backoff=settings.handler_retry_backoff,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        functions: Optional[Mapping[str, ConsumerHandler]] = None,
        failure_handler: Optional[FailureHandler] = None,
    ) -> "RelayContext":
        """
        Build the full context from settings.

        Raises:
            ConfigurationError: On an unknown binder, invalid profile or duplicate binding
        """
        profile = resolve_profile(settings)
        registry = build_registry(settings, profile.binder)
        bindings = build_binding_table(profile)
        return cls(settings, profile, registry, bindings, functions, failure_handler)

    @property
    def binder(self) -> Binder:
        return self.registry.active_binder()

    async def initialize(self) -> None:
        """Start error routing, connect the binder, attach consumer functions and seal."""
        logger.info(
            f"Starting relay with profile '{self.settings.relay_profile}' "
            f"on {self.profile.binder} binder"
        )
        await self.error_router.start()

        try:
            await self.binder.connect()
        except Exception as e:
            logger.error(f"Failed to connect binder: {e}")
            # Continue anyway for graceful degradation in dev mode
            if not self.settings.debug:
                await self.error_router.stop()
                raise

        if self.binder.is_connected:
            try:
                await self._attach_functions()
            except Exception:
                logger.error("Failed to attach consumer functions, shutting down")
                await self.shutdown()
                raise
        else:
            logger.warning("Binder not connected, consumer functions not attached")

        self.bindings.seal()
        logger.info("Relay ready")

    async def _attach_functions(self) -> None:
        for channel in self.profile.function_definition:
            handler = self.functions.get(channel)
            if handler is None:
                raise ConfigurationError(f"No consumer function registered for '{channel}'")
            await self.dispatcher.subscribe(channel, handler)

    async def shutdown(self) -> None:
        """Detach consumers, flush failures and disconnect the binder."""
        logger.info("Shutting down relay")
        await self.dispatcher.close()
        await self.error_router.stop()
        await self.binder.disconnect()
        logger.info("Relay shutdown complete")
