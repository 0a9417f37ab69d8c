"""
Pytest configuration for Stream Relay tests.
"""
import asyncio
import os
from types import SimpleNamespace
from typing import Callable

import pytest

# Set test environment variables
os.environ["RELAY_PROFILE"] = "memory"
os.environ["DEBUG"] = "true"

from stream_relay.binders import BinderRegistry, MemoryBinder
from stream_relay.core.bindings import BindingTable
from stream_relay.services.dispatcher import Dispatcher
from stream_relay.services.error_router import ErrorRouter


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll until predicate() is truthy or fail after timeout seconds."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
async def stack():
    """
    A connected in-memory relay stack registered as the "kafka" binder.

    Bindings are left to each test.
    """
    binder = MemoryBinder()
    registry = BinderRegistry()
    registry.register("kafka", binder, active=True)
    table = BindingTable("kafka")
    router = ErrorRouter(max_queue_size=100)
    failures = []
    router.on_failure(failures.append)

    await router.start()
    await binder.connect()
    dispatcher = Dispatcher(table, registry, router, concurrency=8)

    yield SimpleNamespace(
        binder=binder,
        registry=registry,
        table=table,
        router=router,
        dispatcher=dispatcher,
        failures=failures,
    )

    await dispatcher.close()
    await router.stop()
    await binder.disconnect()
