"""
Error router.

Collects failure records from every delivery path and hands them to one
process-wide failure handler on a background worker, so a slow handler
never stalls publishers or delivery workers.
"""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from ..models.messages import FailureRecord

logger = logging.getLogger(__name__)

FailureHandler = Callable[[FailureRecord], Union[None, Awaitable[None]]]


class ErrorRouter:
    """
    Bounded-queue router for failure records.

    ``report`` never blocks: when the queue is full the record is logged and
    dropped. Records are never retried.
    """

    def __init__(self, max_queue_size: int = 1000):
        self._handler: Optional[FailureHandler] = None
        self._queue: asyncio.Queue[FailureRecord] = asyncio.Queue(maxsize=max_queue_size)
        self._worker: Optional[asyncio.Task] = None
        self._dropped = 0

    def on_failure(self, handler: FailureHandler) -> FailureHandler:
        """
        Register the failure handler. A later registration replaces the earlier one.

        Usable as a decorator:
            @router.on_failure
            def handle(record):
                ...
        """
        if self._handler is not None:
            logger.info("Replacing registered failure handler")
        self._handler = handler
        return handler

    @property
    def has_handler(self) -> bool:
        return self._handler is not None

    @property
    def dropped(self) -> int:
        """Records dropped because the queue was full."""
        return self._dropped

    @property
    def running(self) -> bool:
        return self._worker is not None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def report(self, record: FailureRecord) -> None:
        """Enqueue a failure record without blocking."""
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                f"Error queue full, dropping {record.kind} failure "
                f"on {record.channel or record.destination}: {record.cause}"
            )

    async def start(self) -> None:
        """Start the background worker."""
        if self._worker is not None:
            logger.warning("Error router already running")
            return
        self._worker = asyncio.create_task(self._run())
        logger.info("Error router started")

    async def join(self) -> None:
        """Wait until every queued record has been handled."""
        if self._worker is None:
            await self._drain_inline()
            return
        await self._queue.join()

    async def stop(self) -> None:
        """Handle pending records, then stop the worker."""
        await self.join()
        if self._worker is None:
            return

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Error router stopped")

    async def _run(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self._dispatch(record)
            finally:
                self._queue.task_done()

    async def _drain_inline(self) -> None:
        while not self._queue.empty():
            record = self._queue.get_nowait()
            try:
                await self._dispatch(record)
            finally:
                self._queue.task_done()

    async def _dispatch(self, record: FailureRecord) -> None:
        handler = self._handler
        if handler is None:
            logger.error(
                f"Unhandled {record.kind} failure on "
                f"{record.channel or record.destination}: {record.error_type}: {record.cause}"
            )
            return

        try:
            result = handler(record)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Failure handler raised: {e}", exc_info=True)
