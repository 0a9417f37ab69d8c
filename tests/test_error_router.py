"""
Tests for the error router.
"""
import asyncio

import pytest

from stream_relay.models.messages import FailureRecord, Message
from stream_relay.services.error_router import ErrorRouter


def make_record(cause="boom", kind="handler"):
    return FailureRecord.from_exception(
        kind,
        ValueError(cause),
        message=Message(payload="INV-1", channel="invoiceInput"),
        channel="invoiceInput",
        destination="invoice-topic",
    )


@pytest.fixture
async def router():
    router = ErrorRouter(max_queue_size=3)
    await router.start()
    yield router
    await router.stop()


class TestErrorRouter:

    async def test_sync_handler_receives_record(self, router):
        received = []
        router.on_failure(received.append)

        record = make_record()
        router.report(record)
        await router.join()

        assert received == [record]

    async def test_async_handler_receives_record(self, router):
        received = []

        @router.on_failure
        async def handle(record):
            received.append(record.cause)

        router.report(make_record("first"))
        router.report(make_record("second"))
        await router.join()

        assert received == ["first", "second"]

    async def test_last_registration_wins(self, router):
        first = []
        second = []
        router.on_failure(first.append)
        router.on_failure(second.append)

        router.report(make_record())
        await router.join()

        assert first == []
        assert len(second) == 1

    async def test_no_handler_logs_and_drops(self, router, caplog):
        router.report(make_record("nobody listening"))
        await router.join()

        assert not router.has_handler
        assert "nobody listening" in caplog.text

    async def test_failing_handler_does_not_stop_worker(self, router):
        received = []

        def handle(record):
            if record.cause == "bad":
                raise RuntimeError("handler broke")
            received.append(record.cause)

        router.on_failure(handle)
        router.report(make_record("bad"))
        router.report(make_record("good"))
        await router.join()

        assert received == ["good"]

    async def test_report_never_blocks_when_full(self):
        router = ErrorRouter(max_queue_size=2)
        received = []
        router.on_failure(received.append)

        # Worker not started: the queue fills up
        for i in range(4):
            router.report(make_record(str(i)))

        assert router.pending == 2
        assert router.dropped == 2

        await router.stop()
        assert [r.cause for r in received] == ["0", "1"]

    async def test_slow_handler_does_not_block_report(self, router):
        release = asyncio.Event()
        received = []

        async def slow(record):
            await release.wait()
            received.append(record)

        router.on_failure(slow)
        router.report(make_record("1"))
        router.report(make_record("2"))

        assert received == []
        release.set()
        await asyncio.wait_for(router.join(), timeout=1)
        assert len(received) == 2


class TestFailureRecord:

    def test_from_exception(self):
        record = make_record("boom")

        assert record.kind == "handler"
        assert record.cause == "boom"
        assert record.error_type == "ValueError"
        assert record.message.payload == "INV-1"
        assert record.timestamp is not None

    def test_empty_exception_message_uses_type(self):
        record = FailureRecord.from_exception("broker", ConnectionError())
        assert record.cause == "ConnectionError"
        assert record.message is None
