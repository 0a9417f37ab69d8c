"""
Tests for the Memory Binder.
"""
import pytest

from stream_relay.binders.memory_binder import MemoryBinder
from stream_relay.models.messages import Message


def make_message(payload="INV-1", **kwargs):
    return Message(payload=payload, channel="invoiceOutput", **kwargs)


@pytest.fixture
async def binder():
    """Create and connect a memory binder for testing."""
    binder = MemoryBinder()
    await binder.connect()
    yield binder
    await binder.disconnect()


class TestMemoryBinder:
    """Tests for MemoryBinder."""

    async def test_connect_disconnect(self):
        """Test basic connect/disconnect lifecycle."""
        binder = MemoryBinder()

        assert not binder.is_connected

        await binder.connect()
        assert binder.is_connected

        await binder.disconnect()
        assert not binder.is_connected

    async def test_publish_requires_connection(self):
        binder = MemoryBinder()
        with pytest.raises(ConnectionError):
            await binder.publish("invoice-topic", make_message())

    async def test_publish_without_subscribers(self, binder):
        """Test publishing to a destination with no subscribers."""
        # Should not raise an error
        await binder.publish("invoice-topic", make_message())

    async def test_subscribe_and_receive(self, binder):
        """Test subscribing to a destination and receiving messages."""
        received = []

        async def handler(destination, message):
            received.append((destination, message))

        sub_id = await binder.subscribe("invoice-topic", handler)
        assert sub_id is not None

        sent = make_message(headers={"trace": "abc"})
        await binder.publish("invoice-topic", sent)

        assert len(received) == 1
        destination, message = received[0]
        assert destination == "invoice-topic"
        assert message.payload == "INV-1"
        assert message.id == sent.id
        assert message.headers == {"trace": "abc"}
        assert message.source_channel == "invoiceOutput"
        # Subscribers get their own decoded copy
        assert message is not sent

    async def test_bytes_payload_stays_bytes(self, binder):
        received = []

        async def handler(destination, message):
            received.append(message.payload)

        await binder.subscribe("blob-topic", handler)
        await binder.publish("blob-topic", make_message(payload=b"\x00\x01"))

        assert received == [b"\x00\x01"]

    async def test_unsubscribe(self, binder):
        """Test unsubscribing stops message delivery."""
        received = []

        async def handler(destination, message):
            received.append(message)

        sub_id = await binder.subscribe("invoice-topic", handler)

        await binder.publish("invoice-topic", make_message("1"))
        assert len(received) == 1

        await binder.unsubscribe(sub_id)
        assert binder.subscriber_count("invoice-topic") == 0

        await binder.publish("invoice-topic", make_message("2"))
        assert len(received) == 1

    async def test_unsubscribe_unknown_id_is_ignored(self, binder):
        await binder.unsubscribe("missing")

    async def test_exact_destination_match_only(self, binder):
        """Destinations match exactly; there are no wildcards."""
        received = []

        async def handler(destination, message):
            received.append(destination)

        await binder.subscribe("invoice-topic", handler)

        await binder.publish("invoice-topic", make_message())
        await binder.publish("invoice-topics", make_message())
        await binder.publish("invoice-queue", make_message())

        assert received == ["invoice-topic"]

    async def test_multiple_subscribers_without_group(self, binder):
        """Subscribers without a group each receive every message."""
        received_a = []
        received_b = []

        async def handler_a(destination, message):
            received_a.append(message)

        async def handler_b(destination, message):
            received_b.append(message)

        await binder.subscribe("invoice-topic", handler_a)
        await binder.subscribe("invoice-topic", handler_b)

        await binder.publish("invoice-topic", make_message())

        assert len(received_a) == 1
        assert len(received_b) == 1

    async def test_handler_error_isolation(self, binder):
        """Handler errors don't affect other handlers and reach the error listener."""
        received = []
        errors = []
        binder.set_error_listener(lambda destination, error: errors.append((destination, error)))

        async def failing_handler(destination, message):
            raise ValueError("Handler error")

        async def working_handler(destination, message):
            received.append(message)

        await binder.subscribe("invoice-topic", failing_handler, subscription_id="failing")
        await binder.subscribe("invoice-topic", working_handler, subscription_id="working")

        await binder.publish("invoice-topic", make_message())

        assert len(received) == 1
        assert len(errors) == 1
        assert errors[0][0] == "invoice-topic"
        assert isinstance(errors[0][1], ValueError)


class TestConsumerGroups:
    """Round-robin delivery within a consumer group."""

    async def test_group_distribution(self, binder):
        received = {"a": [], "b": [], "c": []}

        def make_handler(key):
            async def handler(destination, message):
                received[key].append(message.payload)
            return handler

        for key in received:
            await binder.subscribe("order-topic", make_handler(key), group="order-group")

        for i in range(3):
            await binder.publish("order-topic", make_message(str(i)))

        assert sum(len(v) for v in received.values()) == 3
        assert all(len(v) == 1 for v in received.values())

    async def test_mixed_broadcast_and_group(self, binder):
        broadcast = []
        group_1 = []
        group_2 = []

        async def handler_broadcast(destination, message):
            broadcast.append(message)

        async def handler_group_1(destination, message):
            group_1.append(message)

        async def handler_group_2(destination, message):
            group_2.append(message)

        await binder.subscribe("order-topic", handler_broadcast)
        await binder.subscribe("order-topic", handler_group_1, group="workers")
        await binder.subscribe("order-topic", handler_group_2, group="workers")

        await binder.publish("order-topic", make_message("1"))
        await binder.publish("order-topic", make_message("2"))

        assert len(broadcast) == 2
        assert len(group_1) == 1
        assert len(group_2) == 1

    async def test_distinct_groups_each_receive(self, binder):
        invoices = []
        audit = []

        async def invoice_handler(destination, message):
            invoices.append(message)

        async def audit_handler(destination, message):
            audit.append(message)

        await binder.subscribe("invoice-topic", invoice_handler, group="invoice-group")
        await binder.subscribe("invoice-topic", audit_handler, group="audit-group")

        await binder.publish("invoice-topic", make_message())

        assert len(invoices) == 1
        assert len(audit) == 1
