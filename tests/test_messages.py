"""
Tests for the message wire format and failure records.
"""
from datetime import datetime, timezone

from stream_relay.models.messages import (
    BINARY_CONTENT_TYPE,
    TEXT_CONTENT_TYPE,
    FailureRecord,
    Message,
)


class TestWireFormat:

    def test_text_payload_headers(self):
        message = Message(payload="INV-1", channel="invoiceOutput", headers={"tenant": "acme"})

        body, headers = message.to_wire()

        assert body == b"INV-1"
        assert headers["contentType"] == TEXT_CONTENT_TYPE
        assert headers["messageId"] == message.id
        assert headers["sourceChannel"] == "invoiceOutput"
        assert headers["tenant"] == "acme"

    def test_binary_payload_stays_bytes(self):
        message = Message(payload=b"\x00\x01", channel="blobOutput")

        body, headers = message.to_wire()
        received = Message.from_wire(body, headers, channel="blob-topic")

        assert headers["contentType"] == BINARY_CONTENT_TYPE
        assert received.payload == b"\x00\x01"

    def test_from_wire_strips_relay_headers(self):
        sent = Message(
            payload="INV-1",
            channel="invoiceOutput",
            headers={"tenant": "acme"},
            timestamp=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
        body, headers = sent.to_wire()

        received = Message.from_wire(body, headers, channel="invoice-topic")

        assert received.id == sent.id
        assert received.channel == "invoice-topic"
        assert received.source_channel == "invoiceOutput"
        assert received.headers == {"tenant": "acme"}
        assert received.timestamp == sent.timestamp

    def test_foreign_message_without_relay_headers(self):
        received = Message.from_wire(b"hello", {}, channel="invoice-topic")

        assert received.text == "hello"
        assert received.source_channel is None
        assert received.id

    def test_bad_timestamp_is_ignored(self):
        received = Message.from_wire(b"x", {"timestamp": "yesterday"}, channel="c")

        assert received.timestamp.tzinfo is not None

    def test_forwarded_message_keeps_source_channel(self):
        consumed = Message(payload="x", channel="invoiceInput", source_channel="invoiceOutput")

        _, headers = consumed.to_wire()

        assert headers["sourceChannel"] == "invoiceOutput"


class TestText:

    def test_bytes_decoded_as_utf8(self):
        assert Message(payload="é".encode("utf-8"), channel="c").text == "é"

    def test_empty_payload(self):
        assert Message(payload="", channel="c").text == ""
