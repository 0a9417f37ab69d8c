"""
Core DTOs for the relay: bindings, messages and failure records.

All models are frozen; a message or binding is never changed after creation.
Inbound copies of a message are produced with ``model_copy`` rather than by
mutation.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

Payload = Union[str, bytes]

# Wire headers owned by the relay
CONTENT_TYPE_HEADER = "contentType"
MESSAGE_ID_HEADER = "messageId"
SOURCE_CHANNEL_HEADER = "sourceChannel"
TIMESTAMP_HEADER = "timestamp"

TEXT_CONTENT_TYPE = "text/plain"
BINARY_CONTENT_TYPE = "application/octet-stream"

_RESERVED_HEADERS = {
    CONTENT_TYPE_HEADER,
    MESSAGE_ID_HEADER,
    SOURCE_CHANNEL_HEADER,
    TIMESTAMP_HEADER,
}


class Role(str, Enum):
    """Which side of a channel a binding serves."""
    PRODUCER = "producer"
    CONSUMER = "consumer"


class Binding(BaseModel):
    """Resolved association between a logical channel and a physical destination."""
    model_config = ConfigDict(frozen=True)

    channel: str = Field(..., description="Logical channel name used by application code")
    destination: str = Field(..., description="Topic / queue / subject on the broker")
    binder_id: str = Field(..., description="Binder serving this binding")
    role: Role = Field(..., description="Producer or consumer side")
    group: Optional[str] = Field(
        default=None,
        description="Consumer group (consumer bindings only)",
    )


class Message(BaseModel):
    """
    A payload travelling through a channel.

    ``channel`` is the channel the message was sent on; the copy handed to a
    consumer handler carries the consuming channel instead, while the original
    producer channel stays available in ``source_channel``.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    payload: Payload
    channel: str
    headers: Dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_channel: Optional[str] = None

    @property
    def text(self) -> str:
        """Payload decoded as UTF-8 text."""
        if isinstance(self.payload, bytes):
            return self.payload.decode("utf-8", errors="replace")
        return self.payload

    def to_wire(self) -> Tuple[bytes, Dict[str, str]]:
        """Encode into the ``(body, headers)`` pair every binder transmits."""
        if isinstance(self.payload, bytes):
            body = self.payload
            content_type = BINARY_CONTENT_TYPE
        else:
            body = self.payload.encode("utf-8")
            content_type = TEXT_CONTENT_TYPE

        headers = dict(self.headers)
        headers[CONTENT_TYPE_HEADER] = content_type
        headers[MESSAGE_ID_HEADER] = self.id
        headers[SOURCE_CHANNEL_HEADER] = self.source_channel or self.channel
        headers[TIMESTAMP_HEADER] = self.timestamp.isoformat()
        return body, headers

    @classmethod
    def from_wire(cls, body: bytes, headers: Dict[str, str], channel: str) -> "Message":
        """
        Rebuild a message received from a broker.

        Args:
            body: Raw bytes from the broker
            headers: Broker headers, already decoded to strings
            channel: Channel to stamp on the message (usually the destination
                until the dispatcher resolves the consuming channel)
        """
        content_type = headers.get(CONTENT_TYPE_HEADER, TEXT_CONTENT_TYPE)
        payload: Payload = body
        if content_type.startswith("text/"):
            payload = body.decode("utf-8")

        fields = {
            "payload": payload,
            "channel": channel,
            "headers": {k: v for k, v in headers.items() if k not in _RESERVED_HEADERS},
            "source_channel": headers.get(SOURCE_CHANNEL_HEADER),
        }
        if MESSAGE_ID_HEADER in headers:
            fields["id"] = headers[MESSAGE_ID_HEADER]
        if TIMESTAMP_HEADER in headers:
            try:
                fields["timestamp"] = datetime.fromisoformat(headers[TIMESTAMP_HEADER])
            except ValueError:
                pass
        return cls(**fields)


FailureKind = Literal["publish", "handler", "broker"]


class FailureRecord(BaseModel):
    """
    A terminal description of a failed delivery or handler invocation.

    Produced by the error router and consumed only by the failure handler.
    """
    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    cause: str = Field(..., description="Human readable error description")
    error_type: str = Field(..., description="Class name of the underlying exception")
    message: Optional[Message] = Field(
        default=None,
        description="Original message, when it was still available",
    )
    channel: Optional[str] = None
    destination: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(
        cls,
        kind: FailureKind,
        exc: BaseException,
        message: Optional[Message] = None,
        channel: Optional[str] = None,
        destination: Optional[str] = None,
    ) -> "FailureRecord":
        return cls(
            kind=kind,
            cause=str(exc) or exc.__class__.__name__,
            error_type=exc.__class__.__name__,
            message=message,
            channel=channel,
            destination=destination,
        )
