"""Line-delimited JSON messages written to stdout.

Each message is one envelope ``{"type": ..., "<field>": {...}}`` on its own
line.  :func:`write_message` flushes after every line so a record is always
on the wire before the state message that covers it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, TextIO

from pydantic import BaseModel, Field

from kafka_source.config.models import StreamDefinition


class MessageType(StrEnum):
    RECORD = "RECORD"
    STATE = "STATE"
    LOG = "LOG"
    SPEC = "SPEC"
    CONNECTION_STATUS = "CONNECTION_STATUS"
    CATALOG = "CATALOG"


class ConnectionState(StrEnum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class RecordMessage(BaseModel):
    stream: str
    data: dict[str, Any]
    emitted_at: int


class StateMessage(BaseModel):
    """Checkpoint notification.

    With ``merge`` set, ``data`` is a partial update to be deep-merged into
    the previously persisted state rather than a replacement for it.
    """

    data: dict[str, dict[str, int]]
    merge: bool = True


class ConnectorSpecification(BaseModel):
    connection_specification: dict[str, Any] = Field(
        serialization_alias="connectionSpecification"
    )
    supports_incremental: bool = Field(
        default=True, serialization_alias="supportsIncremental"
    )
    supported_destination_sync_modes: list[str] = Field(default_factory=list)


class ConnectionStatus(BaseModel):
    status: ConnectionState
    message: str | None = None


class DiscoveredStream(StreamDefinition):
    source_defined_cursor: bool = True


class Catalog(BaseModel):
    streams: list[DiscoveredStream] = Field(default_factory=list)


_ENVELOPE_FIELDS: dict[type[BaseModel], tuple[MessageType, str]] = {
    RecordMessage: (MessageType.RECORD, "record"),
    StateMessage: (MessageType.STATE, "state"),
    ConnectorSpecification: (MessageType.SPEC, "spec"),
    ConnectionStatus: (MessageType.CONNECTION_STATUS, "connectionStatus"),
    Catalog: (MessageType.CATALOG, "catalog"),
}


def encode_message(message: BaseModel) -> str:
    """Wrap *message* in its typed envelope and encode it as one JSON line."""
    try:
        message_type, field_name = _ENVELOPE_FIELDS[type(message)]
    except KeyError:
        msg = f"Unsupported protocol message: {type(message).__name__}"
        raise TypeError(msg) from None
    payload = message.model_dump_json(by_alias=True, exclude_none=True)
    return f'{{"type":"{message_type}","{field_name}":{payload}}}\n'


def write_message(output: TextIO, message: BaseModel) -> None:
    """Write one message and flush it."""
    output.write(encode_message(message))
    output.flush()
