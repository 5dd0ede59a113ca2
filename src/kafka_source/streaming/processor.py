"""Decode polled Kafka messages into records and checkpoint deltas."""

from __future__ import annotations

import json
import time
from typing import Any

from confluent_kafka import TIMESTAMP_NOT_AVAILABLE, Message

from kafka_source.errors import MessageMetadataError, ProcessingError
from kafka_source.protocol import RecordMessage
from kafka_source.state.checkpoints import Checkpoint


class MessageProcessor:
    """Turns one raw message into ``(record, checkpoint)``.

    The checkpoint points at ``offset + 1``, the next message to read.
    """

    def __init__(self, *, include_metadata: bool = False) -> None:
        self._include_metadata = include_metadata

    def process(self, msg: Message) -> tuple[RecordMessage, Checkpoint]:
        topic = msg.topic()
        partition = msg.partition()
        offset = msg.offset()
        if topic is None or partition is None or offset is None or offset < 0:
            msg_text = (
                "Message is missing its position "
                f"(topic={topic!r} partition={partition!r} offset={offset!r})"
            )
            raise MessageMetadataError(msg_text)

        document = self._decode(msg.value(), topic, partition, offset)
        if self._include_metadata:
            document["_meta"] = self._metadata(msg, partition, offset)

        record = RecordMessage(
            stream=topic,
            data=document,
            emitted_at=int(time.time() * 1000),
        )
        return record, Checkpoint(topic, partition, offset + 1)

    @staticmethod
    def _decode(payload: bytes | None, topic: str, partition: int, offset: int) -> dict[str, Any]:
        if payload is None:
            raise ProcessingError(
                "Message has no payload", topic=topic, partition=partition, offset=offset
            )
        try:
            document = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProcessingError(
                f"Payload is not valid JSON: {exc}",
                topic=topic,
                partition=partition,
                offset=offset,
            ) from exc
        if not isinstance(document, dict):
            raise ProcessingError(
                f"Payload must be a JSON object, got {type(document).__name__}",
                topic=topic,
                partition=partition,
                offset=offset,
            )
        return document

    @staticmethod
    def _metadata(msg: Message, partition: int, offset: int) -> dict[str, Any]:
        key = msg.key()
        if isinstance(key, bytes):
            key = key.decode("utf-8", errors="replace")
        timestamp_type, timestamp = msg.timestamp()
        return {
            "partition": partition,
            "offset": offset,
            "key": key,
            "timestamp": None if timestamp_type == TIMESTAMP_NOT_AVAILABLE else timestamp,
        }
