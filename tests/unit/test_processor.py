"""Unit tests for MessageProcessor."""

from __future__ import annotations

import pytest

from kafka_source.errors import BrokerError, MessageMetadataError, ProcessingError
from kafka_source.state.checkpoints import Checkpoint
from kafka_source.streaming.processor import MessageProcessor


class TestMessageProcessor:
    def test_checkpoint_is_next_offset(self, message_factory):
        record, checkpoint = MessageProcessor().process(
            message_factory(topic="orders", partition=2, offset=41)
        )
        assert checkpoint == Checkpoint("orders", 2, 42)
        assert record.stream == "orders"
        assert record.data == {"id": 1}
        assert record.emitted_at > 0

    def test_metadata_added_when_enabled(self, message_factory):
        record, _ = MessageProcessor(include_metadata=True).process(
            message_factory(partition=1, offset=7, key=b"order-7", timestamp=123)
        )
        assert record.data["_meta"] == {
            "partition": 1,
            "offset": 7,
            "key": "order-7",
            "timestamp": 123,
        }

    def test_metadata_absent_by_default(self, message_factory):
        record, _ = MessageProcessor().process(message_factory())
        assert "_meta" not in record.data

    @pytest.mark.parametrize(
        ("topic", "partition", "offset"),
        [(None, 0, 0), ("orders", None, 0), ("orders", 0, None), ("orders", 0, -1001)],
        ids=["no-topic", "no-partition", "no-offset", "invalid-offset"],
    )
    def test_missing_position_is_a_broker_error(self, message_factory, topic, partition, offset):
        msg = message_factory(topic=topic, partition=partition, offset=offset)
        with pytest.raises(MessageMetadataError) as exc_info:
            MessageProcessor().process(msg)
        assert isinstance(exc_info.value, BrokerError)

    def test_tombstone_raises(self, message_factory):
        with pytest.raises(ProcessingError, match="no payload"):
            MessageProcessor().process(message_factory(value=None))

    def test_invalid_json_raises_with_cause(self, message_factory):
        with pytest.raises(ProcessingError, match="not valid JSON") as exc_info:
            MessageProcessor().process(message_factory(value=b"{not json", offset=3))
        assert exc_info.value.offset == 3
        assert exc_info.value.__cause__ is not None

    def test_invalid_utf8_raises(self, message_factory):
        with pytest.raises(ProcessingError):
            MessageProcessor().process(message_factory(value=b'{"a": "\x80"}'))

    def test_non_object_payload_raises(self, message_factory):
        with pytest.raises(ProcessingError, match="JSON object"):
            MessageProcessor().process(message_factory(value=b"[1, 2, 3]"))
