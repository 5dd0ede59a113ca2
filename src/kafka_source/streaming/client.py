"""Thin wrapper over a manually-assigned ``confluent_kafka.Consumer``.

Covers everything the connector asks of the broker: partition layout,
watermarks, assignment and polling.  Every ``KafkaException`` leaves this
module as a :class:`~kafka_source.errors.BrokerError`.
"""

from __future__ import annotations

from typing import Any

import structlog
from confluent_kafka import Consumer, KafkaError, KafkaException, Message, TopicPartition

from kafka_source.config.models import ConnectorConfig
from kafka_source.errors import BrokerError
from kafka_source.protocol import Catalog, ConnectionState, ConnectionStatus, DiscoveredStream
from kafka_source.state.checkpoints import CheckpointSet
from kafka_source.state.halting import WatermarkSnapshot
from kafka_source.streaming.auth import build_kafka_auth_config
from kafka_source.streaming.metadata import ClusterMetadata

logger = structlog.get_logger()


def consumer_settings(config: ConnectorConfig) -> dict[str, Any]:
    """librdkafka settings for a consumer that never commits or rebalances."""
    settings: dict[str, Any] = {
        "bootstrap.servers": config.bootstrap_servers,
        "group.id": config.group_id,
        "enable.auto.commit": False,
        "enable.auto.offset.store": False,
        "enable.partition.eof": False,
        "auto.offset.reset": "earliest",
    }
    settings.update(build_kafka_auth_config(config))
    return settings


class KafkaClient:
    """Broker access for a single connector invocation."""

    def __init__(self, config: ConnectorConfig, consumer: Consumer | None = None) -> None:
        self._config = config
        self._timeout = config.metadata_timeout_seconds
        try:
            self._consumer = (
                consumer if consumer is not None else Consumer(consumer_settings(config))
            )
        except KafkaException as exc:
            msg = f"Failed to create Kafka consumer: {exc}"
            raise BrokerError(msg) from exc

    @classmethod
    def from_config(cls, config: ConnectorConfig) -> KafkaClient:
        return cls(config)

    def fetch_metadata(self) -> ClusterMetadata:
        """Return the partition indexes of every healthy topic the broker reports.

        Topics the broker flags with an error are left out of the layout, so a
        selected stream among them fails reconciliation as missing.
        """
        try:
            cluster = self._consumer.list_topics(timeout=self._timeout)
        except KafkaException as exc:
            msg = f"Failed to fetch topic metadata: {exc}"
            raise BrokerError(msg) from exc

        layout: dict[str, list[int]] = {}
        for name, topic in cluster.topics.items():
            if topic.error is not None:
                logger.warning("kafka.topic_unavailable", topic=name, error=str(topic.error))
                continue
            layout[name] = list(topic.partitions)
        logger.debug("kafka.metadata_fetched", topics=len(layout))
        return ClusterMetadata.from_mapping(layout)

    def test_connection(self) -> ConnectionStatus:
        """Probe the broker by listing topics."""
        try:
            metadata = self.fetch_metadata()
        except BrokerError as exc:
            logger.warning("kafka.check_failed", error=str(exc))
            return ConnectionStatus(status=ConnectionState.FAILED, message=str(exc))
        return ConnectionStatus(
            status=ConnectionState.SUCCEEDED,
            message=f"{len(metadata.topic_names)} topic(s) visible",
        )

    def discover(self) -> Catalog:
        """One stream per topic, skipping broker-internal ``__`` topics."""
        metadata = self.fetch_metadata()
        return Catalog(
            streams=[
                DiscoveredStream(name=topic)
                for topic in metadata.topic_names
                if not topic.startswith("__")
            ]
        )

    def assign(self, checkpoints: CheckpointSet) -> None:
        """Assign every checkpointed partition, starting at its offset."""
        partitions = [
            TopicPartition(cp.stream, cp.partition, cp.offset) for cp in checkpoints
        ]
        try:
            self._consumer.assign(partitions)
        except KafkaException as exc:
            msg = f"Failed to assign partitions: {exc}"
            raise BrokerError(msg) from exc
        logger.info("kafka.assigned", partitions=len(partitions))

    def high_watermarks(self, checkpoints: CheckpointSet) -> WatermarkSnapshot:
        """Capture the high watermark of every checkpointed partition.

        A partition with no retained messages (low == high) is recorded at
        its starting offset when that is behind the high watermark: there is
        nothing left that could be read to reach it.
        """
        watermarks: dict[tuple[str, int], int] = {}
        for cp in checkpoints:
            tp = TopicPartition(cp.stream, cp.partition)
            try:
                offsets = self._consumer.get_watermark_offsets(
                    tp, timeout=self._timeout, cached=False
                )
            except KafkaException as exc:
                msg = (
                    f"Failed to fetch watermarks for {cp.stream} "
                    f"partition {cp.partition}: {exc}"
                )
                raise BrokerError(msg) from exc
            if offsets is None:
                msg = f"Timed out fetching watermarks for {cp.stream} partition {cp.partition}"
                raise BrokerError(msg)
            low, high = offsets
            if low == high and cp.offset < high:
                logger.info(
                    "kafka.partition_empty",
                    stream=cp.stream,
                    partition=cp.partition,
                    offset=cp.offset,
                    high_watermark=high,
                )
                high = cp.offset
            watermarks[(cp.stream, cp.partition)] = high
        return WatermarkSnapshot(watermarks)

    def poll(self) -> Message | None:
        """Block for the next message; None only when a poll timeout is configured."""
        timeout = self._config.poll_timeout_seconds
        try:
            msg = self._consumer.poll() if timeout is None else self._consumer.poll(timeout)
        except KafkaException as exc:
            msg_text = f"Failed to poll Kafka: {exc}"
            raise BrokerError(msg_text) from exc
        if msg is None:
            return None
        err: KafkaError | None = msg.error()
        if err is not None:
            raise BrokerError(f"Failed to read message: {err}") from KafkaException(err)
        return msg

    def close(self) -> None:
        self._consumer.close()
