"""Connector lifecycle (spec / check / discover / read) and the read loop."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Protocol, TextIO, runtime_checkable

import structlog

from kafka_source.config.models import ConfiguredCatalog, ConnectorConfig
from kafka_source.protocol import ConnectorSpecification, StateMessage, write_message
from kafka_source.state.checkpoints import CheckpointSet
from kafka_source.state.halting import HaltCheck
from kafka_source.streaming.client import KafkaClient
from kafka_source.streaming.processor import MessageProcessor

logger = structlog.get_logger()

ClientFactory = Callable[[ConnectorConfig], KafkaClient]


@runtime_checkable
class Connector(Protocol):
    """Operations every source connector exposes to its host."""

    def spec(self, output: TextIO) -> None: ...

    def check(self, output: TextIO, config: ConnectorConfig) -> None: ...

    def discover(self, output: TextIO, config: ConnectorConfig) -> None: ...

    def read(
        self,
        output: TextIO,
        config: ConnectorConfig,
        catalog: ConfiguredCatalog,
        persisted: CheckpointSet | None = None,
    ) -> None: ...


class ReadPhase(StrEnum):
    INITIALIZING = "initializing"
    SUBSCRIBED = "subscribed"
    POLLING = "polling"
    HALTED = "halted"
    FAILED = "failed"


class ReadLoop:
    """Reads selected topics from their checkpoints until halted or failed.

    Bounded (full-refresh) catalogs stop once every partition reaches the
    high watermark captured at subscribe time.  A catalog with any unbounded
    stream polls until the host stops the process.  Any error is fatal and
    propagates unchanged.
    """

    def __init__(
        self,
        client: KafkaClient,
        catalog: ConfiguredCatalog,
        output: TextIO,
        *,
        processor: MessageProcessor | None = None,
    ) -> None:
        self._client = client
        self._catalog = catalog
        self._output = output
        self._processor = processor or MessageProcessor()
        self.phase = ReadPhase.INITIALIZING
        self.checkpoints = CheckpointSet()
        self.messages_read = 0

    def _transition(self, phase: ReadPhase) -> None:
        logger.info("read.phase", previous=self.phase.value, phase=phase.value)
        self.phase = phase

    def run(self, persisted: CheckpointSet | None = None) -> None:
        try:
            halt_check = self._start(persisted or CheckpointSet())
            self._poll_until_halted(halt_check)
        except Exception as exc:
            logger.error(
                "read.failed",
                phase=self.phase.value,
                messages=self.messages_read,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self.phase = ReadPhase.FAILED
            raise

    def _start(self, persisted: CheckpointSet) -> HaltCheck:
        metadata = self._client.fetch_metadata()
        self.checkpoints = CheckpointSet.reconcile(metadata, self._catalog, persisted)

        self._client.assign(self.checkpoints)
        watermarks = self._client.high_watermarks(self.checkpoints)
        self._transition(ReadPhase.SUBSCRIBED)
        return HaltCheck(self._catalog, watermarks)

    def _poll_until_halted(self, halt_check: HaltCheck) -> None:
        self._transition(ReadPhase.POLLING)
        while not halt_check.should_halt(self.checkpoints):
            msg = self._client.poll()
            if msg is None:
                continue

            record, checkpoint = self._processor.process(msg)
            if not self.checkpoints.add(checkpoint):
                # Already delivered, e.g. after an offset reset to earliest.
                logger.debug(
                    "read.message_skipped",
                    stream=checkpoint.stream,
                    partition=checkpoint.partition,
                    offset=checkpoint.offset - 1,
                    checkpoint=self.checkpoints.offset(checkpoint.stream, checkpoint.partition),
                )
                continue
            self.messages_read += 1

            write_message(self._output, record)
            write_message(self._output, StateMessage(data=checkpoint.to_dict()))

        self._transition(ReadPhase.HALTED)
        logger.info("read.halted", messages=self.messages_read)


class KafkaConnector:
    """Kafka implementation of :class:`Connector`."""

    def __init__(self, client_factory: ClientFactory = KafkaClient.from_config) -> None:
        self._client_factory = client_factory

    def spec(self, output: TextIO) -> None:
        write_message(
            output,
            ConnectorSpecification(
                connection_specification=ConnectorConfig.model_json_schema(),
                supports_incremental=True,
            ),
        )

    def check(self, output: TextIO, config: ConnectorConfig) -> None:
        client = self._client_factory(config)
        try:
            write_message(output, client.test_connection())
        finally:
            client.close()

    def discover(self, output: TextIO, config: ConnectorConfig) -> None:
        client = self._client_factory(config)
        try:
            write_message(output, client.discover())
        finally:
            client.close()

    def read(
        self,
        output: TextIO,
        config: ConnectorConfig,
        catalog: ConfiguredCatalog,
        persisted: CheckpointSet | None = None,
    ) -> None:
        client = self._client_factory(config)
        loop = ReadLoop(
            client,
            catalog,
            output,
            processor=MessageProcessor(include_metadata=config.include_message_metadata),
        )
        try:
            loop.run(persisted)
        finally:
            client.close()
