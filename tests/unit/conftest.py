"""Shared builders for unit tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
import structlog
from confluent_kafka import TIMESTAMP_CREATE_TIME

from kafka_source.config.models import (
    ConfiguredCatalog,
    ConfiguredStream,
    StreamDefinition,
    SyncMode,
)


def build_catalog(
    bounded: tuple[str, ...] = (),
    unbounded: tuple[str, ...] = (),
    *,
    tail: bool = False,
) -> ConfiguredCatalog:
    streams = [
        ConfiguredStream(stream=StreamDefinition(name=n), sync_mode=SyncMode.FULL_REFRESH)
        for n in bounded
    ] + [
        ConfiguredStream(stream=StreamDefinition(name=n), sync_mode=SyncMode.INCREMENTAL)
        for n in unbounded
    ]
    return ConfiguredCatalog(streams=streams, tail=tail)


def build_message(
    topic: str | None = "orders",
    partition: int | None = 0,
    offset: int | None = 0,
    value: bytes | None = b'{"id": 1}',
    *,
    key: bytes | None = None,
    timestamp: int = 1_700_000_000_000,
    error: Any = None,
) -> MagicMock:
    """A MagicMock shaped like ``confluent_kafka.Message``."""
    msg = MagicMock()
    msg.topic.return_value = topic
    msg.partition.return_value = partition
    msg.offset.return_value = offset
    msg.value.return_value = value
    msg.key.return_value = key
    msg.timestamp.return_value = (TIMESTAMP_CREATE_TIME, timestamp)
    msg.error.return_value = error
    return msg


@pytest.fixture
def catalog_factory():
    return build_catalog


@pytest.fixture
def message_factory():
    return build_message


@pytest.fixture(autouse=True)
def _reset_structlog():
    """The CLI points structlog at the runner's stderr; undo that after each test."""
    yield
    structlog.reset_defaults()
