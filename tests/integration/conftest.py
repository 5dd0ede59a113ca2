"""Broker fixtures for integration tests.

Point ``KAFKA_BOOTSTRAP_SERVERS`` at a disposable broker and run with
``pytest -m integration``.
"""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Iterator

import pytest
from confluent_kafka import Producer
from confluent_kafka.admin import AdminClient, NewTopic  # type: ignore[attr-defined]

from kafka_source.config.models import ConnectorConfig

BOOTSTRAP = os.environ.get("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")


def _wait_for_kafka(bootstrap: str, *, timeout: int = 30) -> AdminClient:
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            admin = AdminClient({"bootstrap.servers": bootstrap})
            admin.list_topics(timeout=5)
            return admin
        except Exception:
            time.sleep(2)
    pytest.skip(f"Kafka at {bootstrap} not reachable")


@pytest.fixture(scope="session")
def admin() -> AdminClient:
    return _wait_for_kafka(BOOTSTRAP)


@pytest.fixture
def connector_config() -> ConnectorConfig:
    return ConnectorConfig(bootstrap_servers=BOOTSTRAP, metadata_timeout_seconds=10)


@pytest.fixture
def topic(admin: AdminClient) -> Iterator[str]:
    name = f"source-kafka-it-{uuid.uuid4().hex[:8]}"
    admin.create_topics([NewTopic(name, num_partitions=1, replication_factor=1)])[
        name
    ].result()
    try:
        yield name
    finally:
        admin.delete_topics([name])[name].result()


@pytest.fixture(scope="session")
def producer() -> Producer:
    return Producer({"bootstrap.servers": BOOTSTRAP})
