"""Error taxonomy for the Kafka source connector.

Every error that ends a run derives from :class:`ConnectorError`.  Library
exceptions are wrapped with ``raise ... from exc`` so the original cause stays
on the chain.
"""

from __future__ import annotations


class ConnectorError(Exception):
    """Base class for all fatal connector errors."""


class ConfigError(ConnectorError):
    """Malformed configuration, catalog document, or CLI input."""


class BrokerError(ConnectorError):
    """Connection, metadata, watermark, or poll failure reported by Kafka."""


class MessageMetadataError(BrokerError):
    """A polled message lacks its topic, partition, or offset."""


class ProcessingError(ConnectorError):
    """A message payload could not be decoded into a record."""

    def __init__(self, message: str, *, topic: str, partition: int, offset: int):
        super().__init__(f"{message} (topic={topic} partition={partition} offset={offset})")
        self.topic = topic
        self.partition = partition
        self.offset = offset


class CatalogError(ConnectorError):
    """The configured catalog selects a stream the broker does not have."""


class StateError(ConnectorError):
    """Persisted checkpoint state has a shape that cannot be interpreted."""
