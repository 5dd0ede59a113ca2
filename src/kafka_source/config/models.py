"""Pydantic models for connector configuration and the configured catalog."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator


class KafkaAuthMechanism(StrEnum):
    """Kafka SASL authentication mechanisms."""

    NONE = "none"
    SASL_PLAIN = "sasl_plain"
    SASL_SCRAM_256 = "sasl_scram_256"
    SASL_SCRAM_512 = "sasl_scram_512"


class SyncMode(StrEnum):
    """How far a stream is read in one invocation."""

    FULL_REFRESH = "full_refresh"
    INCREMENTAL = "incremental"


_BROKER_PATTERN = re.compile(r"^[^\s:,]+:\d+$")


class ConnectorConfig(BaseModel):
    """Kafka broker connection settings for the source connector."""

    bootstrap_servers: str = Field(
        description="Comma-separated list of host:port broker addresses."
    )
    group_id: str = Field(
        default="source-kafka",
        description="Client group id. Partitions are assigned manually; "
        "the group never joins a rebalance.",
    )
    security_protocol: str = "PLAINTEXT"
    auth_mechanism: KafkaAuthMechanism = KafkaAuthMechanism.NONE
    sasl_username: str | None = None
    sasl_password: SecretStr | None = None
    ssl_ca_location: str | None = None
    ssl_certificate_location: str | None = None
    ssl_key_location: str | None = None
    metadata_timeout_seconds: float = Field(default=10.0, gt=0)
    # None blocks until a message arrives
    poll_timeout_seconds: float | None = Field(default=None, gt=0)
    include_message_metadata: bool = Field(
        default=False,
        description="Add a _meta object with partition, offset, key and "
        "timestamp to every record.",
    )

    @field_validator("bootstrap_servers")
    @classmethod
    def validate_bootstrap_servers(cls, v: str) -> str:
        servers = [s.strip() for s in v.split(",") if s.strip()]
        if not servers:
            msg = "bootstrap_servers must list at least one host:port"
            raise ValueError(msg)
        for server in servers:
            if not _BROKER_PATTERN.match(server):
                msg = f"Broker address '{server}' must be in host:port form"
                raise ValueError(msg)
        return ",".join(servers)

    @model_validator(mode="after")
    def check_auth_requirements(self) -> Self:
        """Validate that SASL credentials are present when SASL is selected."""
        mech = self.auth_mechanism
        if mech != KafkaAuthMechanism.NONE and (
            not self.sasl_username or not self.sasl_password
        ):
            msg = (
                "sasl_username and sasl_password are required "
                f"when auth_mechanism is '{mech.value}'"
            )
            raise ValueError(msg)
        return self


class StreamDefinition(BaseModel):
    """A stream as described by discovery."""

    name: str = Field(min_length=1)
    json_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object"})
    supported_sync_modes: list[SyncMode] = Field(
        default_factory=lambda: [SyncMode.FULL_REFRESH, SyncMode.INCREMENTAL]
    )


class ConfiguredStream(BaseModel):
    """One stream selected for a read, with its sync mode."""

    stream: StreamDefinition
    sync_mode: SyncMode = SyncMode.FULL_REFRESH

    @property
    def name(self) -> str:
        return self.stream.name


class ConfiguredCatalog(BaseModel):
    """The set of streams the operator wants synced in this run.

    ``tail`` turns every stream into an unbounded one, regardless of its
    individual sync mode.
    """

    streams: list[ConfiguredStream] = Field(default_factory=list)
    tail: bool = False

    @field_validator("streams")
    @classmethod
    def validate_unique_names(cls, v: list[ConfiguredStream]) -> list[ConfiguredStream]:
        seen: set[str] = set()
        for configured in v:
            if configured.name in seen:
                msg = f"Stream '{configured.name}' is selected more than once"
                raise ValueError(msg)
            seen.add(configured.name)
        return v

    @property
    def stream_names(self) -> list[str]:
        return [s.name for s in self.streams]

    def is_bounded(self, stream: str) -> bool:
        """Return True when *stream* is read up to its snapshot watermark."""
        if self.tail:
            return False
        for configured in self.streams:
            if configured.name == stream:
                return configured.sync_mode == SyncMode.FULL_REFRESH
        msg = f"Stream '{stream}' is not part of the catalog"
        raise KeyError(msg)

    @property
    def all_bounded(self) -> bool:
        return all(self.is_bounded(name) for name in self.stream_names)
