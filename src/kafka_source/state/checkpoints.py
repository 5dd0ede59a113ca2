"""Per-partition read checkpoints and their reconciliation at startup.

A checkpoint offset is always the *next* offset to read: one past the last
message emitted for that partition.  Restarting from it never re-emits a
delivered message.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from kafka_source.errors import CatalogError, StateError

if TYPE_CHECKING:
    from kafka_source.config.models import ConfiguredCatalog
    from kafka_source.streaming.metadata import ClusterMetadata

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Next offset to read for one (stream, partition)."""

    stream: str
    partition: int
    offset: int

    def to_dict(self) -> dict[str, dict[str, int]]:
        """Serialize as a one-partition state delta."""
        return {self.stream: {str(self.partition): self.offset}}


class CheckpointSet:
    """Ordered mapping of stream -> partition -> next offset to read.

    Offsets only move forward: :meth:`add` ignores a checkpoint that is not
    strictly ahead of the stored one.
    """

    def __init__(self, checkpoints: Iterable[Checkpoint] = ()) -> None:
        self._offsets: dict[str, dict[int, int]] = {}
        for checkpoint in checkpoints:
            self.add(checkpoint)

    def add(self, checkpoint: Checkpoint) -> bool:
        """Apply one delta; return True if the stored offset advanced."""
        if checkpoint.offset < 0:
            msg = f"Negative offset {checkpoint.offset} for {checkpoint.stream}"
            raise StateError(msg)
        partitions = self._offsets.get(checkpoint.stream)
        if partitions is None:
            self._offsets[checkpoint.stream] = {checkpoint.partition: checkpoint.offset}
            self._sort()
            return True
        current = partitions.get(checkpoint.partition)
        if current is not None and checkpoint.offset <= current:
            if checkpoint.offset < current:
                logger.debug(
                    "checkpoints.regression_ignored",
                    stream=checkpoint.stream,
                    partition=checkpoint.partition,
                    current=current,
                    offset=checkpoint.offset,
                )
            return False
        partitions[checkpoint.partition] = checkpoint.offset
        if current is None:
            self._offsets[checkpoint.stream] = dict(sorted(partitions.items()))
        return True

    def _sort(self) -> None:
        self._offsets = dict(sorted(self._offsets.items()))

    def offset(self, stream: str, partition: int) -> int | None:
        return self._offsets.get(stream, {}).get(partition)

    def streams(self) -> list[str]:
        return list(self._offsets)

    def partitions(self, stream: str) -> dict[int, int]:
        return dict(self._offsets.get(stream, {}))

    def __contains__(self, stream: object) -> bool:
        return stream in self._offsets

    def __iter__(self) -> Iterator[Checkpoint]:
        for stream, partitions in self._offsets.items():
            for partition, offset in partitions.items():
                yield Checkpoint(stream, partition, offset)

    def __len__(self) -> int:
        return sum(len(p) for p in self._offsets.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CheckpointSet):
            return NotImplemented
        return self._offsets == other._offsets

    def __repr__(self) -> str:
        return f"CheckpointSet({self._offsets!r})"

    # -- persistence -----------------------------------------------------------

    def to_dict(self) -> dict[str, dict[str, int]]:
        """Serialize to ``{stream: {"<partition>": offset}}``."""
        return {
            stream: {str(partition): offset for partition, offset in partitions.items()}
            for stream, partitions in self._offsets.items()
        }

    @classmethod
    def from_dict(cls, data: Any) -> CheckpointSet:
        """Rebuild a set from :meth:`to_dict` output, validating its shape."""
        if not isinstance(data, Mapping):
            msg = f"Checkpoint state must be a mapping, got {type(data).__name__}"
            raise StateError(msg)
        checkpoints: list[Checkpoint] = []
        for stream, partitions in data.items():
            if not isinstance(stream, str) or not stream:
                msg = f"Checkpoint stream name must be a non-empty string: {stream!r}"
                raise StateError(msg)
            if not isinstance(partitions, Mapping):
                msg = (
                    f"Checkpoint entry for stream '{stream}' must map partitions "
                    f"to offsets, got {type(partitions).__name__}"
                )
                raise StateError(msg)
            for raw_partition, raw_offset in partitions.items():
                partition = _parse_index(raw_partition, f"partition of '{stream}'")
                offset = _parse_index(
                    raw_offset, f"offset of '{stream}' partition {partition}"
                )
                checkpoints.append(Checkpoint(stream, partition, offset))
        return cls(checkpoints)

    # -- reconciliation --------------------------------------------------------

    @classmethod
    def reconcile(
        cls,
        metadata: ClusterMetadata,
        catalog: ConfiguredCatalog,
        persisted: CheckpointSet,
    ) -> CheckpointSet:
        """Merge persisted progress with the catalog and live partition layout.

        Streams outside the catalog are dropped.  Every live partition of a
        selected stream keeps its persisted offset or starts at 0; persisted
        partitions that no longer exist are dropped.
        """
        missing = sorted(name for name in catalog.stream_names if name not in metadata)
        if missing:
            msg = f"Selected stream(s) not found in broker metadata: {', '.join(missing)}"
            raise CatalogError(msg)

        reconciled = cls()
        for stream in sorted(catalog.stream_names):
            live = metadata.partitions(stream)
            previous = persisted.partitions(stream)
            for partition in live:
                reconciled.add(Checkpoint(stream, partition, previous.get(partition, 0)))
            dropped = sorted(set(previous) - set(live))
            if dropped:
                logger.warning(
                    "checkpoints.partitions_dropped",
                    stream=stream,
                    partitions=dropped,
                )
            added = sorted(set(live) - set(previous))
            if previous and added:
                logger.info("checkpoints.partitions_added", stream=stream, partitions=added)

        for stream in persisted.streams():
            if stream not in reconciled:
                logger.info("checkpoints.stream_dropped", stream=stream)
        return reconciled


def reconcile(
    metadata: ClusterMetadata,
    catalog: ConfiguredCatalog,
    persisted: CheckpointSet | None = None,
) -> CheckpointSet:
    """Build the starting checkpoints for a run; see :meth:`CheckpointSet.reconcile`."""
    return CheckpointSet.reconcile(metadata, catalog, persisted or CheckpointSet())


def _parse_index(value: Any, what: str) -> int:
    """Parse a non-negative integer from an int or a decimal string."""
    if isinstance(value, bool):
        msg = f"Invalid {what}: {value!r}"
        raise StateError(msg)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdecimal():
        parsed = int(value)
    else:
        msg = f"Invalid {what}: {value!r}"
        raise StateError(msg)
    if parsed < 0:
        msg = f"Invalid {what}: {value!r} is negative"
        raise StateError(msg)
    return parsed
