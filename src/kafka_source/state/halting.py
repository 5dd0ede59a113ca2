"""Watermark-bounded halting for full-refresh reads."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from kafka_source.config.models import ConfiguredCatalog
    from kafka_source.state.checkpoints import CheckpointSet

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class WatermarkSnapshot:
    """High watermarks per (stream, partition), captured once at subscribe time."""

    watermarks: Mapping[tuple[str, int], int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "watermarks", MappingProxyType(dict(sorted(self.watermarks.items())))
        )

    def __iter__(self) -> Iterator[tuple[str, int]]:
        return iter(self.watermarks)

    def __len__(self) -> int:
        return len(self.watermarks)

    def get(self, stream: str, partition: int) -> int | None:
        return self.watermarks.get((stream, partition))


class HaltCheck:
    """Decides when a read has caught up with its watermark snapshot.

    Any unbounded stream in the catalog keeps the read going forever.  For
    an all-bounded catalog the read halts once every snapshotted partition's
    checkpoint is at or past its watermark.
    """

    def __init__(self, catalog: ConfiguredCatalog, watermarks: WatermarkSnapshot) -> None:
        self._watermarks = watermarks
        self._never = not catalog.all_bounded
        if self._never:
            logger.info("halt.unbounded", streams=catalog.stream_names)

    @property
    def unbounded(self) -> bool:
        return self._never

    def should_halt(self, checkpoints: CheckpointSet) -> bool:
        if self._never:
            return False
        for (stream, partition), watermark in self._watermarks.watermarks.items():
            offset = checkpoints.offset(stream, partition) or 0
            if offset < watermark:
                return False
        return True

    def remaining(self, checkpoints: CheckpointSet) -> dict[tuple[str, int], int]:
        """Messages left to read per partition that has not reached its watermark."""
        pending: dict[tuple[str, int], int] = {}
        for (stream, partition), watermark in self._watermarks.watermarks.items():
            offset = checkpoints.offset(stream, partition) or 0
            if offset < watermark:
                pending[(stream, partition)] = watermark - offset
        return pending
