"""Broker-independent view of topic partition layouts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class ClusterMetadata:
    """Partition indexes per topic, as reported by the broker at one instant."""

    topics: Mapping[str, tuple[int, ...]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, layout: Mapping[str, Iterable[int]]) -> ClusterMetadata:
        return cls(
            topics={
                topic: tuple(sorted(set(partitions)))
                for topic, partitions in sorted(layout.items())
            }
        )

    def __contains__(self, topic: object) -> bool:
        return topic in self.topics

    def partitions(self, topic: str) -> tuple[int, ...]:
        return self.topics.get(topic, ())

    @property
    def topic_names(self) -> list[str]:
        return sorted(self.topics)
