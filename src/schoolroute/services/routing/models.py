"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ...models.domain import Point

START = "start"
END = "end"


@dataclass(frozen=True, slots=True)
class StopCandidate:
    id: str
    point: Point


@dataclass(slots=True)
class RouteSegment:
    from_id: str
    to_id: str
    distance_m: int
    duration_s: int
    estimated: bool = False


@dataclass(slots=True)
class OptimizationResult:
    order: List[str]
    total_distance_m: int
    total_duration_s: int
    segments: List[RouteSegment] = field(default_factory=list)
    strategy: str = "direct"
    polyline: str | None = None

    def cumulative_offsets(self) -> dict[str, int]:
        """Seconds from route start at which each stop is reached."""
        offsets: dict[str, int] = {}
        elapsed = 0
        for segment in self.segments:
            elapsed += segment.duration_s
            if segment.to_id != END:
                offsets[segment.to_id] = elapsed
        return offsets
