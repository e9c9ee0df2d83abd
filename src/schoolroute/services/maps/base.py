"""Contract for mapping providers (geocoding, distance matrix, waypoint directions).

Every call returns ``None`` when the provider answered but has no result
(unknown address, no drivable route). Transport failures and timeouts raise
:class:`~schoolroute.errors.ProviderUnavailableError` instead, so callers can
tell "no route" apart from "no provider".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from ...models.domain import Point


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    point: Point
    formatted_address: str = ""
    place_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DistanceResult:
    distance_m: int
    duration_s: int


@dataclass(frozen=True, slots=True)
class DirectionsResult:
    """Outcome of a waypoint-optimized directions request.

    ``waypoint_order`` holds indexes into the submitted waypoints in visit
    order; ``None`` means the provider kept the submitted order. ``legs``
    holds one entry per driven leg (start to first waypoint, ..., last to end)
    when the provider reports them.
    """

    total_distance_m: int
    total_duration_s: int
    waypoint_order: Optional[list[int]] = None
    legs: list[DistanceResult] = field(default_factory=list)
    polyline: Optional[str] = None


class MapProvider(Protocol):
    def geocode(self, address: str) -> Optional[GeocodeResult]:
        ...

    def distance_matrix(self, origin: Point, destination: Point) -> Optional[DistanceResult]:
        ...

    def optimized_directions(
        self, origin: Point, destination: Point, waypoints: Sequence[Point]
    ) -> Optional[DirectionsResult]:
        ...
