"""Stop ordering between a fixed start and end point.

Small stop sets are handed to the provider's waypoint optimizer and fail hard
when the provider cannot answer. Larger sets run a nearest-neighbour heuristic
on haversine distance; each hop asks the provider for road distance and falls
back to a constant-speed estimate when it cannot.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import settings
from ...errors import OptimizationError, ProviderUnavailableError
from ...models.domain import Point
from ..geospatial import distance_meters, estimate_duration_seconds
from ..maps.base import DistanceResult, MapProvider
from .models import END, START, OptimizationResult, RouteSegment, StopCandidate

logger = logging.getLogger(__name__)


class RouteOptimizer:
    def __init__(
        self,
        provider: MapProvider,
        *,
        small_route_threshold: int | None = None,
        fallback_speed_kmh: float | None = None,
    ) -> None:
        self.provider = provider
        self.small_route_threshold = (
            small_route_threshold if small_route_threshold is not None else settings.small_route_threshold
        )
        self.fallback_speed_kmh = fallback_speed_kmh or settings.fallback_speed_kmh

    def optimize(self, start: Point, end: Point, stops: Sequence[StopCandidate]) -> OptimizationResult:
        if not stops:
            return self._direct(start, end)
        if len(stops) <= self.small_route_threshold:
            logger.info(f"Optimizing {len(stops)} stops with provider waypoint optimization")
            return self._with_provider_directions(start, end, stops)
        logger.info(f"Optimizing {len(stops)} stops with nearest-neighbour heuristic")
        return self._with_nearest_neighbour(start, end, stops)

    def _hop(self, origin: Point, destination: Point) -> tuple[DistanceResult, bool]:
        """Road distance for one hop, or a haversine estimate when the provider has none."""
        try:
            result = self.provider.distance_matrix(origin, destination)
        except ProviderUnavailableError as exc:
            logger.warning(f"Distance matrix unavailable, using haversine estimate: {exc}")
            result = None
        if result is not None:
            return result, False

        straight_line = distance_meters(origin, destination)
        estimate = DistanceResult(
            distance_m=int(straight_line),
            duration_s=int(estimate_duration_seconds(straight_line, self.fallback_speed_kmh)),
        )
        logger.warning(
            f"Falling back to haversine estimate for hop ({origin.lat},{origin.lng}) -> "
            f"({destination.lat},{destination.lng}): {estimate.distance_m}m"
        )
        return estimate, True

    def _direct(self, start: Point, end: Point) -> OptimizationResult:
        leg, estimated = self._hop(start, end)
        return OptimizationResult(
            order=[],
            total_distance_m=leg.distance_m,
            total_duration_s=leg.duration_s,
            segments=[RouteSegment(START, END, leg.distance_m, leg.duration_s, estimated)],
            strategy="direct",
        )

    def _with_provider_directions(
        self, start: Point, end: Point, stops: Sequence[StopCandidate]
    ) -> OptimizationResult:
        try:
            directions = self.provider.optimized_directions(start, end, [stop.point for stop in stops])
        except ProviderUnavailableError as exc:
            raise OptimizationError(f"Mapping provider unavailable: {exc}") from exc
        if directions is None:
            raise OptimizationError("Mapping provider returned no route for the requested stops.")

        if directions.waypoint_order is not None:
            if sorted(directions.waypoint_order) != list(range(len(stops))):
                raise OptimizationError(
                    f"Provider waypoint order {directions.waypoint_order} is not a permutation "
                    f"of {len(stops)} stops."
                )
            order = [stops[index].id for index in directions.waypoint_order]
        else:
            order = [stop.id for stop in stops]

        segments: list[RouteSegment] = []
        if len(directions.legs) == len(order) + 1:
            sources = [START, *order]
            targets = [*order, END]
            segments = [
                RouteSegment(source, target, leg.distance_m, leg.duration_s)
                for source, target, leg in zip(sources, targets, directions.legs)
            ]

        return OptimizationResult(
            order=order,
            total_distance_m=directions.total_distance_m,
            total_duration_s=directions.total_duration_s,
            segments=segments,
            strategy="provider",
            polyline=directions.polyline,
        )

    def _with_nearest_neighbour(
        self, start: Point, end: Point, stops: Sequence[StopCandidate]
    ) -> OptimizationResult:
        unvisited = list(stops)
        order: list[str] = []
        segments: list[RouteSegment] = []
        total_distance = 0
        total_duration = 0
        current_point = start
        current_id = START

        while unvisited:
            nearest_index = 0
            nearest_distance = float("inf")
            for index, stop in enumerate(unvisited):
                distance = distance_meters(current_point, stop.point)
                if distance < nearest_distance:
                    nearest_distance = distance
                    nearest_index = index

            nearest = unvisited.pop(nearest_index)
            hop, estimated = self._hop(current_point, nearest.point)
            segments.append(RouteSegment(current_id, nearest.id, hop.distance_m, hop.duration_s, estimated))
            total_distance += hop.distance_m
            total_duration += hop.duration_s
            order.append(nearest.id)
            current_point = nearest.point
            current_id = nearest.id

        closing, estimated = self._hop(current_point, end)
        segments.append(RouteSegment(current_id, END, closing.distance_m, closing.duration_s, estimated))
        total_distance += closing.distance_m
        total_duration += closing.duration_s

        return OptimizationResult(
            order=order,
            total_distance_m=total_distance,
            total_duration_s=total_duration,
            segments=segments,
            strategy="nearest_neighbour",
        )
