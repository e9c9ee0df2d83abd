"""Geofence evaluation for moving vehicles.

Each unresolved stop carries two concentric circles: the geofence radius
(arrival) and ``approach_radius_factor`` times that radius (approach). The
monitor only ever moves a stop forward, ``pending -> approaching -> arrived``;
pickup, drop-off, skip and absence are set by drivers and the recalculator.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence

from ...config import settings
from ...errors import PersistenceError
from ...models.domain import RouteInstance, RouteStatus, StopStatus, utcnow
from ...persistence.store import RouteStore
from ..geospatial import distance_meters
from .events import EventSink, LoggingEventSink, StopEvent, StopEventType, publish_safely

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GeofenceResult:
    approaching: list[str] = field(default_factory=list)
    arrived: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.approaching and not self.arrived


@dataclass(frozen=True, slots=True)
class NextStop:
    stop_id: str
    student_id: str
    distance_m: float


class GeofenceMonitor:
    def __init__(
        self,
        store: RouteStore | None = None,
        sink: EventSink | None = None,
        *,
        approach_radius_factor: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.sink = sink or LoggingEventSink()
        self.approach_radius_factor = approach_radius_factor or settings.approach_radius_factor
        self.clock = clock

    def evaluate(self, route: RouteInstance) -> GeofenceResult:
        """Advance stop statuses for the route's current position.

        Safe to call on every location ping: stops that already transitioned
        are not reported again. The caller must serialize calls per route.
        """
        result = GeofenceResult()
        if route.status is not RouteStatus.IN_PROGRESS or not route.has_position_fix():
            return result

        position = route.current_position
        now = self.clock()
        previous: dict[str, tuple[StopStatus, Optional[datetime]]] = {}
        events: list[StopEvent] = []

        for stop in route.ordered_stops():
            if not stop.is_unresolved:
                continue

            distance = distance_meters(position, stop.point)
            radius = stop.geofence_radius_m

            if distance <= radius:
                previous[stop.id] = (stop.status, stop.arrived_at)
                stop.status = StopStatus.ARRIVED
                stop.arrived_at = now
                result.arrived.append(stop.id)
                events.append(
                    StopEvent(StopEventType.ARRIVED, route.id, stop.id, stop.student_id, distance, now)
                )
                logger.info(f"Stop arrived: route={route.id} stop={stop.id} distance={distance:.1f}m")
            elif distance <= radius * self.approach_radius_factor and stop.status is StopStatus.PENDING:
                previous[stop.id] = (stop.status, stop.arrived_at)
                stop.status = StopStatus.APPROACHING
                result.approaching.append(stop.id)
                events.append(
                    StopEvent(StopEventType.APPROACHING, route.id, stop.id, stop.student_id, distance, now)
                )
                logger.info(f"Stop approaching: route={route.id} stop={stop.id} distance={distance:.1f}m")

        if result.is_empty:
            return result

        if self.store is not None:
            try:
                self.store.save_instance(route)
            except Exception as exc:
                for stop in route.stops:
                    if stop.id in previous:
                        stop.status, stop.arrived_at = previous[stop.id]
                if isinstance(exc, PersistenceError):
                    raise
                raise PersistenceError(f"Could not record geofence transitions for route {route.id}: {exc}") from exc

        for event in events:
            publish_safely(self.sink, event)
        return result

    def process_active_routes(
        self, routes: Sequence[RouteInstance], *, max_workers: int = 1
    ) -> dict[str, GeofenceResult]:
        """Evaluate independent routes, keeping only those with transitions."""
        if max_workers > 1 and len(routes) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(executor.map(self.evaluate, routes))
        else:
            outcomes = [self.evaluate(route) for route in routes]

        return {
            route.id: outcome
            for route, outcome in zip(routes, outcomes)
            if not outcome.is_empty
        }

    def distance_to_next_stop(self, route: RouteInstance) -> Optional[NextStop]:
        if route.current_position is None:
            return None
        for stop in route.ordered_stops():
            if stop.is_unresolved:
                return NextStop(
                    stop_id=stop.id,
                    student_id=stop.student_id,
                    distance_m=distance_meters(route.current_position, stop.point),
                )
        return None
