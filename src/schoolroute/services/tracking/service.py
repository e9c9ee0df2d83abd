"""Location ingestion, route lifecycle and driver stop actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from ...errors import InvalidStateError, NotFoundError
from ...models.domain import (
    TERMINAL_STATUSES,
    Point,
    RouteInstance,
    RouteStatus,
    Stop,
    StopStatus,
    utcnow,
)
from ...persistence.locks import InstanceLocks
from ...persistence.store import RouteStore
from ..geofencing.monitor import GeofenceMonitor, GeofenceResult, NextStop

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LocationUpdateResult:
    route_instance_id: str
    applied: bool
    geofence: GeofenceResult = field(default_factory=GeofenceResult)


@dataclass(slots=True)
class FleetCheckResult:
    routes_checked: int
    results: dict[str, GeofenceResult]


class TrackingService:
    def __init__(
        self,
        store: RouteStore,
        monitor: GeofenceMonitor,
        locks: InstanceLocks,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.monitor = monitor
        self.locks = locks
        self.clock = clock

    def update_position(
        self, instance_id: str, lat: float, lng: float, timestamp: Optional[datetime] = None
    ) -> LocationUpdateResult:
        """Apply a driver ping and evaluate geofences.

        Pings older than the last applied one are discarded.
        """
        timestamp = timestamp or self.clock()
        if timestamp.tzinfo is None:
            # devices without a zone report UTC
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        with self.locks.hold(instance_id):
            route = self.store.get_instance(instance_id)
            if route.position_timestamp is not None and timestamp < route.position_timestamp:
                logger.debug(
                    f"Discarding stale ping for route {instance_id}: {timestamp.isoformat()} < "
                    f"{route.position_timestamp.isoformat()}"
                )
                return LocationUpdateResult(route_instance_id=instance_id, applied=False)

            route.current_position = Point(lat=lat, lng=lng)
            route.position_timestamp = timestamp
            geofence = self.monitor.evaluate(route)
            if geofence.is_empty:
                # evaluate only commits when a stop transitioned
                self.store.save_instance(route)
            return LocationUpdateResult(route_instance_id=instance_id, applied=True, geofence=geofence)

    def check_route(self, instance_id: str) -> GeofenceResult:
        with self.locks.hold(instance_id):
            return self.monitor.evaluate(self.store.get_instance(instance_id))

    def check_all_routes(self) -> FleetCheckResult:
        routes = self.store.in_progress_instances()
        results: dict[str, GeofenceResult] = {}
        for snapshot in routes:
            with self.locks.hold(snapshot.id):
                fresh = self.store.get_instance(snapshot.id)
                results.update(self.monitor.process_active_routes([fresh]))
        return FleetCheckResult(routes_checked=len(routes), results=results)

    def distance_to_next_stop(self, instance_id: str) -> Optional[NextStop]:
        return self.monitor.distance_to_next_stop(self.store.get_instance(instance_id))

    # ----------------
    # route lifecycle
    # ----------------
    def start_route(self, instance_id: str) -> RouteInstance:
        with self.locks.hold(instance_id):
            route = self.store.get_instance(instance_id)
            if route.status is not RouteStatus.SCHEDULED:
                raise InvalidStateError(f"Route {instance_id} is {route.status.value}; only scheduled routes can start.")
            route.status = RouteStatus.IN_PROGRESS
            route.started_at = self.clock()
            self.store.save_instance(route)
            logger.info(f"Route {instance_id} started")
            return route

    def complete_route(self, instance_id: str) -> RouteInstance:
        with self.locks.hold(instance_id):
            route = self.store.get_instance(instance_id)
            if route.status is not RouteStatus.IN_PROGRESS:
                raise InvalidStateError(f"Route {instance_id} is {route.status.value}; only running routes can complete.")
            route.status = RouteStatus.COMPLETED
            route.completed_at = self.clock()
            self.store.save_instance(route)
            logger.info(f"Route {instance_id} completed")
            return route

    def cancel_route(self, instance_id: str) -> RouteInstance:
        with self.locks.hold(instance_id):
            route = self.store.get_instance(instance_id)
            if route.status in {RouteStatus.COMPLETED, RouteStatus.CANCELLED}:
                raise InvalidStateError(f"Route {instance_id} is already {route.status.value}.")
            route.status = RouteStatus.CANCELLED
            self.store.save_instance(route)
            return route

    # ----------------
    # driver stop actions
    # ----------------
    def pick_up(self, stop_id: str) -> Stop:
        return self._stop_action(stop_id, self._pick_up)

    def drop_off(self, stop_id: str) -> Stop:
        return self._stop_action(stop_id, self._drop_off)

    def skip_stop(self, stop_id: str, notes: Optional[str] = None) -> Stop:
        def skip(stop: Stop) -> None:
            if not stop.is_unresolved:
                raise InvalidStateError(f"Stop {stop.id} is {stop.status.value}; only pending or approaching stops can be skipped.")
            stop.status = StopStatus.SKIPPED
            if notes:
                stop.notes = notes

        return self._stop_action(stop_id, skip)

    def _pick_up(self, stop: Stop) -> None:
        if stop.status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Stop {stop.id} is already {stop.status.value}.")
        stop.status = StopStatus.PICKED_UP
        stop.picked_up_at = self.clock()

    def _drop_off(self, stop: Stop) -> None:
        if stop.status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Stop {stop.id} is already {stop.status.value}.")
        stop.status = StopStatus.DROPPED_OFF
        stop.dropped_off_at = self.clock()

    def _stop_action(self, stop_id: str, action: Callable[[Stop], None]) -> Stop:
        owner = self.store.find_instance_by_stop(stop_id)
        with self.locks.hold(owner.id):
            route = self.store.get_instance(owner.id)
            stop = route.get_stop(stop_id)
            if stop is None:
                raise NotFoundError("Route stop", stop_id)
            action(stop)
            self.store.save_instance(route)
            logger.info(f"Stop {stop_id} on route {route.id} is now {stop.status.value}")
            return stop
