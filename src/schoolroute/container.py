"""Service wiring shared by the API and background workers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .config import settings
from .errors import ProviderUnavailableError
from .models.domain import Point
from .persistence.locks import InstanceLocks
from .persistence.store import RouteStore
from .services.geofencing.events import EventSink
from .services.geofencing.monitor import GeofenceMonitor
from .services.maps.base import DirectionsResult, DistanceResult, GeocodeResult, MapProvider
from .services.maps.google import GoogleMapsClient
from .services.recalculation.service import RouteRecalculator
from .services.routing.optimizer import RouteOptimizer
from .services.routing.service import RoutePlanningService
from .services.tracking.service import TrackingService

logger = logging.getLogger(__name__)


class UnconfiguredMapProvider:
    """Stands in when no API key is set; every call reports the provider as unavailable."""

    def _fail(self) -> None:
        raise ProviderUnavailableError("Mapping provider is not configured (set SCHOOLROUTE_MAPS_API_KEY).")

    def geocode(self, address: str) -> Optional[GeocodeResult]:
        self._fail()

    def distance_matrix(self, origin: Point, destination: Point) -> Optional[DistanceResult]:
        self._fail()

    def optimized_directions(
        self, origin: Point, destination: Point, waypoints: Sequence[Point]
    ) -> Optional[DirectionsResult]:
        self._fail()


def default_map_provider() -> MapProvider:
    if settings.maps_api_key:
        return GoogleMapsClient()
    logger.warning("SCHOOLROUTE_MAPS_API_KEY not set; route optimization will rely on haversine estimates")
    return UnconfiguredMapProvider()


@dataclass(slots=True)
class ServiceContainer:
    store: RouteStore
    locks: InstanceLocks
    provider: MapProvider
    optimizer: RouteOptimizer
    monitor: GeofenceMonitor
    planning: RoutePlanningService
    tracking: TrackingService
    recalculator: RouteRecalculator


def build_container(
    *,
    provider: MapProvider | None = None,
    store: RouteStore | None = None,
    sink: EventSink | None = None,
) -> ServiceContainer:
    store = store or RouteStore()
    locks = InstanceLocks()
    provider = provider or default_map_provider()
    optimizer = RouteOptimizer(provider)
    monitor = GeofenceMonitor(store, sink)
    return ServiceContainer(
        store=store,
        locks=locks,
        provider=provider,
        optimizer=optimizer,
        monitor=monitor,
        planning=RoutePlanningService(store, optimizer, locks, geocoder=provider),
        tracking=TrackingService(store, monitor, locks),
        recalculator=RouteRecalculator(store, optimizer, locks),
    )
