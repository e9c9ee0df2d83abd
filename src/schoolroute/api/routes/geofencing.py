"""Geofencing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...container import ServiceContainer
from ...schemas.tracking import DistanceToNextResponse, FleetCheckResponse, GeofenceCheckResponse
from ..dependencies import get_container, service_errors

router = APIRouter(prefix="/geofencing", tags=["geofencing"])


@router.post("/check/{instance_id}", response_model=GeofenceCheckResponse, status_code=status.HTTP_200_OK)
def check_route(instance_id: str, container: ServiceContainer = Depends(get_container)) -> GeofenceCheckResponse:
    """Evaluate one route instance against its stop geofences."""
    with service_errors("check geofences"):
        result = container.tracking.check_route(instance_id)
    return GeofenceCheckResponse.from_result(instance_id, result)


@router.post("/check-all", response_model=FleetCheckResponse, status_code=status.HTTP_200_OK)
def check_all_routes(container: ServiceContainer = Depends(get_container)) -> FleetCheckResponse:
    with service_errors("check geofences"):
        fleet = container.tracking.check_all_routes()

    results = {
        route_id: GeofenceCheckResponse.from_result(route_id, result)
        for route_id, result in fleet.results.items()
    }
    return FleetCheckResponse(
        routes_checked=fleet.routes_checked,
        routes_with_changes=len(results),
        total_approaching=sum(item.count_approaching for item in results.values()),
        total_arrived=sum(item.count_arrived for item in results.values()),
        results=results,
    )


@router.get("/distance-to-next/{instance_id}", response_model=DistanceToNextResponse)
def distance_to_next(instance_id: str, container: ServiceContainer = Depends(get_container)) -> DistanceToNextResponse:
    with service_errors("compute distance to next stop"):
        next_stop = container.tracking.distance_to_next_stop(instance_id)

    if next_stop is None:
        return DistanceToNextResponse(
            route_id=instance_id,
            message="No next stop or no current location available",
        )
    return DistanceToNextResponse(
        route_id=instance_id,
        distance_meters=next_stop.distance_m,
        distance_km=round(next_stop.distance_m / 1000, 2),
        stop_id=next_stop.stop_id,
        student_id=next_stop.student_id,
    )
