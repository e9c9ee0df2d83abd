"""Location ingestion and route lifecycle endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...container import ServiceContainer
from ...schemas.routing import RouteInstanceModel
from ...schemas.tracking import (
    GeofenceCheckResponse,
    LocationUpdateRequest,
    LocationUpdateResponse,
    instance_to_model,
)
from ..dependencies import get_container, service_errors

router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.post("/{instance_id}/location", response_model=LocationUpdateResponse, status_code=status.HTTP_200_OK)
def update_location(
    instance_id: str,
    payload: LocationUpdateRequest,
    container: ServiceContainer = Depends(get_container),
) -> LocationUpdateResponse:
    with service_errors("update location"):
        outcome = container.tracking.update_position(instance_id, payload.lat, payload.lng, payload.timestamp)
    return LocationUpdateResponse(
        route_id=instance_id,
        applied=outcome.applied,
        geofence=GeofenceCheckResponse.from_result(instance_id, outcome.geofence),
    )


@router.get("/{instance_id}", response_model=RouteInstanceModel)
def get_instance(instance_id: str, container: ServiceContainer = Depends(get_container)) -> RouteInstanceModel:
    with service_errors("load route instance"):
        instance = container.store.get_instance(instance_id)
    return instance_to_model(instance)


@router.post("/{instance_id}/start", response_model=RouteInstanceModel)
def start_route(instance_id: str, container: ServiceContainer = Depends(get_container)) -> RouteInstanceModel:
    with service_errors("start route"):
        instance = container.tracking.start_route(instance_id)
    return instance_to_model(instance)


@router.post("/{instance_id}/complete", response_model=RouteInstanceModel)
def complete_route(instance_id: str, container: ServiceContainer = Depends(get_container)) -> RouteInstanceModel:
    with service_errors("complete route"):
        instance = container.tracking.complete_route(instance_id)
    return instance_to_model(instance)


@router.post("/{instance_id}/cancel", response_model=RouteInstanceModel)
def cancel_route(instance_id: str, container: ServiceContainer = Depends(get_container)) -> RouteInstanceModel:
    with service_errors("cancel route"):
        instance = container.tracking.cancel_route(instance_id)
    return instance_to_model(instance)
