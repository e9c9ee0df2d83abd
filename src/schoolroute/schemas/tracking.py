"""Tracking, geofencing and driver action schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.domain import RouteInstance, Stop
from ..services.geofencing.monitor import GeofenceResult
from .routing import RouteInstanceModel, StopModel


class LocationUpdateRequest(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    timestamp: Optional[datetime] = Field(default=None, description="Device time of the fix.")


class GeofenceCheckResponse(BaseModel):
    route_id: str
    approaching_stops: List[str]
    arrived_stops: List[str]
    count_approaching: int
    count_arrived: int

    @classmethod
    def from_result(cls, route_id: str, result: GeofenceResult) -> "GeofenceCheckResponse":
        return cls(
            route_id=route_id,
            approaching_stops=list(result.approaching),
            arrived_stops=list(result.arrived),
            count_approaching=len(result.approaching),
            count_arrived=len(result.arrived),
        )


class LocationUpdateResponse(BaseModel):
    route_id: str
    applied: bool
    geofence: GeofenceCheckResponse


class FleetCheckResponse(BaseModel):
    routes_checked: int
    routes_with_changes: int
    total_approaching: int
    total_arrived: int
    results: Dict[str, GeofenceCheckResponse]


class DistanceToNextResponse(BaseModel):
    route_id: str
    distance_meters: Optional[float] = None
    distance_km: Optional[float] = None
    stop_id: Optional[str] = None
    student_id: Optional[str] = None
    message: Optional[str] = None


class SkipStopRequest(BaseModel):
    notes: Optional[str] = None


def stop_to_model(stop: Stop) -> StopModel:
    return StopModel(
        id=stop.id,
        student_id=stop.student_id,
        lat=stop.point.lat,
        lng=stop.point.lng,
        order=stop.order,
        status=stop.status.value,
        geofence_radius_m=stop.geofence_radius_m,
        estimated_offset_seconds=stop.estimated_offset_seconds,
        notes=stop.notes,
    )


def instance_to_model(instance: RouteInstance) -> RouteInstanceModel:
    return RouteInstanceModel(
        id=instance.id,
        template_id=instance.template_id,
        date=instance.date,
        leg=instance.leg.value,
        status=instance.status.value,
        total_distance_m=instance.total_distance_m,
        total_duration_s=instance.total_duration_s,
        stops=[stop_to_model(stop) for stop in instance.ordered_stops()],
    )
