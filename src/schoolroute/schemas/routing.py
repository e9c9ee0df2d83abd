"""Routing request/response schemas."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ..models.domain import RouteLeg, RouteTemplate
from ..services.routing.service import TemplatePlan


class RouteSegmentModel(BaseModel):
    from_id: str
    to_id: str
    distance_m: int
    duration_s: int
    estimated: bool = False


class PlannedStopModel(BaseModel):
    order: int
    stop_id: str
    student_id: str
    estimated_offset_seconds: Optional[int] = None


class RouteOptimizeResponse(BaseModel):
    template_id: str
    strategy: str
    persisted: bool
    optimized_order: List[str]
    total_distance_m: int
    total_duration_s: int
    distance_km: float
    duration_min: float
    stops: List[PlannedStopModel]
    segments: List[RouteSegmentModel]

    @classmethod
    def from_plan(cls, plan: TemplatePlan) -> "RouteOptimizeResponse":
        result = plan.result
        return cls(
            template_id=plan.template_id,
            strategy=result.strategy,
            persisted=plan.persisted,
            optimized_order=list(result.order),
            total_distance_m=result.total_distance_m,
            total_duration_s=result.total_duration_s,
            distance_km=round(result.total_distance_m / 1000, 2),
            duration_min=round(result.total_duration_s / 60, 2),
            stops=[
                PlannedStopModel(
                    order=stop.order,
                    stop_id=stop.stop_id,
                    student_id=stop.student_id,
                    estimated_offset_seconds=stop.estimated_offset_seconds,
                )
                for stop in plan.stops
            ],
            segments=[
                RouteSegmentModel(
                    from_id=segment.from_id,
                    to_id=segment.to_id,
                    distance_m=segment.distance_m,
                    duration_s=segment.duration_s,
                    estimated=segment.estimated,
                )
                for segment in result.segments
            ],
        )


class CreateInstanceRequest(BaseModel):
    date: date
    instance_id: Optional[str] = Field(default=None, description="Optional caller-chosen identifier.")


class StopModel(BaseModel):
    id: str
    student_id: str
    lat: float
    lng: float
    order: int
    status: str
    geofence_radius_m: int
    estimated_offset_seconds: Optional[int] = None
    notes: Optional[str] = None


class RouteInstanceModel(BaseModel):
    id: str
    template_id: str
    date: date
    leg: str
    status: str
    total_distance_m: Optional[int] = None
    total_duration_s: Optional[int] = None
    stops: List[StopModel]


class LocationModel(BaseModel):
    """A point given either as coordinates or as an address to geocode."""

    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    address: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _require_coordinates_or_address(self) -> "LocationModel":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be given together")
        if self.lat is None and not self.address:
            raise ValueError("either lat/lng or an address is required")
        return self


class TemplateStopRequest(LocationModel):
    id: Optional[str] = None
    student_id: str = Field(..., min_length=1)
    geofence_radius_m: Optional[int] = Field(default=None, gt=0)
    is_active: bool = True
    is_confirmed: bool = True


class CreateTemplateRequest(BaseModel):
    template_id: Optional[str] = Field(default=None, description="Optional caller-chosen identifier.")
    name: str = Field(..., min_length=1)
    leg: RouteLeg
    start: LocationModel
    end: LocationModel
    stops: List[TemplateStopRequest] = Field(default_factory=list)


class TemplateStopModel(BaseModel):
    id: str
    student_id: str
    lat: float
    lng: float
    order: int
    geofence_radius_m: int
    estimated_offset_seconds: Optional[int] = None
    is_active: bool
    is_confirmed: bool


class RouteTemplateModel(BaseModel):
    id: str
    name: str
    leg: str
    start_lat: float
    start_lng: float
    end_lat: float
    end_lng: float
    estimated_distance_m: Optional[int] = None
    estimated_duration_s: Optional[int] = None
    stops: List[TemplateStopModel]


def template_to_model(template: RouteTemplate) -> RouteTemplateModel:
    return RouteTemplateModel(
        id=template.id,
        name=template.name,
        leg=template.leg.value,
        start_lat=template.start_point.lat,
        start_lng=template.start_point.lng,
        end_lat=template.end_point.lat,
        end_lng=template.end_point.lng,
        estimated_distance_m=template.estimated_distance_m,
        estimated_duration_s=template.estimated_duration_s,
        stops=[
            TemplateStopModel(
                id=stop.id,
                student_id=stop.student_id,
                lat=stop.point.lat,
                lng=stop.point.lng,
                order=stop.order,
                geofence_radius_m=stop.geofence_radius_m,
                estimated_offset_seconds=stop.estimated_offset_seconds,
                is_active=stop.is_active,
                is_confirmed=stop.is_confirmed,
            )
            for stop in template.ordered_stops()
        ],
    )
