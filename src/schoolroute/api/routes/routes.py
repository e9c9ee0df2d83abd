"""Route template endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...config import settings
from ...container import ServiceContainer
from ...models.domain import Point, RouteTemplate, TemplateStop, new_id
from ...schemas.routing import (
    CreateInstanceRequest,
    CreateTemplateRequest,
    LocationModel,
    RouteInstanceModel,
    RouteOptimizeResponse,
    RouteTemplateModel,
    template_to_model,
)
from ...schemas.tracking import instance_to_model
from ...services.routing.service import RoutePlanningService
from ..dependencies import get_container, service_errors

router = APIRouter(prefix="/routes", tags=["routes"])


def _point(location: LocationModel, planning: RoutePlanningService) -> Point:
    if location.lat is not None and location.lng is not None:
        return Point(location.lat, location.lng)
    return planning.locate(location.address)


@router.post("", response_model=RouteTemplateModel, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: CreateTemplateRequest, container: ServiceContainer = Depends(get_container)
) -> RouteTemplateModel:
    """Register a route template. Locations given as addresses are geocoded first."""
    planning = container.planning
    with service_errors("create route template"):
        template = RouteTemplate(
            id=payload.template_id or new_id(),
            name=payload.name,
            leg=payload.leg,
            start_point=_point(payload.start, planning),
            end_point=_point(payload.end, planning),
            stops=[
                TemplateStop(
                    id=stop.id or new_id(),
                    student_id=stop.student_id,
                    point=_point(stop, planning),
                    order=index,
                    geofence_radius_m=stop.geofence_radius_m or settings.default_geofence_radius_m,
                    is_active=stop.is_active,
                    is_confirmed=stop.is_confirmed,
                )
                for index, stop in enumerate(payload.stops)
            ],
        )
        planning.register_template(template)
    return template_to_model(template)


@router.get("/{template_id}", response_model=RouteTemplateModel)
def get_template(template_id: str, container: ServiceContainer = Depends(get_container)) -> RouteTemplateModel:
    with service_errors("load route template"):
        template = container.store.get_template(template_id)
    return template_to_model(template)


@router.post("/{template_id}/optimize", response_model=RouteOptimizeResponse, status_code=status.HTTP_200_OK)
def optimize(template_id: str, container: ServiceContainer = Depends(get_container)) -> RouteOptimizeResponse:
    """Optimize stop order and arrival estimates in place and persist them."""
    with service_errors("optimize route"):
        plan = container.planning.optimize_template(template_id)
    return RouteOptimizeResponse.from_plan(plan)


@router.post(
    "/{template_id}/optimize-preview",
    response_model=RouteOptimizeResponse,
    status_code=status.HTTP_200_OK,
)
def optimize_preview(
    template_id: str, container: ServiceContainer = Depends(get_container)
) -> RouteOptimizeResponse:
    """Return the optimized order without persisting it."""
    with service_errors("preview route optimization"):
        plan = container.planning.preview_template(template_id)
    return RouteOptimizeResponse.from_plan(plan)


@router.post(
    "/{template_id}/instances",
    response_model=RouteInstanceModel,
    status_code=status.HTTP_201_CREATED,
)
def create_instance(
    template_id: str,
    payload: CreateInstanceRequest,
    container: ServiceContainer = Depends(get_container),
) -> RouteInstanceModel:
    with service_errors("create route instance"):
        instance = container.planning.create_instance(template_id, payload.date, instance_id=payload.instance_id)
    return instance_to_model(instance)
