"""Driver stop action endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends

from ...container import ServiceContainer
from ...schemas.routing import StopModel
from ...schemas.tracking import SkipStopRequest, stop_to_model
from ..dependencies import get_container, service_errors

router = APIRouter(prefix="/route-stops", tags=["route-stops"])


@router.post("/{stop_id}/pickup", response_model=StopModel)
def pick_up(stop_id: str, container: ServiceContainer = Depends(get_container)) -> StopModel:
    with service_errors("record pickup"):
        stop = container.tracking.pick_up(stop_id)
    return stop_to_model(stop)


@router.post("/{stop_id}/dropoff", response_model=StopModel)
def drop_off(stop_id: str, container: ServiceContainer = Depends(get_container)) -> StopModel:
    with service_errors("record drop-off"):
        stop = container.tracking.drop_off(stop_id)
    return stop_to_model(stop)


@router.post("/{stop_id}/skip", response_model=StopModel)
def skip(
    stop_id: str,
    payload: Optional[SkipStopRequest] = Body(default=None),
    container: ServiceContainer = Depends(get_container),
) -> StopModel:
    with service_errors("skip stop"):
        stop = container.tracking.skip_stop(stop_id, payload.notes if payload else None)
    return stop_to_model(stop)
