"""Routing orchestration service for route templates and their daily instances."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from ...config import settings
from ...errors import InvalidStateError, NotFoundError, ProviderUnavailableError
from ...models.domain import (
    Point,
    RouteInstance,
    RouteStatus,
    RouteTemplate,
    Stop,
    StopStatus,
    TemplateStop,
    new_id,
)
from ...persistence.locks import InstanceLocks
from ...persistence.store import RouteStore
from ..maps.base import MapProvider
from .models import OptimizationResult, StopCandidate
from .optimizer import RouteOptimizer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlannedStop:
    order: int
    stop_id: str
    student_id: str
    estimated_offset_seconds: int | None


@dataclass(slots=True)
class TemplatePlan:
    template_id: str
    result: OptimizationResult
    stops: list[PlannedStop]
    persisted: bool


def _eligible_template_stops(template: RouteTemplate) -> list[TemplateStop]:
    return [stop for stop in template.ordered_stops() if stop.is_active and stop.is_confirmed]


def apply_result_to_instance(instance: RouteInstance, result: OptimizationResult) -> None:
    """Write optimized order, per-stop offsets and totals onto ``instance``.

    Stops named in ``result.order`` take orders 0..n-1; every other stop
    (absent, skipped) follows in its previous relative order.
    """
    by_id = {stop.id: stop for stop in instance.stops}
    leading = [by_id[stop_id] for stop_id in result.order if stop_id in by_id]
    instance.renumber(leading)

    offsets = result.cumulative_offsets()
    for stop in leading:
        if stop.id in offsets:
            stop.estimated_offset_seconds = offsets[stop.id]

    instance.total_distance_m = result.total_distance_m
    instance.total_duration_s = result.total_duration_s


def apply_result_to_template(template: RouteTemplate, result: OptimizationResult) -> None:
    by_id = {stop.id: stop for stop in template.stops}
    leading = [by_id[stop_id] for stop_id in result.order if stop_id in by_id]
    leading_ids = {stop.id for stop in leading}
    trailing = [stop for stop in template.ordered_stops() if stop.id not in leading_ids]
    for index, stop in enumerate([*leading, *trailing]):
        stop.order = index

    offsets = result.cumulative_offsets()
    for stop in leading:
        if stop.id in offsets:
            stop.estimated_offset_seconds = offsets[stop.id]

    template.estimated_distance_m = result.total_distance_m
    template.estimated_duration_s = result.total_duration_s


class RoutePlanningService:
    def __init__(
        self,
        store: RouteStore,
        optimizer: RouteOptimizer,
        locks: InstanceLocks,
        geocoder: MapProvider | None = None,
    ) -> None:
        self.store = store
        self.optimizer = optimizer
        self.locks = locks
        self.geocoder = geocoder

    def _optimize(self, template: RouteTemplate) -> OptimizationResult:
        candidates = [StopCandidate(id=stop.id, point=stop.point) for stop in _eligible_template_stops(template)]
        return self.optimizer.optimize(template.start_point, template.end_point, candidates)

    def _plan(self, template: RouteTemplate, result: OptimizationResult, persisted: bool) -> TemplatePlan:
        offsets = result.cumulative_offsets()
        by_id = {stop.id: stop for stop in template.stops}
        planned = [
            PlannedStop(
                order=index,
                stop_id=stop_id,
                student_id=by_id[stop_id].student_id,
                estimated_offset_seconds=offsets.get(stop_id),
            )
            for index, stop_id in enumerate(result.order)
            if stop_id in by_id
        ]
        return TemplatePlan(template_id=template.id, result=result, stops=planned, persisted=persisted)

    def optimize_template(self, template_id: str) -> TemplatePlan:
        """Optimize a template's active, confirmed stops and save the new order."""
        template = self.store.get_template(template_id)
        result = self._optimize(template)
        apply_result_to_template(template, result)
        self.store.save_template(template)
        logger.info(
            f"Template {template_id} optimized ({result.strategy}): "
            f"{result.total_distance_m}m, {result.total_duration_s}s"
        )
        return self._plan(template, result, persisted=True)

    def preview_template(self, template_id: str) -> TemplatePlan:
        """Optimize without saving anything."""
        template = self.store.get_template(template_id)
        return self._plan(template, self._optimize(template), persisted=False)

    def create_instance(self, template_id: str, on: date, *, instance_id: str | None = None) -> RouteInstance:
        """Clone a template's active stops into a scheduled route instance for ``on``."""
        template = self.store.get_template(template_id)
        with self.locks.hold(f"template:{template_id}:{on.isoformat()}"):
            if self.store.instances_for_template(template_id, on):
                raise InvalidStateError(f"Template {template_id} already has a route instance on {on.isoformat()}.")

            instance = RouteInstance(
                id=instance_id or new_id(),
                template_id=template.id,
                date=on,
                leg=template.leg,
                status=RouteStatus.SCHEDULED,
                stops=_clone_stops(_eligible_template_stops(template)),
                total_distance_m=template.estimated_distance_m,
                total_duration_s=template.estimated_duration_s,
            )
            with self.locks.hold(instance.id):
                self.store.save_instance(instance)
        logger.info(f"Created route instance {instance.id} from template {template_id} for {on.isoformat()}")
        return instance

    def locate(self, address: str) -> Point:
        """Geocode ``address``; an address the provider cannot place is a ``ValueError``."""
        if self.geocoder is None:
            raise ProviderUnavailableError("No geocoding provider is configured.")
        result = self.geocoder.geocode(address)
        if result is None:
            raise ValueError(f"Address could not be geocoded: {address!r}")
        logger.info(f"Geocoded {address!r} to ({result.point.lat}, {result.point.lng})")
        return result.point

    def register_template(self, template: RouteTemplate) -> RouteTemplate:
        """Store a new template. Stops are numbered in the order given."""
        students = [stop.student_id for stop in template.stops]
        duplicates = sorted({student for student in students if students.count(student) > 1})
        if duplicates:
            raise ValueError(f"Students listed more than once: {', '.join(duplicates)}")
        for index, stop in enumerate(template.stops):
            stop.order = index

        with self.locks.hold(f"template:{template.id}"):
            try:
                self.store.get_template(template.id)
            except NotFoundError:
                self.store.save_template(template)
            else:
                raise InvalidStateError(f"Route template {template.id} already exists.")
        logger.info(f"Registered route template {template.id} with {len(template.stops)} stops")
        return template


def _clone_stops(template_stops: Sequence[TemplateStop]) -> list[Stop]:
    seen_students: set[str] = set()
    stops: list[Stop] = []
    for template_stop in template_stops:
        if template_stop.student_id in seen_students:
            logger.warning(f"Student {template_stop.student_id} has more than one template stop; keeping the first")
            continue
        seen_students.add(template_stop.student_id)
        stops.append(
            Stop(
                id=new_id(),
                student_id=template_stop.student_id,
                point=template_stop.point,
                order=len(stops),
                estimated_offset_seconds=template_stop.estimated_offset_seconds,
                geofence_radius_m=template_stop.geofence_radius_m or settings.default_geofence_radius_m,
                status=StopStatus.PENDING,
            )
        )
    return stops
