"""Route recalculation in response to student absences."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ...errors import NotFoundError, SchoolRouteError
from ...models.domain import AbsenceEvent, RouteInstance, RouteStatus, StopStatus
from ...persistence.locks import InstanceLocks
from ...persistence.store import RouteStore
from ..routing.models import StopCandidate
from ..routing.optimizer import RouteOptimizer
from ..routing.service import apply_result_to_instance

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RecalculationReport:
    affected_route_instance_ids: list[str] = field(default_factory=list)
    recalculated: bool = False
    reoptimized_route_instance_ids: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class AbsenceOutcome:
    absence_id: str
    student_id: str
    report: Optional[RecalculationReport]
    error: Optional[str] = None


class RouteRecalculator:
    def __init__(self, store: RouteStore, optimizer: RouteOptimizer, locks: InstanceLocks) -> None:
        self.store = store
        self.optimizer = optimizer
        self.locks = locks

    def recalculate_for_absence(self, event: AbsenceEvent) -> RecalculationReport:
        with self.locks.hold(_absence_key(event.id)):
            return self._recalculate(event)

    def _already_processed(self, event: AbsenceEvent) -> bool:
        if event.processed:
            return True
        try:
            return self.store.get_absence(event.id).processed
        except NotFoundError:
            return False

    def _recalculate(self, event: AbsenceEvent) -> RecalculationReport:
        """Caller holds the absence lock."""
        report = RecalculationReport()
        if self._already_processed(event):
            logger.info(f"Absence {event.id} already processed; nothing to do")
            return report

        logger.info(
            f"Starting route recalculation for absence {event.id}: student={event.student_id} "
            f"date={event.date.isoformat()} legs={[leg.value for leg in event.scope]}"
        )

        candidates = self.store.find_instances(on=event.date, legs=event.scope, student_id=event.student_id)
        if not candidates:
            logger.info(f"No stops found for student {event.student_id} on {event.date.isoformat()}")

        for candidate in candidates:
            with self.locks.hold(candidate.id):
                instance = self.store.get_instance(candidate.id)
                if not self._mark_absent(instance, event):
                    continue
                report.affected_route_instance_ids.append(instance.id)

                if instance.status is RouteStatus.SCHEDULED:
                    reason = self._reoptimize(instance)
                    if reason is None:
                        report.reoptimized_route_instance_ids.append(instance.id)
                    else:
                        report.skipped[instance.id] = reason
                else:
                    report.skipped[instance.id] = f"route is {instance.status.value}"

                self.store.save_instance(instance)

        event.processed = True
        self.store.save_absence(event)
        report.recalculated = bool(report.reoptimized_route_instance_ids)

        logger.info(
            f"Route recalculation completed for absence {event.id}: "
            f"affected={report.affected_route_instance_ids} "
            f"reoptimized={report.reoptimized_route_instance_ids}"
        )
        return report

    def _mark_absent(self, instance: RouteInstance, event: AbsenceEvent) -> bool:
        stops = instance.stops_for_student(event.student_id)
        note = f"Student reported absent: {event.reason}" if event.reason else "Student reported absent"
        for stop in stops:
            if stop.status is StopStatus.ABSENT:
                continue
            stop.status = StopStatus.ABSENT
            stop.notes = note
        return bool(stops)

    def _reoptimize(self, instance: RouteInstance) -> Optional[str]:
        """Re-order the remaining active stops. Returns a reason when nothing changed."""
        active_stops = [stop for stop in instance.ordered_stops() if stop.is_active]
        if not active_stops:
            logger.warning(f"No active stops remaining for route instance {instance.id}")
            return "no active stops remaining"

        candidates = [StopCandidate(id=stop.id, point=stop.point) for stop in active_stops]
        try:
            template = self.store.get_template(instance.template_id)
            result = self.optimizer.optimize(template.start_point, template.end_point, candidates)
        except SchoolRouteError as exc:
            logger.exception(f"Route optimization failed for route instance {instance.id}: {exc}")
            return f"optimization failed: {exc}"

        apply_result_to_instance(instance, result)
        logger.info(
            f"Route instance {instance.id} recalculated: distance={result.total_distance_m}m "
            f"duration={result.total_duration_s}s"
        )
        return None

    def register_absence(self, event: AbsenceEvent) -> RecalculationReport:
        """Record an absence from the attendance feed and process it right away.

        A re-delivered absence that was already processed is left as stored.
        """
        with self.locks.hold(_absence_key(event.id)):
            if self._already_processed(event):
                logger.info(f"Absence {event.id} re-delivered after processing; ignoring")
                return RecalculationReport()
            self.store.save_absence(event)
            return self._recalculate(event)

    def recalculate_by_id(self, absence_id: str) -> RecalculationReport:
        return self.recalculate_for_absence(self.store.get_absence(absence_id))

    def process_pending(self, today: date) -> list[AbsenceOutcome]:
        """Sweep unprocessed absences dated ``today`` or later."""
        outcomes: list[AbsenceOutcome] = []
        for absence in self.store.pending_absences(today):
            try:
                report = self.recalculate_for_absence(absence)
                outcomes.append(AbsenceOutcome(absence.id, absence.student_id, report))
            except Exception as exc:
                logger.exception(f"Failed to process absence {absence.id}: {exc}")
                outcomes.append(AbsenceOutcome(absence.id, absence.student_id, None, error=str(exc)))
        return outcomes


def _absence_key(absence_id: str) -> str:
    return f"absence:{absence_id}"
