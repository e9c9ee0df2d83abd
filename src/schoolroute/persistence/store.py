"""In-memory route store with all-or-nothing commits.

Reads hand out deep copies. A service mutates its copy and calls one of the
``save_*`` methods once at the end of the operation; until then the committed
state is untouched, so a failed operation leaves nothing half-written.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import asdict
from datetime import date
from typing import Iterable, Optional

from ..config import settings
from ..errors import NotFoundError, PersistenceError
from ..models.domain import AbsenceEvent, RouteInstance, RouteLeg, RouteStatus, RouteTemplate
from .filesystem import FileStorage

logger = logging.getLogger(__name__)


class RouteStore:
    def __init__(self, storage: FileStorage | None = None) -> None:
        self._lock = threading.RLock()
        self._templates: dict[str, RouteTemplate] = {}
        self._instances: dict[str, RouteInstance] = {}
        self._absences: dict[str, AbsenceEvent] = {}
        if storage is None and settings.persist_snapshots:
            storage = FileStorage()
        self.storage = storage

    # ----------------
    # templates
    # ----------------
    def get_template(self, template_id: str) -> RouteTemplate:
        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                raise NotFoundError("Route template", template_id)
            return copy.deepcopy(template)

    def save_template(self, template: RouteTemplate) -> None:
        self._commit("templates", self._templates, template.id, template)

    # ----------------
    # route instances
    # ----------------
    def get_instance(self, instance_id: str) -> RouteInstance:
        with self._lock:
            instance = self._instances.get(instance_id)
            if instance is None:
                raise NotFoundError("Route instance", instance_id)
            return copy.deepcopy(instance)

    def save_instance(self, instance: RouteInstance) -> None:
        self._commit("instances", self._instances, instance.id, instance)

    def instances_for_template(self, template_id: str, on: date) -> list[RouteInstance]:
        return self._select(
            instance for instance in self._instances.values()
            if instance.template_id == template_id and instance.date == on
        )

    def find_instances(self, *, on: date, legs: Iterable[RouteLeg], student_id: str) -> list[RouteInstance]:
        """Instances on ``on`` for any of ``legs`` with a stop for ``student_id``."""
        leg_set = set(legs)
        return self._select(
            instance for instance in self._instances.values()
            if instance.date == on
            and instance.leg in leg_set
            and any(stop.student_id == student_id for stop in instance.stops)
        )

    def in_progress_instances(self) -> list[RouteInstance]:
        return self._select(
            instance for instance in self._instances.values()
            if instance.status is RouteStatus.IN_PROGRESS
        )

    def find_instance_by_stop(self, stop_id: str) -> RouteInstance:
        with self._lock:
            for instance in self._instances.values():
                if instance.get_stop(stop_id) is not None:
                    return copy.deepcopy(instance)
        raise NotFoundError("Route stop", stop_id)

    # ----------------
    # absences
    # ----------------
    def get_absence(self, absence_id: str) -> AbsenceEvent:
        with self._lock:
            absence = self._absences.get(absence_id)
            if absence is None:
                raise NotFoundError("Absence", absence_id)
            return copy.deepcopy(absence)

    def save_absence(self, absence: AbsenceEvent) -> None:
        self._commit("absences", self._absences, absence.id, absence)

    def pending_absences(self, today: date) -> list[AbsenceEvent]:
        with self._lock:
            pending = [
                copy.deepcopy(absence)
                for absence in self._absences.values()
                if not absence.processed and absence.date >= today
            ]
        return sorted(pending, key=lambda absence: (absence.date, absence.created_at))

    # ----------------
    # internals
    # ----------------
    def _select(self, instances: Iterable[RouteInstance]) -> list[RouteInstance]:
        with self._lock:
            selected = [copy.deepcopy(instance) for instance in instances]
        return sorted(selected, key=lambda instance: instance.id)

    def _commit(self, kind: str, table: dict, identifier: str, entity: object) -> None:
        snapshot = copy.deepcopy(entity)
        with self._lock:
            if self.storage is not None:
                try:
                    self.storage.write_json(self.storage.snapshot_path(kind, identifier), asdict(snapshot))
                except OSError as exc:
                    raise PersistenceError(f"Could not write {kind} snapshot '{identifier}': {exc}") from exc
            table[identifier] = snapshot
        logger.debug(f"Committed {kind} '{identifier}'")
