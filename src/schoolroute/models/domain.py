"""Domain models for route templates, route instances, stops and absences."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Point:
    """Immutable WGS84 coordinate."""

    lat: float
    lng: float

    def is_zero(self) -> bool:
        # GPS units report (0, 0) before they get a fix.
        return self.lat == 0.0 and self.lng == 0.0


class StopStatus(str, Enum):
    PENDING = "pending"
    APPROACHING = "approaching"
    ARRIVED = "arrived"
    PICKED_UP = "picked_up"
    DROPPED_OFF = "dropped_off"
    SKIPPED = "skipped"
    ABSENT = "absent"


UNRESOLVED_STATUSES = frozenset({StopStatus.PENDING, StopStatus.APPROACHING})
INACTIVE_STATUSES = frozenset({StopStatus.SKIPPED, StopStatus.ABSENT})
TERMINAL_STATUSES = frozenset(
    {StopStatus.PICKED_UP, StopStatus.DROPPED_OFF, StopStatus.SKIPPED, StopStatus.ABSENT}
)


class RouteStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RouteLeg(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class AbsenceType(str, Enum):
    """Absence types as reported by parents or school staff."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    FULL_DAY = "full_day"

    def legs(self) -> tuple[RouteLeg, ...]:
        if self is AbsenceType.FULL_DAY:
            return (RouteLeg.MORNING, RouteLeg.AFTERNOON)
        return (RouteLeg(self.value),)


@dataclass(slots=True)
class Stop:
    """One student's pickup or drop-off on a route instance."""

    id: str
    student_id: str
    point: Point
    order: int
    estimated_offset_seconds: Optional[int] = None
    geofence_radius_m: int = 50
    status: StopStatus = StopStatus.PENDING
    arrived_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    dropped_off_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_unresolved(self) -> bool:
        return self.status in UNRESOLVED_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES


@dataclass(slots=True)
class TemplateStop:
    """Prototype stop on a route template; cloned into each route instance."""

    id: str
    student_id: str
    point: Point
    order: int
    geofence_radius_m: int = 50
    estimated_offset_seconds: Optional[int] = None
    is_active: bool = True
    is_confirmed: bool = True


@dataclass(slots=True)
class RouteTemplate:
    """Static, reusable definition of a recurring run."""

    id: str
    name: str
    leg: RouteLeg
    start_point: Point
    end_point: Point
    stops: list[TemplateStop] = field(default_factory=list)
    estimated_distance_m: Optional[int] = None
    estimated_duration_s: Optional[int] = None

    def ordered_stops(self) -> list[TemplateStop]:
        return sorted(self.stops, key=lambda stop: stop.order)


@dataclass(slots=True)
class RouteInstance:
    """One calendar-day execution of a route template."""

    id: str
    template_id: str
    date: date
    leg: RouteLeg
    status: RouteStatus = RouteStatus.SCHEDULED
    current_position: Optional[Point] = None
    position_timestamp: Optional[datetime] = None
    stops: list[Stop] = field(default_factory=list)
    total_distance_m: Optional[int] = None
    total_duration_s: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def ordered_stops(self) -> list[Stop]:
        return sorted(self.stops, key=lambda stop: stop.order)

    def get_stop(self, stop_id: str) -> Optional[Stop]:
        for stop in self.stops:
            if stop.id == stop_id:
                return stop
        return None

    def stops_for_student(self, student_id: str) -> list[Stop]:
        return [stop for stop in self.stops if stop.student_id == student_id]

    def has_position_fix(self) -> bool:
        return self.current_position is not None and not self.current_position.is_zero()

    def renumber(self, leading: list[Stop]) -> None:
        """Give ``leading`` orders 0..n-1 and append every other stop after them.

        The trailing stops keep their relative order, so orders stay contiguous.
        """
        leading_ids = {stop.id for stop in leading}
        trailing = [stop for stop in self.ordered_stops() if stop.id not in leading_ids]
        for index, stop in enumerate([*leading, *trailing]):
            stop.order = index


@dataclass(slots=True)
class AbsenceEvent:
    """A student will not travel on ``date`` for the legs listed in ``scope``."""

    id: str
    student_id: str
    date: date
    scope: tuple[RouteLeg, ...]
    reason: str = ""
    processed: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_type(
        cls,
        *,
        student_id: str,
        on: date,
        absence_type: AbsenceType,
        reason: str = "",
        event_id: Optional[str] = None,
    ) -> "AbsenceEvent":
        return cls(
            id=event_id or new_id(),
            student_id=student_id,
            date=on,
            scope=absence_type.legs(),
            reason=reason,
        )
