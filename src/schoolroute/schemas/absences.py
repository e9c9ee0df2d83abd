"""Absence feed schemas."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.domain import AbsenceType
from ..services.recalculation.service import RecalculationReport


class AbsenceRequest(BaseModel):
    student_id: str
    date: date
    type: AbsenceType = Field(..., description="morning, afternoon or full_day")
    reason: str = ""
    absence_id: Optional[str] = None


class RecalculationResponse(BaseModel):
    absence_id: Optional[str] = None
    affected_routes: List[str]
    recalculated: bool
    reoptimized_routes: List[str]
    skipped: Dict[str, str]

    @classmethod
    def from_report(cls, report: RecalculationReport, absence_id: str | None = None) -> "RecalculationResponse":
        return cls(
            absence_id=absence_id,
            affected_routes=list(report.affected_route_instance_ids),
            recalculated=report.recalculated,
            reoptimized_routes=list(report.reoptimized_route_instance_ids),
            skipped=dict(report.skipped),
        )


class PendingAbsenceResult(BaseModel):
    absence_id: str
    student_id: str
    result: Optional[RecalculationResponse] = None
    error: Optional[str] = None


class ProcessPendingResponse(BaseModel):
    processed: int
    results: List[PendingAbsenceResult]
