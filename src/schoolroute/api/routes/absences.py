"""Absence feed endpoints."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ...container import ServiceContainer
from ...models.domain import AbsenceEvent
from ...schemas.absences import (
    AbsenceRequest,
    PendingAbsenceResult,
    ProcessPendingResponse,
    RecalculationResponse,
)
from ..dependencies import get_container, service_errors

router = APIRouter(prefix="/absences", tags=["absences"])


@router.post("", response_model=RecalculationResponse, status_code=status.HTTP_201_CREATED)
def report_absence(
    payload: AbsenceRequest, container: ServiceContainer = Depends(get_container)
) -> RecalculationResponse:
    """Record an absence and recalculate the affected routes right away."""
    event = AbsenceEvent.from_type(
        student_id=payload.student_id,
        on=payload.date,
        absence_type=payload.type,
        reason=payload.reason,
        event_id=payload.absence_id,
    )
    with service_errors("recalculate routes for absence"):
        report = container.recalculator.register_absence(event)
    return RecalculationResponse.from_report(report, absence_id=event.id)


@router.post("/process-pending", response_model=ProcessPendingResponse)
def process_pending(
    today: Optional[date] = Query(default=None, description="Defaults to the server's current date."),
    container: ServiceContainer = Depends(get_container),
) -> ProcessPendingResponse:
    with service_errors("process pending absences"):
        outcomes = container.recalculator.process_pending(today or date.today())

    return ProcessPendingResponse(
        processed=len(outcomes),
        results=[
            PendingAbsenceResult(
                absence_id=outcome.absence_id,
                student_id=outcome.student_id,
                result=RecalculationResponse.from_report(outcome.report, outcome.absence_id)
                if outcome.report is not None
                else None,
                error=outcome.error,
            )
            for outcome in outcomes
        ],
    )
