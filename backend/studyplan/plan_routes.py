"""REST endpoints exposing plan session operations per plan id."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .cache import session_cache
from .models import (
    PerformanceBreakdown,
    Preferences,
    ProgressSummary,
    ReviewSession,
    TaskRecord,
    TaskStatus,
)
from .notifications import emit_event
from .performance_tracker import TaskContext
from .persistence import PerformanceStoreError
from .plan_session import PlanSession

router = APIRouter(prefix="/api/plans", tags=["plans"])
logger = logging.getLogger(__name__)


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterPlanRequest(_RequestModel):
    schedule: Any = None
    preferences: Optional[Preferences] = None


class TaskContextPayload(_RequestModel):
    subject: str = ""
    activity: str = ""
    week_number: int = Field(ge=1)
    day_of_week: str = Field(min_length=1)


class RecordStatusRequest(_RequestModel):
    status: TaskStatus
    context: Optional[TaskContextPayload] = None


class CompleteReviewRequest(_RequestModel):
    task_ids: List[str] = Field(default_factory=list)


def _session_or_404(plan_id: str) -> PlanSession:
    try:
        session = session_cache.get(plan_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plan '{plan_id}' is not registered.",
        )
    return session


def _plan_state(session: PlanSession) -> Dict[str, Any]:
    return {
        "planId": session.plan_id,
        "plan": session.schedule.to_payload(),
        "preferences": session.preferences.model_dump(by_alias=True),
        "needsReplanning": session.needs_replanning(),
    }


@router.post("/{plan_id}", status_code=status.HTTP_201_CREATED)
def register_plan(plan_id: str, request: RegisterPlanRequest) -> Dict[str, Any]:
    try:
        session = session_cache.register(plan_id, request.schedule, request.preferences)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    emit_event("plan_registered", plan_id=session.plan_id, weeks=len(session.schedule.weeks))
    return _plan_state(session)


@router.get("/{plan_id}")
def get_plan(plan_id: str) -> Dict[str, Any]:
    return _plan_state(_session_or_404(plan_id))


@router.get("/{plan_id}/store")
def get_store(plan_id: str) -> Dict[str, Any]:
    return _session_or_404(plan_id).store.to_document()


@router.post("/{plan_id}/weeks/{week_number}/tracking")
def initialize_week(plan_id: str, week_number: int) -> Dict[str, Any]:
    session = _session_or_404(plan_id)
    return session.initialize_week_tracking(week_number).to_document()


@router.post("/{plan_id}/weeks/{week_number}/advance")
def advance_week(plan_id: str, week_number: int) -> Dict[str, Any]:
    session = _session_or_404(plan_id)
    if session.schedule.week(week_number) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Week {week_number} is not part of plan '{session.plan_id}'.",
        )
    session.advance_to_next_week(week_number)
    return _plan_state(session)


@router.put("/{plan_id}/tasks/{task_id}/status")
def update_task_status(plan_id: str, task_id: str, request: RecordStatusRequest) -> TaskRecord:
    session = _session_or_404(plan_id)
    context = None
    if request.context is not None:
        context = TaskContext(
            subject=request.context.subject,
            activity=request.context.activity,
            week_number=request.context.week_number,
            day_of_week=request.context.day_of_week,
        )
    try:
        return session.record_status(task_id, request.status, context)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/{plan_id}/status")
def get_task_status(
    plan_id: str,
    week: int = Query(..., ge=1),
    day: str = Query(..., min_length=1),
    subject: str = Query(""),
    activity: str = Query(""),
) -> Dict[str, str]:
    session = _session_or_404(plan_id)
    return {"status": session.get_status(week, day, subject, activity)}


@router.get("/{plan_id}/replanning")
def replanning_signal(plan_id: str) -> Dict[str, bool]:
    return {"needsReplanning": _session_or_404(plan_id).needs_replanning()}


@router.post("/{plan_id}/replanning")
def apply_replanning(plan_id: str) -> Dict[str, Any]:
    session = _session_or_404(plan_id)
    result = session.apply_replanning()
    payload = _plan_state(session)
    payload.update(
        {
            "redistributed": result.redistributed,
            "synthesizedWeekNumber": result.synthesized_week_number,
            "placements": [
                {
                    "taskId": placement.task_id,
                    "weekNumber": placement.week_number,
                    "dayOfWeek": placement.day_of_week,
                }
                for placement in result.placements
            ],
        }
    )
    return payload


@router.get("/{plan_id}/progress")
def get_progress(plan_id: str, today: Optional[date] = Query(None)) -> ProgressSummary:
    return _session_or_404(plan_id).compute_progress(today=today)


@router.get("/{plan_id}/performance")
def get_performance(plan_id: str) -> PerformanceBreakdown:
    return _session_or_404(plan_id).performance_breakdown()


@router.get("/{plan_id}/review")
def get_review_items(plan_id: str, current_week: int = Query(..., alias="currentWeek", ge=1)) -> ReviewSession:
    return _session_or_404(plan_id).review_items(current_week)


@router.post("/{plan_id}/review")
def complete_review(plan_id: str, request: CompleteReviewRequest) -> Dict[str, Any]:
    session = _session_or_404(plan_id)
    return session.complete_review(request.task_ids).to_document()


@router.post("/{plan_id}/store/load")
async def load_store(plan_id: str) -> Dict[str, Any]:
    session = _session_or_404(plan_id)
    try:
        store = await session.load_store()
    except PerformanceStoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return store.to_document()


@router.post("/{plan_id}/store/sync")
async def sync_store(plan_id: str) -> Dict[str, Any]:
    session = _session_or_404(plan_id)
    try:
        store = await session.sync_store()
    except PerformanceStoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"synced": True, "tasks": len(store.tasks), "lastUpdated": store.last_updated}


__all__ = ["router"]
