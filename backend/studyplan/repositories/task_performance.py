"""Database-backed repository for plan performance stores."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import PlanPerformanceModel, TaskPerformanceModel
from ..models import PerformanceStore, TaskRecord

logger = logging.getLogger(__name__)


def normalize_plan_id(plan_id: str) -> str:
    normalized = plan_id.strip()
    if not normalized:
        raise ValueError("Plan id cannot be empty.")
    return normalized


class TaskPerformanceRepository:
    """Reads and replaces the full performance store of one plan."""

    def get(self, session: Session, plan_id: str) -> Optional[PerformanceStore]:
        model = self._find(session, plan_id)
        if model is None:
            return None
        return self._to_domain(model)

    def replace(self, session: Session, plan_id: str, store: PerformanceStore) -> PerformanceStore:
        normalized = normalize_plan_id(plan_id)
        model = self._find(session, normalized)
        if model is None:
            model = PlanPerformanceModel(plan_id=normalized)
            session.add(model)
            session.flush()

        existing: Dict[str, TaskPerformanceModel] = {row.task_id: row for row in model.records}
        for task_id, record in store.tasks.items():
            row = existing.pop(task_id, None)
            if row is None:
                row = TaskPerformanceModel(plan_pk=model.id, task_id=task_id)
                model.records.append(row)
            row.subject = record.subject
            row.activity = record.activity
            row.week_number = record.week_number
            row.day_of_week = record.day_of_week
            row.status = record.status
            row.timestamp = record.timestamp
        for stale in existing.values():
            model.records.remove(stale)

        model.last_updated = store.last_updated
        session.flush()
        logger.debug("Stored %d task records for plan %s", len(store.tasks), normalized)
        return self._to_domain(model)

    def delete(self, session: Session, plan_id: str) -> bool:
        model = self._find(session, plan_id)
        if model is None:
            return False
        session.delete(model)
        session.flush()
        return True

    def _find(self, session: Session, plan_id: str) -> Optional[PlanPerformanceModel]:
        stmt = select(PlanPerformanceModel).where(PlanPerformanceModel.plan_id == normalize_plan_id(plan_id))
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_domain(model: PlanPerformanceModel) -> PerformanceStore:
        tasks = {
            row.task_id: TaskRecord(
                task_id=row.task_id,
                subject=row.subject,
                activity=row.activity,
                week_number=row.week_number,
                day_of_week=row.day_of_week,
                status=row.status,  # type: ignore[arg-type]
                timestamp=row.timestamp,
            )
            for row in model.records
        }
        return PerformanceStore(tasks=tasks, last_updated=model.last_updated)


task_performance = TaskPerformanceRepository()

__all__ = ["TaskPerformanceRepository", "normalize_plan_id", "task_performance"]
