"""Per-task status tracking over a plan's performance store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .models import (
    DEFAULT_STATUS,
    TASK_STATUSES,
    Day,
    PerformanceStore,
    Schedule,
    Task,
    TaskRecord,
    TaskStatus,
    Week,
    now_millis,
)
from .task_identity import resolve_task_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskContext:
    """Descriptive fields used when a task record is created for the first time."""

    subject: str
    activity: str
    week_number: int
    day_of_week: str

    @classmethod
    def from_task(cls, week: Week, day: Day, task: Task) -> "TaskContext":
        return cls(
            subject=task.subject,
            activity=task.activity,
            week_number=week.week_number,
            day_of_week=day.day_of_week,
        )

    @property
    def task_id(self) -> str:
        return resolve_task_id(self.week_number, self.day_of_week, self.subject, self.activity)


def task_context_index(schedule: Schedule) -> Dict[str, TaskContext]:
    """Map every task id in the schedule to its context; the first occurrence wins."""
    index: Dict[str, TaskContext] = {}
    for week, day, task in schedule.iter_tasks():
        context = TaskContext.from_task(week, day, task)
        index.setdefault(context.task_id, context)
    return index


def initialize_week_tracking(
    schedule: Schedule,
    week_number: int,
    store: PerformanceStore,
    *,
    now: Optional[int] = None,
) -> PerformanceStore:
    """Seed `incomplete` records for tasks of the week that are not tracked yet."""
    week = schedule.week(week_number)
    if week is None:
        logger.debug("Week %s is not part of the schedule; nothing to seed.", week_number)
        return store

    timestamp = now if now is not None else now_millis()
    tasks = dict(store.tasks)
    seeded = 0
    for day in week.days:
        for task in day.tasks:
            context = TaskContext.from_task(week, day, task)
            task_id = context.task_id
            if task_id in tasks:
                continue
            tasks[task_id] = _new_record(task_id, context, DEFAULT_STATUS, timestamp)
            seeded += 1

    if not seeded:
        return store
    logger.debug("Seeded %d task records for week %s.", seeded, week_number)
    return store.model_copy(update={"tasks": tasks, "last_updated": timestamp})


def record_status(
    store: PerformanceStore,
    task_id: str,
    context: Optional[TaskContext],
    status: TaskStatus,
    *,
    now: Optional[int] = None,
) -> PerformanceStore:
    """Upsert the record for `task_id` with `status` and a fresh timestamp."""
    if status not in TASK_STATUSES:
        raise ValueError(f"Unsupported task status '{status}'.")

    timestamp = now if now is not None else now_millis()
    existing = store.get(task_id)
    if existing is not None:
        record = existing.model_copy(update={"status": status, "timestamp": timestamp})
    elif context is not None:
        record = _new_record(task_id, context, status, timestamp)
    else:
        raise LookupError(f"Task '{task_id}' is not tracked and no context was supplied.")

    tasks = dict(store.tasks)
    tasks[task_id] = record
    return store.model_copy(update={"tasks": tasks, "last_updated": timestamp})


def get_status(
    store: PerformanceStore,
    week_number: int,
    day_of_week: str,
    subject: str,
    activity: str,
) -> TaskStatus:
    record = store.get(resolve_task_id(week_number, day_of_week, subject, activity))
    return record.status if record is not None else DEFAULT_STATUS


def _new_record(task_id: str, context: TaskContext, status: TaskStatus, timestamp: int) -> TaskRecord:
    return TaskRecord(
        task_id=task_id,
        subject=context.subject,
        activity=context.activity,
        week_number=context.week_number,
        day_of_week=context.day_of_week,
        status=status,
        timestamp=timestamp,
    )


__all__ = [
    "TaskContext",
    "get_status",
    "initialize_week_tracking",
    "record_status",
    "task_context_index",
]
