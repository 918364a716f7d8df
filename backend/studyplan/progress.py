"""Progress rollups derived from the schedule and the performance store."""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Dict, Optional, Tuple

from .models import (
    PerformanceBreakdown,
    PerformanceStore,
    Preferences,
    ProgressSummary,
    Schedule,
    SubjectPerformance,
    Task,
)

MAX_ATTENTION_SUBJECTS = 3

DayKey = Tuple[int, str]


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def _day_rollup(schedule: Schedule, store: PerformanceStore) -> Dict[DayKey, bool]:
    """Map each day to whether every record that belongs to it is completed."""
    days: Dict[DayKey, bool] = {}
    if not store.is_empty:
        for record in store.tasks.values():
            key = (record.week_number, record.day_of_week)
            days[key] = days.get(key, True) and record.status == "completed"
        return days
    for week in schedule.weeks:
        for day in week.days:
            if day.declares_tasks:
                days.setdefault((week.week_number, day.day_of_week), False)
    return days


def estimate_completion_date(
    total_days: int,
    completed_days: int,
    days_per_week: int,
    *,
    today: Optional[date] = None,
) -> Optional[date]:
    if total_days == 0 or completed_days == 0:
        return None
    days_left = total_days - completed_days
    weeks_needed = days_left / max(days_per_week, 1)
    start = today or date.today()
    return start + timedelta(days=int(weeks_needed * 7))


def compute_progress(
    schedule: Schedule,
    store: PerformanceStore,
    preferences: Preferences,
    *,
    today: Optional[date] = None,
) -> ProgressSummary:
    if not store.is_empty:
        total_tasks = len(store.tasks)
        completed_tasks = sum(1 for record in store.tasks.values() if record.status == "completed")
    else:
        total_tasks = sum(1 for _ in schedule.iter_tasks())
        completed_tasks = 0

    days = _day_rollup(schedule, store)
    total_days = len(days)
    completed_days = sum(1 for done in days.values() if done)

    return ProgressSummary(
        percent=_percent(completed_tasks, total_tasks),
        completed_tasks=completed_tasks,
        total_tasks=total_tasks,
        completed_days=completed_days,
        total_days=total_days,
        estimated_completion_date=estimate_completion_date(
            total_days,
            completed_days,
            preferences.days_per_week,
            today=today,
        ),
    )


def performance_breakdown(store: PerformanceStore) -> PerformanceBreakdown:
    counts = {"completed": 0, "not-understood": 0, "skipped": 0, "incomplete": 0}
    subjects: Dict[str, SubjectPerformance] = {}
    for record in store.tasks.values():
        counts[record.status] += 1
        entry = subjects.setdefault(record.subject, SubjectPerformance(subject=record.subject))
        entry.total += 1
        if record.status == "completed":
            entry.completed += 1
        elif record.status == "not-understood":
            entry.not_understood += 1
        elif record.status == "skipped":
            entry.skipped += 1

    total = len(store.tasks)
    attention = sorted(subjects.values(), key=lambda entry: entry.completion_rate)[:MAX_ATTENTION_SUBJECTS]
    return PerformanceBreakdown(
        total_tasks=total,
        completed=counts["completed"],
        not_understood=counts["not-understood"],
        skipped=counts["skipped"],
        incomplete=counts["incomplete"],
        completion_rate=_percent(counts["completed"], total),
        subjects_needing_attention=attention,
    )


def tasks_for_day(schedule: Schedule, week_number: int, day_of_week: str) -> Tuple[Task, ...]:
    week = schedule.week(week_number)
    if week is None:
        return ()
    day = week.day(day_of_week)
    return day.tasks if day is not None else ()


__all__ = [
    "MAX_ATTENTION_SUBJECTS",
    "compute_progress",
    "estimate_completion_date",
    "performance_breakdown",
    "tasks_for_day",
]
