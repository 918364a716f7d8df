"""Redistribution of flagged tasks into future weeks as review work."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    FLAGGED_STATUSES,
    WEEKDAY_LABELS,
    Day,
    PerformanceStore,
    Preferences,
    ReviewItem,
    ReviewSession,
    Schedule,
    Task,
    TaskRecord,
    Week,
    now_millis,
)
from .notifications import emit_event

logger = logging.getLogger(__name__)


REVIEW_THEME = "Review and Reinforcement"
REVIEW_TASK_MINUTES = 30
REVIEW_ACTIVITY_PREFIX = "Review: "
MAX_DAYS_PER_WEEK = 7
REVIEW_ITEM_MINUTES = 10
MAX_REVIEW_SESSION_MINUTES = 60
REVIEW_SESSION_STATUSES = frozenset({"not-understood", "skipped"})
REVIEW_DAY_ROTATION: Tuple[str, ...] = WEEKDAY_LABELS
CALENDAR_DAY_ROTATION: Tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


@dataclass(frozen=True)
class ReviewPlacement:
    task_id: str
    week_number: int
    day_of_week: str


@dataclass(frozen=True)
class ReplanningResult:
    schedule: Schedule
    store: PerformanceStore
    placements: Tuple[ReviewPlacement, ...] = ()
    synthesized_week_number: Optional[int] = None

    @property
    def redistributed(self) -> int:
        return len(self.placements)


@dataclass
class _WeekDraft:
    """Mutable working copy of one target week; untouched days keep their identity."""

    position: int
    week: Week
    day_names: List[str] = field(default_factory=list)
    day_tasks: List[List[Task]] = field(default_factory=list)
    touched: List[bool] = field(default_factory=list)
    focus_areas: List[str] = field(default_factory=list)
    originals: List[Optional[Day]] = field(default_factory=list)

    @classmethod
    def from_week(cls, position: int, week: Week) -> "_WeekDraft":
        return cls(
            position=position,
            week=week,
            day_names=[day.day_of_week for day in week.days],
            day_tasks=[list(day.tasks) for day in week.days],
            touched=[False for _ in week.days],
            focus_areas=list(week.focus_areas),
            originals=list(week.days),
        )

    def least_loaded_day(self) -> int:
        if not self.day_tasks:
            self.day_names.append(REVIEW_DAY_ROTATION[0])
            self.day_tasks.append([])
            self.touched.append(True)
            self.originals.append(None)
        return min(range(len(self.day_tasks)), key=lambda index: len(self.day_tasks[index]))

    def append(self, day_index: int, task: Task) -> None:
        self.day_tasks[day_index].append(task)
        self.touched[day_index] = True
        if task.subject not in self.focus_areas:
            self.focus_areas.append(task.subject)

    @property
    def changed(self) -> bool:
        return any(self.touched) or tuple(self.focus_areas) != self.week.focus_areas

    def build(self) -> Week:
        if not self.changed:
            return self.week
        days: List[Day] = []
        for index, name in enumerate(self.day_names):
            original = self.originals[index]
            if original is not None and not self.touched[index]:
                days.append(original)
            elif original is not None:
                days.append(original.model_copy(update={"tasks": tuple(self.day_tasks[index])}))
            else:
                days.append(Day(day_of_week=name, tasks=tuple(self.day_tasks[index])))
        return self.week.model_copy(update={"days": tuple(days), "focus_areas": tuple(self.focus_areas)})


def needs_replanning(store: PerformanceStore) -> bool:
    return any(record.status in FLAGGED_STATUSES for record in store.tasks.values())


def flagged_records(store: PerformanceStore) -> List[TaskRecord]:
    """Flagged records, earliest week first; ties keep store order."""
    flagged = [record for record in store.tasks.values() if record.status in FLAGGED_STATUSES]
    return sorted(flagged, key=lambda record: record.week_number)


def current_week_number(store: PerformanceStore) -> Optional[int]:
    pending = [record.week_number for record in store.tasks.values() if record.status != "completed"]
    return min(pending) if pending else None


def future_weeks(schedule: Schedule, current: int) -> List[Week]:
    return [week for _, week in _future_positions(schedule, current)]


def _future_positions(schedule: Schedule, current: int) -> List[Tuple[int, Week]]:
    ahead = [(position, week) for position, week in enumerate(schedule.weeks) if week.week_number > current]
    return sorted(ahead, key=lambda entry: entry[1].week_number)


def _unique_subjects(records: Iterable[TaskRecord]) -> List[str]:
    subjects: List[str] = []
    for record in records:
        if record.subject not in subjects:
            subjects.append(record.subject)
    return subjects


class ReplanningScheduler:
    """Turns flagged task records into review tasks spread over upcoming weeks."""

    def __init__(
        self,
        *,
        review_minutes: int = REVIEW_TASK_MINUTES,
        review_theme: str = REVIEW_THEME,
    ) -> None:
        self._review_minutes = max(review_minutes, 1)
        self._review_theme = review_theme

    def apply(
        self,
        schedule: Schedule,
        store: PerformanceStore,
        preferences: Preferences,
        *,
        now: Optional[int] = None,
    ) -> ReplanningResult:
        flagged = flagged_records(store)
        if not flagged:
            logger.debug("No flagged tasks; replanning is a no-op.")
            return ReplanningResult(schedule=schedule, store=store)

        timestamp = now if now is not None else now_millis()
        current = current_week_number(store)
        if current is None:
            logger.warning("No pending week found for the flagged tasks; replanning is a no-op.")
            return ReplanningResult(schedule=schedule, store=store)

        weeks = list(schedule.weeks)
        targets = [_WeekDraft.from_week(position, week) for position, week in _future_positions(schedule, current)]
        synthesized: Optional[int] = None
        if not targets:
            review_week = self._synthesize_week(schedule, flagged, preferences)
            synthesized = review_week.week_number
            weeks.append(review_week)
            targets.append(_WeekDraft.from_week(len(weeks) - 1, review_week))
            logger.info(
                "No future weeks after week %s; appended review week %s with %d days.",
                current,
                synthesized,
                len(review_week.days),
            )

        placements: List[ReviewPlacement] = []
        for index, record in enumerate(flagged):
            draft = targets[index % len(targets)]
            day_index = draft.least_loaded_day()
            draft.append(day_index, self._review_task(record))
            placements.append(
                ReviewPlacement(
                    task_id=record.task_id,
                    week_number=draft.week.week_number,
                    day_of_week=draft.day_names[day_index],
                )
            )

        for draft in targets:
            weeks[draft.position] = draft.build()

        tasks: Dict[str, TaskRecord] = dict(store.tasks)
        for record in flagged:
            tasks[record.task_id] = record.model_copy(update={"status": "completed", "timestamp": timestamp})

        updated_schedule = schedule.model_copy(update={"weeks": tuple(weeks)})
        updated_store = store.model_copy(update={"tasks": tasks, "last_updated": timestamp})
        emit_event(
            "replanning_applied",
            redistributed=len(placements),
            current_week=current,
            target_weeks=[draft.week.week_number for draft in targets],
            synthesized_week=synthesized,
        )
        return ReplanningResult(
            schedule=updated_schedule,
            store=updated_store,
            placements=tuple(placements),
            synthesized_week_number=synthesized,
        )

    def _synthesize_week(
        self,
        schedule: Schedule,
        flagged: Sequence[TaskRecord],
        preferences: Preferences,
    ) -> Week:
        numbers = [week.week_number for week in schedule.weeks]
        week_number = max(numbers) + 1 if numbers else 1
        day_count = min(preferences.days_per_week, MAX_DAYS_PER_WEEK)
        return Week(
            week_number=week_number,
            theme=self._review_theme,
            focus_areas=tuple(_unique_subjects(flagged)),
            days=tuple(
                Day(day_of_week=REVIEW_DAY_ROTATION[index % len(REVIEW_DAY_ROTATION)], tasks=())
                for index in range(day_count)
            ),
        )

    def _review_task(self, record: TaskRecord) -> Task:
        return Task(
            subject=record.subject,
            duration=self._review_minutes,
            activity=f"{REVIEW_ACTIVITY_PREFIX}{record.activity}",
            is_review=True,
        )


scheduler = ReplanningScheduler()


def apply_replanning(
    schedule: Schedule,
    store: PerformanceStore,
    preferences: Preferences,
    *,
    now: Optional[int] = None,
) -> Tuple[Schedule, PerformanceStore]:
    result = scheduler.apply(schedule, store, preferences, now=now)
    return result.schedule, result.store


def advance_to_next_week(schedule: Schedule, current: int, preferences: Preferences) -> Schedule:
    """Append a week after the last one that continues the current week's theme."""
    source = schedule.week(current)
    if source is None:
        logger.warning("Cannot advance past week %s; it is not part of the schedule.", current)
        return schedule
    next_number = max(week.week_number for week in schedule.weeks) + 1
    new_week = Week(
        week_number=next_number,
        theme=source.theme,
        focus_areas=source.focus_areas,
        weekly_goals=source.weekly_goals,
        days=tuple(
            Day(day_of_week=CALENDAR_DAY_ROTATION[index % len(CALENDAR_DAY_ROTATION)], tasks=())
            for index in range(preferences.days_per_week)
        ),
    )
    weeks = sorted((*schedule.weeks, new_week), key=lambda week: week.week_number)
    return schedule.model_copy(update={"weeks": tuple(weeks)})


def review_items_for_week(store: PerformanceStore, current: int) -> ReviewSession:
    """Collect last week's not-understood or skipped tasks for a review session."""
    previous = current - 1
    if previous < 1:
        return ReviewSession(week_number=current)
    items = [
        ReviewItem(
            task_id=record.task_id,
            subject=record.subject,
            activity=record.activity,
            week_number=record.week_number,
            day_of_week=record.day_of_week,
            timestamp=record.timestamp,
        )
        for record in store.tasks.values()
        if record.week_number == previous and record.status in REVIEW_SESSION_STATUSES
    ]
    items.sort(key=lambda item: item.subject.casefold())
    return ReviewSession(
        week_number=current,
        items=items,
        estimated_minutes=min(len(items) * REVIEW_ITEM_MINUTES, MAX_REVIEW_SESSION_MINUTES),
    )


def complete_review(
    store: PerformanceStore,
    task_ids: Iterable[str],
    *,
    now: Optional[int] = None,
) -> PerformanceStore:
    timestamp = now if now is not None else now_millis()
    tasks = dict(store.tasks)
    updated = 0
    for task_id in task_ids:
        record = tasks.get(task_id)
        if record is None:
            continue
        tasks[task_id] = record.model_copy(update={"status": "completed", "timestamp": timestamp})
        updated += 1
    if not updated:
        return store
    return store.model_copy(update={"tasks": tasks, "last_updated": timestamp})


__all__ = [
    "CALENDAR_DAY_ROTATION",
    "REVIEW_ACTIVITY_PREFIX",
    "REVIEW_DAY_ROTATION",
    "REVIEW_TASK_MINUTES",
    "REVIEW_THEME",
    "ReplanningResult",
    "ReplanningScheduler",
    "ReviewPlacement",
    "advance_to_next_week",
    "apply_replanning",
    "complete_review",
    "current_week_number",
    "flagged_records",
    "future_weeks",
    "needs_replanning",
    "review_items_for_week",
    "scheduler",
]
