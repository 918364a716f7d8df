"""Schedule, performance store and progress models."""

from __future__ import annotations

import logging
import re
import time
from datetime import date
from typing import Any, Dict, Iterator, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

TaskStatus = Literal["incomplete", "completed", "not-understood", "skipped"]

TASK_STATUSES: Tuple[str, ...] = ("incomplete", "completed", "not-understood", "skipped")
FLAGGED_STATUSES = frozenset({"not-understood", "incomplete", "skipped"})
DEFAULT_STATUS: TaskStatus = "incomplete"
WEEKDAY_LABELS: Tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_LEADING_INT = re.compile(r"\d+")


def now_millis() -> int:
    return int(time.time() * 1000)


def _entries(value: Any, *kinds: type) -> List[Any]:
    """Keep the entries of a list payload that have one of ``kinds``; anything else is empty."""
    if not isinstance(value, (list, tuple)):
        return []
    return [entry for entry in value if isinstance(entry, kinds)]


def _clean_collections(data: Dict[str, Any], kinds: Dict[str, Tuple[type, ...]]) -> Dict[str, Any]:
    cleaned = dict(data)
    for name, accepted in kinds.items():
        if cleaned.get(name) is not None:
            cleaned[name] = _entries(cleaned[name], *accepted)
    return cleaned


def _week_number(entry: Dict[str, Any]) -> Optional[int]:
    raw = entry.get("weekNumber")
    if raw is None:
        raw = entry.get("week_number")
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw)
    if isinstance(raw, int) and not isinstance(raw, bool) and raw >= 1:
        return raw
    return None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _ScheduleNode(_CamelModel):
    """Frozen schedule node that treats null collections as absent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class TaskResource(_ScheduleNode):
    name: str = ""
    type: Optional[str] = None
    description: str = ""


class Task(_ScheduleNode):
    """Single unit of study work inside a day."""

    subject: str = ""
    duration: int = Field(default=0, ge=0)
    activity: str = ""
    is_review: bool = False
    resources: Tuple[TaskResource, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _coerce_duration(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = _clean_collections(data, {"resources": (dict, TaskResource)})
        raw = data.get("duration")
        if isinstance(raw, str):
            match = _LEADING_INT.search(raw)
            data = {**data, "duration": int(match.group()) if match else 0}
        elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
            data = {**data, "duration": max(int(raw), 0)}
        return data


class Day(_ScheduleNode):
    day_of_week: str
    tasks: Tuple[Task, ...] = ()
    focus_areas: Tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _clean_tasks(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return _clean_collections(
            data,
            {"tasks": (dict, Task), "focusAreas": (str,), "focus_areas": (str,)},
        )

    @property
    def declares_tasks(self) -> bool:
        """False when the producer sent no ``tasks`` array for this day."""
        return "tasks" in self.model_fields_set


class WeeklyGoal(_ScheduleNode):
    subject: str = ""
    description: str = ""


class Week(_ScheduleNode):
    week_number: int = Field(ge=1)
    theme: str = ""
    focus_areas: Tuple[str, ...] = ()
    weekly_goals: Tuple[WeeklyGoal, ...] = ()
    days: Tuple[Day, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _label_days(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = _clean_collections(
            data,
            {
                "days": (dict, Day),
                "weeklyGoals": (dict, WeeklyGoal),
                "weekly_goals": (dict, WeeklyGoal),
                "focusAreas": (str,),
                "focus_areas": (str,),
            },
        )
        if data.get("days") is None:
            return data
        days: List[Any] = []
        for position, entry in enumerate(data["days"]):
            if isinstance(entry, dict):
                label = entry.get("dayOfWeek") or entry.get("day_of_week")
                if not isinstance(label, str) or not label.strip():
                    label = WEEKDAY_LABELS[position % len(WEEKDAY_LABELS)]
                    logger.warning("Day at position %d has no dayOfWeek; labelling it %s.", position + 1, label)
                    entry = {name: value for name, value in entry.items() if name != "day_of_week"}
                    entry["dayOfWeek"] = label
            days.append(entry)
        return {**data, "days": days}

    def day(self, day_of_week: str) -> Optional[Day]:
        return next((day for day in self.days if day.day_of_week == day_of_week), None)


class Schedule(_ScheduleNode):
    """Multi-week study plan produced by the plan-generation service."""

    weeks: Tuple[Week, ...] = Field(
        default=(),
        validation_alias=AliasChoices("weeklyPlans", "weekly_plans", "weeks"),
        serialization_alias="weeklyPlans",
    )

    @model_validator(mode="before")
    @classmethod
    def _number_unlabelled_weeks(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        key = next((name for name in ("weeklyPlans", "weekly_plans", "weeks") if name in data), None)
        if key is None or data[key] is None:
            return data
        weeks: List[Any] = []
        for position, entry in enumerate(_entries(data[key], dict, Week), start=1):
            if isinstance(entry, dict) and _week_number(entry) is None:
                logger.warning("Week at position %d has no usable weekNumber; numbering it by position.", position)
                entry = {name: value for name, value in entry.items() if name != "week_number"}
                entry["weekNumber"] = position
            weeks.append(entry)
        return {**data, key: weeks}

    @model_validator(mode="after")
    def _warn_on_week_order(self) -> "Schedule":
        numbers = [week.week_number for week in self.weeks]
        if any(later <= earlier for earlier, later in zip(numbers, numbers[1:])):
            logger.warning("Schedule week numbers are not strictly increasing: %s", numbers)
        return self

    @classmethod
    def from_payload(cls, payload: Any) -> "Schedule":
        """Validate a schedule tree in any of the shapes the plan service emits."""
        if payload is None:
            return cls()
        if isinstance(payload, Schedule):
            return payload
        if isinstance(payload, (list, tuple)):
            return cls.model_validate({"weeklyPlans": list(payload)})
        if isinstance(payload, dict) and isinstance(payload.get("plan"), dict):
            return cls.model_validate(payload["plan"])
        return cls.model_validate(payload)

    def week(self, week_number: int) -> Optional[Week]:
        return next((week for week in self.weeks if week.week_number == week_number), None)

    @property
    def last_week_number(self) -> Optional[int]:
        return self.weeks[-1].week_number if self.weeks else None

    def iter_tasks(self) -> Iterator[Tuple[Week, Day, Task]]:
        for week in self.weeks:
            for day in week.days:
                for task in day.tasks:
                    yield week, day, task

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskRecord(_CamelModel):
    """Tracking entry for one task, keyed by its task id."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    task_id: str
    subject: str = ""
    activity: str = ""
    week_number: int = Field(default=1, ge=1)
    day_of_week: str = ""
    status: TaskStatus = DEFAULT_STATUS
    timestamp: int = Field(default_factory=now_millis)


class PerformanceStore(_CamelModel):
    """Per-plan mapping of task id to task record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    tasks: Dict[str, TaskRecord] = Field(default_factory=dict)
    last_updated: int = Field(default_factory=now_millis)

    @model_validator(mode="before")
    @classmethod
    def _fill_task_ids(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        tasks = data.get("tasks")
        if not isinstance(tasks, dict):
            return {**data, "tasks": {}} if "tasks" in data else data
        filled: Dict[str, Any] = {}
        for task_id, record in tasks.items():
            if isinstance(record, dict) and not record.get("taskId") and not record.get("task_id"):
                record = {**record, "taskId": task_id}
            filled[task_id] = record
        return {**data, "tasks": filled}

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    def get(self, task_id: str) -> Optional[TaskRecord]:
        return self.tasks.get(task_id)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Preferences(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    days_per_week: int = Field(default=5, ge=1, le=7)


class ProgressSummary(_CamelModel):
    percent: int = Field(default=0, ge=0, le=100)
    completed_tasks: int = Field(default=0, ge=0)
    total_tasks: int = Field(default=0, ge=0)
    completed_days: int = Field(default=0, ge=0)
    total_days: int = Field(default=0, ge=0)
    estimated_completion_date: Optional[date] = None

    @computed_field(alias="estimatedCompletionLabel")  # type: ignore[prop-decorator]
    @property
    def estimated_completion_label(self) -> str:
        if self.estimated_completion_date is None:
            return "Not available"
        value = self.estimated_completion_date
        return f"{value.strftime('%B')} {value.day}, {value.year}"


class SubjectPerformance(_CamelModel):
    subject: str
    total: int = 0
    completed: int = 0
    not_understood: int = 0
    skipped: int = 0

    @computed_field(alias="completionRate")  # type: ignore[prop-decorator]
    @property
    def completion_rate(self) -> float:
        return self.completed / self.total if self.total else 0.0


class PerformanceBreakdown(_CamelModel):
    """Status counts and the subjects with the weakest completion rates."""

    total_tasks: int = 0
    completed: int = 0
    not_understood: int = 0
    skipped: int = 0
    incomplete: int = 0
    completion_rate: int = 0
    subjects_needing_attention: List[SubjectPerformance] = Field(default_factory=list)


class ReviewItem(_CamelModel):
    task_id: str
    subject: str
    activity: str
    week_number: int
    day_of_week: str
    timestamp: int


class ReviewSession(_CamelModel):
    """Review items carried over from the previous week."""

    week_number: int
    items: List[ReviewItem] = Field(default_factory=list)
    estimated_minutes: int = 0

    def by_subject(self) -> Dict[str, List[ReviewItem]]:
        grouped: Dict[str, List[ReviewItem]] = {}
        for item in self.items:
            grouped.setdefault(item.subject, []).append(item)
        return grouped


__all__ = [
    "DEFAULT_STATUS",
    "Day",
    "FLAGGED_STATUSES",
    "PerformanceBreakdown",
    "PerformanceStore",
    "Preferences",
    "ProgressSummary",
    "ReviewItem",
    "ReviewSession",
    "Schedule",
    "SubjectPerformance",
    "TASK_STATUSES",
    "Task",
    "TaskRecord",
    "TaskResource",
    "TaskStatus",
    "Week",
    "WEEKDAY_LABELS",
    "WeeklyGoal",
    "now_millis",
]
