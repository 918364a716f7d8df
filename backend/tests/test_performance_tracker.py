"""Performance tracker seeding, upsert and lookup tests."""

from __future__ import annotations

import pytest

from studyplan.models import PerformanceStore, Schedule
from studyplan.performance_tracker import (
    TaskContext,
    get_status,
    initialize_week_tracking,
    record_status,
    task_context_index,
)
from studyplan.task_identity import resolve_task_id


def _schedule() -> Schedule:
    return Schedule.from_payload(
        {
            "weeklyPlans": [
                {
                    "weekNumber": 1,
                    "theme": "Cardiology",
                    "days": [
                        {
                            "dayOfWeek": "Monday",
                            "tasks": [
                                {"subject": "Anatomy", "duration": 60, "activity": "Read heart chapter"},
                                {"subject": "Physiology", "duration": 45, "activity": "Cardiac cycle review"},
                            ],
                        },
                        {
                            "dayOfWeek": "Tuesday",
                            "tasks": [{"subject": "Anatomy", "duration": 90, "activity": "Lab practical"}],
                        },
                    ],
                },
                {
                    "weekNumber": 2,
                    "theme": "Pathology",
                    "days": [
                        {
                            "dayOfWeek": "Monday",
                            "tasks": [{"subject": "Pathology", "duration": 60, "activity": "Inflammation"}],
                        }
                    ],
                },
            ]
        }
    )


def test_initialize_week_seeds_incomplete_records() -> None:
    store = initialize_week_tracking(_schedule(), 1, PerformanceStore(), now=1000)

    assert len(store.tasks) == 3
    record = store.tasks[resolve_task_id(1, "Tuesday", "Anatomy", "Lab practical")]
    assert record.status == "incomplete"
    assert record.week_number == 1
    assert record.day_of_week == "Tuesday"
    assert record.subject == "Anatomy"
    assert record.timestamp == 1000
    assert store.last_updated == 1000


def test_initialize_week_is_idempotent_and_keeps_statuses() -> None:
    schedule = _schedule()
    store = initialize_week_tracking(schedule, 1, PerformanceStore(), now=1000)
    task_id = resolve_task_id(1, "Monday", "Anatomy", "Read heart chapter")
    store = record_status(store, task_id, None, "completed", now=2000)

    again = initialize_week_tracking(schedule, 1, store, now=3000)

    assert again is store
    assert again.tasks[task_id].status == "completed"


def test_initialize_unknown_week_is_noop() -> None:
    store = PerformanceStore()
    assert initialize_week_tracking(_schedule(), 9, store) is store


def test_record_status_keeps_descriptive_fields_of_existing_record() -> None:
    store = initialize_week_tracking(_schedule(), 2, PerformanceStore(), now=1000)
    task_id = resolve_task_id(2, "Monday", "Pathology", "Inflammation")
    bogus = TaskContext(subject="Other", activity="Other", week_number=5, day_of_week="Friday")

    updated = record_status(store, task_id, bogus, "skipped", now=5000)

    record = updated.tasks[task_id]
    assert record.status == "skipped"
    assert record.timestamp == 5000
    assert record.subject == "Pathology"
    assert record.week_number == 2
    assert updated.last_updated == 5000
    assert store.tasks[task_id].status == "incomplete"


def test_record_status_creates_record_from_context() -> None:
    context = TaskContext(subject="Microbiology", activity="Gram stains", week_number=3, day_of_week="Wednesday")

    store = record_status(PerformanceStore(), context.task_id, context, "not-understood", now=42)

    record = store.tasks[context.task_id]
    assert record.task_id == context.task_id
    assert record.status == "not-understood"
    assert record.day_of_week == "Wednesday"


def test_record_status_without_record_or_context_raises() -> None:
    with pytest.raises(LookupError):
        record_status(PerformanceStore(), "1-monday-x-y", None, "completed")


def test_record_status_rejects_unknown_status() -> None:
    with pytest.raises(ValueError):
        record_status(PerformanceStore(), "1-monday-x-y", None, "finished")  # type: ignore[arg-type]


def test_any_status_transition_is_allowed() -> None:
    context = TaskContext(subject="Anatomy", activity="Lab", week_number=1, day_of_week="Monday")
    store = record_status(PerformanceStore(), context.task_id, context, "completed", now=1)
    store = record_status(store, context.task_id, None, "incomplete", now=2)
    assert store.tasks[context.task_id].status == "incomplete"


def test_get_status_defaults_to_incomplete() -> None:
    assert get_status(PerformanceStore(), 1, "Monday", "Anatomy", "Read heart chapter") == "incomplete"


def test_get_status_reads_recorded_value() -> None:
    schedule = _schedule()
    store = initialize_week_tracking(schedule, 1, PerformanceStore())
    task_id = resolve_task_id(1, "Monday", "Physiology", "Cardiac cycle review")
    store = record_status(store, task_id, None, "skipped")
    assert get_status(store, 1, "Monday", "Physiology", "Cardiac cycle review") == "skipped"


def test_context_index_keeps_first_occurrence() -> None:
    schedule = Schedule.from_payload(
        [
            {
                "weekNumber": 1,
                "days": [
                    {
                        "dayOfWeek": "Monday",
                        "tasks": [
                            {"subject": "Pathology", "activity": "Practice questions set A"},
                            {"subject": "Pathology", "activity": "Practice questions set B"},
                        ],
                    }
                ],
            }
        ]
    )

    index = task_context_index(schedule)

    assert len(index) == 1
    (context,) = index.values()
    assert context.activity == "Practice questions set A"
