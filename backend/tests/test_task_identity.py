"""Task id derivation tests."""

from __future__ import annotations

from studyplan.task_identity import ACTIVITY_PREFIX_LENGTH, resolve_task_id


def test_task_id_uses_activity_prefix_and_lowercases() -> None:
    task_id = resolve_task_id(1, "Monday", "Anatomy", "Read chapter 3 on the heart")
    assert task_id == "1-monday-anatomy-read-chapt"


def test_whitespace_runs_collapse_to_single_dash() -> None:
    task_id = resolve_task_id(2, "Tuesday", "Internal  Medicine", "Q bank")
    assert task_id == "2-tuesday-internal-medicine-q-bank"


def test_empty_activity_leaves_empty_suffix() -> None:
    assert resolve_task_id(3, "Friday", "Pharm", "") == "3-friday-pharm-"


def test_same_inputs_resolve_to_same_id() -> None:
    first = resolve_task_id(4, "Sunday", "Biochemistry", "Glycolysis flashcards")
    second = resolve_task_id(4, "Sunday", "Biochemistry", "Glycolysis flashcards")
    assert first == second


def test_shared_activity_prefix_collides() -> None:
    first = resolve_task_id(1, "Monday", "Pathology", "Practice questions set A")
    second = resolve_task_id(1, "Monday", "Pathology", "Practice questions set B")
    assert ACTIVITY_PREFIX_LENGTH == 10
    assert first == second


def test_different_day_or_week_changes_id() -> None:
    base = resolve_task_id(1, "Monday", "Anatomy", "Lab")
    assert resolve_task_id(2, "Monday", "Anatomy", "Lab") != base
    assert resolve_task_id(1, "Tuesday", "Anatomy", "Lab") != base
