"""Stable task identifiers derived from a task's position in the schedule."""

from __future__ import annotations

import re

ACTIVITY_PREFIX_LENGTH = 10

_WHITESPACE = re.compile(r"\s+")


def resolve_task_id(week_number: int, day_of_week: str, subject: str, activity: str) -> str:
    """Return the tracking id for a (week, day, subject, activity) task.

    Only the first ten characters of the activity participate, so two tasks on
    the same day and subject whose activities share that prefix resolve to the
    same id. Callers that need distinct tracking for such tasks must vary the
    activity wording early.
    """
    prefix = (activity or "")[:ACTIVITY_PREFIX_LENGTH]
    raw = f"{week_number}-{day_of_week}-{subject}-{prefix}"
    return _WHITESPACE.sub("-", raw).lower()


__all__ = ["ACTIVITY_PREFIX_LENGTH", "resolve_task_id"]
