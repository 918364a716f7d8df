"""Change notifier and telemetry fan-out tests."""

from __future__ import annotations

import logging
from datetime import date
from typing import List

from studyplan.notifications import (
    ChangeNotifier,
    ProgressChanged,
    TelemetryEvent,
    clear_listeners,
    emit_event,
    register_listener,
)


def _event(reason: str = "status_recorded") -> ProgressChanged:
    return ProgressChanged(plan_id="plan-1", reason=reason, timestamp=1, needs_replanning=True)


def test_notifier_fans_out_and_forwards_to_telemetry() -> None:
    notifier = ChangeNotifier()
    received: List[ProgressChanged] = []
    telemetry: List[TelemetryEvent] = []
    notifier.subscribe(received.append)
    register_listener(telemetry.append)
    try:
        notifier.publish(_event())
    finally:
        clear_listeners()

    assert received == [_event()]
    assert telemetry[0].name == "progress_changed"
    assert telemetry[0].payload["plan_id"] == "plan-1"
    assert telemetry[0].payload["needs_replanning"] is True


def test_listener_failures_are_logged(caplog) -> None:
    notifier = ChangeNotifier()
    received: List[ProgressChanged] = []

    def broken(event: ProgressChanged) -> None:
        raise ValueError("boom")

    notifier.subscribe(broken)
    notifier.subscribe(received.append)
    with caplog.at_level(logging.ERROR, logger="studyplan.notifications"):
        notifier.publish(_event())

    assert len(received) == 1
    assert "Change listener failed" in caplog.text


def test_unsubscribe_handle_and_clear() -> None:
    notifier = ChangeNotifier()
    unsubscribe = notifier.subscribe(lambda event: None)
    notifier.subscribe(lambda event: None)
    assert len(notifier) == 2

    unsubscribe()
    unsubscribe()
    assert len(notifier) == 1

    notifier.clear()
    assert len(notifier) == 0


def test_emit_event_serializes_dates() -> None:
    telemetry: List[TelemetryEvent] = []
    register_listener(telemetry.append)
    try:
        emit_event("progress_estimated", plan_id="plan-1", completion=date(2024, 1, 2))
    finally:
        clear_listeners()

    assert telemetry == [
        TelemetryEvent(name="progress_estimated", payload={"plan_id": "plan-1", "completion": "2024-01-02"})
    ]
