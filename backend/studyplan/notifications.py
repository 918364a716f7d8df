"""Change notifications and structured telemetry for plan sessions."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)
telemetry_logger = logging.getLogger("studyplan.telemetry")


@dataclass(frozen=True)
class ProgressChanged:
    """Published after every mutating call on a plan session."""

    plan_id: str
    reason: str
    timestamp: int
    needs_replanning: bool


ChangeListener = Callable[[ProgressChanged], None]


class ChangeNotifier:
    """Observer channel owned by a single plan session."""

    def __init__(self) -> None:
        self._listeners: List[ChangeListener] = []
        self._lock = RLock()

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(listener)

        return _unsubscribe

    def unsubscribe(self, listener: ChangeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def publish(self, event: ProgressChanged) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                logger.exception("Change listener failed for plan=%s reason=%s", event.plan_id, event.reason)
        emit_event("progress_changed", **asdict(event))


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


_telemetry_listeners: List[Callable[[TelemetryEvent], None]] = []
_telemetry_lock = RLock()


def register_listener(listener: Callable[[TelemetryEvent], None]) -> None:
    """Register a process-wide telemetry listener (used in tests)."""
    with _telemetry_lock:
        _telemetry_listeners.append(listener)


def clear_listeners() -> None:
    with _telemetry_lock:
        _telemetry_listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Emit a structured telemetry event as a log line and fan it out."""
    payload = {
        key: value.isoformat() if isinstance(value, (datetime, date)) else value
        for key, value in fields.items()
    }
    event = TelemetryEvent(name=name, payload=payload)

    with _telemetry_lock:
        listeners = list(_telemetry_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            telemetry_logger.exception("Telemetry listener failed for %s", name)

    telemetry_logger.info("TELEMETRY %s", json.dumps({"event": name, **payload}, default=str))


__all__ = [
    "ChangeListener",
    "ChangeNotifier",
    "ProgressChanged",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
