"""Process-local registry of plan sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from ..config import get_settings
from ..models import Preferences
from ..persistence import PerformanceStorePort, build_performance_port
from ..plan_session import PlanSession
from ..repositories.task_performance import normalize_plan_id


@dataclass
class _SessionEntry:
    session: PlanSession
    registered_at: datetime


class PlanSessionCache:
    """Keeps one ``PlanSession`` per normalized plan id."""

    def __init__(self, port_factory: Optional[Callable[[], PerformanceStorePort]] = None) -> None:
        self._entries: Dict[str, _SessionEntry] = {}
        self._lock = RLock()
        self._port_factory = port_factory
        self._port: Optional[PerformanceStorePort] = None

    def port(self) -> PerformanceStorePort:
        with self._lock:
            if self._port is None:
                factory = self._port_factory or (lambda: build_performance_port(get_settings()))
                self._port = factory()
            return self._port

    def get(self, plan_id: str) -> Optional[PlanSession]:
        key = normalize_plan_id(plan_id)
        with self._lock:
            entry = self._entries.get(key)
        return entry.session if entry is not None else None

    def register(
        self,
        plan_id: str,
        schedule: Any,
        preferences: Optional[Preferences] = None,
    ) -> PlanSession:
        """Create the session for ``plan_id`` or swap the schedule of an existing one."""
        key = normalize_plan_id(plan_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.session.replace_schedule(schedule, preferences)
                return entry.session
            session = PlanSession(key, schedule, preferences=preferences, port=self.port())
            self._entries[key] = _SessionEntry(session=session, registered_at=datetime.now(timezone.utc))
            return session

    def plan_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def invalidate(self, plan_id: str) -> None:
        key = normalize_plan_id(plan_id)
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._port = None


session_cache = PlanSessionCache()

__all__ = ["PlanSessionCache", "session_cache"]
