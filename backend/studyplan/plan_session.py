"""Host-facing facade binding one schedule and one performance store to a plan id."""

from __future__ import annotations

import logging
from datetime import date
from threading import RLock
from typing import Any, Callable, Iterable, Optional

from .config import get_settings
from .models import (
    PerformanceBreakdown,
    PerformanceStore,
    Preferences,
    ProgressSummary,
    ReviewSession,
    Schedule,
    TaskRecord,
    TaskStatus,
    now_millis,
)
from .notifications import ChangeListener, ChangeNotifier, ProgressChanged
from .performance_tracker import (
    TaskContext,
    get_status,
    initialize_week_tracking,
    record_status,
    task_context_index,
)
from .persistence import InMemoryPerformanceStore, PerformanceStoreError, PerformanceStorePort
from .progress import compute_progress, performance_breakdown
from .replanning import (
    ReplanningResult,
    ReplanningScheduler,
    advance_to_next_week,
    complete_review,
    needs_replanning,
    review_items_for_week,
    scheduler as default_scheduler,
)
from .repositories.task_performance import normalize_plan_id

logger = logging.getLogger(__name__)


class PlanSession:
    """Owns the schedule, performance store and change channel of one plan.

    Every mutating call replaces the session's schedule or store with a new
    value and publishes a ``ProgressChanged`` notification afterwards.

    The replanning flag is sticky by default: once a flagged record has been
    seen it stays raised until ``apply_replanning`` runs, even if the learner
    later completes the flagged tasks. With ``sticky_replanning=False`` the
    flag is recomputed from the store after each mutation.
    """

    def __init__(
        self,
        plan_id: str,
        schedule: Any = None,
        *,
        store: Optional[PerformanceStore] = None,
        preferences: Optional[Preferences] = None,
        port: Optional[PerformanceStorePort] = None,
        sticky_replanning: Optional[bool] = None,
        scheduler: Optional[ReplanningScheduler] = None,
    ) -> None:
        if preferences is None or sticky_replanning is None:
            settings = get_settings()
            if preferences is None:
                preferences = Preferences(days_per_week=settings.default_days_per_week)
            if sticky_replanning is None:
                sticky_replanning = settings.sticky_replanning
        self.plan_id = normalize_plan_id(plan_id)
        self._schedule = Schedule.from_payload(schedule)
        self._store = store if store is not None else PerformanceStore()
        self._preferences = preferences
        self._port: PerformanceStorePort = port if port is not None else InMemoryPerformanceStore()
        self._sticky = sticky_replanning
        self._scheduler = scheduler or default_scheduler
        self._notifier = ChangeNotifier()
        self._lock = RLock()
        self._flag = needs_replanning(self._store)

    @property
    def schedule(self) -> Schedule:
        return self._schedule

    @property
    def store(self) -> PerformanceStore:
        return self._store

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    @property
    def sticky_replanning(self) -> bool:
        return self._sticky

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def replace_schedule(self, schedule: Any, preferences: Optional[Preferences] = None) -> Schedule:
        with self._lock:
            self._schedule = Schedule.from_payload(schedule)
            if preferences is not None:
                self._preferences = preferences
        self._publish("schedule_replaced")
        return self._schedule

    def initialize_week_tracking(self, week_number: int) -> PerformanceStore:
        with self._lock:
            updated = initialize_week_tracking(self._schedule, week_number, self._store)
            if updated is self._store:
                return updated
            self._set_store(updated)
        self._publish("week_initialized")
        return updated

    def record_status(
        self,
        task_id: str,
        status: TaskStatus,
        context: Optional[TaskContext] = None,
    ) -> TaskRecord:
        with self._lock:
            if context is None and self._store.get(task_id) is None:
                context = task_context_index(self._schedule).get(task_id)
            updated = record_status(self._store, task_id, context, status)
            self._set_store(updated)
        self._publish("status_recorded")
        return updated.tasks[task_id]

    def get_status(self, week_number: int, day_of_week: str, subject: str, activity: str) -> TaskStatus:
        return get_status(self._store, week_number, day_of_week, subject, activity)

    def needs_replanning(self) -> bool:
        return self._flag

    def apply_replanning(self, *, now: Optional[int] = None) -> ReplanningResult:
        with self._lock:
            result = self._scheduler.apply(self._schedule, self._store, self._preferences, now=now)
            self._schedule = result.schedule
            self._store = result.store
            self._flag = needs_replanning(self._store)
        if result.redistributed:
            logger.info("Plan %s: redistributed %d flagged tasks.", self.plan_id, result.redistributed)
        self._publish("replanning_applied")
        return result

    def compute_progress(self, today: Optional[date] = None) -> ProgressSummary:
        return compute_progress(self._schedule, self._store, self._preferences, today=today)

    def performance_breakdown(self) -> PerformanceBreakdown:
        return performance_breakdown(self._store)

    def review_items(self, current_week: int) -> ReviewSession:
        return review_items_for_week(self._store, current_week)

    def complete_review(self, task_ids: Iterable[str]) -> PerformanceStore:
        with self._lock:
            updated = complete_review(self._store, task_ids)
            if updated is self._store:
                return updated
            self._set_store(updated)
        self._publish("review_completed")
        return updated

    def advance_to_next_week(self, current_week: int) -> Schedule:
        with self._lock:
            updated = advance_to_next_week(self._schedule, current_week, self._preferences)
            if updated is self._schedule:
                return updated
            self._schedule = updated
        self._publish("week_advanced")
        return updated

    async def load_store(self, plan_id: Optional[str] = None) -> PerformanceStore:
        key = normalize_plan_id(plan_id) if plan_id else self.plan_id
        try:
            loaded = await self._port.load(key)
        except PerformanceStoreError as exc:
            logger.warning("Failed to load performance store for plan %s: %s", key, exc)
            raise
        with self._lock:
            self._store = loaded
            self._flag = needs_replanning(loaded)
        logger.debug("Loaded %d task records for plan %s.", len(loaded.tasks), key)
        self._publish("store_loaded")
        return loaded

    async def sync_store(self, plan_id: Optional[str] = None) -> PerformanceStore:
        key = normalize_plan_id(plan_id) if plan_id else self.plan_id
        snapshot = self._store
        try:
            await self._port.save(key, snapshot)
        except PerformanceStoreError as exc:
            logger.warning("Failed to sync performance store for plan %s: %s", key, exc)
            raise
        self._publish("store_synced")
        return snapshot

    def _set_store(self, store: PerformanceStore) -> None:
        self._store = store
        flagged = needs_replanning(store)
        self._flag = (self._flag or flagged) if self._sticky else flagged

    def _publish(self, reason: str) -> None:
        self._notifier.publish(
            ProgressChanged(
                plan_id=self.plan_id,
                reason=reason,
                timestamp=now_millis(),
                needs_replanning=self._flag,
            )
        )


__all__ = ["PlanSession"]
