"""Persistence ports for plan performance stores."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .db.session import session_scope
from .models import PerformanceStore
from .repositories.task_performance import normalize_plan_id, task_performance

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"


class PerformanceStoreError(RuntimeError):
    """Raised when a performance store cannot be loaded or saved."""


class PerformanceStorePort(Protocol):
    """Load and save the performance store of one plan id."""

    async def load(self, plan_id: str) -> PerformanceStore:  # pragma: no cover - protocol definition
        ...

    async def save(self, plan_id: str, store: PerformanceStore) -> None:  # pragma: no cover - protocol definition
        ...


def _parse_document(plan_id: str, document: Any) -> PerformanceStore:
    try:
        return PerformanceStore.model_validate(document)
    except ValidationError as exc:
        raise PerformanceStoreError(f"Stored performance data for plan '{plan_id}' is invalid: {exc}") from exc


class InMemoryPerformanceStore:
    """Process-local port; stores detached JSON documents per plan."""

    def __init__(self) -> None:
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    async def load(self, plan_id: str) -> PerformanceStore:
        key = normalize_plan_id(plan_id)
        with self._lock:
            document = self._documents.get(key)
        if document is None:
            return PerformanceStore()
        return _parse_document(key, document)

    async def save(self, plan_id: str, store: PerformanceStore) -> None:
        key = normalize_plan_id(plan_id)
        with self._lock:
            self._documents[key] = store.to_document()


class JsonFilePerformanceStore:
    """JSON file holding one performance document per plan id."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or DATA_DIR / "task_performance.json"
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise PerformanceStoreError(f"Failed to read {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise PerformanceStoreError(f"{self._path} does not contain a plan mapping.")
        return raw

    def _write_unlocked(self, documents: Dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as handle:
                json.dump(documents, handle, indent=2)
        except OSError as exc:
            raise PerformanceStoreError(f"Failed to write {self._path}: {exc}") from exc

    def documents(self) -> Dict[str, Any]:
        with self._lock:
            return self._load_unlocked()

    async def load(self, plan_id: str) -> PerformanceStore:
        key = normalize_plan_id(plan_id)
        with self._lock:
            document = self._load_unlocked().get(key)
        if document is None:
            return PerformanceStore()
        return _parse_document(key, document)

    async def save(self, plan_id: str, store: PerformanceStore) -> None:
        key = normalize_plan_id(plan_id)
        with self._lock:
            documents = self._load_unlocked()
            documents[key] = store.to_document()
            self._write_unlocked(documents)


class DatabasePerformanceStore:
    """SQLAlchemy-backed port using the task performance repository."""

    async def load(self, plan_id: str) -> PerformanceStore:
        try:
            with session_scope(commit=False) as session:
                store = task_performance.get(session, plan_id)
        except (SQLAlchemyError, RuntimeError) as exc:
            raise PerformanceStoreError(f"Database load failed for plan '{plan_id}': {exc}") from exc
        return store if store is not None else PerformanceStore()

    async def save(self, plan_id: str, store: PerformanceStore) -> None:
        try:
            with session_scope() as session:
                task_performance.replace(session, plan_id, store)
        except (SQLAlchemyError, RuntimeError) as exc:
            raise PerformanceStoreError(f"Database save failed for plan '{plan_id}': {exc}") from exc


class RemotePerformanceStore:
    """Port backed by the remote study planner REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 12.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client
        self._acknowledged: Dict[str, Dict[str, str]] = {}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        close_client = self._client is None
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise PerformanceStoreError(f"Remote performance store call failed: {exc}") from exc
        finally:
            if close_client:
                await client.aclose()

    async def load(self, plan_id: str) -> PerformanceStore:
        key = normalize_plan_id(plan_id)
        response = await self._request("GET", f"{self._base_url}/getTaskPerformance/{key}")
        if response.status_code == httpx.codes.NOT_FOUND:
            logger.info("Remote store has no performance data for plan %s", key)
            self._acknowledged[key] = {}
            return PerformanceStore()
        try:
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPStatusError, ValueError) as exc:
            raise PerformanceStoreError(f"Remote performance load failed for plan '{key}': {exc}") from exc

        if not isinstance(data, dict) or not data.get("success", False):
            message = data.get("message") if isinstance(data, dict) else None
            raise PerformanceStoreError(message or f"Remote store rejected performance load for plan '{key}'.")
        document: Dict[str, Any] = {"tasks": data.get("taskPerformance") or {}}
        if data.get("lastUpdated") is not None:
            document["lastUpdated"] = data["lastUpdated"]
        store = _parse_document(key, document)
        self._acknowledged[key] = {task_id: record.status for task_id, record in store.tasks.items()}
        return store

    async def save(self, plan_id: str, store: PerformanceStore) -> None:
        """Push every status that differs from what the remote store last acknowledged."""
        key = normalize_plan_id(plan_id)
        acknowledged = self._acknowledged.setdefault(key, {})
        pending = [
            record for task_id, record in store.tasks.items() if acknowledged.get(task_id) != record.status
        ]
        for record in pending:
            response = await self._request(
                "PUT",
                f"{self._base_url}/updateTaskStatus/{key}",
                json={"taskId": record.task_id, "status": record.status},
            )
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise PerformanceStoreError(
                    f"Remote status update failed for task '{record.task_id}' of plan '{key}': {exc}"
                ) from exc
            acknowledged[record.task_id] = record.status
        logger.debug("Pushed %d of %d task statuses for plan %s", len(pending), len(store.tasks), key)


def build_performance_port(settings: Settings) -> PerformanceStorePort:
    mode = settings.persistence_mode
    if mode == "file":
        path = Path(settings.data_dir) / "task_performance.json" if settings.data_dir else None
        return JsonFilePerformanceStore(path)
    if mode == "database":
        return DatabasePerformanceStore()
    if mode == "remote":
        return RemotePerformanceStore(
            settings.remote_url,
            timeout_seconds=max(settings.remote_timeout_ms, 1000) / 1000,
        )
    return InMemoryPerformanceStore()


__all__ = [
    "DatabasePerformanceStore",
    "InMemoryPerformanceStore",
    "JsonFilePerformanceStore",
    "PerformanceStoreError",
    "PerformanceStorePort",
    "RemotePerformanceStore",
    "build_performance_port",
]
