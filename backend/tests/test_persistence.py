"""Performance store adapter tests for memory, file, database and remote ports."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Iterator, List

import httpx
import pytest
from sqlalchemy import text

from studyplan.config import Settings, get_settings
from studyplan.db.session import dispose_engine, get_engine
from studyplan.models import PerformanceStore, TaskRecord
from studyplan.persistence import (
    DatabasePerformanceStore,
    InMemoryPerformanceStore,
    JsonFilePerformanceStore,
    PerformanceStoreError,
    RemotePerformanceStore,
    build_performance_port,
)

BASE_URL = "https://planner.test/api/ai-planner"


def _store(*statuses: str) -> PerformanceStore:
    tasks = {}
    for index, status in enumerate(statuses):
        task_id = f"1-monday-anatomy-topic-{index}"
        tasks[task_id] = TaskRecord(
            task_id=task_id,
            subject="Anatomy",
            activity=f"Topic {index}",
            week_number=1,
            day_of_week="Monday",
            status=status,  # type: ignore[arg-type]
            timestamp=100 + index,
        )
    return PerformanceStore(tasks=tasks, last_updated=500)


@pytest.fixture
def sqlite_database(tmp_path: Path, monkeypatch) -> Iterator[None]:
    monkeypatch.setenv("STUDYPLAN_DATABASE_URL", f"sqlite:///{tmp_path / 'performance.db'}")
    get_settings.cache_clear()
    dispose_engine()
    yield
    dispose_engine()
    get_settings.cache_clear()


def test_in_memory_store_round_trip_and_isolation() -> None:
    port = InMemoryPerformanceStore()
    store = _store("completed", "skipped")

    asyncio.run(port.save("plan-a", store))
    loaded = asyncio.run(port.load(" plan-a "))
    missing = asyncio.run(port.load("plan-b"))

    assert loaded == store
    assert loaded is not store
    assert missing.is_empty


def test_json_file_store_keeps_plans_side_by_side(tmp_path: Path) -> None:
    path = tmp_path / "stores" / "task_performance.json"
    port = JsonFilePerformanceStore(path)

    asyncio.run(port.save("plan-a", _store("completed")))
    asyncio.run(port.save("plan-b", _store("skipped", "incomplete")))

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert sorted(raw) == ["plan-a", "plan-b"]
    assert raw["plan-b"]["lastUpdated"] == 500
    assert raw["plan-b"]["tasks"]["1-monday-anatomy-topic-0"]["dayOfWeek"] == "Monday"
    loaded = asyncio.run(port.load("plan-b"))
    assert [record.status for record in loaded.tasks.values()] == ["skipped", "incomplete"]


def test_json_file_store_reports_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "task_performance.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PerformanceStoreError):
        asyncio.run(JsonFilePerformanceStore(path).load("plan-a"))


def test_json_file_store_reports_invalid_document(tmp_path: Path) -> None:
    path = tmp_path / "task_performance.json"
    path.write_text(json.dumps({"plan-a": {"tasks": {"x": {"status": "finished"}}}}), encoding="utf-8")

    with pytest.raises(PerformanceStoreError):
        asyncio.run(JsonFilePerformanceStore(path).load("plan-a"))


def test_database_store_replaces_records(sqlite_database: None) -> None:
    port = DatabasePerformanceStore()

    asyncio.run(port.save("plan-a", _store("completed", "skipped", "incomplete")))
    asyncio.run(port.save("plan-a", _store("not-understood")))
    loaded = asyncio.run(port.load("plan-a"))

    assert list(loaded.tasks) == ["1-monday-anatomy-topic-0"]
    assert loaded.tasks["1-monday-anatomy-topic-0"].status == "not-understood"
    assert loaded.last_updated == 500
    assert asyncio.run(port.load("unknown")).is_empty


def test_sqlite_connections_cascade_plan_deletes(sqlite_database: None) -> None:
    asyncio.run(DatabasePerformanceStore().save("plan-a", _store("completed", "skipped")))

    with get_engine().begin() as connection:
        assert connection.execute(text("PRAGMA foreign_keys")).scalar() == 1
        connection.execute(text("DELETE FROM plan_performance"))
        remaining = connection.execute(text("SELECT COUNT(*) FROM task_performance")).scalar()

    assert remaining == 0
    assert asyncio.run(DatabasePerformanceStore().load("plan-a")).is_empty


def test_database_store_without_url_reports_store_error(monkeypatch) -> None:
    monkeypatch.setenv("STUDYPLAN_DATABASE_URL", "")
    get_settings.cache_clear()
    dispose_engine()
    try:
        with pytest.raises(PerformanceStoreError, match="STUDYPLAN_DATABASE_URL"):
            asyncio.run(DatabasePerformanceStore().load("plan-a"))
    finally:
        dispose_engine()
        get_settings.cache_clear()


def _remote(handler) -> RemotePerformanceStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemotePerformanceStore(BASE_URL, client=client)


def test_remote_store_loads_task_performance() -> None:
    document = _store("skipped").to_document()

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/ai-planner/getTaskPerformance/plan-a"
        return httpx.Response(
            200,
            json={"success": True, "taskPerformance": document["tasks"], "lastUpdated": 777},
        )

    loaded = asyncio.run(_remote(handler).load("plan-a"))

    assert loaded.tasks["1-monday-anatomy-topic-0"].status == "skipped"
    assert loaded.last_updated == 777


def test_remote_store_treats_missing_plan_as_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"success": False, "message": "Plan not found"})

    assert asyncio.run(_remote(handler).load("plan-a")).is_empty


def test_remote_store_rejects_unsuccessful_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Quota exceeded"})

    with pytest.raises(PerformanceStoreError, match="Quota exceeded"):
        asyncio.run(_remote(handler).load("plan-a"))


class _PlannerBackend:
    """Serves only the planner routes: task performance lookup and per-task status updates."""

    def __init__(self, document: dict) -> None:
        self.document = document
        self.updates: List[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/api/ai-planner/getTaskPerformance/plan-a":
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "taskPerformance": self.document["tasks"],
                    "lastUpdated": self.document["lastUpdated"],
                },
            )
        if request.method == "PUT" and path == "/api/ai-planner/updateTaskStatus/plan-a":
            body = json.loads(request.content)
            self.updates.append(body)
            self.document["tasks"][body["taskId"]]["status"] = body["status"]
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"success": False, "message": "Not found"})


def test_remote_store_pushes_each_status_to_update_route() -> None:
    store = _store("completed", "skipped")
    backend = _PlannerBackend(store.to_document())

    asyncio.run(_remote(backend).save("plan-a", store))

    assert backend.updates == [
        {"taskId": "1-monday-anatomy-topic-0", "status": "completed"},
        {"taskId": "1-monday-anatomy-topic-1", "status": "skipped"},
    ]


def test_remote_store_pushes_only_changed_statuses_after_load() -> None:
    backend = _PlannerBackend(_store("incomplete", "incomplete", "incomplete").to_document())
    port = _remote(backend)

    loaded = asyncio.run(port.load("plan-a"))
    tasks = dict(loaded.tasks)
    tasks["1-monday-anatomy-topic-2"] = tasks["1-monday-anatomy-topic-2"].model_copy(update={"status": "skipped"})
    asyncio.run(port.save("plan-a", loaded.model_copy(update={"tasks": tasks})))
    asyncio.run(port.save("plan-a", loaded.model_copy(update={"tasks": tasks})))

    assert backend.updates == [{"taskId": "1-monday-anatomy-topic-2", "status": "skipped"}]
    reloaded = asyncio.run(port.load("plan-a"))
    assert reloaded.tasks["1-monday-anatomy-topic-2"].status == "skipped"


def test_remote_store_wraps_transport_and_status_errors() -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"success": False})

    with pytest.raises(PerformanceStoreError):
        asyncio.run(_remote(unreachable).load("plan-a"))
    with pytest.raises(PerformanceStoreError):
        asyncio.run(_remote(server_error).save("plan-a", _store("completed")))


def test_build_performance_port_follows_mode(tmp_path: Path) -> None:
    def settings(mode: str) -> Settings:
        return Settings(STUDYPLAN_PERSISTENCE_MODE=mode, STUDYPLAN_DATA_DIR=str(tmp_path))  # type: ignore[call-arg]

    file_port = build_performance_port(settings("file"))
    assert isinstance(file_port, JsonFilePerformanceStore)
    assert file_port.path == tmp_path / "task_performance.json"
    assert isinstance(build_performance_port(settings("memory")), InMemoryPerformanceStore)
    assert isinstance(build_performance_port(settings("database")), DatabasePerformanceStore)
    assert isinstance(build_performance_port(settings("remote")), RemotePerformanceStore)
