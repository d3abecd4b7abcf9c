from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from taskflow.config import MEMORY_DATABASE_URL, Settings
from taskflow.dependencies import get_store
from taskflow.main import RETRY_MESSAGE, create_app


def _create(api: TestClient, **body) -> dict:
    response = api.post("/api/tasks", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(api: TestClient) -> None:
    assert api.get("/health").json() == {"status": "ok"}


def test_create_and_list_tasks_in_creation_order(api: TestClient) -> None:
    a = _create(api, title="A")
    b = _create(api, title="B", priority="high", description="second")

    assert a["priority"] == "medium"
    assert a["completed"] is False
    assert a["categoryId"] is None
    assert a["category"] is None
    assert "createdAt" in a and "updatedAt" in a
    assert b["position"] == a["position"] + 1

    listed = api.get("/api/tasks").json()
    assert [t["id"] for t in listed] == [a["id"], b["id"]]


def test_create_validation(api: TestClient) -> None:
    assert api.post("/api/tasks", json={}).status_code == 422
    assert api.post("/api/tasks", json={"title": "   "}).status_code == 422
    assert api.post("/api/tasks", json={"title": "x", "priority": "urgent"}).status_code == 422
    assert api.post("/api/tasks", json={"title": "x", "dueDate": "not a date"}).status_code == 422
    assert api.post("/api/tasks", json={"title": "x", "categoryId": "ghost"}).status_code == 422
    assert api.get("/api/tasks").json() == []


def test_get_patch_toggle_delete(api: TestClient) -> None:
    task = _create(api, title="Draft", dueDate="2026-10-20T09:00:00")

    assert api.get(f"/api/tasks/{task['id']}").json()["title"] == "Draft"

    patched = api.patch(f"/api/tasks/{task['id']}", json={"title": "Final", "dueDate": None})
    assert patched.status_code == 200
    assert patched.json()["title"] == "Final"
    assert patched.json()["dueDate"] is None
    assert patched.json()["createdAt"] == task["createdAt"]

    assert api.patch(f"/api/tasks/{task['id']}", json={"title": None}).status_code == 422

    toggled = api.post(f"/api/tasks/{task['id']}/toggle")
    assert toggled.status_code == 200
    assert toggled.json()["completed"] is True

    deleted = api.delete(f"/api/tasks/{task['id']}")
    assert deleted.json() == {"ok": True}
    assert api.get(f"/api/tasks/{task['id']}").status_code == 404


def test_missing_task_is_404(api: TestClient) -> None:
    assert api.get("/api/tasks/nope").status_code == 404
    assert api.patch("/api/tasks/nope", json={"title": "x"}).status_code == 404
    assert api.post("/api/tasks/nope/toggle").status_code == 404
    assert api.delete("/api/tasks/nope").status_code == 404


def test_reorder(api: TestClient) -> None:
    a = _create(api, title="A")
    b = _create(api, title="B")

    response = api.post("/api/tasks/reorder", json={"taskIds": [b["id"], a["id"]]})

    assert response.status_code == 204
    assert [t["id"] for t in api.get("/api/tasks").json()] == [b["id"], a["id"]]


def test_list_tasks_with_view_parameters(api: TestClient) -> None:
    today = datetime.now().replace(hour=23, minute=59, second=0, microsecond=0)
    _create(api, title="zeta foo", priority="high")
    _create(api, title="Alpha", description="has foo inside")
    _create(api, title="due today", dueDate=today.isoformat())
    _create(api, title="nothing")

    searched = api.get("/api/tasks", params={"search": "FOO", "sortBy": "title"}).json()
    assert [t["title"] for t in searched] == ["Alpha", "zeta foo"]

    high = api.get("/api/tasks", params={"taskFilter": "high-priority"}).json()
    assert [t["title"] for t in high] == ["zeta foo"]

    due = api.get("/api/tasks", params={"filter": "today"}).json()
    assert [t["title"] for t in due] == ["due today"]

    assert api.get("/api/tasks", params={"sortBy": "random"}).status_code == 422


def test_stats(api: TestClient) -> None:
    a = _create(api, title="A")
    _create(api, title="B", dueDate=(datetime.now() + timedelta(days=3)).isoformat())
    api.post(f"/api/tasks/{a['id']}/toggle")

    stats = api.get("/api/tasks/stats").json()

    assert stats["total"] == 2
    assert stats["completed"] == 1
    assert stats["progress"] == 50
    assert stats["filters"]["upcoming"] == 1
    assert stats["filters"]["completed"] == 1


def test_categories_crud_and_detach(api: TestClient) -> None:
    created = api.post("/api/categories", json={"name": "Errands", "color": "#f59e0b"})
    assert created.status_code == 201
    cat = created.json()
    assert api.post("/api/categories", json={"name": "Bad", "color": "blue"}).status_code == 422

    task = _create(api, title="Buy milk", categoryId=cat["id"])
    assert task["category"]["name"] == "Errands"

    renamed = api.patch(f"/api/categories/{cat['id']}", json={"name": "Chores"})
    assert renamed.json()["name"] == "Chores"
    assert api.get(f"/api/tasks/{task['id']}").json()["category"]["name"] == "Chores"

    assert api.delete(f"/api/categories/{cat['id']}").json() == {"ok": True}
    assert api.get(f"/api/tasks/{task['id']}").json()["categoryId"] is None
    assert api.get("/api/categories").json() == []
    assert api.delete(f"/api/categories/{cat['id']}").status_code == 404
    assert api.get(f"/api/categories/{cat['id']}").status_code == 404


def test_default_categories_are_seeded() -> None:
    app = create_app(Settings(database_url=MEMORY_DATABASE_URL, seed_categories=True))
    with TestClient(app) as api:
        names = [c["name"] for c in api.get("/api/categories").json()]
    assert names == ["Personal", "Shopping", "Work"]


def test_due_dates_with_offsets_are_stored_as_local_time(api: TestClient) -> None:
    utc = _create(api, title="utc", dueDate="2026-10-20T09:00:00Z")
    shifted = _create(api, title="shifted", dueDate="2026-10-20T09:00:00+02:00")

    expected_utc = datetime(2026, 10, 20, 9, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    expected_shifted = datetime(2026, 10, 20, 7, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert utc["dueDate"] == expected_utc.isoformat()
    assert shifted["dueDate"] == expected_shifted.isoformat()

    patched = api.patch(f"/api/tasks/{utc['id']}", json={"dueDate": "2026-10-21T09:00:00Z"}).json()
    assert patched["dueDate"] == (expected_utc + timedelta(days=1)).isoformat()


def test_utc_timestamp_for_local_noon_counts_as_today(api: TestClient) -> None:
    noon = datetime.now().replace(hour=12, minute=0, second=0, microsecond=0)
    stamp = noon.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
    _create(api, title="lunch", dueDate=stamp)

    due = api.get("/api/tasks", params={"filter": "today"}).json()

    assert [t["title"] for t in due] == ["lunch"]
    assert due[0]["dueDate"] == noon.isoformat()


class _BrokenStore:
    async def list_tasks(self):
        raise RuntimeError("disk on fire")


def test_unexpected_error_returns_generic_500(app) -> None:
    app.dependency_overrides[get_store] = lambda: _BrokenStore()
    with TestClient(app, raise_server_exceptions=False) as api:
        response = api.get("/api/tasks")

    assert response.status_code == 500
    assert response.json() == {"detail": RETRY_MESSAGE}
