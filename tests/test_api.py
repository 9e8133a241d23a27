"""
Integration tests for the HTTP endpoints:
- /api/tasks (list, detail, create, edit, delete, transitions)
- /api/subtasks/{id}/toggle
- /api/categories
"""
from datetime import timedelta

import pytest

from app.utils import utc_today

TOMORROW = (utc_today() + timedelta(days=1)).isoformat()
YESTERDAY = (utc_today() - timedelta(days=1)).isoformat()


async def create_task(client, **overrides):
    payload = {
        "title": "Plan sprint",
        "priority": "high",
        "due_date": TOMORROW,
        "subtasks": [{"title": "Collect tickets"}, {"title": ""}, {"title": "Estimate"}],
    }
    payload.update(overrides)
    response = await client.post("/api/tasks/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def edit_payload(task, subtasks, **overrides):
    payload = {
        "title": task["title"],
        "description": task["description"],
        "status": task["status"],
        "priority": task["priority"],
        "due_date": task["due_date"],
        "category_id": task["category_id"],
        "subtasks": subtasks,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_and_get_task(client):
    task = await create_task(client)

    response = await client.get(f"/api/tasks/{task['id']}")
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Plan sprint"
    assert data["status"] == "open"
    assert data["due_date"] == TOMORROW
    assert [(s["title"], s["sort_order"]) for s in data["subtasks"]] == [
        ("Collect tickets", 0),
        ("Estimate", 1),
    ]


@pytest.mark.asyncio
async def test_create_with_past_due_date_reports_field(client):
    response = await client.post("/api/tasks/", json={"title": "Late", "due_date": YESTERDAY})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail[0]["loc"] == ["body", "due_date"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {},
    {"title": "   "},
    {"title": "x" * 121},
    {"title": "Ok", "status": "archived"},
    {"title": "Ok", "description": "x" * 4001},
    {"title": "Ok", "subtasks": [{"title": "y" * 121}]},
])
async def test_create_rejects_invalid_fields(client, payload):
    response = await client.post("/api/tasks/", json=payload)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_missing_task(client):
    response = await client.get("/api/tasks/999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_edit_reconciles_subtasks(client):
    task = await create_task(client)
    collect, estimate = task["subtasks"]

    response = await client.put(f"/api/tasks/{task['id']}", json=edit_payload(task, [
        {"title": "Kickoff"},
        {"id": estimate["id"], "title": "Estimate", "is_completed": True},
    ]))

    assert response.status_code == 200
    subtasks = response.json()["subtasks"]
    assert [s["title"] for s in subtasks] == ["Kickoff", "Estimate"]
    assert [s["sort_order"] for s in subtasks] == [0, 1]
    assert subtasks[1]["id"] == estimate["id"]
    assert subtasks[1]["is_completed"] is True
    assert collect["id"] not in {s["id"] for s in subtasks}


@pytest.mark.asyncio
async def test_edit_done_task_is_rejected(client):
    task = await create_task(client)
    await client.post(f"/api/tasks/{task['id']}/complete")

    response = await client.put(f"/api/tasks/{task['id']}", json=edit_payload(task, [], title="Again"))

    assert response.status_code == 400
    assert "done" in response.json()["detail"]


@pytest.mark.asyncio
async def test_edit_with_foreign_subtask_id(client):
    task = await create_task(client)
    other = await create_task(client, title="Other")

    response = await client.put(f"/api/tasks/{task['id']}", json=edit_payload(
        task, [{"id": other["subtasks"][0]["id"], "title": "Mine now"}],
    ))

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "subtasks"]


@pytest.mark.asyncio
async def test_edit_missing_task(client):
    response = await client.put("/api/tasks/999", json={"title": "Ghost"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_status_actions(client):
    task = await create_task(client)
    task_id = task["id"]

    response = await client.post(f"/api/tasks/{task_id}/start")
    assert response.json()["status"] == "in_progress"

    response = await client.post(f"/api/tasks/{task_id}/reopen")
    assert response.json()["status"] == "open"

    response = await client.post(f"/api/tasks/{task_id}/complete")
    assert response.json()["status"] == "done"

    response = await client.post(f"/api/tasks/{task_id}/reopen")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_toggle_subtask(client):
    task = await create_task(client)
    sub_id = task["subtasks"][0]["id"]

    response = await client.post(f"/api/subtasks/{sub_id}/toggle")
    assert response.status_code == 200
    assert response.json()["is_completed"] is True


@pytest.mark.asyncio
async def test_toggle_subtask_of_done_task(client):
    task = await create_task(client)
    await client.post(f"/api/tasks/{task['id']}/complete")

    response = await client.post(f"/api/subtasks/{task['subtasks'][0]['id']}/toggle")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_hides_task_and_subtasks(client):
    task = await create_task(client)
    kept = await create_task(client, title="Keep me")

    response = await client.delete(f"/api/tasks/{task['id']}")
    assert response.status_code == 200

    assert (await client.get(f"/api/tasks/{task['id']}")).status_code == 404
    listed = (await client.get("/api/tasks/")).json()
    assert [t["id"] for t in listed] == [kept["id"]]

    response = await client.post(f"/api/subtasks/{task['subtasks'][0]['id']}/toggle")
    assert response.status_code == 404

    response = await client.delete(f"/api/tasks/{task['id']}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_filters_and_sort(client):
    response = await client.post("/api/categories/", json={"name": "Work"})
    work_id = response.json()["id"]
    someday = await create_task(client, title="Someday", due_date=None, category_id=work_id)
    soon = await create_task(client, title="Soon", priority="low", category_id=work_id)
    await create_task(client, title="Elsewhere")

    response = await client.get("/api/tasks/", params={"category_id": work_id, "sort": "due"})
    assert [t["id"] for t in response.json()] == [soon["id"], someday["id"]]

    response = await client.get("/api/tasks/", params={"priority": "low"})
    assert [t["title"] for t in response.json()] == ["Soon"]


@pytest.mark.asyncio
async def test_list_rejects_unknown_sort(client):
    response = await client.get("/api/tasks/", params={"sort": "title"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_categories(client):
    assert (await client.post("/api/categories/", json={"name": "Work"})).status_code == 201
    assert (await client.post("/api/categories/", json={"name": "Work"})).status_code == 409
    await client.post("/api/categories/", json={"name": "Errands"})

    response = await client.get("/api/categories/")
    assert [c["name"] for c in response.json()] == ["Errands", "Work"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
@pytest.mark.parametrize("method, path", [
    ("post", "/api/tasks/999/start"),
    ("post", "/api/tasks/999/complete"),
    ("post", "/api/tasks/999/reopen"),
    ("delete", "/api/tasks/999"),
    ("post", "/api/subtasks/999/toggle"),
])
async def test_actions_on_missing_entities(client, method, path):
    response = await getattr(client, method)(path)

    assert response.status_code == 404
    assert response.json()["detail"] in ("Task not found", "Subtask not found")


@pytest.mark.asyncio
async def test_padded_titles_are_trimmed_before_length_check(client):
    task = await create_task(client, title="  Padded  ", subtasks=[{"title": " " + "x" * 120 + " "}])

    assert task["title"] == "Padded"
    assert task["subtasks"][0]["title"] == "x" * 120
