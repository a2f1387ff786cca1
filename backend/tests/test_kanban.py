# tests/test_kanban.py — Kanban router tests
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers


async def _create_project(client: AsyncClient, headers: dict, **extra) -> dict:
    resp = await client.post(
        "/api/v1/kanban/projects",
        json={"name": "Lions FC App", **extra},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["project"]


def _column(project: dict, name: str) -> dict:
    return next(c for c in project["columns"] if c["name"] == name)


async def _create_task(client: AsyncClient, headers: dict, project: dict, column: str = "Backlog", **extra) -> dict:
    resp = await client.post(
        "/api/v1/kanban/tasks",
        json={
            "title": extra.pop("title", "Design splash screen"),
            "project_id": project["id"],
            "column_id": _column(project, column)["id"],
            **extra,
        },
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["task"]


@pytest.mark.asyncio
class TestProjects:
    async def test_create_project_default_columns(self, client: AsyncClient, admin_user):
        """New projects get Backlog, In Progress, Review and Done"""
        project = await _create_project(client, get_auth_headers(admin_user))
        assert project["status"] == "active"
        assert [(c["name"], c["position"], c["color"]) for c in project["columns"]] == [
            ("Backlog", 0, "#64748b"),
            ("In Progress", 1, "#3b82f6"),
            ("Review", 2, "#f59e0b"),
            ("Done", 3, "#10b981"),
        ]

    async def test_create_project_requires_name(self, client: AsyncClient, admin_user):
        resp = await client.post("/api/v1/kanban/projects", json={"name": "  "}, headers=get_auth_headers(admin_user))
        assert resp.status_code == 400
        assert resp.json()["code"] == "FG-VAL-001"

    async def test_regular_user_forbidden(self, client: AsyncClient, test_user):
        resp = await client.post("/api/v1/kanban/projects", json={"name": "Nope"}, headers=get_auth_headers(test_user))
        assert resp.status_code == 401
        assert resp.json()["error"] == "Admin access required"

    async def test_requires_auth(self, client: AsyncClient):
        resp = await client.get("/api/v1/kanban/projects")
        assert resp.status_code == 401

    async def test_list_projects_with_stats(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        await _create_task(client, headers, project)
        shipped = await _create_task(client, headers, project, title="Ship it")
        await client.patch(
            f"/api/v1/kanban/tasks/{shipped['id']}",
            json={"column_id": _column(project, "Done")["id"]},
            headers=headers,
        )

        resp = await client.get("/api/v1/kanban/projects", headers=headers)
        assert resp.status_code == 200
        projects = resp.json()["projects"]
        assert len(projects) == 1
        stats = projects[0]["stats"]
        assert stats["total"] == 2
        assert stats["completed"] == 1
        assert stats["todo"] == 1

    async def test_list_projects_filters_by_status(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        await client.patch(f"/api/v1/kanban/projects/{project['id']}", json={"status": "archived"}, headers=headers)
        await _create_project(client, headers, description="still running")

        resp = await client.get("/api/v1/kanban/projects?status=archived", headers=headers)
        ids = [p["id"] for p in resp.json()["projects"]]
        assert ids == [project["id"]]

    async def test_get_project(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        resp = await client.get(f"/api/v1/kanban/projects/{project['id']}", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["project"]["name"] == "Lions FC App"
        assert len(data["project"]["columns"]) == 4
        assert data["stats"]["total"] == 0

    async def test_get_project_not_found(self, client: AsyncClient, admin_user):
        resp = await client.get("/api/v1/kanban/projects/missing", headers=get_auth_headers(admin_user))
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "Project not found"
        assert body["code"] == "FG-DB-001"
        assert "request_id" in body

    async def test_terminal_status_is_final(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        resp = await client.patch(
            f"/api/v1/kanban/projects/{project['id']}", json={"status": "completed"}, headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["project"]["status"] == "completed"

        resp = await client.patch(
            f"/api/v1/kanban/projects/{project['id']}", json={"status": "active"}, headers=headers,
        )
        assert resp.status_code == 400

    async def test_delete_project_cascades(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        task = await _create_task(client, headers, project)

        resp = await client.delete(f"/api/v1/kanban/projects/{project['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        resp = await client.patch(f"/api/v1/kanban/tasks/{task['id']}", json={"title": "x"}, headers=headers)
        assert resp.status_code == 404

    async def test_create_project_with_repository(self, client: AsyncClient, admin_user, github_pat, fake_github):
        project = await _create_project(client, get_auth_headers(admin_user), create_repo=True, repo_name="Lions FC")
        assert project["github_repo_name"] == "acme/lions-fc"
        assert project["github_repo_url"] == "https://github.com/acme/lions-fc"
        assert fake_github.tokens == [github_pat]

    async def test_create_repository_without_pat(self, client: AsyncClient, admin_user, fake_github):
        resp = await client.post(
            "/api/v1/kanban/projects",
            json={"name": "No Token", "create_repo": True},
            headers=get_auth_headers(admin_user),
        )
        assert resp.status_code == 400
        assert fake_github.calls == []


@pytest.mark.asyncio
class TestColumns:
    async def test_add_column_appends(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        resp = await client.post(
            f"/api/v1/kanban/projects/{project['id']}/columns",
            json={"name": "Released", "color": "#000000"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["column"]["position"] == 4

    async def test_duplicate_position_rejected(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        resp = await client.post(
            f"/api/v1/kanban/projects/{project['id']}/columns",
            json={"name": "Clash", "position": 2},
            headers=headers,
        )
        assert resp.status_code == 400

    async def test_rename_does_not_rederive(self, client: AsyncClient, admin_user):
        """Tasks keep their status when their column is renamed"""
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        task = await _create_task(client, headers, project, column="Backlog")

        resp = await client.patch(
            f"/api/v1/kanban/columns/{_column(project, 'Backlog')['id']}",
            json={"name": "Done (old backlog)"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["column"]["name"] == "Done (old backlog)"

        board = (await client.get(f"/api/v1/kanban/board?project_id={project['id']}", headers=headers)).json()
        assert board["tasks"][0]["id"] == task["id"]
        assert board["tasks"][0]["status"] == "todo"

    async def test_delete_column_detaches_tasks(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        await _create_task(client, headers, project, column="Review")

        resp = await client.delete(f"/api/v1/kanban/columns/{_column(project, 'Review')['id']}", headers=headers)
        assert resp.status_code == 200

        board = (await client.get(f"/api/v1/kanban/board?project_id={project['id']}", headers=headers)).json()
        assert len(board["columns"]) == 3
        assert board["tasks"][0]["column_id"] is None

    async def test_delete_column_moves_tasks(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        await _create_task(client, headers, project, column="Done", title="Already done")
        await _create_task(client, headers, project, column="Review", title="Waiting")

        done_id = _column(project, "Done")["id"]
        resp = await client.delete(
            f"/api/v1/kanban/columns/{_column(project, 'Review')['id']}?move_tasks_to={done_id}",
            headers=headers,
        )
        assert resp.status_code == 200

        board = (await client.get(f"/api/v1/kanban/board?project_id={project['id']}", headers=headers)).json()
        moved = next(t for t in board["tasks"] if t["title"] == "Waiting")
        assert moved["column_id"] == done_id
        assert moved["position"] == 2
        assert moved["status"] == "done"
        assert moved["completed_at"] is not None


@pytest.mark.asyncio
class TestTasks:
    async def test_positions_append(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        first = await _create_task(client, headers, project, title="One")
        second = await _create_task(client, headers, project, title="Two")
        other = await _create_task(client, headers, project, column="Review", title="Elsewhere")
        assert first["position"] == 1
        assert second["position"] == 2
        assert other["position"] == 1

    async def test_created_in_done_starts_as_todo(self, client: AsyncClient, admin_user):
        """Only a column change derives status; a new task is todo wherever it lands"""
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        task = await _create_task(client, headers, project, column="Done", title="Ship it")
        assert task["column_id"] == _column(project, "Done")["id"]
        assert task["status"] == "todo"
        assert task["completed_at"] is None

    async def test_defaults_to_first_column(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        resp = await client.post(
            "/api/v1/kanban/tasks",
            json={"title": "No column given", "project_id": project["id"]},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["task"]["column_id"] == _column(project, "Backlog")["id"]

    async def test_title_required(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        resp = await client.post(
            "/api/v1/kanban/tasks",
            json={"title": "", "project_id": project["id"]},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Title is required"

    async def test_unknown_column(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        resp = await client.post(
            "/api/v1/kanban/tasks",
            json={"title": "Lost", "project_id": project["id"], "column_id": "nope"},
            headers=headers,
        )
        assert resp.status_code == 404

        board = (await client.get(f"/api/v1/kanban/board?project_id={project['id']}", headers=headers)).json()
        assert board["tasks"] == []

    async def test_column_from_other_project(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        other = await _create_project(client, headers, description="other")
        resp = await client.post(
            "/api/v1/kanban/tasks",
            json={"title": "Cross", "project_id": project["id"], "column_id": _column(other, "Backlog")["id"]},
            headers=headers,
        )
        assert resp.status_code == 404

    async def test_move_derives_status_and_appends(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        await _create_task(client, headers, project, column="In Progress", title="Resident")
        task = await _create_task(client, headers, project)

        resp = await client.patch(
            f"/api/v1/kanban/tasks/{task['id']}",
            json={"column_id": _column(project, "In Progress")["id"]},
            headers=headers,
        )
        assert resp.status_code == 200
        moved = resp.json()["task"]
        assert moved["status"] == "in_progress"
        assert moved["position"] == 2
        assert moved["completed_at"] is None

    async def test_completed_at_survives_leaving_done(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        task = await _create_task(client, headers, project)

        done = (await client.patch(
            f"/api/v1/kanban/tasks/{task['id']}",
            json={"column_id": _column(project, "Done")["id"]},
            headers=headers,
        )).json()["task"]
        assert done["status"] == "done"
        assert done["completed_at"] is not None

        back = (await client.patch(
            f"/api/v1/kanban/tasks/{task['id']}",
            json={"column_id": _column(project, "Review")["id"]},
            headers=headers,
        )).json()["task"]
        assert back["status"] == "review"
        assert back["completed_at"] == done["completed_at"]

    async def test_same_column_keeps_position(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        task = await _create_task(client, headers, project)
        await _create_task(client, headers, project, title="Second")

        resp = await client.patch(
            f"/api/v1/kanban/tasks/{task['id']}",
            json={"column_id": task["column_id"], "title": "Renamed"},
            headers=headers,
        )
        updated = resp.json()["task"]
        assert updated["title"] == "Renamed"
        assert updated["position"] == 1
        assert updated["status"] == "todo"

    async def test_move_to_unknown_column(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        task = await _create_task(client, headers, project)
        resp = await client.patch(
            f"/api/v1/kanban/tasks/{task['id']}", json={"column_id": "missing"}, headers=headers,
        )
        assert resp.status_code == 404

    async def test_labels(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        label = (await client.post(
            "/api/v1/kanban/labels", json={"name": "frontend", "color": "#ff0000"}, headers=headers,
        )).json()["label"]

        task = await _create_task(client, headers, project, label_ids=[label["id"]])
        assert [l["name"] for l in task["labels"]] == ["frontend"]

        resp = await client.patch(f"/api/v1/kanban/tasks/{task['id']}", json={"label_ids": []}, headers=headers)
        assert resp.json()["task"]["labels"] == []

        labels = (await client.get("/api/v1/kanban/labels", headers=headers)).json()["labels"]
        assert [l["id"] for l in labels] == [label["id"]]

    async def test_delete_task(self, client: AsyncClient, admin_user):
        headers = get_auth_headers(admin_user)
        project = await _create_project(client, headers)
        task = await _create_task(client, headers, project)
        resp = await client.delete(f"/api/v1/kanban/tasks/{task['id']}", headers=headers)
        assert resp.status_code == 200
        resp = await client.delete(f"/api/v1/kanban/tasks/{task['id']}", headers=headers)
        assert resp.status_code == 404


@pytest.mark.asyncio
async def test_board_lifecycle_and_quote(client: AsyncClient, admin_user):
    """Create → move to Done → price: the whole delivery loop"""
    headers = get_auth_headers(admin_user)
    project = await _create_project(client, headers)

    task = await _create_task(client, headers, project, estimated_hours=10, priority="medium")
    assert task["position"] == 1
    assert task["status"] == "todo"

    moved = (await client.patch(
        f"/api/v1/kanban/tasks/{task['id']}",
        json={"column_id": _column(project, "Done")["id"]},
        headers=headers,
    )).json()["task"]
    assert moved["status"] == "done"
    assert moved["completed_at"] is not None
    assert moved["position"] == 1

    resp = await client.get(f"/api/v1/kanban/projects/{project['id']}/quote", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["quote"] is None
    assert data["analysis"]["market_price"] == 4700
    assert data["analysis"]["our_price"] == 1500
