import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.db.database import get_async_session
from src.main import app
from src.services.security_service import SecurityService


def auth_headers(user):
    token = SecurityService.create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory, queue):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.state.ai_queue = queue
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class TestApi:
    """Сквозные тесты HTTP API"""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/")
        
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_requests_without_token_are_unauthorized(self, client):
        response = await client.get("/api/v1/boards")
        
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_board_with_default_columns(self, client, user):
        response = await client.post("/api/v1/boards", json={"title": "Launch"}, headers=auth_headers(user))
        
        assert response.status_code == 201
        columns = response.json()["columns"]
        assert [c["title"] for c in columns] == ["To Do", "In Progress (AI)", "Review", "Done"]
        assert [c["ai_enabled"] for c in columns] == [False, True, False, False]

    @pytest.mark.asyncio
    async def test_create_task_requires_title(self, client, user, board):
        response = await client.post(
            "/api/v1/tasks",
            json={"board_id": board.id, "title": "   "},
            headers=auth_headers(user)
        )
        
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_stranger_cannot_see_task(self, client, stranger, task):
        response = await client.get(f"/api/v1/tasks/{task.id}", headers=auth_headers(stranger))
        
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_move_without_column_is_bad_request(self, client, user, task):
        response = await client.put(f"/api/v1/tasks/{task.id}/move", json={}, headers=auth_headers(user))
        
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_move_to_foreign_column_is_not_found(self, client, user, task):
        response = await client.put(
            f"/api/v1/tasks/{task.id}/move",
            json={"column_id": 9999},
            headers=auth_headers(user)
        )
        
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_member_sees_board_after_invite(self, client, user, stranger, board):
        response = await client.post(
            f"/api/v1/boards/{board.id}/members",
            json={"email": stranger.email},
            headers=auth_headers(user)
        )
        assert response.status_code == 201
        
        response = await client.get(f"/api/v1/boards/{board.id}", headers=auth_headers(stranger))
        assert response.status_code == 200
        
        # Участник не может приглашать других
        response = await client.post(
            f"/api/v1/boards/{board.id}/members",
            json={"email": user.email},
            headers=auth_headers(stranger)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_ai_iteration_flow(self, client, queue, make_runner, user, board, columns):
        headers = auth_headers(user)
        runner, _ = make_runner("Outline ready")
        
        response = await client.post(
            "/api/v1/tasks",
            json={"board_id": board.id, "title": "Plan the launch"},
            headers=headers
        )
        assert response.status_code == 201
        task = response.json()
        assert task["column_id"] == columns["todo"].id
        assert task["ai_state"] == "idle"
        
        response = await client.put(
            f"/api/v1/tasks/{task['id']}/move",
            json={"column_id": columns["work"].id},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["ai_state"] == "running"
        assert response.json()["iterations"] == []
        
        await runner.run(queue.jobs[0])
        
        response = await client.get(f"/api/v1/tasks/{task['id']}/ai-status", headers=headers)
        status = response.json()
        assert status["ai_state"] == "succeeded"
        assert status["column_id"] == columns["review"].id
        assert status["latest_iteration"]["number"] == 1
        assert status["latest_iteration"]["result"] == "Outline ready"
        
        response = await client.get(f"/api/v1/tasks/{task['id']}/iterations", headers=headers)
        iterations = response.json()["iterations"]
        assert [(i["number"], i["state"]) for i in iterations] == [(1, "succeeded")]

    @pytest.mark.asyncio
    async def test_delete_column_with_tasks_is_rejected(self, client, user, board, task, columns):
        response = await client.delete(
            f"/api/v1/boards/{board.id}/columns/{columns['todo'].id}",
            headers=auth_headers(user)
        )
        
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_comments_flow(self, client, user, stranger, board, task):
        headers = auth_headers(user)
        
        response = await client.post(f"/api/v1/tasks/{task.id}/comments", json={"text": "  "}, headers=headers)
        assert response.status_code == 400
        
        response = await client.post(f"/api/v1/tasks/{task.id}/comments", json={"text": " Ship it "}, headers=headers)
        assert response.status_code == 201
        assert response.json()["text"] == "Ship it"
        assert response.json()["user"]["username"] == "owner"
        
        response = await client.get(f"/api/v1/tasks/{task.id}/comments", headers=headers)
        assert [c["text"] for c in response.json()["comments"]] == ["Ship it"]
        
        response = await client.get(f"/api/v1/tasks/{task.id}/comments", headers=auth_headers(stranger))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_board_update_and_delete_are_owner_only(self, client, user, stranger, board):
        await client.post(
            f"/api/v1/boards/{board.id}/members",
            json={"email": stranger.email},
            headers=auth_headers(user)
        )
        
        response = await client.put(
            f"/api/v1/boards/{board.id}",
            json={"title": "Hijacked"},
            headers=auth_headers(stranger)
        )
        assert response.status_code == 404
        response = await client.delete(f"/api/v1/boards/{board.id}", headers=auth_headers(stranger))
        assert response.status_code == 404
        
        response = await client.put(
            f"/api/v1/boards/{board.id}",
            json={"title": " Renamed ", "description": "Q3"},
            headers=auth_headers(user)
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["description"] == "Q3"
        
        response = await client.put(f"/api/v1/boards/{board.id}", json={"title": "  "}, headers=auth_headers(user))
        assert response.status_code == 400
        
        response = await client.delete(f"/api/v1/boards/{board.id}", headers=auth_headers(user))
        assert response.status_code == 200
        response = await client.get(f"/api/v1/boards/{board.id}", headers=auth_headers(user))
        assert response.status_code == 404
