"""apps/gateway 测试配置 -- httpx AsyncClient + 手动初始化的 app.state

ASGITransport 不会触发 lifespan，这里直接把共享的 StoreGroup / Gate / FakeClock
挂到 app.state 上。
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def app(tmp_db_path: Path, store_group, gate, clock):
    """创建测试用 FastAPI app 实例（绕过 lifespan）"""
    os.environ["STEPWISE_DB_PATH"] = str(tmp_db_path)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from stepwise.gateway.main import create_app

    application = create_app()
    application.state.store_group = store_group
    application.state.clock = clock
    application.state.gate = gate
    application.state.scheduler = None
    yield application

    for key in ["STEPWISE_DB_PATH", "LOGFIRE_SEND_TO_LOGFIRE"]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient，默认以 user-1 身份请求"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-User-Id": "user-1"},
    ) as ac:
        yield ac


@pytest.fixture
def create_goal(client):
    """通过 API 创建 goal，返回响应 JSON"""

    async def _create(n: int = 3, title: str = "Learn Go", user_id: str = "user-1") -> dict:
        resp = await client.post(
            "/api/goals",
            json={
                "title": title,
                "tasks": [{"title": f"Lesson {i + 1}"} for i in range(n)],
            },
            headers={"X-User-Id": user_id},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def complete_task(client):
    """把任务标记为 completed"""

    async def _complete(task_id: str, user_id: str = "user-1") -> dict:
        resp = await client.patch(
            f"/api/tasks/{task_id}/status",
            json={"status": "completed"},
            headers={"X-User-Id": user_id},
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["task"]

    return _complete
