"""集成测试共享 fixture

app.state 手动初始化（ASGITransport 不触发 lifespan），调度器与 HTTP 请求共用同一个 Gate，
调度器不启动后台循环，由测试直接调用 run_once。
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from stepwise.core.scheduler import DailyScheduler


@pytest.fixture
def scheduler(gate, store_group, clock) -> DailyScheduler:
    return DailyScheduler(gate, store_group.goal_store, clock)


@pytest_asyncio.fixture
async def integration_app(tmp_db_path: Path, store_group, gate, clock, scheduler):
    """集成测试用 FastAPI app"""
    os.environ["STEPWISE_DB_PATH"] = str(tmp_db_path)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from stepwise.gateway.main import create_app

    app = create_app()
    app.state.store_group = store_group
    app.state.clock = clock
    app.state.gate = gate
    app.state.scheduler = scheduler

    yield app

    os.environ.pop("STEPWISE_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
        headers={"X-User-Id": "learner"},
    ) as ac:
        yield ac
