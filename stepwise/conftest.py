"""全局 pytest 配置 -- 临时 SQLite 数据库、假时钟与 goal/backlog 造数 fixture"""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

# 2026-03-02 为周一
DEFAULT_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """可手动拨动的时钟；sleep 直接推进时间"""

    def __init__(self, start: datetime = DEFAULT_NOW) -> None:
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs) -> None:
        self._now += timedelta(**kwargs)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += timedelta(seconds=seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from stepwise.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path):
    """共享连接的 StoreGroup"""
    from stepwise.core.store import create_store_group

    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.conn.close()


@pytest.fixture
def gate(store_group, clock):
    from stepwise.core.gating import SequentialGate

    return SequentialGate(store_group, clock)


@pytest.fixture
def seed_goal(store_group, gate, clock):
    """造数工厂：创建 goal + n 个 backlog 任务，并激活第 1 个"""
    from stepwise.core.backlog import populate_backlog
    from stepwise.core.models import Goal, TaskContent, TaskSpec
    from ulid import ULID

    async def _seed(user_id: str = "user-1", n: int = 5, title: str = "Learn Rust"):
        now = clock.now()
        goal = Goal(
            goal_id=str(ULID()),
            user_id=user_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        specs = [
            TaskSpec(content=TaskContent(title=f"Task {i + 1}", topics=["basics"]))
            for i in range(n)
        ]
        tasks, _ = await populate_backlog(store_group, gate, goal, specs, now)
        return goal, tasks

    return _seed
