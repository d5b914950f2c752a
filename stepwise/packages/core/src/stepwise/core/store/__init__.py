"""Stepwise Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .event_store import SqliteEventStore
from .goal_store import SqliteGoalStore
from .sqlite_init import init_db
from .task_store import SqliteTaskStore
from .transaction import (
    activate_task_with_event,
    create_goal_with_backlog,
    mark_goal_completed,
    transition_task_with_event,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接

    同一连接上的多语句写事务必须持有 write_lock，否则一方的 rollback
    会撤销另一方尚未提交的写入。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.goal_store = SqliteGoalStore(conn)
        self.task_store = SqliteTaskStore(conn)
        self.event_store = SqliteEventStore(conn)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteGoalStore",
    "SqliteTaskStore",
    "SqliteEventStore",
    "init_db",
    "activate_task_with_event",
    "transition_task_with_event",
    "create_goal_with_backlog",
    "mark_goal_completed",
]
