"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# goals 表 DDL
_GOALS_DDL = """
CREATE TABLE IF NOT EXISTS goals (
    goal_id        TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    title          TEXT NOT NULL DEFAULT '',
    status         TEXT NOT NULL DEFAULT 'active',
    current_phase  INTEGER NOT NULL DEFAULT 1,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,
    completed_at   TEXT
);
"""

_GOALS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_goals_user_status ON goals(user_id, status);",
    "CREATE INDEX IF NOT EXISTS idx_goals_status ON goals(status);",
]

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id         TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    goal_id         TEXT NOT NULL,
    sequence_order  INTEGER,
    status          TEXT NOT NULL DEFAULT 'queued',
    phase           INTEGER NOT NULL DEFAULT 1,
    assigned_date   TEXT,
    scheduled_date  TEXT,
    completed_at    TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    content         TEXT NOT NULL DEFAULT '{}',

    FOREIGN KEY (goal_id) REFERENCES goals(goal_id)
);
"""

_TASKS_INDEXES = [
    # backlog 顺序在同一 (user, goal) 内唯一
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_sequence "
        "ON tasks(user_id, goal_id, sequence_order);"
    ),
    # 每个 (user, goal) 至多一个活跃任务，数据库层兜底
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_one_active "
        "ON tasks(user_id, goal_id) WHERE status IN ('pending', 'in_progress');"
    ),
    "CREATE INDEX IF NOT EXISTS idx_tasks_goal_status ON tasks(goal_id, status, sequence_order);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_assigned ON tasks(user_id, assigned_date);",
]

# task_events 表 DDL
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS task_events (
    event_id  TEXT PRIMARY KEY,
    task_id   TEXT NOT NULL,
    task_seq  INTEGER NOT NULL,
    ts        TEXT NOT NULL,
    type      TEXT NOT NULL,
    actor     TEXT NOT NULL,
    payload   TEXT NOT NULL DEFAULT '{}',

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_EVENTS_INDEXES = [
    # 任务内事件序号唯一约束（确保 task_seq 严格单调递增）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_task_seq ON task_events(task_id, task_seq);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_GOALS_DDL)
    await conn.execute(_TASKS_DDL)
    await conn.execute(_EVENTS_DDL)

    # 创建索引
    for idx_sql in _GOALS_INDEXES + _TASKS_INDEXES + _EVENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
