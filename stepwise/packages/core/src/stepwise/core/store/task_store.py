"""TaskStore SQLite 实现

核心子系统只通过条件更新改变 status / assigned_date / scheduled_date，
此处不自动提交事务，由调用方（transaction 模块）管理。
"""

import json
from datetime import UTC, datetime

import aiosqlite

from ..models.enums import ACTIVE_STATES, TaskStatus
from ..models.task import Task, TaskContent

_COLUMNS = (
    "task_id, user_id, goal_id, sequence_order, status, phase, assigned_date, "
    "scheduled_date, completed_at, created_at, updated_at, content"
)

_ACTIVE_SQL = ", ".join(f"'{s.value}'" for s in sorted(ACTIVE_STATES))

# 旧数据缺少标题时的展示值
UNTITLED_TASK = "Untitled Task"


def to_db_ts(value: datetime | None) -> str | None:
    """统一序列化为带时区的 UTC ISO 字符串，保证字典序即时间序"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _load_content(raw: str | None) -> dict:
    """解析 content 列；脏数据（非法 JSON、非对象、缺少标题）降级而不是抛错"""
    try:
        data = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        data["title"] = UNTITLED_TASK
    return data


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            f"""
            INSERT INTO tasks ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.user_id,
                task.goal_id,
                task.sequence_order,
                task.status.value,
                task.phase,
                to_db_ts(task.assigned_date),
                to_db_ts(task.scheduled_date),
                to_db_ts(task.completed_at),
                to_db_ts(task.created_at),
                to_db_ts(task.updated_at),
                task.content.model_dump_json(),
            ),
        )

    async def create_tasks(self, tasks: list[Task]) -> None:
        """批量创建任务记录"""
        for task in tasks:
            await self.create_task(task)

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks_for_goal(self, user_id: str, goal_id: str) -> list[Task]:
        """查询 goal 的全部任务（含 queued），按 sequence_order 正序

        仅供内部校验 / 迁移使用，不得直接暴露给用户。
        """
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE user_id = ? AND goal_id = ?
            ORDER BY sequence_order ASC
            """,
            (user_id, goal_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_visible_tasks(
        self,
        user_id: str,
        goal_id: str | None = None,
    ) -> list[Task]:
        """查询已推进过的任务（隐藏 queued），按 assigned_date、sequence_order 倒序"""
        sql = f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE user_id = ?
              AND status != 'queued'
              AND assigned_date IS NOT NULL
        """
        params: list = [user_id]
        if goal_id is not None:
            sql += " AND goal_id = ?"
            params.append(goal_id)
        sql += " ORDER BY assigned_date DESC, sequence_order DESC"
        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_active_tasks(self, user_id: str, goal_id: str) -> list[Task]:
        """查询 pending / in_progress 任务"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE user_id = ? AND goal_id = ? AND status IN ({_ACTIVE_SQL})
            ORDER BY sequence_order ASC
            """,
            (user_id, goal_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_tasks_assigned_between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        goal_id: str | None = None,
    ) -> list[Task]:
        """查询 assigned_date 落在 [start, end) 内的可见任务，按 sequence_order 倒序"""
        sql = f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE user_id = ?
              AND status != 'queued'
              AND assigned_date IS NOT NULL
              AND assigned_date >= ? AND assigned_date < ?
        """
        params: list = [user_id, to_db_ts(start), to_db_ts(end)]
        if goal_id is not None:
            sql += " AND goal_id = ?"
            params.append(goal_id)
        sql += " ORDER BY sequence_order DESC"
        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def find_next_queued(self, user_id: str, goal_id: str) -> Task | None:
        """查询 sequence_order 最小的 queued 任务"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE user_id = ? AND goal_id = ?
              AND status = 'queued' AND sequence_order IS NOT NULL
            ORDER BY sequence_order ASC
            LIMIT 1
            """,
            (user_id, goal_id),
        )
        row = await cursor.fetchone()
        return self._row_to_task(row) if row else None

    async def has_active_task(self, user_id: str, goal_id: str) -> bool:
        """是否存在 pending / in_progress 任务"""
        cursor = await self._conn.execute(
            f"""
            SELECT 1 FROM tasks
            WHERE user_id = ? AND goal_id = ? AND status IN ({_ACTIVE_SQL})
            LIMIT 1
            """,
            (user_id, goal_id),
        )
        return await cursor.fetchone() is not None

    async def count_tasks_by_status(
        self,
        user_id: str,
        goal_id: str,
    ) -> dict[TaskStatus, int]:
        """按状态统计 goal 下的任务数"""
        cursor = await self._conn.execute(
            """
            SELECT status, COUNT(*) FROM tasks
            WHERE user_id = ? AND goal_id = ?
            GROUP BY status
            """,
            (user_id, goal_id),
        )
        rows = await cursor.fetchall()
        counts = {status: 0 for status in TaskStatus}
        for row in rows:
            counts[TaskStatus(row[0])] = int(row[1])
        return counts

    async def try_activate_task(
        self,
        task_id: str,
        user_id: str,
        goal_id: str,
        now: datetime,
    ) -> bool:
        """原子条件更新：queued -> pending

        以 (task_id, status='queued') 为条件，并在同一条语句内确认该 goal
        没有活跃任务，避免"先查后写"的竞态。

        Returns:
            True 如果本次调用激活了该任务
        """
        ts = to_db_ts(now)
        cursor = await self._conn.execute(
            f"""
            UPDATE tasks
            SET status = 'pending', assigned_date = ?, scheduled_date = ?, updated_at = ?
            WHERE task_id = ?
              AND status = 'queued'
              AND NOT EXISTS (
                  SELECT 1 FROM tasks AS active
                  WHERE active.user_id = ? AND active.goal_id = ?
                    AND active.status IN ({_ACTIVE_SQL})
              )
            """,
            (ts, ts, ts, task_id, user_id, goal_id),
        )
        return cursor.rowcount == 1

    async def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        expected_status: TaskStatus,
        updated_at: datetime,
    ) -> bool:
        """条件更新任务状态（status = expected_status 时才生效）

        进入 completed 时同时写入 completed_at。

        Returns:
            True 如果更新生效
        """
        ts = to_db_ts(updated_at)
        completed_at = ts if status == TaskStatus.COMPLETED else None
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET status = ?, updated_at = ?,
                completed_at = COALESCE(?, completed_at)
            WHERE task_id = ? AND status = ?
            """,
            (status.value, ts, completed_at, task_id, expected_status.value),
        )
        return cursor.rowcount == 1

    async def list_unsequenced_tasks(self, user_id: str, goal_id: str) -> list[Task]:
        """查询缺少 sequence_order 的旧任务，按 created_at、scheduled_date 正序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE user_id = ? AND goal_id = ?
              AND (sequence_order IS NULL OR sequence_order = 0)
            ORDER BY created_at ASC, scheduled_date ASC
            """,
            (user_id, goal_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def max_sequence_order(self, user_id: str, goal_id: str) -> int:
        """查询 goal 下已分配的最大 sequence_order，无则为 0"""
        cursor = await self._conn.execute(
            """
            SELECT COALESCE(MAX(sequence_order), 0) FROM tasks
            WHERE user_id = ? AND goal_id = ?
            """,
            (user_id, goal_id),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def assign_sequence(
        self,
        task_id: str,
        sequence_order: int,
        status: TaskStatus,
        assigned_date: datetime | None,
        updated_at: datetime,
    ) -> None:
        """为旧任务写入 sequence_order 与迁移后的状态

        queued 任务的 scheduled_date 一并清空；其他状态保留原值，缺失时取 assigned_date。
        """
        assigned = to_db_ts(assigned_date)
        await self._conn.execute(
            """
            UPDATE tasks
            SET sequence_order = ?, status = ?, assigned_date = ?,
                scheduled_date = CASE WHEN ? = 'queued' THEN NULL
                                      ELSE COALESCE(scheduled_date, ?) END,
                updated_at = ?
            WHERE task_id = ?
            """,
            (
                sequence_order,
                status.value,
                assigned,
                status.value,
                assigned,
                to_db_ts(updated_at),
                task_id,
            ),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        content_data = _load_content(row[11])
        sequence_order = row[3] if row[3] else None
        return Task(
            task_id=row[0],
            user_id=row[1],
            goal_id=row[2],
            sequence_order=sequence_order,
            status=TaskStatus(row[4]),
            phase=max(1, int(row[5] or 1)),
            assigned_date=from_db_ts(row[6]),
            scheduled_date=from_db_ts(row[7]),
            completed_at=from_db_ts(row[8]),
            created_at=from_db_ts(row[9]),
            updated_at=from_db_ts(row[10]),
            content=TaskContent(**content_data),
        )
