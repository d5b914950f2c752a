"""GoalStore SQLite 实现"""

from datetime import datetime

import aiosqlite

from ..models.enums import GoalStatus
from ..models.goal import Goal
from .task_store import from_db_ts, to_db_ts

_COLUMNS = (
    "goal_id, user_id, title, status, current_phase, created_at, updated_at, completed_at"
)


class SqliteGoalStore:
    """GoalStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_goal(self, goal: Goal) -> None:
        """创建目标记录（不自动提交）"""
        await self._conn.execute(
            f"""
            INSERT INTO goals ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                goal.goal_id,
                goal.user_id,
                goal.title,
                goal.status.value,
                goal.current_phase,
                to_db_ts(goal.created_at),
                to_db_ts(goal.updated_at),
                to_db_ts(goal.completed_at),
            ),
        )

    async def get_goal(self, goal_id: str) -> Goal | None:
        """根据 goal_id 查询目标"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM goals WHERE goal_id = ?",
            (goal_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_goal(row)

    async def list_goals_for_user(self, user_id: str) -> list[Goal]:
        """查询用户的全部目标，按 created_at 倒序"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM goals WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_goal(row) for row in rows]

    async def list_goals_by_status(self, status: GoalStatus) -> list[Goal]:
        """按状态查询全部目标（调度器使用）"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM goals WHERE status = ? ORDER BY created_at ASC",
            (status.value,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_goal(row) for row in rows]

    async def update_goal_status(
        self,
        goal_id: str,
        status: GoalStatus,
        updated_at: datetime,
    ) -> None:
        """更新目标状态；进入 completed 时写入 completed_at"""
        ts = to_db_ts(updated_at)
        completed_at = ts if status == GoalStatus.COMPLETED else None
        await self._conn.execute(
            """
            UPDATE goals
            SET status = ?, updated_at = ?, completed_at = COALESCE(?, completed_at)
            WHERE goal_id = ?
            """,
            (status.value, ts, completed_at, goal_id),
        )

    @staticmethod
    def _row_to_goal(row: aiosqlite.Row) -> Goal:
        """将数据库行转换为 Goal 模型"""
        return Goal(
            goal_id=row[0],
            user_id=row[1],
            title=row[2],
            status=GoalStatus(row[3]),
            current_phase=max(1, int(row[4] or 1)),
            created_at=from_db_ts(row[5]),
            updated_at=from_db_ts(row[6]),
            completed_at=from_db_ts(row[7]),
        )
