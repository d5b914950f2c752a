"""仪表盘 API 测试

测试内容：
1. 汇总只统计可见任务，hidden backlog 不计入 backlog_count / total
2. 连续天数、完成率、徽章
3. 完成率历史与月历统计
4. 参数越界返回 400，未知 goal 返回 404
"""

import pytest
from httpx import AsyncClient


@pytest.fixture
def two_day_history(client, create_goal, complete_task, clock):
    """3 个任务：第 1 天完成 #1，第 2 天推进并完成 #2，#3 仍在 backlog"""

    async def _build() -> str:
        created = await create_goal(n=3)
        goal_id = created["goal"]["goal_id"]
        await complete_task(created["active_task"]["task_id"])

        clock.advance(days=1)
        resp = await client.post("/api/tasks/request-next", json={"goal_id": goal_id})
        await complete_task(resp.json()["tasks"][0]["task_id"])
        return goal_id

    return _build


class TestDashboard:
    async def test_summary(self, client: AsyncClient, two_day_history):
        goal_id = await two_day_history()

        resp = await client.get("/api/dashboard", params={"goal_id": goal_id, "days": 2})
        assert resp.status_code == 200
        data = resp.json()

        assert data["total_tasks"] == 2
        assert data["completed_tasks"] == 2
        assert data["completion_rate"] == 100
        assert data["streak"] == 2
        assert [d["completed_count"] for d in data["days"]] == [1, 1]
        assert [d["backlog_count"] for d in data["days"]] == [1, 0]
        assert [d["date"] for d in data["days"]] == ["2026-03-02", "2026-03-03"]
        assert data["best_day"] == "Mon 2"
        assert [b["icon"] for b in data["badges"]] == ["📈"]
        assert data["insights"] == []

    async def test_summary_across_goals(self, client: AsyncClient, create_goal):
        await create_goal(n=2)
        await create_goal(n=2)
        resp = await client.get("/api/dashboard")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_tasks"] == 2
        assert len(data["days"]) == 7

    async def test_new_user_gets_empty_summary(self, client: AsyncClient):
        resp = await client.get("/api/dashboard", headers={"X-User-Id": "newcomer"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_tasks"] == 0
        assert data["best_day"] == "N/A"
        assert data["streak"] == 0

    @pytest.mark.parametrize("days", [0, -3, 400])
    async def test_days_out_of_range(self, client: AsyncClient, days):
        resp = await client.get("/api/dashboard", params={"days": days})
        assert resp.status_code == 400

    async def test_unknown_goal(self, client: AsyncClient):
        resp = await client.get("/api/dashboard", params={"goal_id": "missing"})
        assert resp.status_code == 404


class TestStatusHistory:
    async def test_history(self, client: AsyncClient, two_day_history):
        goal_id = await two_day_history()
        resp = await client.get(
            "/api/dashboard/status-history", params={"goal_id": goal_id, "days": 3}
        )
        assert resp.status_code == 200
        history = resp.json()["history"]
        assert [p["date"] for p in history] == ["2026-03-01", "2026-03-02", "2026-03-03"]
        assert [p["value"] for p in history] == [0, 50, 100]


class TestCalendar:
    async def test_month_grid(self, client: AsyncClient, two_day_history):
        await two_day_history()
        resp = await client.get("/api/dashboard/calendar", params={"year": 2026, "month": 3})
        assert resp.status_code == 200
        data = resp.json()
        assert (data["year"], data["month"]) == (2026, 3)
        assert len(data["days"]) == 31
        assert data["days"]["2026-03-02"]["total_tasks"] == 1
        assert data["days"]["2026-03-02"]["completed_tasks"] == 1
        assert data["days"]["2026-03-03"]["completed_tasks"] == 1
        assert data["days"]["2026-03-04"]["total_tasks"] == 0

    async def test_invalid_month(self, client: AsyncClient):
        resp = await client.get(
            "/api/dashboard/calendar", params={"year": 2026, "month": 13}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


class TestCancelledTasks:
    """cancelled 任务不计入仪表盘与完成率历史，月历仍然展示"""

    async def _cancel_then_complete(self, client: AsyncClient, create_goal, complete_task) -> str:
        created = await create_goal(n=2)
        goal_id = created["goal"]["goal_id"]
        resp = await client.patch(
            f"/api/tasks/{created['active_task']['task_id']}/status",
            json={"status": "cancelled"},
        )
        assert resp.status_code == 200

        resp = await client.post("/api/tasks/request-next", json={"goal_id": goal_id})
        assert resp.status_code == 200
        await complete_task(resp.json()["tasks"][0]["task_id"])
        return goal_id

    async def test_dashboard_ignores_cancelled(
        self, client: AsyncClient, create_goal, complete_task, clock
    ):
        goal_id = await self._cancel_then_complete(client, create_goal, complete_task)
        clock.advance(days=3)

        resp = await client.get("/api/dashboard", params={"goal_id": goal_id, "days": 7})
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_tasks"] == 1
        assert data["completed_tasks"] == 1
        assert data["completion_rate"] == 100
        assert [d["backlog_count"] for d in data["days"]] == [0] * 7

    async def test_status_history_ignores_cancelled(
        self, client: AsyncClient, create_goal, complete_task
    ):
        goal_id = await self._cancel_then_complete(client, create_goal, complete_task)
        resp = await client.get(
            "/api/dashboard/status-history", params={"goal_id": goal_id, "days": 1}
        )
        assert [p["value"] for p in resp.json()["history"]] == [100]

    async def test_calendar_still_counts_cancelled(
        self, client: AsyncClient, create_goal, complete_task
    ):
        await self._cancel_then_complete(client, create_goal, complete_task)
        resp = await client.get("/api/dashboard/calendar", params={"year": 2026, "month": 3})
        day = resp.json()["days"]["2026-03-02"]
        assert day["total_tasks"] == 2
        assert day["completed_tasks"] == 1


class TestDirtyRows:
    async def test_missing_title_does_not_break_reports(
        self, client: AsyncClient, create_goal, store_group
    ):
        created = await create_goal(n=2)
        await store_group.conn.execute(
            "UPDATE tasks SET content = '{}' WHERE task_id = ?",
            (created["active_task"]["task_id"],),
        )
        await store_group.conn.commit()

        resp = await client.get("/api/dashboard")
        assert resp.status_code == 200
        assert resp.json()["total_tasks"] == 1

        resp = await client.get("/api/tasks/active", params={"goal_id": created["goal"]["goal_id"]})
        assert resp.status_code == 200
        assert resp.json()["tasks"][0]["content"]["title"] == "Untitled Task"
