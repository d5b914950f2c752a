"""CLI 入口模块 -- python -m stepwise.core <command>

支持的命令：
  run-daily-advance                        立即执行一次每日推进
  validate-sequences <user_id> <goal_id>   校验 goal 的顺序完整性
  migrate-sequences <user_id> <goal_id>    将旧任务迁移到顺序系统
"""

import asyncio
import sys

from .clock import SystemClock
from .config import get_db_path

_USAGE = """用法: python -m stepwise.core <command>
命令:
  run-daily-advance                        立即执行一次每日推进
  validate-sequences <user_id> <goal_id>   校验 goal 的顺序完整性
  migrate-sequences <user_id> <goal_id>    将旧任务迁移到顺序系统"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]
    args = sys.argv[2:]

    if command == "run-daily-advance":
        asyncio.run(run_daily_advance())
    elif command in ("validate-sequences", "migrate-sequences"):
        if len(args) != 2:
            print(f"{command} 需要 <user_id> <goal_id> 两个参数")
            sys.exit(1)
        if command == "validate-sequences":
            ok = asyncio.run(validate_sequences(args[0], args[1]))
            sys.exit(0 if ok else 2)
        asyncio.run(migrate_sequences(args[0], args[1]))
    else:
        print(f"未知命令: {command}")
        print("可用命令: run-daily-advance, validate-sequences, migrate-sequences")
        sys.exit(1)


async def run_daily_advance() -> None:
    """执行一次每日推进"""
    from .gating import SequentialGate
    from .scheduler import DailyScheduler
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        clock = SystemClock()
        gate = SequentialGate(store_group, clock)
        scheduler = DailyScheduler(gate, store_group.goal_store, clock)
        report = await scheduler.run_once(force=True)
        print(
            f"推进完成: goals={report.goals} advanced={report.advanced} "
            f"skipped={report.skipped} failed={report.failed}"
        )
    finally:
        await store_group.conn.close()


async def validate_sequences(user_id: str, goal_id: str) -> bool:
    """打印顺序完整性报告，返回是否通过"""
    from .sequencing import validate_sequential_integrity
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        report = await validate_sequential_integrity(store_group, user_id, goal_id)
    finally:
        await store_group.conn.close()

    print(
        f"total={report.total_tasks} active={report.active_tasks} "
        f"queued={report.queued_tasks} completed={report.completed_tasks}"
    )
    for issue in report.issues:
        print(f"  - {issue}")
    print("OK" if report.ok else "发现问题")
    return report.ok


async def migrate_sequences(user_id: str, goal_id: str) -> None:
    """执行旧任务迁移"""
    from .gating import SequentialGate
    from .sequencing import migrate_tasks_to_sequential
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        clock = SystemClock()
        gate = SequentialGate(store_group, clock)
        result = await migrate_tasks_to_sequential(
            store_group, gate, user_id, goal_id, clock.now()
        )
    finally:
        await store_group.conn.close()

    print(result.message)
    if result.activated_task_id:
        print(f"已激活任务: {result.activated_task_id}")


if __name__ == "__main__":
    main()
