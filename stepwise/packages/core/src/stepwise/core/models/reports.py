"""运维类报告模型 -- 调度运行、序列校验、序列迁移"""

from pydantic import BaseModel, Field


class DailyRunReport(BaseModel):
    """一次每日推进运行的统计（仅用于日志）"""

    run_date: str = Field(description="运行对应的 UTC 日期")
    goals: int = 0
    advanced: int = 0
    skipped: int = 0
    failed: int = 0


class IntegrityReport(BaseModel):
    """顺序完整性校验结果"""

    ok: bool
    issues: list[str] = Field(default_factory=list)
    total_tasks: int = 0
    active_tasks: int = 0
    queued_tasks: int = 0
    completed_tasks: int = 0


class MigrationResult(BaseModel):
    """旧任务迁移到顺序系统的结果"""

    migrated_count: int = 0
    activated_task_id: str | None = None
    message: str = ""
