"""时钟抽象 -- 调度器与 Gate 通过注入的 Clock 获取时间，测试使用假时钟"""

import asyncio
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """时间来源"""

    def now(self) -> datetime:
        """当前 UTC 时间（带时区）"""
        ...

    async def sleep(self, seconds: float) -> None:
        """挂起指定秒数"""
        ...


class SystemClock:
    """生产环境时钟"""

    def now(self) -> datetime:
        return datetime.now(UTC)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
