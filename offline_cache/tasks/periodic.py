"""
@description 后台周期任务基类
@responsibility 统一启动/停止、按固定间隔执行 run_once，单次执行出错不会中断循环
"""

import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger


class PeriodicTask:
    """周期任务：子类实现 run_once"""

    name = "周期任务"

    def __init__(self, interval: float):
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._last_run_at: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> Optional[datetime]:
        return self._last_run_at

    async def start(self) -> None:
        """启动任务"""
        if self.running:
            logger.warning(f"{self.name}已在运行中")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"{self.name}已启动（间隔 {self._interval}s）")

    async def stop(self) -> None:
        """停止任务"""
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning(f"等待{self.name}停止超时，强制取消")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._task = None
        logger.info(f"{self.name}已停止")

    async def run_once(self) -> None:
        raise NotImplementedError

    async def _loop(self) -> None:
        """主循环"""
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"{self.name}执行出错: {e}")
            self._last_run_at = datetime.now()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
