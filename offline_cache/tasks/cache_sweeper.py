"""
@description 过期缓存清扫任务
@responsibility 周期性批量删除已过期的缓存条目，避免过期数据长期占用存储
"""

from typing import Optional

from loguru import logger

from offline_cache.services.ttl_store import TTLStore
from offline_cache.tasks.periodic import PeriodicTask


class CacheSweeper(PeriodicTask):
    name = "缓存清扫"

    def __init__(
        self, ttl_store: TTLStore, interval: float = 20, batch_size: Optional[int] = 200
    ):
        super().__init__(interval)
        self._store = ttl_store
        self._batch_size = batch_size
        self.total_removed = 0

    async def run_once(self) -> None:
        removed = await self._store.sweep_expired(self._batch_size)
        if removed:
            self.total_removed += removed
            logger.info(f"清扫过期缓存 {removed} 个")
