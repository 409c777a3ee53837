"""
@description 持久化 TTL 缓存
@responsibility 存储任意 API 响应，支持惰性过期、按条目数/字节数淘汰、索引自愈和统计
"""

import json
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from offline_cache.core.config import CacheConfig
from offline_cache.core.database import Database
from offline_cache.core.errors import CacheError, CacheMiss, CorruptEntry
from offline_cache.core.results import WriteResult
from offline_cache.models.cache_entry import CacheEntry, CacheIndexEntry
from offline_cache.services.cache_keys import CacheKey, TTLPolicy


@dataclass(frozen=True)
class CacheLookup:
    """缓存查询结果，未命中时 error 记录原因（CacheMiss / CorruptEntry）"""

    hit: bool
    payload: Any = None
    error: Optional[CacheError] = None


@dataclass
class CacheStats:
    count: int = 0
    total_bytes: int = 0
    oldest: Optional[float] = None
    newest: Optional[float] = None
    count_by_kind: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "total_bytes": self.total_bytes,
            "oldest": self.oldest,
            "newest": self.newest,
            "count_by_kind": dict(self.count_by_kind),
        }


class TTLStore:
    """持久化 TTL 键值缓存"""

    def __init__(
        self,
        database: Database,
        prefix: str = "@theater_offline_cache_",
        max_items: int = 1000,
        max_bytes: int = 50 * 1024 * 1024,
        eviction_ratio: float = 0.3,
        ttl_policy: Optional[TTLPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._db = database
        self._prefix = prefix
        self._max_items = max_items
        self._max_bytes = max_bytes
        self._eviction_ratio = eviction_ratio
        self._ttl_policy = ttl_policy or TTLPolicy()
        self._clock = clock
        self._initialized = False

    @classmethod
    def from_config(
        cls,
        database: Database,
        config: CacheConfig,
        clock: Callable[[], float] = time.time,
    ) -> "TTLStore":
        return cls(
            database,
            prefix=config.prefix,
            max_items=config.max_items,
            max_bytes=config.max_bytes,
            eviction_ratio=config.eviction_ratio,
            ttl_policy=TTLPolicy(config.ttl_overrides),
            clock=clock,
        )

    @property
    def eviction_batch(self) -> int:
        """触发淘汰时删除的条目数"""
        return math.ceil(self._eviction_ratio * self._max_items)

    async def init(self) -> None:
        """初始化：清理启动前已过期的条目"""
        if self._initialized:
            return
        self._initialized = True
        removed = await self.sweep_expired()
        logger.info(f"离线缓存初始化完成，清理过期条目 {removed} 个")

    async def close(self) -> None:
        self._initialized = False
        logger.info("离线缓存已关闭")

    def _ensure_open(self) -> None:
        if not self._initialized:
            raise RuntimeError("TTLStore 未初始化，请先调用 init()")

    def _key(self, kind: str, identifier: str) -> str:
        return CacheKey(kind, identifier).storage_key(self._prefix)

    async def set(
        self,
        kind: str,
        identifier: str,
        payload: Any,
        ttl: Optional[float] = None,
    ) -> WriteResult:
        """
        写入缓存（覆盖写）

        写入前检查容量，达到条目数或字节数上限时淘汰最旧的一批条目。
        缓存已关闭、序列化或存储失败时只记录日志并返回失败结果，不向调用方抛出。
        """
        if not self._initialized:
            error = RuntimeError("TTLStore 未初始化或已关闭")
            logger.error(f"缓存写入失败 {kind}:{identifier}: {error}")
            return WriteResult.failure(error)
        key = self._key(kind, identifier)

        try:
            serialized = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"缓存序列化失败 {kind}:{identifier}: {e}")
            return WriteResult.failure(e)

        ttl_seconds = self._ttl_policy.ttl_for(kind, ttl)
        now = self._clock()

        try:
            await self._ensure_capacity()
            async with self._db.session() as session:
                await session.merge(
                    CacheEntry(
                        key=key,
                        kind=kind,
                        identifier=identifier,
                        payload=serialized,
                        size_bytes=len(serialized.encode("utf-8")),
                        stored_at=now,
                        expires_at=now + ttl_seconds,
                    )
                )
                await session.merge(CacheIndexEntry(key=key, kind=kind, stored_at=now))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"缓存写入失败 {kind}:{identifier}: {e}")
            return WriteResult.failure(e)

        logger.debug(
            f"已缓存 {kind}:{identifier}（{round(ttl_seconds / 60)} 分钟后过期）"
        )
        return WriteResult.success()

    async def lookup(self, kind: str, identifier: str) -> CacheLookup:
        """查询缓存，过期、损坏或索引悬空的条目在读取时删除"""
        self._ensure_open()
        key = self._key(kind, identifier)
        now = self._clock()

        try:
            async with self._db.session() as session:
                entry = await session.get(CacheEntry, key)

                if entry is None:
                    # 索引存在但条目缺失：删除悬空索引
                    result = await session.execute(
                        delete(CacheIndexEntry).where(CacheIndexEntry.key == key)
                    )
                    await session.commit()
                    if result.rowcount:
                        logger.warning(f"缓存索引自愈，删除悬空 key: {key}")
                    return CacheLookup(hit=False, error=CacheMiss(key))

                if now > entry.expires_at:
                    await self._delete_keys(session, [key])
                    await session.commit()
                    logger.debug(f"缓存已过期 {kind}:{identifier}")
                    return CacheLookup(hit=False, error=CacheMiss(key, "已过期"))

                try:
                    payload = json.loads(entry.payload)
                except ValueError as e:
                    await self._delete_keys(session, [key])
                    await session.commit()
                    logger.warning(f"缓存条目损坏已删除 {kind}:{identifier}: {e}")
                    return CacheLookup(hit=False, error=CorruptEntry(key, e))
        except SQLAlchemyError as e:
            logger.error(f"读取缓存失败 {kind}:{identifier}: {e}")
            return CacheLookup(hit=False, error=CacheMiss(key, f"读取失败: {e}"))

        logger.debug(f"缓存命中 {kind}:{identifier}")
        return CacheLookup(hit=True, payload=payload)

    async def get(self, kind: str, identifier: str) -> Optional[Any]:
        """返回缓存内容，未命中返回 None"""
        lookup = await self.lookup(kind, identifier)
        return lookup.payload if lookup.hit else None

    async def has(self, kind: str, identifier: str) -> bool:
        return (await self.lookup(kind, identifier)).hit

    async def remove(self, kind: str, identifier: str) -> WriteResult:
        self._ensure_open()
        key = self._key(kind, identifier)
        try:
            async with self._db.session() as session:
                await self._delete_keys(session, [key])
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"删除缓存失败 {kind}:{identifier}: {e}")
            return WriteResult.failure(e)
        return WriteResult.success()

    async def clear(self) -> WriteResult:
        self._ensure_open()
        try:
            async with self._db.session() as session:
                await session.execute(delete(CacheEntry))
                await session.execute(delete(CacheIndexEntry))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"清空缓存失败: {e}")
            return WriteResult.failure(e)
        logger.info("离线缓存已清空")
        return WriteResult.success()

    async def has_cached_content(self) -> bool:
        """是否存在任何缓存条目（离线时判断能否展示内容）"""
        self._ensure_open()
        try:
            async with self._db.session() as session:
                count = await session.scalar(select(func.count(CacheIndexEntry.key)))
        except SQLAlchemyError as e:
            logger.error(f"查询缓存索引失败: {e}")
            return False
        return bool(count)

    async def stats(self) -> CacheStats:
        """
        全量扫描缓存统计

        - 索引存在但条目缺失：删除索引
        - 条目存在但不在索引中：补写索引
        - 条目无法解析：删除条目和索引
        """
        self._ensure_open()
        stats = CacheStats()

        try:
            async with self._db.session() as session:
                indexed = set(
                    (await session.execute(select(CacheIndexEntry.key))).scalars().all()
                )
                entries = (await session.execute(select(CacheEntry))).scalars().all()

                present = set()
                broken = []
                for entry in entries:
                    present.add(entry.key)
                    try:
                        json.loads(entry.payload)
                    except ValueError:
                        broken.append(entry.key)
                        continue

                    if entry.key not in indexed:
                        session.add(
                            CacheIndexEntry(
                                key=entry.key, kind=entry.kind, stored_at=entry.stored_at
                            )
                        )

                    stats.count += 1
                    stats.total_bytes += entry.size_bytes or 0
                    stats.oldest = (
                        entry.stored_at
                        if stats.oldest is None
                        else min(stats.oldest, entry.stored_at)
                    )
                    stats.newest = (
                        entry.stored_at
                        if stats.newest is None
                        else max(stats.newest, entry.stored_at)
                    )
                    stats.count_by_kind[entry.kind] = (
                        stats.count_by_kind.get(entry.kind, 0) + 1
                    )

                dangling = indexed - present
                if broken or dangling:
                    await self._delete_keys(session, [*broken, *dangling])
                    logger.warning(
                        f"缓存统计自愈: 删除损坏条目 {len(broken)} 个, 悬空索引 {len(dangling)} 个"
                    )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"获取缓存统计失败: {e}")

        return stats

    async def sweep_expired(self, batch_size: Optional[int] = None) -> int:
        """批量删除过期条目，返回删除数量"""
        self._ensure_open()
        now = self._clock()

        try:
            async with self._db.session() as session:
                stmt = (
                    select(CacheEntry.key)
                    .where(CacheEntry.expires_at < now)
                    .order_by(CacheEntry.expires_at)
                )
                if batch_size is not None:
                    stmt = stmt.limit(batch_size)
                keys = (await session.execute(stmt)).scalars().all()
                if not keys:
                    return 0
                await self._delete_keys(session, keys)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"清理过期缓存失败: {e}")
            return 0

        logger.debug(f"清理过期缓存 {len(keys)} 个")
        return len(keys)

    async def _ensure_capacity(self) -> None:
        """容量达到上限时淘汰最旧的条目"""
        async with self._db.session() as session:
            count, total_bytes = (
                await session.execute(
                    select(
                        func.count(CacheEntry.key),
                        func.coalesce(func.sum(CacheEntry.size_bytes), 0),
                    )
                )
            ).one()

            if count < self._max_items and total_bytes < self._max_bytes:
                return

            logger.info(
                f"缓存达到上限（{count} 条, {total_bytes} 字节），开始淘汰最旧条目"
            )
            keys = (
                (
                    await session.execute(
                        select(CacheEntry.key)
                        .order_by(CacheEntry.stored_at)
                        .limit(self.eviction_batch)
                    )
                )
                .scalars()
                .all()
            )
            await self._delete_keys(session, keys)
            await session.commit()
            logger.info(f"已淘汰最旧缓存 {len(keys)} 个")

    @staticmethod
    async def _delete_keys(session, keys: Iterable[str]) -> None:
        """同时删除条目和索引，调用方负责提交"""
        keys = list(keys)
        if not keys:
            return
        await session.execute(delete(CacheEntry).where(CacheEntry.key.in_(keys)))
        await session.execute(
            delete(CacheIndexEntry).where(CacheIndexEntry.key.in_(keys))
        )
