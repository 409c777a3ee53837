"""
@description 电影/剧集实体存储
@responsibility 按 ID 合并写入基础、媒体、AI 三层字段，按层判断数据是否需要刷新
"""

import asyncio
import time
import weakref
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from offline_cache.core.database import Database
from offline_cache.core.errors import NotFound
from offline_cache.core.results import WriteResult
from offline_cache.models.entity import MovieRecord, TVShowRecord
from offline_cache.services.entity_merge import (
    AI_FIELDS,
    TIER_TIMESTAMPS,
    TIER_TTLS,
    EntityKind,
    Tier,
    basic_fields,
    default_for,
    derive_ai_fields,
    derive_basic_fields,
    derive_detail_fields,
    media_fields,
    merge_record,
    record_fields,
)

_MODELS = {
    EntityKind.MOVIE: MovieRecord,
    EntityKind.TV_SHOW: TVShowRecord,
}


def _row_to_dict(kind: EntityKind, row) -> dict[str, Any]:
    return {name: getattr(row, name) for name in record_fields(kind)}


class EntityStore:
    """实体记录存储，同一 ID 的写入串行执行，不同 ID 之间互不阻塞"""

    def __init__(self, database: Database, clock: Callable[[], float] = time.time):
        self._db = database
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[tuple, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock())

    def _lock_for(self, kind: EntityKind, entity_id: int) -> asyncio.Lock:
        lock = self._locks.get((kind, entity_id))
        if lock is None:
            lock = asyncio.Lock()
            self._locks[(kind, entity_id)] = lock
        return lock

    async def get(self, entity_id: int, kind: "EntityKind | str") -> Optional[dict]:
        kind = EntityKind.parse(kind)
        try:
            async with self._db.session() as session:
                row = await session.get(_MODELS[kind], entity_id)
                return _row_to_dict(kind, row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"读取实体记录失败 {kind.value}:{entity_id}: {e}")
            return None

    async def upsert_basic(
        self, entity_id: int, kind: "EntityKind | str", fields: Mapping[str, Any]
    ) -> WriteResult:
        """写入列表/搜索结果中的基础字段，其他层保持不变"""
        kind = EntityKind.parse(kind)
        incoming = derive_basic_fields(kind, fields)
        incoming["cached_at"] = self._now()
        return await self._upsert(
            entity_id, kind, incoming, (*basic_fields(kind), "cached_at")
        )

    async def upsert_details(
        self,
        entity_id: int,
        kind: "EntityKind | str",
        fields: Mapping[str, Any],
        cast: Optional[list] = None,
        crew: Optional[list] = None,
        videos: Optional[list] = None,
    ) -> WriteResult:
        """
        写入详情页数据

        每个字段取值顺序：本次提供的新值 > 已有记录的值 > 类型默认值，
        AI 层字段不参与本次写入。
        """
        kind = EntityKind.parse(kind)
        incoming = derive_detail_fields(kind, fields, cast=cast, crew=crew, videos=videos)
        now = self._now()
        if any(name in incoming for name in basic_fields(kind)):
            incoming["cached_at"] = now
        incoming["media_cached_at"] = now
        incoming["has_full_details"] = True
        return await self._upsert(
            entity_id,
            kind,
            incoming,
            (
                *basic_fields(kind),
                *media_fields(kind),
                "cached_at",
                "media_cached_at",
                "has_full_details",
            ),
        )

    async def upsert_ai(
        self,
        entity_id: int,
        kind: "EntityKind | str",
        similar: Optional[list] = None,
        trivia: Optional[list] = None,
        tags: Any = None,
    ) -> WriteResult:
        """
        写入 AI 生成数据，只覆盖本次提供的子字段

        Raises:
            NotFound: 基础记录不存在
        """
        kind = EntityKind.parse(kind)
        incoming = derive_ai_fields(similar=similar, trivia=trivia, tags=tags)
        fields: tuple[str, ...] = AI_FIELDS
        # 未提供任何 AI 字段时不更新生成时间
        if incoming:
            incoming["ai_generated_at"] = self._now()
            fields = (*AI_FIELDS, "ai_generated_at")
        try:
            return await self._upsert(
                entity_id, kind, incoming, fields, require_existing=True
            )
        except NotFound:
            logger.warning(f"实体记录不存在，无法写入 AI 数据: {kind.value}:{entity_id}")
            raise

    async def needs_refresh(
        self,
        entity_id: int,
        kind: "EntityKind | str",
        tier: "Tier | str" = Tier.BASIC,
    ) -> bool:
        """记录不存在或该层缓存时间超过 TTL 时需要刷新"""
        tier = Tier(tier)
        record = await self.get(entity_id, kind)
        if record is None:
            return True

        timestamp = record.get(TIER_TIMESTAMPS[tier])
        if timestamp is None:
            return True
        return self._now() - timestamp > TIER_TTLS[tier]

    async def batch_upsert_basic(
        self, items: Iterable[Mapping[str, Any]], kind: "EntityKind | str"
    ) -> int:
        """批量写入基础字段，单条失败不影响其余条目，返回成功条数"""
        kind = EntityKind.parse(kind)
        written = 0
        for item in items or []:
            try:
                entity_id = item.get("id")
                if entity_id is None:
                    logger.error(f"批量缓存跳过缺少 id 的条目: {item}")
                    continue
                result = await self.upsert_basic(entity_id, kind, item)
            except Exception as e:
                logger.error(f"批量缓存 {kind.value} 条目失败: {e}")
                continue
            if result.ok:
                written += 1
        return written

    async def _upsert(
        self,
        entity_id: int,
        kind: EntityKind,
        incoming: Mapping[str, Any],
        fields: Iterable[str],
        require_existing: bool = False,
    ) -> WriteResult:
        """在同一 ID 的锁内完成读取、合并、写入"""
        model = _MODELS[kind]
        async with self._lock_for(kind, entity_id):
            try:
                async with self._db.session() as session:
                    row = await session.get(model, entity_id)
                    if row is None and require_existing:
                        raise NotFound(entity_id, kind.value)

                    existing = _row_to_dict(kind, row) if row is not None else None
                    merged = merge_record(existing, incoming, fields)
                    merged["id"] = entity_id
                    for name in record_fields(kind):
                        if name not in merged:
                            merged[name] = default_for(name)

                    if row is None:
                        session.add(model(**merged))
                    else:
                        for name, value in merged.items():
                            setattr(row, name, value)
                    await session.commit()
            except SQLAlchemyError as e:
                logger.error(f"写入实体记录失败 {kind.value}:{entity_id}: {e}")
                return WriteResult.failure(e)

        logger.debug(f"实体记录已更新 {kind.value}:{entity_id}")
        return WriteResult.success()
