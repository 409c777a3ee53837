"""
@description 内容目录资源访问
@responsibility 每个资源接口都是一次调度器调用：确定缓存 key 与 TTL，远程成功时同步更新实体存储
"""

from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

from loguru import logger

from offline_cache.core.errors import NoDataAvailable, NotFound
from offline_cache.services.cache_keys import CacheKey, CacheKind, canonical_identifier
from offline_cache.services.dispatcher import FetchDispatcher
from offline_cache.services.entity_merge import EntityKind, Tier
from offline_cache.services.entity_store import EntityStore


class CatalogFetcher(Protocol):
    """远程目录 API（外部协作方），每个方法返回 JSON 结构的响应"""

    async def get_movies(self, list_type: str, page: int) -> dict: ...

    async def get_tv_shows(self, list_type: str, page: int) -> dict: ...

    async def search_movies(self, query: str, page: int) -> dict: ...

    async def search_tv(self, query: str, page: int) -> dict: ...

    async def discover_movies(self, params: Mapping[str, Any], page: int) -> dict: ...

    async def discover_tv(self, params: Mapping[str, Any], page: int) -> dict: ...

    async def get_movie_details(self, movie_id: int) -> dict: ...

    async def get_tv_details(self, tv_id: int) -> dict: ...

    async def get_genres(self, media_type: str) -> list: ...

    async def get_similar_movies(self, movie_id: int, page: int) -> dict: ...

    async def get_similar_tv(self, tv_id: int, page: int) -> dict: ...

    async def get_movie_recommendations(self, movie_id: int, page: int) -> dict: ...

    async def get_tv_recommendations(self, tv_id: int, page: int) -> dict: ...

    async def get_trending(self, media_type: str, time_window: str, page: int) -> dict: ...

    async def get_person_details(self, person_id: int) -> dict: ...

    async def get_person_movie_credits(self, person_id: int) -> dict: ...

    async def get_person_tv_credits(self, person_id: int) -> dict: ...

    async def get_watch_providers(self, content_id: int, media_type: str) -> dict: ...

    async def get_available_watch_providers(self, media_type: str, region: str) -> dict: ...


def _media_kind(media_type: str) -> Optional[EntityKind]:
    if media_type == "movie":
        return EntityKind.MOVIE
    if media_type == "tv":
        return EntityKind.TV_SHOW
    return None


class CatalogService:
    """供界面层调用的资源接口"""

    def __init__(
        self,
        fetcher: CatalogFetcher,
        dispatcher: FetchDispatcher,
        entity_store: EntityStore,
    ):
        self._fetcher = fetcher
        self._dispatcher = dispatcher
        self._entities = entity_store

    async def _list(
        self,
        fetch: Callable[[], Awaitable[Any]],
        key: CacheKey,
        entity_kind: Optional[EntityKind],
        ttl: Optional[float] = None,
    ) -> Any:
        """列表类资源：远程成功时把每个条目写入实体存储的基础层"""

        async def remember(payload):
            await self._remember_results(payload, entity_kind)

        return await self._dispatcher.execute(
            fetch,
            key,
            ttl,
            on_success=remember if entity_kind is not None else None,
        )

    async def _remember_results(self, payload: Any, kind: EntityKind) -> None:
        results = payload.get("results") if isinstance(payload, Mapping) else payload
        if not isinstance(results, list) or not results:
            return
        written = await self._entities.batch_upsert_basic(results, kind)
        logger.debug(f"列表结果写入实体存储 {kind.value}: {written}/{len(results)}")

    # ---- 列表 ----

    async def movies(self, list_type: str = "popular", page: int = 1) -> dict:
        return await self._list(
            lambda: self._fetcher.get_movies(list_type, page),
            CacheKey(CacheKind.movie_list(list_type), canonical_identifier(page=page)),
            EntityKind.MOVIE,
        )

    async def tv_shows(self, list_type: str = "popular", page: int = 1) -> dict:
        return await self._list(
            lambda: self._fetcher.get_tv_shows(list_type, page),
            CacheKey(CacheKind.tv_list(list_type), canonical_identifier(page=page)),
            EntityKind.TV_SHOW,
        )

    async def trending(
        self, media_type: str = "movie", time_window: str = "day", page: int = 1
    ) -> dict:
        return await self._list(
            lambda: self._fetcher.get_trending(media_type, time_window, page),
            CacheKey(
                CacheKind.TRENDING,
                canonical_identifier(
                    media_type=media_type, time_window=time_window, page=page
                ),
            ),
            _media_kind(media_type),
        )

    # ---- 搜索 / 发现 ----

    async def search_movies(self, query: str, page: int = 1) -> dict:
        query = query.strip()
        return await self._list(
            lambda: self._fetcher.search_movies(query, page),
            CacheKey(CacheKind.SEARCH_MOVIES, canonical_identifier(query=query, page=page)),
            EntityKind.MOVIE,
        )

    async def search_tv(self, query: str, page: int = 1) -> dict:
        query = query.strip()
        return await self._list(
            lambda: self._fetcher.search_tv(query, page),
            CacheKey(CacheKind.SEARCH_TV, canonical_identifier(query=query, page=page)),
            EntityKind.TV_SHOW,
        )

    async def discover_movies(
        self, params: Optional[Mapping[str, Any]] = None, page: int = 1
    ) -> dict:
        params = dict(params or {})
        return await self._list(
            lambda: self._fetcher.discover_movies(params, page),
            CacheKey(CacheKind.DISCOVER_MOVIES, canonical_identifier(params, page=page)),
            EntityKind.MOVIE,
        )

    async def discover_tv(
        self, params: Optional[Mapping[str, Any]] = None, page: int = 1
    ) -> dict:
        params = dict(params or {})
        return await self._list(
            lambda: self._fetcher.discover_tv(params, page),
            CacheKey(CacheKind.DISCOVER_TV, canonical_identifier(params, page=page)),
            EntityKind.TV_SHOW,
        )

    # ---- 相似 / 推荐 ----

    async def similar_movies(self, movie_id: int, page: int = 1) -> dict:
        return await self._list(
            lambda: self._fetcher.get_similar_movies(movie_id, page),
            CacheKey(CacheKind.SIMILAR_MOVIES, canonical_identifier(id=movie_id, page=page)),
            EntityKind.MOVIE,
        )

    async def similar_tv(self, tv_id: int, page: int = 1) -> dict:
        return await self._list(
            lambda: self._fetcher.get_similar_tv(tv_id, page),
            CacheKey(CacheKind.SIMILAR_TV, canonical_identifier(id=tv_id, page=page)),
            EntityKind.TV_SHOW,
        )

    async def movie_recommendations(self, movie_id: int, page: int = 1) -> dict:
        return await self._list(
            lambda: self._fetcher.get_movie_recommendations(movie_id, page),
            CacheKey(
                CacheKind.MOVIE_RECOMMENDATIONS, canonical_identifier(id=movie_id, page=page)
            ),
            EntityKind.MOVIE,
        )

    async def tv_recommendations(self, tv_id: int, page: int = 1) -> dict:
        return await self._list(
            lambda: self._fetcher.get_tv_recommendations(tv_id, page),
            CacheKey(
                CacheKind.TV_RECOMMENDATIONS, canonical_identifier(id=tv_id, page=page)
            ),
            EntityKind.TV_SHOW,
        )

    # ---- 详情 ----

    async def movie_details(self, movie_id: int) -> dict:
        return await self._details(
            movie_id,
            EntityKind.MOVIE,
            lambda: self._fetcher.get_movie_details(movie_id),
            CacheKind.MOVIE_DETAILS,
        )

    async def tv_details(self, tv_id: int) -> dict:
        return await self._details(
            tv_id,
            EntityKind.TV_SHOW,
            lambda: self._fetcher.get_tv_details(tv_id),
            CacheKind.TV_DETAILS,
        )

    async def _details(
        self,
        entity_id: int,
        kind: EntityKind,
        fetch: Callable[[], Awaitable[dict]],
        cache_kind: str,
    ) -> dict:
        async def remember(payload):
            await self._entities.upsert_details(entity_id, kind, payload)

        return await self._dispatcher.execute(
            fetch, CacheKey(cache_kind, str(entity_id)), on_success=remember
        )

    async def movie_record(self, movie_id: int) -> dict:
        return await self._record(movie_id, EntityKind.MOVIE, self.movie_details)

    async def tv_record(self, tv_id: int) -> dict:
        return await self._record(tv_id, EntityKind.TV_SHOW, self.tv_details)

    async def _record(
        self,
        entity_id: int,
        kind: EntityKind,
        refresh: Callable[[int], Awaitable[dict]],
    ) -> dict:
        """
        详情页优先读取实体存储

        - 已有完整详情且媒体层未过期：直接返回
        - 否则刷新详情；刷新失败但有旧记录时返回旧记录
        """
        record = await self._entities.get(entity_id, kind)
        if (
            record is not None
            and record["has_full_details"]
            and not await self._entities.needs_refresh(entity_id, kind, Tier.MEDIA)
        ):
            logger.debug(f"实体存储命中 {kind.value}:{entity_id}")
            return record

        try:
            payload = await refresh(entity_id)
        except NoDataAvailable:
            if record is None:
                raise
            logger.warning(f"详情刷新失败，使用已存储的记录 {kind.value}:{entity_id}")
            return record

        # 来自缓存回退的详情响应不会写入实体存储
        refreshed = await self._entities.get(entity_id, kind)
        return refreshed if refreshed is not None else payload

    # ---- 其他资源 ----

    async def genres(self, media_type: str = "movie") -> list:
        return await self._dispatcher.execute(
            lambda: self._fetcher.get_genres(media_type),
            CacheKey(CacheKind.GENRES, media_type),
        )

    async def person_details(self, person_id: int) -> dict:
        return await self._dispatcher.execute(
            lambda: self._fetcher.get_person_details(person_id),
            CacheKey(CacheKind.PERSON_DETAILS, str(person_id)),
        )

    async def person_movie_credits(self, person_id: int) -> dict:
        return await self._dispatcher.execute(
            lambda: self._fetcher.get_person_movie_credits(person_id),
            CacheKey(CacheKind.PERSON_MOVIE_CREDITS, str(person_id)),
        )

    async def person_tv_credits(self, person_id: int) -> dict:
        return await self._dispatcher.execute(
            lambda: self._fetcher.get_person_tv_credits(person_id),
            CacheKey(CacheKind.PERSON_TV_CREDITS, str(person_id)),
        )

    async def watch_providers(self, content_id: int, media_type: str = "movie") -> dict:
        return await self._dispatcher.execute(
            lambda: self._fetcher.get_watch_providers(content_id, media_type),
            CacheKey(
                CacheKind.WATCH_PROVIDERS,
                canonical_identifier(id=content_id, media_type=media_type),
            ),
        )

    async def available_watch_providers(
        self, media_type: str = "movie", region: str = "US"
    ) -> dict:
        return await self._dispatcher.execute(
            lambda: self._fetcher.get_available_watch_providers(media_type, region),
            CacheKey(
                CacheKind.AVAILABLE_WATCH_PROVIDERS,
                canonical_identifier(media_type=media_type, region=region),
            ),
        )

    # ---- AI ----

    async def ai_content(
        self,
        content_key: str,
        generate: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """AI 生成内容（相似推荐、问答等）同样走在线优先/缓存回退"""
        return await self._dispatcher.execute(
            generate, CacheKey(CacheKind.AI_CONTENT, content_key), ttl
        )

    async def store_ai_content(
        self,
        entity_id: int,
        kind: "EntityKind | str",
        similar: Optional[list] = None,
        trivia: Optional[list] = None,
        tags: Any = None,
    ) -> bool:
        """写入实体的 AI 层；基础记录不存在时记录日志并丢弃"""
        try:
            result = await self._entities.upsert_ai(
                entity_id, kind, similar=similar, trivia=trivia, tags=tags
            )
        except NotFound as e:
            logger.warning(f"已丢弃 AI 数据: {e}")
            return False
        return result.ok
