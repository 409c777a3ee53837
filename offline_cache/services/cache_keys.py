"""
@description 缓存 key 与 TTL 策略
@responsibility 定义缓存 kind 命名空间、确定性的 identifier 序列化以及按 kind 的默认 TTL
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional

HOUR = 60 * 60
DAY = 24 * HOUR

# 通用兜底 TTL
DEFAULT_TTL = 7 * DAY

# 列表页按新鲜度需求分档
LIST_TTLS = {
    "popular": 12 * HOUR,
    "top_rated": 24 * HOUR,
    "upcoming": 12 * HOUR,
    "now_playing": 12 * HOUR,
    "latest": 12 * HOUR,
    "airing_today": 12 * HOUR,
    "on_the_air": 12 * HOUR,
}
DEFAULT_LIST_TTL = 12 * HOUR

KIND_TTLS = {
    "trending": 2 * HOUR,
    "search_movies": 24 * HOUR,
    "search_tv": 24 * HOUR,
    "discover_movies": 6 * HOUR,
    "discover_tv": 6 * HOUR,
    "person_details": 30 * DAY,
    "person_movie_credits": 30 * DAY,
    "person_tv_credits": 30 * DAY,
    "genres": 30 * DAY,
    "watch_providers": 30 * DAY,
    "available_watch_providers": 30 * DAY,
}

MOVIE_LIST_PREFIX = "movies_"
TV_LIST_PREFIX = "tvshows_"


class CacheKind:
    """缓存 kind 命名空间"""

    SEARCH_MOVIES = "search_movies"
    SEARCH_TV = "search_tv"
    DISCOVER_MOVIES = "discover_movies"
    DISCOVER_TV = "discover_tv"
    MOVIE_DETAILS = "movie_details"
    TV_DETAILS = "tv_details"
    GENRES = "genres"
    SIMILAR_MOVIES = "similar_movies"
    SIMILAR_TV = "similar_tv"
    MOVIE_RECOMMENDATIONS = "movie_recommendations"
    TV_RECOMMENDATIONS = "tv_recommendations"
    TRENDING = "trending"
    PERSON_DETAILS = "person_details"
    PERSON_MOVIE_CREDITS = "person_movie_credits"
    PERSON_TV_CREDITS = "person_tv_credits"
    WATCH_PROVIDERS = "watch_providers"
    AVAILABLE_WATCH_PROVIDERS = "available_watch_providers"
    AI_CONTENT = "ai_content"

    @staticmethod
    def movie_list(list_type: str) -> str:
        return f"{MOVIE_LIST_PREFIX}{list_type}"

    @staticmethod
    def tv_list(list_type: str) -> str:
        return f"{TV_LIST_PREFIX}{list_type}"


@dataclass(frozen=True)
class CacheKey:
    """(kind, identifier) 二元组，存储 key 由 storage_key() 统一生成"""

    kind: str
    identifier: str

    def storage_key(self, prefix: str = "") -> str:
        return f"{prefix}{self.kind}_{self.identifier}"

    def __str__(self) -> str:
        return f"{self.kind}:{self.identifier}"


def canonical_identifier(params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> str:
    """
    将请求参数序列化为确定性的 identifier

    - 值为 None 的参数忽略
    - 整体按 sort_keys 的紧凑 JSON 编码，参数顺序不影响结果，
      字符串中的 & = 以及 "true" 与 true 等不同取值不会互相冲突

    Examples:
        >>> canonical_identifier(page=1, query="batman")
        '{"page":1,"query":"batman"}'
        >>> canonical_identifier({"with_genres": "28", "sort_by": "popularity.desc"}, page=2)
        '{"page":2,"sort_by":"popularity.desc","with_genres":"28"}'
    """
    merged: dict[str, Any] = dict(params or {})
    merged.update(kwargs)
    present = {str(name): value for name, value in merged.items() if value is not None}
    if not present:
        return "all"
    return json.dumps(present, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def default_ttl(kind: str) -> int:
    """按 kind 返回默认 TTL（秒）"""
    if kind in KIND_TTLS:
        return KIND_TTLS[kind]
    for prefix in (MOVIE_LIST_PREFIX, TV_LIST_PREFIX):
        if kind.startswith(prefix):
            return LIST_TTLS.get(kind[len(prefix):], DEFAULT_LIST_TTL)
    return DEFAULT_TTL


class TTLPolicy:
    """默认 TTL 加配置覆盖，调用时传入的 TTL 优先级最高"""

    def __init__(self, overrides: Optional[Mapping[str, int]] = None):
        self._overrides = dict(overrides or {})

    def ttl_for(self, kind: str, ttl_override: Optional[float] = None) -> float:
        if ttl_override is not None:
            return ttl_override
        if kind in self._overrides:
            return self._overrides[kind]
        return default_ttl(kind)
