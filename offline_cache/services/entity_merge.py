"""
@description 实体记录字段定义与合并规则
@responsibility 定义三层字段、从原始 API 响应派生简化字段，以及"新值优先、缺省保留旧值"的纯函数合并
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Any, Iterable, Mapping, Optional


class EntityKind(str, Enum):
    MOVIE = "Movie"
    TV_SHOW = "TVShow"

    @classmethod
    def parse(cls, value: "EntityKind | str") -> "EntityKind":
        """兼容 Movie/movie 与 TVShow/tv/tv_show 等写法"""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "")
        if normalized == "movie":
            return cls.MOVIE
        if normalized in ("tvshow", "tv"):
            return cls.TV_SHOW
        raise ValueError(f"未知的实体类型: {value}")


class Tier(str, Enum):
    BASIC = "basic"
    MEDIA = "media"
    AI = "ai"


TIER_TTLS = {
    Tier.BASIC: timedelta(days=30),
    Tier.MEDIA: timedelta(days=7),
    Tier.AI: timedelta(days=180),
}

TIER_TIMESTAMPS = {
    Tier.BASIC: "cached_at",
    Tier.MEDIA: "media_cached_at",
    Tier.AI: "ai_generated_at",
}

MOVIE_BASIC_FIELDS = (
    "title",
    "original_title",
    "overview",
    "poster_path",
    "backdrop_path",
    "vote_average",
    "vote_count",
    "release_date",
    "genre_ids",
    "original_language",
    "popularity",
    "adult",
)

TV_BASIC_FIELDS = (
    "name",
    "original_name",
    "overview",
    "poster_path",
    "backdrop_path",
    "vote_average",
    "vote_count",
    "first_air_date",
    "genre_ids",
    "original_language",
    "popularity",
    "origin_country",
)

MOVIE_MEDIA_FIELDS = (
    "runtime",
    "genres",
    "cast",
    "crew",
    "trailer_key",
    "videos",
    "images",
    "keywords",
    "release_dates",
    "production_companies",
    "spoken_languages",
    "belongs_to_collection",
    "budget",
    "revenue",
    "tagline",
    "imdb_id",
    "content_rating",
)

TV_MEDIA_FIELDS = (
    "last_air_date",
    "number_of_seasons",
    "number_of_episodes",
    "genres",
    "cast",
    "crew",
    "trailer_key",
    "videos",
    "images",
    "keywords",
    "content_ratings",
    "created_by",
    "networks",
    "production_companies",
    "spoken_languages",
    "status",
    "type",
    "tagline",
    "episode_run_time",
    "content_rating",
)

AI_FIELDS = ("ai_similar", "ai_trivia", "ai_tags")

META_FIELDS = ("cached_at", "media_cached_at", "ai_generated_at", "has_full_details")

# 新记录缺少字段时使用的默认值，未列出的字段默认为 None
FIELD_DEFAULTS: dict[str, Any] = {
    "title": "",
    "original_title": "",
    "name": "",
    "original_name": "",
    "overview": "",
    "vote_average": 0.0,
    "vote_count": 0,
    "genre_ids": [],
    "genres": [],
    "original_language": "",
    "popularity": 0.0,
    "adult": False,
    "origin_country": [],
    "episode_run_time": [],
    "has_full_details": False,
}

CAST_LIMIT = 20
MOVIE_CREW_JOBS = frozenset({"Director", "Producer", "Writer", "Screenplay"})
TV_CREW_JOBS = frozenset({"Director", "Producer", "Writer", "Creator"})
CERTIFICATION_REGION = "US"


def basic_fields(kind: EntityKind) -> tuple[str, ...]:
    return MOVIE_BASIC_FIELDS if kind is EntityKind.MOVIE else TV_BASIC_FIELDS


def media_fields(kind: EntityKind) -> tuple[str, ...]:
    return MOVIE_MEDIA_FIELDS if kind is EntityKind.MOVIE else TV_MEDIA_FIELDS


def record_fields(kind: EntityKind) -> tuple[str, ...]:
    return ("id", *basic_fields(kind), *media_fields(kind), *AI_FIELDS, *META_FIELDS)


def default_for(name: str) -> Any:
    value = FIELD_DEFAULTS.get(name)
    # 列表默认值每次返回新对象
    return list(value) if isinstance(value, list) else value


def merge_record(
    existing: Optional[Mapping[str, Any]],
    incoming: Mapping[str, Any],
    fields: Iterable[str],
) -> dict[str, Any]:
    """
    合并已有记录与本次写入的部分字段

    对 fields 中的每个字段：本次提供了（非 None）则使用新值，否则保留已有值，
    两者都没有时使用类型默认值。fields 之外的已有字段原样保留。

    Args:
        existing: 已有记录（可为 None）
        incoming: 本次写入的字段
        fields: 本次允许写入的字段

    Returns:
        合并后的完整记录
    """
    result = dict(existing) if existing else {}
    for name in fields:
        value = incoming.get(name)
        if value is not None:
            result[name] = value
        elif result.get(name) is None:
            result[name] = default_for(name)
    return result


def _pick(payload: Mapping[str, Any], names: Iterable[str]) -> dict[str, Any]:
    return {name: payload[name] for name in names if payload.get(name) is not None}


def _results(block: Any) -> Optional[list]:
    """兼容 append_to_response 的 {results: [...]} 结构和直接传入的列表"""
    if isinstance(block, list):
        return block
    if isinstance(block, Mapping):
        results = block.get("results")
        if isinstance(results, list):
            return results
    return None


def derive_basic_fields(kind: EntityKind, payload: Mapping[str, Any]) -> dict[str, Any]:
    """从列表/搜索结果中提取基础字段"""
    fields = _pick(payload, basic_fields(kind))

    if kind is EntityKind.MOVIE:
        if "original_title" not in fields and fields.get("title"):
            fields["original_title"] = fields["title"]
    elif "original_name" not in fields and fields.get("name"):
        fields["original_name"] = fields["name"]

    # 详情接口只返回 genres 对象，没有 genre_ids
    if "genre_ids" not in fields:
        genre_ids = genre_ids_from(payload.get("genres"))
        if genre_ids is not None:
            fields["genre_ids"] = genre_ids

    return fields


def genre_names_from(genres: Any) -> Optional[list[str]]:
    if not isinstance(genres, list):
        return None
    return [g["name"] for g in genres if isinstance(g, Mapping) and g.get("name")]


def genre_ids_from(genres: Any) -> Optional[list[int]]:
    if not isinstance(genres, list):
        return None
    return [g["id"] for g in genres if isinstance(g, Mapping) and g.get("id") is not None]


def find_trailer_key(videos: Optional[list]) -> Optional[str]:
    """第一个官方 YouTube 预告片的 key"""
    for video in videos or []:
        if (
            video.get("type") == "Trailer"
            and video.get("official")
            and video.get("site", "YouTube") == "YouTube"
            and video.get("key")
        ):
            return video["key"]
    return None


def filter_crew(kind: EntityKind, crew: list) -> list:
    jobs = MOVIE_CREW_JOBS if kind is EntityKind.MOVIE else TV_CREW_JOBS
    return [member for member in crew if member.get("job") in jobs]


def extract_keywords(block: Any) -> Optional[list]:
    """电影为 keywords.keywords，剧集为 keywords.results"""
    if isinstance(block, list):
        return block
    if isinstance(block, Mapping):
        for name in ("keywords", "results"):
            if isinstance(block.get(name), list):
                return block[name]
    return None


def extract_certification(kind: EntityKind, payload: Mapping[str, Any]) -> Optional[str]:
    """从 release_dates（电影）或 content_ratings（剧集）中取美国分级"""
    if kind is EntityKind.MOVIE:
        for region in _results(payload.get("release_dates")) or []:
            if region.get("iso_3166_1") != CERTIFICATION_REGION:
                continue
            for release in region.get("release_dates") or []:
                if release.get("certification"):
                    return release["certification"]
        return None

    for rating in _results(payload.get("content_ratings")) or []:
        if rating.get("iso_3166_1") == CERTIFICATION_REGION and rating.get("rating"):
            return rating["rating"]
    return None


def derive_detail_fields(
    kind: EntityKind,
    payload: Mapping[str, Any],
    cast: Optional[list] = None,
    crew: Optional[list] = None,
    videos: Optional[list] = None,
) -> dict[str, Any]:
    """
    从详情接口响应派生基础层和媒体层字段

    cast/crew/videos 未单独传入时，从 append_to_response 的 credits/videos 中读取。
    只返回本次响应中实际存在的字段。
    """
    fields = derive_basic_fields(kind, payload)

    simple = (
        (
            "runtime",
            "production_companies",
            "spoken_languages",
            "belongs_to_collection",
            "budget",
            "revenue",
            "tagline",
            "imdb_id",
        )
        if kind is EntityKind.MOVIE
        else (
            "last_air_date",
            "number_of_seasons",
            "number_of_episodes",
            "created_by",
            "networks",
            "production_companies",
            "spoken_languages",
            "status",
            "type",
            "tagline",
            "episode_run_time",
        )
    )
    fields.update(_pick(payload, simple))

    genre_names = genre_names_from(payload.get("genres"))
    if genre_names is not None:
        fields["genres"] = genre_names

    credits = payload.get("credits") if isinstance(payload.get("credits"), Mapping) else {}
    if cast is None:
        cast = credits.get("cast")
    if crew is None:
        crew = credits.get("crew")
    if videos is None:
        videos = _results(payload.get("videos"))

    if cast is not None:
        fields["cast"] = list(cast[:CAST_LIMIT])
    if crew is not None:
        fields["crew"] = filter_crew(kind, crew)
    if videos is not None:
        fields["videos"] = list(videos)
        trailer_key = find_trailer_key(videos)
        if trailer_key:
            fields["trailer_key"] = trailer_key

    if payload.get("images") is not None:
        fields["images"] = payload["images"]

    keywords = extract_keywords(payload.get("keywords"))
    if keywords is not None:
        fields["keywords"] = keywords

    ratings_field = "release_dates" if kind is EntityKind.MOVIE else "content_ratings"
    if payload.get(ratings_field) is not None:
        fields[ratings_field] = payload[ratings_field]

    certification = extract_certification(kind, payload)
    if certification:
        fields["content_rating"] = certification

    return fields


def derive_ai_fields(
    similar: Optional[list] = None,
    trivia: Optional[list] = None,
    tags: Any = None,
) -> dict[str, Any]:
    """只返回本次提供的 AI 字段"""
    fields: dict[str, Any] = {}
    if similar is not None:
        fields["ai_similar"] = similar
    if trivia is not None:
        fields["ai_trivia"] = trivia
    if tags is not None:
        fields["ai_tags"] = tags
    return fields
