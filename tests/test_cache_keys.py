"""
@description 缓存 key 与 TTL 策略测试
@responsibility 验证 identifier 序列化的确定性以及按 kind 的 TTL 选择
"""

from offline_cache.services.cache_keys import (
    DAY,
    DEFAULT_TTL,
    HOUR,
    CacheKey,
    CacheKind,
    TTLPolicy,
    canonical_identifier,
    default_ttl,
)


class TestCanonicalIdentifier:
    def test_sorted_compact_json(self):
        assert canonical_identifier(query="batman", page=1) == '{"page":1,"query":"batman"}'

    def test_parameter_order_does_not_matter(self):
        a = canonical_identifier({"with_genres": "28", "sort_by": "popularity.desc"}, page=2)
        b = canonical_identifier({"sort_by": "popularity.desc"}, page=2, with_genres="28")
        assert a == b == '{"page":2,"sort_by":"popularity.desc","with_genres":"28"}'

    def test_none_values_are_dropped(self):
        assert canonical_identifier(page=1, region=None) == '{"page":1}'

    def test_empty_params(self):
        assert canonical_identifier() == "all"
        assert canonical_identifier({}) == "all"
        assert canonical_identifier(region=None) == "all"

    def test_nested_values_are_sorted(self):
        a = canonical_identifier(filters={"b": 2, "a": 1})
        b = canonical_identifier(filters={"a": 1, "b": 2})
        assert a == b == '{"filters":{"a":1,"b":2}}'

    def test_bool_values(self):
        assert canonical_identifier(include_adult=False) == '{"include_adult":false}'

    def test_separators_in_values_do_not_collide(self):
        """值中包含 & 或 = 时不能与另一组参数得到相同 identifier"""
        joined = canonical_identifier({"sort_by": "popularity.desc&with_genres=28"}, page=1)
        split = canonical_identifier(
            {"sort_by": "popularity.desc", "with_genres": "28"}, page=1
        )
        assert joined != split

    def test_string_and_bool_do_not_collide(self):
        assert canonical_identifier(query="true") != canonical_identifier(query=True)
        assert canonical_identifier(page="1") != canonical_identifier(page=1)


class TestCacheKey:
    def test_storage_key(self):
        key = CacheKey("movie_details", "42")
        assert key.storage_key("@theater_offline_cache_") == "@theater_offline_cache_movie_details_42"

    def test_str(self):
        assert str(CacheKey("genres", "movie")) == "genres:movie"

    def test_list_kinds(self):
        assert CacheKind.movie_list("popular") == "movies_popular"
        assert CacheKind.tv_list("top_rated") == "tvshows_top_rated"


class TestDefaultTTL:
    def test_list_pages(self):
        assert default_ttl("movies_popular") == 12 * HOUR
        assert default_ttl("tvshows_top_rated") == 24 * HOUR
        assert default_ttl("movies_something_new") == 12 * HOUR

    def test_resource_kinds(self):
        assert default_ttl(CacheKind.TRENDING) == 2 * HOUR
        assert default_ttl(CacheKind.SEARCH_MOVIES) == 24 * HOUR
        assert default_ttl(CacheKind.DISCOVER_TV) == 6 * HOUR
        assert default_ttl(CacheKind.PERSON_DETAILS) == 30 * DAY

    def test_fallback(self):
        assert default_ttl(CacheKind.MOVIE_DETAILS) == DEFAULT_TTL
        assert default_ttl("unknown_kind") == 7 * DAY


class TestTTLPolicy:
    def test_override_precedence(self):
        policy = TTLPolicy({"trending": 600})
        assert policy.ttl_for("trending") == 600
        assert policy.ttl_for("trending", ttl_override=30) == 30
        assert policy.ttl_for("genres") == 30 * DAY
