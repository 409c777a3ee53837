"""
@description API 接口测试
@responsibility 测试系统状态、缓存管理、实体记录接口以及统一响应格式
"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from offline_cache.api import cache, entities, system
from offline_cache.api.cache import init_cache_router
from offline_cache.api.entities import init_entities_router
from offline_cache.api.system import init_system_router
from offline_cache.core.errors import NoDataAvailable
from offline_cache.services.connectivity import ConnectivityGate, ProbeResult


@pytest.fixture
def gate():
    return ConnectivityGate()


@pytest_asyncio.fixture
async def client(ttl_store, entity_store, gate):
    from main import app

    init_cache_router(ttl_store)
    init_entities_router(entity_store)
    init_system_router(gate)

    # ASGITransport 不触发 lifespan，组件由 fixture 注入
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestSystem:
    @pytest.mark.asyncio
    async def test_root_and_health(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["code"] == 0

        response = await client.get("/health")
        assert response.json()["data"] == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_status(self, client, gate):
        gate.report(ProbeResult(connected=True, internet_reachable=False))

        response = await client.get("/api/status")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["online"] is False
        assert data["last_checked_at"] is not None
        assert data["monitor_running"] is False
        assert data["sweeper_running"] is False


class TestCacheApi:
    @pytest.mark.asyncio
    async def test_stats(self, client, ttl_store):
        await ttl_store.set("genres", "movie", [{"id": 28}])

        response = await client.get("/api/cache/stats")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["count"] == 1
        assert data["count_by_kind"] == {"genres": 1}

    @pytest.mark.asyncio
    async def test_remove_entry(self, client, ttl_store):
        await ttl_store.set("movie_details", "42", {"id": 42})

        response = await client.delete("/api/cache/movie_details/42")
        assert response.status_code == 200
        assert not await ttl_store.has("movie_details", "42")

        response = await client.delete("/api/cache/movie_details/42")
        assert response.status_code == 404
        assert response.json()["code"] == 404

    @pytest.mark.asyncio
    async def test_clear(self, client, ttl_store):
        await ttl_store.set("genres", "movie", [])
        response = await client.delete("/api/cache")
        assert response.status_code == 200
        assert not await ttl_store.has_cached_content()

    @pytest.mark.asyncio
    async def test_sweep(self, client, ttl_store, clock):
        await ttl_store.set("trending", "day", {"results": []}, ttl=10)
        clock.advance(20)

        response = await client.post("/api/cache/sweep")
        assert response.status_code == 200
        assert response.json()["data"] == {"removed": 1}


class TestEntitiesApi:
    @pytest.mark.asyncio
    async def test_upsert_and_get(self, client):
        response = await client.put(
            "/api/entities/movie/42/basic", json={"title": "X", "vote_average": 7.1}
        )
        assert response.status_code == 200

        response = await client.put(
            "/api/entities/movie/42/details",
            json={"fields": {"budget": 1000000}, "cast": [{"name": "Lead"}]},
        )
        assert response.status_code == 200

        response = await client.get("/api/entities/movie/42")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "X"
        assert data["vote_average"] == 7.1
        assert data["budget"] == 1000000
        assert data["cast"] == [{"name": "Lead"}]

    @pytest.mark.asyncio
    async def test_get_missing(self, client):
        response = await client.get("/api/entities/tv/1")
        assert response.status_code == 404
        assert response.json()["code"] == 404

    @pytest.mark.asyncio
    async def test_unknown_kind(self, client):
        response = await client.get("/api/entities/person/1")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_ai_without_record(self, client):
        response = await client.put("/api/entities/movie/404/ai", json={"trivia": ["x"]})
        assert response.status_code == 404
        assert response.json()["code"] == 404

    @pytest.mark.asyncio
    async def test_ai_update(self, client, entity_store):
        await entity_store.upsert_basic(1, "Movie", {"title": "X"})
        response = await client.put("/api/entities/movie/1/ai", json={"tags": ["noir"]})
        assert response.status_code == 200
        assert response.json()["data"]["ai_tags"] == ["noir"]

    @pytest.mark.asyncio
    async def test_refresh(self, client, entity_store):
        response = await client.get("/api/entities/movie/1/refresh")
        assert response.json()["data"] == {"needs_refresh": True, "tier": "basic"}

        await entity_store.upsert_basic(1, "Movie", {"title": "X"})
        response = await client.get("/api/entities/movie/1/refresh", params={"tier": "basic"})
        assert response.json()["data"]["needs_refresh"] is False

        response = await client.get("/api/entities/movie/1/refresh", params={"tier": "bogus"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_validation_error(self, client):
        response = await client.get("/api/entities/movie/not-a-number")
        assert response.status_code == 422
        assert response.json()["message"] == "请求参数验证失败"


class TestErrorEnvelope:
    """异常处理器返回统一响应格式"""

    @pytest.mark.asyncio
    async def test_no_data_available(self):
        from main import no_data_handler

        response = await no_data_handler(None, NoDataAvailable("genres", "movie", online=False))

        assert response.status_code == 503
        body = json.loads(response.body)
        assert body["code"] == 503
        assert body["data"] == {"online": False}
        assert "genres:movie" in body["message"]

    @pytest.mark.asyncio
    async def test_unexpected_error(self):
        from main import general_exception_handler

        response = await general_exception_handler(None, RuntimeError("boom"))

        assert response.status_code == 500
        assert json.loads(response.body) == {
            "code": 500,
            "message": "服务器内部错误",
            "data": None,
        }
