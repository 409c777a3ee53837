"""
@description 测试公共 fixture
@responsibility 提供临时 SQLite 数据库、可控时钟以及已初始化的存储实例
"""

import pytest
import pytest_asyncio

from offline_cache.core.database import Database
from offline_cache.services.entity_store import EntityStore
from offline_cache.services.ttl_store import TTLStore

START_TIME = 1_700_000_000.0


class FakeClock:
    """可手动推进的时钟（epoch 秒）"""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    await db.init()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def ttl_store(database, clock):
    store = TTLStore(database, max_items=10, eviction_ratio=0.3, clock=clock)
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def entity_store(database, clock):
    return EntityStore(database, clock=clock)
