"""
@description 异步数据库连接管理
@responsibility 提供 SQLAlchemy 异步引擎、会话管理和显式的初始化/关闭生命周期
"""

from contextlib import asynccontextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class Database:
    """数据库实例，由应用生命周期创建并注入各个存储组件"""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs = {"echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url:
                # 内存库只能共享同一个连接
                engine_kwargs["poolclass"] = StaticPool
            else:
                _ensure_sqlite_dir(url)

        self.engine = create_async_engine(url, **engine_kwargs)
        self._session_factory = sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init(self) -> None:
        """
        初始化数据库，创建所有表
        """
        # 导入所有模型，确保在 Base.metadata 中注册
        from offline_cache.models.cache_entry import CacheEntry, CacheIndexEntry  # noqa: F401
        from offline_cache.models.entity import MovieRecord, TVShowRecord  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"数据库初始化完成: {self.url}")

    async def close(self) -> None:
        """释放连接池"""
        await self.engine.dispose()
        logger.info("数据库连接已关闭")

    @asynccontextmanager
    async def session(self):
        """
        异步会话上下文管理器
        """
        async with self._session_factory() as session:
            try:
                yield session
            finally:
                await session.close()


def _ensure_sqlite_dir(url: str) -> None:
    """确保 SQLite 文件所在目录存在"""
    database = make_url(url).database
    if database:
        Path(database).parent.mkdir(parents=True, exist_ok=True)
