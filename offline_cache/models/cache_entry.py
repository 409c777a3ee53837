"""
@description TTL 缓存条目与索引模型
@responsibility 持久化 API 响应缓存及其 key 索引，支持过期清理和按写入时间淘汰
"""

from sqlalchemy import Column, Float, Index, Integer, String, Text

from offline_cache.core.database import Base


class CacheEntry(Base):
    __tablename__ = "cache_entry"

    key = Column(String(1024), primary_key=True)
    kind = Column(String(128), nullable=False)
    identifier = Column(String(1024), nullable=False)
    # JSON 序列化后的响应体
    payload = Column(Text, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)
    stored_at = Column(Float, nullable=False)
    expires_at = Column(Float, nullable=False)

    __table_args__ = (
        Index("ix_cache_entry_expires_at", "expires_at"),
        Index("ix_cache_entry_stored_at", "stored_at"),
    )


class CacheIndexEntry(Base):
    """
    存活 key 的索引，枚举缓存时不需要扫描整个 cache_entry 表
    - 每次写入/删除条目时同步更新
    - 索引存在但条目缺失时，读取时自动删除索引
    """

    __tablename__ = "cache_index"

    key = Column(String(1024), primary_key=True)
    kind = Column(String(128), nullable=False, index=True)
    stored_at = Column(Float, nullable=False)
