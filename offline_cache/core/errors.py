"""
@description 缓存子系统异常定义
@responsibility 统一远程获取、缓存读写、实体存储的错误类型
"""

from typing import Optional


class CacheError(Exception):
    """缓存子系统异常基类"""


class RemoteFetchFailed(CacheError):
    """远程 API 调用失败（网络错误、超时、上游异常）"""

    def __init__(self, kind: str, identifier: str, cause: BaseException):
        self.kind = kind
        self.identifier = identifier
        self.cause = cause
        super().__init__(f"远程获取失败 {kind}:{identifier}: {cause}")


class CacheMiss(CacheError):
    """缓存不存在或已过期"""

    def __init__(self, key: str, reason: str = "不存在"):
        self.key = key
        self.reason = reason
        super().__init__(f"缓存未命中 {key}（{reason}）")


class CorruptEntry(CacheError):
    """缓存条目反序列化失败，读取时自动删除，不向调用方抛出"""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        super().__init__(f"缓存条目已损坏 {key}: {cause}")


class NoDataAvailable(CacheError):
    """远程与缓存均无可用数据，唯一会抛给调度器调用方的异常"""

    def __init__(self, kind: str, identifier: str, online: bool):
        self.kind = kind
        self.identifier = identifier
        self.online = online
        state = "在线" if online else "离线"
        super().__init__(f"暂无可用数据 {kind}:{identifier}（{state}）")


class NotFound(CacheError):
    """写入 AI 数据时基础实体记录不存在"""

    def __init__(self, entity_id: int, kind: str):
        self.entity_id = entity_id
        self.kind = kind
        super().__init__(f"实体记录不存在 {kind}:{entity_id}")
