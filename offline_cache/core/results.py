"""
@description 存储层写入结果
@responsibility 以返回值代替异常表达"尽力而为"的缓存写入，由调用方显式检查和记录
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class WriteResult:
    """缓存写入结果，写入失败不会影响业务流程"""

    ok: bool
    error: Optional[BaseException] = None

    @classmethod
    def success(cls) -> "WriteResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: BaseException) -> "WriteResult":
        return cls(ok=False, error=error)

    def __bool__(self) -> bool:
        return self.ok
