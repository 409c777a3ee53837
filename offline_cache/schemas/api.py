"""
@description API 请求/响应模型
@responsibility 定义管理接口的数据结构和统一响应格式
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class StatusResponse(BaseModel):
    online: bool = Field(..., description="当前是否在线")
    last_checked_at: Optional[str] = Field(None, description="上次探测时间")
    last_changed_at: Optional[str] = Field(None, description="上次状态变化时间")
    monitor_running: bool = Field(..., description="连通性监控是否运行中")
    sweeper_running: bool = Field(..., description="缓存清扫是否运行中")
    last_sweep_at: Optional[str] = Field(None, description="上次清扫时间")


class CacheStatsResponse(BaseModel):
    count: int = Field(..., description="缓存条目数")
    total_bytes: int = Field(..., description="缓存总字节数")
    oldest: Optional[float] = Field(None, description="最早写入时间（epoch 秒）")
    newest: Optional[float] = Field(None, description="最近写入时间（epoch 秒）")
    count_by_kind: dict[str, int] = Field(
        default_factory=dict, description="按 kind 统计的条目数"
    )


class SweepResponse(BaseModel):
    removed: int = Field(..., description="本次删除的过期条目数")


class RefreshResponse(BaseModel):
    needs_refresh: bool = Field(..., description="是否需要刷新")
    tier: str = Field(..., description="字段层级")


class DetailsUpsertRequest(BaseModel):
    fields: dict[str, Any] = Field(default_factory=dict, description="详情接口原始字段")
    cast: Optional[list[dict[str, Any]]] = Field(None, description="演员列表")
    crew: Optional[list[dict[str, Any]]] = Field(None, description="职员列表")
    videos: Optional[list[dict[str, Any]]] = Field(None, description="视频列表")


class AIUpsertRequest(BaseModel):
    similar: Optional[list[Any]] = Field(None, description="AI 相似推荐")
    trivia: Optional[list[Any]] = Field(None, description="AI 冷知识")
    tags: Optional[Any] = Field(None, description="AI 标签")


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""

    code: int = Field(..., description="响应码（0=成功，非0=错误）")
    message: str = Field(..., description="响应消息")
    data: Optional[T] = Field(None, description="响应数据")


def success_response(data: T, message: str = "操作成功") -> ApiResponse[T]:
    """创建成功响应"""
    return ApiResponse(code=0, message=message, data=data)


def error_response(code: int, message: str, data: Optional[T] = None) -> ApiResponse[T]:
    """创建错误响应"""
    return ApiResponse(code=code, message=message, data=data)
