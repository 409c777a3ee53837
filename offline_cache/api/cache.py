"""
@description 缓存管理接口
@responsibility 查询缓存统计、清空缓存、删除单个条目、手动触发过期清扫
"""

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException
from loguru import logger

from offline_cache.schemas.api import (
    ApiResponse,
    CacheStatsResponse,
    SweepResponse,
    success_response,
)

if TYPE_CHECKING:
    from offline_cache.services.ttl_store import TTLStore

router = APIRouter()

_ttl_store: "TTLStore" = None


def init_cache_router(ttl_store: "TTLStore"):
    global _ttl_store
    _ttl_store = ttl_store


@router.get("/cache/stats", response_model=ApiResponse[CacheStatsResponse])
async def get_cache_stats():
    stats = await _ttl_store.stats()
    return success_response(
        data=CacheStatsResponse(**stats.to_dict()), message="获取缓存统计成功"
    )


@router.delete("/cache")
async def clear_cache():
    result = await _ttl_store.clear()
    if not result.ok:
        raise HTTPException(status_code=500, detail=f"清空缓存失败: {result.error}")
    logger.info("缓存已通过管理接口清空")
    return success_response(data=None, message="缓存已清空")


@router.delete("/cache/{kind}/{identifier}")
async def remove_cache_entry(kind: str, identifier: str):
    if not await _ttl_store.has(kind, identifier):
        raise HTTPException(status_code=404, detail=f"缓存条目 '{kind}:{identifier}' 不存在")

    result = await _ttl_store.remove(kind, identifier)
    if not result.ok:
        raise HTTPException(status_code=500, detail=f"删除缓存失败: {result.error}")
    return success_response(data=None, message="缓存条目已删除")


@router.post("/cache/sweep", response_model=ApiResponse[SweepResponse])
async def sweep_cache():
    removed = await _ttl_store.sweep_expired()
    return success_response(data=SweepResponse(removed=removed), message="过期清扫完成")
