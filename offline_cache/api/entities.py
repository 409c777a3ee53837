"""
@description 实体记录接口
@responsibility 查询电影/剧集实体记录，按层判断是否需要刷新，分层写入基础、详情、AI 数据
"""

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, HTTPException

from offline_cache.schemas.api import (
    AIUpsertRequest,
    ApiResponse,
    DetailsUpsertRequest,
    RefreshResponse,
    success_response,
)
from offline_cache.services.entity_merge import EntityKind, Tier

if TYPE_CHECKING:
    from offline_cache.services.entity_store import EntityStore

router = APIRouter()

_entity_store: "EntityStore" = None


def init_entities_router(entity_store: "EntityStore"):
    global _entity_store
    _entity_store = entity_store


def _parse_kind(kind: str) -> EntityKind:
    try:
        return EntityKind.parse(kind)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _parse_tier(tier: str) -> Tier:
    try:
        return Tier(tier)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"未知的字段层级: {tier}")


def _ensure_written(result) -> None:
    if not result.ok:
        raise HTTPException(status_code=500, detail=f"写入实体记录失败: {result.error}")


@router.get("/entities/{kind}/{entity_id}")
async def get_entity(kind: str, entity_id: int):
    entity_kind = _parse_kind(kind)
    record = await _entity_store.get(entity_id, entity_kind)
    if record is None:
        raise HTTPException(
            status_code=404, detail=f"实体记录 '{entity_kind.value}:{entity_id}' 不存在"
        )
    return success_response(data=record, message="获取实体记录成功")


@router.get(
    "/entities/{kind}/{entity_id}/refresh", response_model=ApiResponse[RefreshResponse]
)
async def check_refresh(kind: str, entity_id: int, tier: str = "basic"):
    entity_kind = _parse_kind(kind)
    entity_tier = _parse_tier(tier)
    needs = await _entity_store.needs_refresh(entity_id, entity_kind, entity_tier)
    return success_response(
        data=RefreshResponse(needs_refresh=needs, tier=entity_tier.value),
        message="检查完成",
    )


@router.put("/entities/{kind}/{entity_id}/basic")
async def upsert_basic(kind: str, entity_id: int, fields: dict[str, Any] = Body(...)):
    entity_kind = _parse_kind(kind)
    _ensure_written(await _entity_store.upsert_basic(entity_id, entity_kind, fields))
    return success_response(
        data=await _entity_store.get(entity_id, entity_kind), message="基础字段已更新"
    )


@router.put("/entities/{kind}/{entity_id}/details")
async def upsert_details(kind: str, entity_id: int, request: DetailsUpsertRequest):
    entity_kind = _parse_kind(kind)
    result = await _entity_store.upsert_details(
        entity_id,
        entity_kind,
        request.fields,
        cast=request.cast,
        crew=request.crew,
        videos=request.videos,
    )
    _ensure_written(result)
    return success_response(
        data=await _entity_store.get(entity_id, entity_kind), message="详情已更新"
    )


@router.put("/entities/{kind}/{entity_id}/ai")
async def upsert_ai(kind: str, entity_id: int, request: AIUpsertRequest):
    # 基础记录不存在时 NotFound 由全局异常处理器转换为 404
    entity_kind = _parse_kind(kind)
    result = await _entity_store.upsert_ai(
        entity_id,
        entity_kind,
        similar=request.similar,
        trivia=request.trivia,
        tags=request.tags,
    )
    _ensure_written(result)
    return success_response(
        data=await _entity_store.get(entity_id, entity_kind), message="AI 数据已更新"
    )
