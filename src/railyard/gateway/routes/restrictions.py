"""访问限制路由

POST /api/restrictions: 创建限制并展开按日窗口。
PUT /api/restrictions/{restriction_id}: 更新限制并重新展开。
GET /api/restrictions: 限制列表，支持 project_id 筛选。
POST /api/restrictions/{restriction_id}/expand: 重新展开按日窗口。
GET /api/restrictions/{restriction_id}/windows: 按日窗口列表。
GET /api/restrictions/{restriction_id}/applies: 某时刻限制是否生效。
"""

from datetime import datetime

import pydantic
from fastapi import APIRouter, Depends, Query
from pydantic import AwareDatetime, BaseModel, Field
from railyard.core.exceptions import ValidationFailedError
from railyard.core.models import (
    ExpansionResult,
    RepetitionPattern,
    Restriction,
    RestrictionKind,
)
from ulid import ULID

from ..deps import get_engine_config, get_store_group
from ..services.restriction_service import RestrictionService

router = APIRouter()


class RestrictionRequest(BaseModel):
    """创建/更新限制的请求体"""

    project_id: str = ""
    start: AwareDatetime
    end: AwareDatetime
    pattern: RepetitionPattern = RepetitionPattern.ONCE
    kinds: list[RestrictionKind] = Field(min_length=1)
    track_ids: list[str] = Field(default_factory=list)
    comment: str | None = None


def _to_restriction(restriction_id: str, body: RestrictionRequest) -> Restriction:
    try:
        return Restriction(restriction_id=restriction_id, **body.model_dump())
    except pydantic.ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ValidationFailedError(messages) from e


def serialize_restriction(restriction: Restriction) -> dict:
    data = restriction.model_dump(mode="json")
    data["kinds"] = sorted(data["kinds"])
    return data


def serialize_expansion(result: ExpansionResult) -> dict:
    return {
        "restriction_id": result.restriction_id,
        "success": result.success,
        "inserted_count": result.inserted_count,
        "error": result.error,
        "batches": [b.model_dump(mode="json") for b in result.batches],
    }


@router.post("/api/restrictions", status_code=201)
async def create_restriction(
    body: RestrictionRequest,
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """创建限制并展开按日窗口"""
    service = RestrictionService(store_group, config)
    restriction, result = await service.save_and_expand(_to_restriction(str(ULID()), body))
    return {
        "restriction": serialize_restriction(restriction),
        "expansion": serialize_expansion(result),
    }


@router.put("/api/restrictions/{restriction_id}")
async def update_restriction(
    restriction_id: str,
    body: RestrictionRequest,
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """更新限制并重新展开按日窗口"""
    service = RestrictionService(store_group, config)
    restriction, result = await service.update_restriction(
        _to_restriction(restriction_id, body)
    )
    return {
        "restriction": serialize_restriction(restriction),
        "expansion": serialize_expansion(result),
    }


@router.get("/api/restrictions")
async def list_restrictions(
    project_id: str | None = Query(default=None, description="按项目筛选"),
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """查询限制列表，按开始时间正序"""
    service = RestrictionService(store_group, config)
    restrictions = await service.list_restrictions(project_id)
    return {"restrictions": [serialize_restriction(r) for r in restrictions]}


@router.post("/api/restrictions/{restriction_id}/expand")
async def expand(
    restriction_id: str,
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """重新展开限制的按日窗口"""
    service = RestrictionService(store_group, config)
    result = await service.expand(restriction_id)
    return serialize_expansion(result)


@router.get("/api/restrictions/{restriction_id}/windows")
async def list_windows(
    restriction_id: str,
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """查询限制的按日窗口"""
    service = RestrictionService(store_group, config)
    windows = await service.list_windows(restriction_id)
    return {
        "restriction_id": restriction_id,
        "windows": [w.model_dump(mode="json") for w in windows],
    }


@router.get("/api/restrictions/{restriction_id}/applies")
async def applies(
    restriction_id: str,
    at: datetime = Query(description="查询时刻（ISO 8601，必须带时区）"),
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """判断限制在 at 时刻是否生效"""
    service = RestrictionService(store_group, config)
    return {
        "restriction_id": restriction_id,
        "at": at.isoformat(),
        "applies": await service.applies(restriction_id, at),
    }
