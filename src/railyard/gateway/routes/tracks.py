"""轨道查询路由

GET /api/tracks/{track_id}/occupancy: 某时刻的轨道占用。
GET /api/tracks/{track_id}/capacity: 某时刻能否再容纳指定长度。
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from railyard.core.engine import check_capacity, reconstruct_occupancy

from ..deps import get_engine_config, get_store_group

router = APIRouter()


class OccupantItem(BaseModel):
    """占用车辆（列表项）"""

    resource_id: str
    length_m: float
    arrived_at: str
    position_m: float


class OccupancyResponse(BaseModel):
    """轨道占用响应"""

    track_id: str
    at: str
    usable_length_m: float
    total_length_m: float
    resource_count: int
    usage_percent: float
    occupants: list[OccupantItem]


@router.get("/api/tracks/{track_id}/occupancy", response_model=OccupancyResponse)
async def get_occupancy(
    track_id: str,
    at: datetime = Query(description="查询时刻（ISO 8601，必须带时区）"),
    include_planned: bool = Query(default=True, description="是否包含计划中的移动"),
    store_group=Depends(get_store_group),
):
    """重建轨道在 at 时刻的占用"""
    occupancy = await reconstruct_occupancy(
        store_group,
        track_id,
        at,
        include_planned=include_planned,
    )
    return OccupancyResponse(
        track_id=occupancy.track_id,
        at=occupancy.at.isoformat(),
        usable_length_m=occupancy.usable_length_m,
        total_length_m=occupancy.total_length_m,
        resource_count=occupancy.resource_count,
        usage_percent=round(occupancy.usage_percent, 2),
        occupants=[
            OccupantItem(
                resource_id=o.resource_id,
                length_m=o.length_m,
                arrived_at=o.arrived_at.isoformat(),
                position_m=o.position_m,
            )
            for o in occupancy.occupants
        ],
    )


@router.get("/api/tracks/{track_id}/capacity")
async def get_capacity(
    track_id: str,
    at: datetime = Query(description="查询时刻（ISO 8601，必须带时区）"),
    additional_length: float = Query(default=0, ge=0, description="需要的额外长度（米）"),
    exclude: list[str] | None = Query(default=None, description="不计入占用的车辆"),
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """检查轨道在 at 时刻的剩余容量"""
    result = await check_capacity(
        store_group,
        track_id,
        at,
        additional_length,
        exclude_resource_ids=exclude or (),
        config=config,
    )
    return {
        **result.model_dump(mode="json"),
        "time_based_check": result.time_based_check,
        "static_check": result.static_check,
    }
