"""时间点占用重建

从移动事件日志重放出某一时刻位于轨道上的车辆集合。
重放按 (ts, seq) 正序进行，同一车辆以最后一个相关事件为准。
"""

from collections.abc import Iterable
from datetime import datetime

import structlog

from ..exceptions import HistoryUnavailableError, NotFoundError
from ..models.movement import MovementEvent
from ..models.results import Occupancy, Occupant
from ..store.protocols import EventLogStore
from .calendar import ensure_aware

log = structlog.get_logger()


def event_order_key(event: MovementEvent) -> tuple[datetime, int]:
    """排序键：时间戳优先，同一时间戳按创建序号"""
    return (event.ts, event.seq if event.seq is not None else 0)


def replay(events: Iterable[MovementEvent], track_id: str) -> dict[str, MovementEvent]:
    """重放事件，返回仍在轨道上的车辆 -> 其最近一次进入事件

    进入该轨道的事件使车辆在场，离开该轨道的事件使车辆离场；
    来源与目标相同的事件视为进入。没有任何事件的车辆视为不在场。
    """
    present: dict[str, MovementEvent] = {}
    for event in sorted(events, key=event_order_key):
        if event.arrives_on(track_id):
            # 重新插入以保持到达顺序
            present.pop(event.resource_id, None)
            present[event.resource_id] = event
        elif event.leaves(track_id):
            present.pop(event.resource_id, None)
    return present


def build_occupants(present: dict[str, MovementEvent]) -> list[Occupant]:
    """按到达顺序排列车辆，并计算距轨道起点的累计位置"""
    occupants: list[Occupant] = []
    position = 0.0
    for event in present.values():
        occupants.append(
            Occupant(
                resource_id=event.resource_id,
                length_m=event.length_m,
                arrived_at=event.ts,
                position_m=position,
            )
        )
        position += event.length_m
    return occupants


async def reconstruct_occupancy(
    stores: EventLogStore,
    track_id: str,
    at: datetime,
    *,
    exclude_resource_ids: Iterable[str] = (),
    include_planned: bool = True,
    exclude_trip_id: str | None = None,
) -> Occupancy:
    """重建轨道在 at 时刻的占用

    Args:
        stores: 存储组
        track_id: 轨道 ID
        at: 查询时刻（必须带时区）
        exclude_resource_ids: 不计入结果的车辆（例如正在校验移动的车辆）
        include_planned: False 时只重放已执行的事件
        exclude_trip_id: 不参与重放的 trip（编辑已有 trip 时）

    Raises:
        NotFoundError: 轨道不存在
        HistoryUnavailableError: at 早于轨道事件历史的起点
    """
    ensure_aware(at)
    track = await stores.track_store.get_track(track_id)
    if track is None:
        raise NotFoundError("track", track_id)
    if track.history_since is not None and at < track.history_since:
        raise HistoryUnavailableError(track_id, track.history_since)

    events = await stores.movement_store.list_events_for_track(
        track_id,
        at,
        include_planned=include_planned,
    )
    if exclude_trip_id is not None:
        events = [e for e in events if e.trip_id != exclude_trip_id]
    present = replay(events, track_id)
    for resource_id in exclude_resource_ids:
        present.pop(resource_id, None)

    occupancy = Occupancy(
        track_id=track_id,
        at=at,
        usable_length_m=track.usable_length_m,
        occupants=build_occupants(present),
    )
    log.debug(
        "occupancy_reconstructed",
        track_id=track_id,
        at=at.isoformat(),
        event_count=len(events),
        resource_count=occupancy.resource_count,
        total_length_m=occupancy.total_length_m,
    )
    return occupancy
