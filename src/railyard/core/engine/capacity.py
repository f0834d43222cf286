"""轨道容量检查

基于时间点占用重建判断轨道能否再容纳 additional_length 米。
事件历史不可用时降级为静态 placement 统计，并在结果中标记 mode=static。
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

import structlog

from ..config import EngineConfig
from ..exceptions import HistoryUnavailableError, NotFoundError
from ..models.enums import CapacityCheckMode
from ..models.results import CapacityResult, FutureConflict
from ..models.track import Track
from ..store.protocols import EventLogStore
from .calendar import ensure_aware
from .occupancy import reconstruct_occupancy

log = structlog.get_logger()


async def current_usage(
    stores: EventLogStore,
    track: Track,
    at: datetime,
    exclude_resource_ids: Iterable[str] = (),
) -> tuple[float, CapacityCheckMode]:
    """计算轨道在 at 时刻的已用长度

    Returns:
        (已用长度, 检查模式)
    """
    excluded = set(exclude_resource_ids)
    try:
        occupancy = await reconstruct_occupancy(
            stores,
            track.track_id,
            at,
            exclude_resource_ids=excluded,
        )
        return occupancy.total_length_m, CapacityCheckMode.TIME_BASED
    except HistoryUnavailableError:
        resources = await stores.track_store.list_resources_on_track(track.track_id)
        usage = sum(r.length_m for r in resources if r.resource_id not in excluded)
        log.warning(
            "capacity_static_fallback",
            track_id=track.track_id,
            at=at.isoformat(),
            history_since=track.history_since.isoformat() if track.history_since else None,
        )
        return usage, CapacityCheckMode.STATIC


async def find_future_conflicts(
    stores: EventLogStore,
    track: Track,
    at: datetime,
    additional_length: float,
    *,
    exclude_resource_ids: Iterable[str] = (),
    config: EngineConfig,
) -> list[FutureConflict]:
    """查找 (at, at + horizon] 内计划到达时可用长度不足的时刻

    每个计划 trip 只检查一次，最多返回 config.future_conflict_limit 条。
    """
    if config.future_horizon_days == 0 or config.future_conflict_limit == 0:
        return []

    excluded = set(exclude_resource_ids)
    arrivals = await stores.movement_store.list_planned_arrivals(
        track.track_id,
        after=at,
        until=at + timedelta(days=config.future_horizon_days),
    )

    conflicts: list[FutureConflict] = []
    seen_trips: set[str] = set()
    for arrival in arrivals:
        if arrival.resource_id in excluded:
            continue
        trip_key = arrival.trip_id or arrival.event_id
        if trip_key in seen_trips:
            continue
        seen_trips.add(trip_key)

        occupancy = await reconstruct_occupancy(
            stores,
            track.track_id,
            arrival.ts,
            exclude_resource_ids=excluded,
        )
        available = max(0.0, track.usable_length_m - occupancy.total_length_m)
        if available < additional_length:
            conflicts.append(
                FutureConflict(
                    trip_id=arrival.trip_id,
                    ts=arrival.ts,
                    available_length_m=available,
                    required_length_m=additional_length,
                )
            )
            if len(conflicts) >= config.future_conflict_limit:
                break
    return conflicts


async def check_capacity(
    stores: EventLogStore,
    track_id: str,
    at: datetime,
    additional_length: float,
    *,
    exclude_resource_ids: Iterable[str] = (),
    config: EngineConfig | None = None,
) -> CapacityResult:
    """检查轨道在 at 时刻能否再容纳 additional_length 米

    - usable_length_m == 0：不限长度，始终有容量，可用长度为配置的哨兵值
    - 否则 available = max(0, usable - 已用)，has_capacity = available >= additional

    Raises:
        NotFoundError: 轨道不存在
    """
    config = config or EngineConfig()
    ensure_aware(at)
    excluded = set(exclude_resource_ids)

    track = await stores.track_store.get_track(track_id)
    if track is None:
        raise NotFoundError("track", track_id)

    usage, mode = await current_usage(stores, track, at, excluded)

    if track.is_unconstrained:
        return CapacityResult(
            track_id=track_id,
            at=at,
            track_length_m=0,
            current_usage_m=usage,
            additional_length_m=additional_length,
            available_length_m=config.unconstrained_available_length_m,
            has_capacity=True,
            mode=mode,
        )

    available = max(0.0, track.usable_length_m - usage)
    has_capacity = available >= additional_length

    future_conflicts: list[FutureConflict] = []
    if has_capacity and mode == CapacityCheckMode.TIME_BASED:
        future_conflicts = await find_future_conflicts(
            stores,
            track,
            at,
            additional_length,
            exclude_resource_ids=excluded,
            config=config,
        )

    log.debug(
        "capacity_checked",
        track_id=track_id,
        at=at.isoformat(),
        current_usage_m=usage,
        available_length_m=available,
        additional_length_m=additional_length,
        has_capacity=has_capacity,
        mode=mode.value,
        future_conflict_count=len(future_conflicts),
    )
    return CapacityResult(
        track_id=track_id,
        at=at,
        track_length_m=track.usable_length_m,
        current_usage_m=usage,
        additional_length_m=additional_length,
        available_length_m=available,
        has_capacity=has_capacity,
        mode=mode,
        future_conflicts=future_conflicts,
    )
