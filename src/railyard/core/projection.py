"""Placement Projection 重建模块

从 movement_events 表重建 resources.current_track_id（物化视图），
确保静态 placement 与已执行事件一致。
"""

import time

import aiosqlite
import structlog

from .models.movement import MovementEvent
from .store.common import write_transaction
from .store.movement_store import SqliteMovementStore
from .store.track_store import SqliteTrackStore

log = structlog.get_logger()


def apply_event(placements: dict[str, str | None], event: MovementEvent) -> None:
    """将单个已执行事件应用到 placement（内存中操作）

    Args:
        placements: resource_id -> track_id 的映射表（会被就地修改）
        event: 要应用的事件
    """
    placements[event.resource_id] = event.dest_track_id


async def rebuild_placements(
    conn: aiosqlite.Connection,
    movement_store: SqliteMovementStore,
    track_store: SqliteTrackStore,
) -> int:
    """从 movement_events 表重建 resources.current_track_id

    流程：
    1. 读取所有已执行事件（按 ts, seq 排序）
    2. 在内存中应用所有事件，得到每辆车的最终位置
    3. 写回有事件记录的车辆；没有事件的车辆保留原有 placement

    读取与写回在同一个持有连接写锁的事务内，重建期间不会插入新的 trip。

    Returns:
        处理的事件总数
    """
    start_time = time.monotonic()
    placements: dict[str, str | None] = {}

    async with write_transaction(conn):
        events = await movement_store.list_all_events(include_planned=False)
        event_count = len(events)
        await log.ainfo("projection_rebuild_started", event_count=event_count)

        for event in events:
            apply_event(placements, event)
        for resource_id, track_id in placements.items():
            await track_store.update_resource_track(resource_id, track_id)

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_rebuild_completed",
        event_count=event_count,
        resource_count=len(placements),
        elapsed_ms=elapsed_ms,
    )

    return event_count
