"""移动事件 + placement Projection 原子事务封装

在同一 SQLite 事务内原子提交一次 trip 的所有事件、时间桶占用
以及已执行移动对 resources.current_track_id 的更新。
事务持有连接写锁，与同一连接上的其他写事务串行。
"""

from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo

import aiosqlite

from ..exceptions import MovementConflictError
from ..models.enums import MoveKind
from ..models.movement import MovementEvent
from .common import write_lock
from .movement_store import SqliteMovementStore
from .track_store import SqliteTrackStore

# 不占用时间桶的事件类型（初始放置与人工修正）
_SLOTLESS_KINDS = {MoveKind.INITIAL, MoveKind.MANUAL}

_SECONDS_PER_DAY = 86_400


def time_bucket(ts: datetime, bucket_seconds: int, tz: ZoneInfo) -> int:
    """运营时区下的时间桶编号

    桶从当地午夜起按实际经过的秒数划分，不跨越当地日期：
    同一桶内的两次移动必然同日且间隔小于 bucket_seconds。
    """
    local = ts.astimezone(tz)
    midnight = datetime.combine(local.date(), time(0), tzinfo=tz)
    elapsed = int((ts.astimezone(UTC) - midnight.astimezone(UTC)).total_seconds())
    return local.date().toordinal() * _SECONDS_PER_DAY + elapsed // bucket_seconds


async def append_trip(
    conn: aiosqlite.Connection,
    movement_store: SqliteMovementStore,
    track_store: SqliteTrackStore,
    events: list[MovementEvent],
    bucket_seconds: int,
    tz: ZoneInfo,
    supersedes_trip_id: str | None = None,
) -> list[MovementEvent]:
    """在同一事务内原子提交一次 trip

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        movement_store: MovementStore 实例
        track_store: TrackStore 实例
        events: 同一 trip 的事件（每辆车一条）
        bucket_seconds: 时间桶宽度（秒）
        tz: 运营时区，时间桶按当地日期划分
        supersedes_trip_id: 编辑已有 trip 时，被取代的 trip_id

    Returns:
        带 seq 的已写入事件

    Raises:
        MovementConflictError: 同一车辆在同一时间桶内已有移动
    """
    inserted: list[MovementEvent] = []
    async with write_lock(conn):
        try:
            if supersedes_trip_id is not None and events:
                await movement_store.supersede_trip(
                    supersedes_trip_id,
                    superseded_by=events[0].trip_id or events[0].event_id,
                    at=datetime.now(UTC),
                )

            for event in events:
                if event.kind not in _SLOTLESS_KINDS:
                    bucket = time_bucket(event.ts, bucket_seconds, tz)
                    await movement_store.reserve_slot(event, bucket)
                inserted.append(await movement_store.insert_event(event))

                # 已执行的移动同步更新静态 placement
                if not event.planned:
                    await track_store.update_resource_track(event.resource_id, event.dest_track_id)

            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            raise MovementConflictError(f"同一车辆在该时间段内已有移动: {e}") from e
        except BaseException:
            await conn.rollback()
            raise

    return inserted
