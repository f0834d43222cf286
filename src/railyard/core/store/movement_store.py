"""MovementStore SQLite 实现

movement_events 表 append-only：只允许插入，不允许更新或删除。
seq 为自增主键，即事件的创建序号；同一时间戳的事件按 seq 排序。
被取代的 trip 记录在 superseded_trips 中，其事件不再参与查询。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import MoveKind
from ..models.movement import MovementEvent
from .common import from_db_ts, storage_errors, to_db_ts

_EVENT_COLUMNS = (
    "seq, event_id, resource_id, kind, source_track_id, dest_track_id, "
    "ts, planned, length_m, trip_id"
)

_NOT_SUPERSEDED = (
    "(trip_id IS NULL OR trip_id NOT IN (SELECT trip_id FROM superseded_trips))"
)


class SqliteMovementStore:
    """MovementStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_event(self, event: MovementEvent) -> MovementEvent:
        """追加事件（append-only），返回带 seq 的事件

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        cursor = await self._conn.execute(
            f"""
            INSERT INTO movement_events ({_EVENT_COLUMNS})
            VALUES (NULL, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.resource_id,
                event.kind.value,
                event.source_track_id,
                event.dest_track_id,
                to_db_ts(event.ts),
                1 if event.planned else 0,
                event.length_m,
                event.trip_id,
            ),
        )
        return event.model_copy(update={"seq": cursor.lastrowid})

    async def reserve_slot(self, event: MovementEvent, time_bucket: int) -> None:
        """占用 (resource_id, time_bucket)；重复占用由主键约束拒绝

        注意：此方法不自动提交事务。
        """
        await self._conn.execute(
            """
            INSERT INTO resource_slots (resource_id, time_bucket, trip_id, event_id)
            VALUES (?, ?, ?, ?)
            """,
            (event.resource_id, time_bucket, event.trip_id or event.event_id, event.event_id),
        )

    async def supersede_trip(self, trip_id: str, superseded_by: str, at: datetime) -> None:
        """标记 trip 被取代并释放其时间桶

        注意：此方法不自动提交事务。
        """
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO superseded_trips (trip_id, superseded_by, superseded_at)
            VALUES (?, ?, ?)
            """,
            (trip_id, superseded_by, to_db_ts(at)),
        )
        await self._conn.execute("DELETE FROM resource_slots WHERE trip_id = ?", (trip_id,))

    async def list_events(self, resource_id: str) -> list[MovementEvent]:
        """查询指定车辆的所有有效事件，按 (ts, seq) 正序"""
        with storage_errors("list_events"):
            cursor = await self._conn.execute(
                f"""
                SELECT {_EVENT_COLUMNS} FROM movement_events
                WHERE resource_id = ? AND {_NOT_SUPERSEDED}
                ORDER BY ts ASC, seq ASC
                """,
                (resource_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_events_for_track(
        self,
        track_id: str,
        at_or_before: datetime,
        include_planned: bool = True,
    ) -> list[MovementEvent]:
        """查询进入或离开指定轨道、且不晚于 at_or_before 的事件，按 (ts, seq) 正序"""
        planned_filter = "" if include_planned else "AND planned = 0"
        with storage_errors("list_events_for_track"):
            cursor = await self._conn.execute(
                f"""
                SELECT {_EVENT_COLUMNS} FROM movement_events
                WHERE (dest_track_id = ? OR source_track_id = ?)
                  AND ts <= ?
                  {planned_filter}
                  AND {_NOT_SUPERSEDED}
                ORDER BY ts ASC, seq ASC
                """,
                (track_id, track_id, to_db_ts(at_or_before)),
            )
            rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_planned_arrivals(
        self,
        track_id: str,
        after: datetime,
        until: datetime,
    ) -> list[MovementEvent]:
        """查询 (after, until] 内计划进入指定轨道的事件"""
        with storage_errors("list_planned_arrivals"):
            cursor = await self._conn.execute(
                f"""
                SELECT {_EVENT_COLUMNS} FROM movement_events
                WHERE dest_track_id = ?
                  AND planned = 1
                  AND ts > ? AND ts <= ?
                  AND {_NOT_SUPERSEDED}
                ORDER BY ts ASC, seq ASC
                """,
                (track_id, to_db_ts(after), to_db_ts(until)),
            )
            rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_trip_events(self, trip_id: str) -> list[MovementEvent]:
        """查询同一 trip 的事件（包括已被取代的）"""
        with storage_errors("list_trip_events"):
            cursor = await self._conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM movement_events WHERE trip_id = ? ORDER BY seq",
                (trip_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_all_events(self, include_planned: bool = True) -> list[MovementEvent]:
        """查询所有有效事件，按 (ts, seq) 排序（用于 Projection 重建）"""
        planned_filter = "" if include_planned else "AND planned = 0"
        with storage_errors("list_all_events"):
            cursor = await self._conn.execute(
                f"""
                SELECT {_EVENT_COLUMNS} FROM movement_events
                WHERE {_NOT_SUPERSEDED} {planned_filter}
                ORDER BY ts ASC, seq ASC
                """
            )
            rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> MovementEvent:
        """将数据库行转换为 MovementEvent 模型"""
        return MovementEvent(
            seq=row[0],
            event_id=row[1],
            resource_id=row[2],
            kind=MoveKind(row[3]),
            source_track_id=row[4],
            dest_track_id=row[5],
            ts=from_db_ts(row[6]),
            planned=bool(row[7]),
            length_m=row[8],
            trip_id=row[9],
        )
