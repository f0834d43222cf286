"""RestrictionStore SQLite 实现

restrictions + restriction_tracks 保存限制定义；
daily_restriction_windows 为派生表，按 (restriction_id, date, kind) 唯一。

写方法各自为一个持有连接写锁的完整事务，
以便展开时按批次提交、单批失败不影响已提交批次，也不影响同一连接上的其他事务。
"""

import datetime as dt
import json

import aiosqlite

from ..models.enums import RepetitionPattern, RestrictionKind
from ..models.restriction import DailyRestrictionWindow, Restriction
from .common import from_db_ts, storage_errors, to_db_ts, write_transaction


class SqliteRestrictionStore:
    """RestrictionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def save_restriction(self, restriction: Restriction) -> None:
        """创建或更新限制定义及其受影响轨道（单事务提交）"""
        now = dt.datetime.now(dt.UTC)
        with storage_errors("save_restriction"):
            async with write_transaction(self._conn):
                await self._conn.execute(
                    """
                    INSERT INTO restrictions (restriction_id, project_id, start_ts, end_ts,
                                              pattern, kinds, comment, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (restriction_id) DO UPDATE SET
                        project_id = excluded.project_id,
                        start_ts = excluded.start_ts,
                        end_ts = excluded.end_ts,
                        pattern = excluded.pattern,
                        kinds = excluded.kinds,
                        comment = excluded.comment,
                        updated_at = excluded.updated_at
                    """,
                    (
                        restriction.restriction_id,
                        restriction.project_id,
                        to_db_ts(restriction.start),
                        to_db_ts(restriction.end),
                        restriction.pattern.value,
                        json.dumps(sorted(k.value for k in restriction.kinds)),
                        restriction.comment,
                        to_db_ts(now),
                    ),
                )
                await self._conn.execute(
                    "DELETE FROM restriction_tracks WHERE restriction_id = ?",
                    (restriction.restriction_id,),
                )
                await self._conn.executemany(
                    "INSERT INTO restriction_tracks (restriction_id, track_id) VALUES (?, ?)",
                    [
                        (restriction.restriction_id, track_id)
                        for track_id in dict.fromkeys(restriction.track_ids)
                    ],
                )

    async def get_restriction(self, restriction_id: str) -> Restriction | None:
        """根据 restriction_id 查询限制"""
        with storage_errors("get_restriction"):
            cursor = await self._conn.execute(
                "SELECT * FROM restrictions WHERE restriction_id = ?",
                (restriction_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            track_ids = await self.list_affected_tracks(restriction_id)
        return self._row_to_restriction(row, track_ids)

    async def list_restrictions(self, project_id: str | None = None) -> list[Restriction]:
        """查询限制列表，支持按项目筛选，按开始时间正序"""
        with storage_errors("list_restrictions"):
            if project_id:
                cursor = await self._conn.execute(
                    """
                    SELECT * FROM restrictions WHERE project_id = ?
                    ORDER BY start_ts, restriction_id
                    """,
                    (project_id,),
                )
            else:
                cursor = await self._conn.execute(
                    "SELECT * FROM restrictions ORDER BY start_ts, restriction_id"
                )
            rows = await cursor.fetchall()
            tracks_by_restriction = await self._tracks_by_restriction()
        return [
            self._row_to_restriction(row, tracks_by_restriction.get(row[0], []))
            for row in rows
        ]

    async def list_restrictions_for_track(self, track_id: str) -> list[Restriction]:
        """查询影响指定轨道的限制"""
        with storage_errors("list_restrictions_for_track"):
            cursor = await self._conn.execute(
                """
                SELECT r.* FROM restrictions r
                JOIN restriction_tracks rt ON rt.restriction_id = r.restriction_id
                WHERE rt.track_id = ?
                ORDER BY r.start_ts, r.restriction_id
                """,
                (track_id,),
            )
            rows = await cursor.fetchall()
            tracks_by_restriction = await self._tracks_by_restriction()
        return [
            self._row_to_restriction(row, tracks_by_restriction.get(row[0], []))
            for row in rows
        ]

    async def list_affected_tracks(self, restriction_id: str) -> list[str]:
        """查询限制影响的轨道 ID"""
        with storage_errors("list_affected_tracks"):
            cursor = await self._conn.execute(
                """
                SELECT track_id FROM restriction_tracks
                WHERE restriction_id = ? ORDER BY track_id
                """,
                (restriction_id,),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def delete_daily_windows(self, restriction_id: str) -> int:
        """删除限制的所有按日窗口（单事务提交），返回删除行数"""
        with storage_errors("delete_daily_windows"):
            async with write_transaction(self._conn):
                cursor = await self._conn.execute(
                    "DELETE FROM daily_restriction_windows WHERE restriction_id = ?",
                    (restriction_id,),
                )
        return cursor.rowcount

    async def insert_daily_windows(self, windows: list[DailyRestrictionWindow]) -> int:
        """插入一批按日窗口（单事务提交），失败时回滚整批"""
        with storage_errors("insert_daily_windows"):
            async with write_transaction(self._conn):
                await self._conn.executemany(
                    """
                    INSERT INTO daily_restriction_windows (restriction_id, project_id, date,
                                                          time_from, time_to, kind,
                                                          track_ids, comment)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            w.restriction_id,
                            w.project_id,
                            w.date.isoformat(),
                            w.time_from.isoformat(),
                            w.time_to.isoformat(),
                            w.kind.value,
                            json.dumps(w.track_ids),
                            w.comment,
                        )
                        for w in windows
                    ],
                )
        return len(windows)

    async def list_daily_windows(self, restriction_id: str) -> list[DailyRestrictionWindow]:
        """查询限制的按日窗口，按 (date, kind) 排序"""
        with storage_errors("list_daily_windows"):
            cursor = await self._conn.execute(
                """
                SELECT * FROM daily_restriction_windows
                WHERE restriction_id = ?
                ORDER BY date, kind
                """,
                (restriction_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_window(row) for row in rows]

    async def _tracks_by_restriction(self) -> dict[str, list[str]]:
        cursor = await self._conn.execute(
            "SELECT restriction_id, track_id FROM restriction_tracks ORDER BY track_id"
        )
        rows = await cursor.fetchall()
        result: dict[str, list[str]] = {}
        for restriction_id, track_id in rows:
            result.setdefault(restriction_id, []).append(track_id)
        return result

    @staticmethod
    def _row_to_restriction(row: aiosqlite.Row, track_ids: list[str]) -> Restriction:
        """将数据库行转换为 Restriction 模型"""
        return Restriction(
            restriction_id=row[0],
            project_id=row[1],
            start=from_db_ts(row[2]),
            end=from_db_ts(row[3]),
            pattern=RepetitionPattern(row[4]),
            kinds={RestrictionKind(k) for k in json.loads(row[5])},
            comment=row[6],
            track_ids=track_ids,
        )

    @staticmethod
    def _row_to_window(row: aiosqlite.Row) -> DailyRestrictionWindow:
        """将数据库行转换为 DailyRestrictionWindow 模型"""
        return DailyRestrictionWindow(
            restriction_id=row[0],
            project_id=row[1],
            date=dt.date.fromisoformat(row[2]),
            time_from=dt.time.fromisoformat(row[3]),
            time_to=dt.time.fromisoformat(row[4]),
            kind=RestrictionKind(row[5]),
            track_ids=json.loads(row[6]),
            comment=row[7],
        )
