"""TrackStore SQLite 实现

tracks / resources 两张表。
resources.current_track_id 是已执行移动事件的物化视图（placement projection），
create_track / create_resource 各自为一个持有连接写锁的事务；
update_resource_track 不提交，只在 append_trip 或 placement 重建的事务内调用。
"""

import aiosqlite

from ..models.track import Resource, Track
from .common import from_db_ts, storage_errors, to_db_ts, write_transaction


class SqliteTrackStore:
    """TrackStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_track(self, track: Track) -> None:
        """创建轨道记录"""
        with storage_errors("create_track"):
            async with write_transaction(self._conn):
                await self._conn.execute(
                    """
                    INSERT INTO tracks (track_id, node_id, name, usable_length_m, history_since)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        track.track_id,
                        track.node_id,
                        track.name,
                        track.usable_length_m,
                        to_db_ts(track.history_since) if track.history_since else None,
                    ),
                )

    async def get_track(self, track_id: str) -> Track | None:
        """根据 track_id 查询轨道"""
        with storage_errors("get_track"):
            cursor = await self._conn.execute(
                "SELECT * FROM tracks WHERE track_id = ?",
                (track_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_track(row)

    async def list_tracks(self, node_id: str | None = None) -> list[Track]:
        """查询轨道列表，支持按节点筛选"""
        with storage_errors("list_tracks"):
            if node_id:
                cursor = await self._conn.execute(
                    "SELECT * FROM tracks WHERE node_id = ? ORDER BY name",
                    (node_id,),
                )
            else:
                cursor = await self._conn.execute("SELECT * FROM tracks ORDER BY name")
            rows = await cursor.fetchall()
        return [self._row_to_track(row) for row in rows]

    async def create_resource(self, resource: Resource) -> None:
        """创建车辆记录"""
        with storage_errors("create_resource"):
            async with write_transaction(self._conn):
                await self._conn.execute(
                    """
                    INSERT INTO resources (resource_id, number, length_m, current_track_id)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        resource.resource_id,
                        resource.number,
                        resource.length_m,
                        resource.current_track_id,
                    ),
                )

    async def get_resource(self, resource_id: str) -> Resource | None:
        """根据 resource_id 查询车辆"""
        with storage_errors("get_resource"):
            cursor = await self._conn.execute(
                "SELECT * FROM resources WHERE resource_id = ?",
                (resource_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_resource(row)

    async def list_resources(self) -> list[Resource]:
        """查询所有车辆"""
        with storage_errors("list_resources"):
            cursor = await self._conn.execute("SELECT * FROM resources ORDER BY resource_id")
            rows = await cursor.fetchall()
        return [self._row_to_resource(row) for row in rows]

    async def list_resources_on_track(self, track_id: str) -> list[Resource]:
        """查询静态 placement 位于该轨道的车辆"""
        with storage_errors("list_resources_on_track"):
            cursor = await self._conn.execute(
                "SELECT * FROM resources WHERE current_track_id = ? ORDER BY resource_id",
                (track_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_resource(row) for row in rows]

    async def update_resource_track(self, resource_id: str, track_id: str | None) -> None:
        """更新车辆静态 placement（仅通过已执行的移动事件触发）"""
        await self._conn.execute(
            "UPDATE resources SET current_track_id = ? WHERE resource_id = ?",
            (track_id, resource_id),
        )

    @staticmethod
    def _row_to_track(row: aiosqlite.Row) -> Track:
        """将数据库行转换为 Track 模型"""
        return Track(
            track_id=row[0],
            node_id=row[1],
            name=row[2],
            usable_length_m=row[3],
            history_since=from_db_ts(row[4]) if row[4] else None,
        )

    @staticmethod
    def _row_to_resource(row: aiosqlite.Row) -> Resource:
        """将数据库行转换为 Resource 模型"""
        return Resource(
            resource_id=row[0],
            number=row[1],
            length_m=row[2],
            current_track_id=row[3],
        )
