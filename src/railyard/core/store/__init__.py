"""Railyard Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
共享连接上的所有写事务经由连接级写锁串行（见 common.write_transaction）。
"""

from pathlib import Path
from zoneinfo import ZoneInfo

import aiosqlite

from ..models.movement import MovementEvent
from .common import write_lock, write_transaction
from .movement_store import SqliteMovementStore
from .restriction_store import SqliteRestrictionStore
from .sqlite_init import init_db
from .track_store import SqliteTrackStore
from .transaction import append_trip, time_bucket

# 默认时间桶宽度，与默认冲突窗口一致
DEFAULT_BUCKET_SECONDS = 3600


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        bucket_seconds: int = DEFAULT_BUCKET_SECONDS,
        tz: ZoneInfo | None = None,
    ) -> None:
        self.conn = conn
        self.bucket_seconds = bucket_seconds
        self.tz = tz or ZoneInfo("UTC")
        self.track_store = SqliteTrackStore(conn)
        self.movement_store = SqliteMovementStore(conn)
        self.restriction_store = SqliteRestrictionStore(conn)

    async def append_trip(
        self,
        events: list[MovementEvent],
        supersedes_trip_id: str | None = None,
    ) -> list[MovementEvent]:
        """原子提交一次 trip 的事件"""
        return await append_trip(
            self.conn,
            self.movement_store,
            self.track_store,
            events,
            bucket_seconds=self.bucket_seconds,
            tz=self.tz,
            supersedes_trip_id=supersedes_trip_id,
        )


async def create_store_group(
    db_path: str,
    bucket_seconds: int = DEFAULT_BUCKET_SECONDS,
    tz: ZoneInfo | None = None,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        bucket_seconds: 车辆时间桶宽度（秒），通常等于冲突窗口
        tz: 运营时区，时间桶按当地日期划分；缺省为 UTC

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn, bucket_seconds=bucket_seconds, tz=tz)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTrackStore",
    "SqliteMovementStore",
    "SqliteRestrictionStore",
    "init_db",
    "append_trip",
    "time_bucket",
    "write_lock",
    "write_transaction",
]
