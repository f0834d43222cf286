"""SQLite Store 共用工具

时间戳统一以 UTC、固定宽度的 ISO 字符串存储，保证字典序即时间序。
同一连接上的写事务通过 write_lock 串行：commit / rollback 作用于整个连接，
交错的写事务会互相提交或回滚对方的半成品。
"""

import asyncio
import weakref
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from datetime import UTC, datetime

import aiosqlite

from ..exceptions import StorageUnavailableError

_DB_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def to_db_ts(value: datetime) -> str:
    """aware datetime -> UTC 固定宽度字符串"""
    return value.astimezone(UTC).strftime(_DB_TS_FORMAT)


def from_db_ts(value: str) -> datetime:
    """数据库字符串 -> aware datetime（UTC）"""
    return datetime.fromisoformat(value)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """将 SQLite 运行时故障（锁超时、磁盘 I/O 等）转换为 StorageUnavailableError"""
    try:
        yield
    except aiosqlite.OperationalError as e:
        raise StorageUnavailableError(operation, e) from e


_WRITE_LOCKS: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def write_lock(conn: aiosqlite.Connection) -> asyncio.Lock:
    """返回连接级写锁（不可重入，持锁期间不能再调用自行加锁的写方法）"""
    lock = _WRITE_LOCKS.get(conn)
    if lock is None:
        lock = asyncio.Lock()
        _WRITE_LOCKS[conn] = lock
    return lock


@asynccontextmanager
async def write_transaction(conn: aiosqlite.Connection) -> AsyncIterator[None]:
    """持有写锁执行一个写事务：正常结束时提交，异常（含取消）时回滚"""
    async with write_lock(conn):
        try:
            yield
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise
