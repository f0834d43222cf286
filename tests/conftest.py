"""全局 pytest 配置 -- 临时 SQLite 数据库 + 示例车场 fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from railyard.core.models import MoveKind, MovementEvent, Resource, Track
from railyard.core.store import StoreGroup, create_store_group
from ulid import ULID

# T3 的事件历史从该时刻开始，更早的时刻只能做静态容量检查
T3_HISTORY_SINCE = datetime(2025, 1, 1, tzinfo=UTC)


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from railyard.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供空的 StoreGroup"""
    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.conn.close()


@pytest_asyncio.fixture
async def yard(store_group: StoreGroup) -> StoreGroup:
    """示例车场

    - T1: 100 米
    - T2: 不限长度
    - T3: 50 米，事件历史从 2025-01-01 开始，W5 静态位于其上
    - W1..W4: 20 米；W5: 40 米
    """
    track_store = store_group.track_store
    await track_store.create_track(
        Track(track_id="T1", node_id="N1", name="Gleis 1", usable_length_m=100)
    )
    await track_store.create_track(
        Track(track_id="T2", node_id="N1", name="Gleis 2", usable_length_m=0)
    )
    await track_store.create_track(
        Track(
            track_id="T3",
            node_id="N2",
            name="Gleis 3",
            usable_length_m=50,
            history_since=T3_HISTORY_SINCE,
        )
    )
    for i in range(1, 5):
        await track_store.create_resource(
            Resource(resource_id=f"W{i}", number=f"31 80 {i:04d}", length_m=20)
        )
    await track_store.create_resource(
        Resource(resource_id="W5", number="31 80 0005", length_m=40, current_track_id="T3")
    )
    await store_group.conn.commit()
    return store_group


@pytest.fixture
def make_event() -> Callable[..., MovementEvent]:
    """构造 MovementEvent 的工厂"""

    def _make(
        resource_id: str,
        kind: MoveKind,
        ts: datetime,
        *,
        source: str | None = None,
        dest: str | None = None,
        planned: bool = False,
        length_m: float = 20,
        trip_id: str | None = None,
    ) -> MovementEvent:
        return MovementEvent(
            event_id=str(ULID()),
            resource_id=resource_id,
            kind=kind,
            source_track_id=source,
            dest_track_id=dest,
            ts=ts,
            planned=planned,
            length_m=length_m,
            trip_id=trip_id or str(ULID()),
        )

    return _make
