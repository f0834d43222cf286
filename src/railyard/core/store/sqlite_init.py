"""SQLite 数据库初始化

PRAGMA 配置 + 表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tracks 表 DDL
_TRACKS_DDL = """
CREATE TABLE IF NOT EXISTS tracks (
    track_id         TEXT PRIMARY KEY,
    node_id          TEXT NOT NULL,
    name             TEXT NOT NULL DEFAULT '',
    usable_length_m  REAL NOT NULL DEFAULT 0,
    history_since    TEXT
);
"""

_TRACKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tracks_node_id ON tracks(node_id);",
]

# resources 表 DDL（current_track_id 为静态 placement projection）
_RESOURCES_DDL = """
CREATE TABLE IF NOT EXISTS resources (
    resource_id       TEXT PRIMARY KEY,
    number            TEXT NOT NULL DEFAULT '',
    length_m          REAL NOT NULL DEFAULT 0,
    current_track_id  TEXT,

    FOREIGN KEY (current_track_id) REFERENCES tracks(track_id)
);
"""

_RESOURCES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_resources_current_track ON resources(current_track_id);",
]

# movement_events 表 DDL -- append-only，seq 即创建序号
_MOVEMENT_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS movement_events (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id         TEXT NOT NULL UNIQUE,
    resource_id      TEXT NOT NULL,
    kind             TEXT NOT NULL,
    source_track_id  TEXT,
    dest_track_id    TEXT,
    ts               TEXT NOT NULL,
    planned          INTEGER NOT NULL DEFAULT 0,
    length_m         REAL NOT NULL DEFAULT 0,
    trip_id          TEXT,

    FOREIGN KEY (resource_id) REFERENCES resources(resource_id)
);
"""

_MOVEMENT_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_resource_ts ON movement_events(resource_id, ts);",
    "CREATE INDEX IF NOT EXISTS idx_events_dest_ts ON movement_events(dest_track_id, ts);",
    "CREATE INDEX IF NOT EXISTS idx_events_source_ts ON movement_events(source_track_id, ts);",
    "CREATE INDEX IF NOT EXISTS idx_events_trip ON movement_events(trip_id);",
]

# 车辆时间桶占用表 -- (resource_id, time_bucket) 唯一，关闭并发提交的竞态窗口
_RESOURCE_SLOTS_DDL = """
CREATE TABLE IF NOT EXISTS resource_slots (
    resource_id  TEXT NOT NULL,
    time_bucket  INTEGER NOT NULL,
    trip_id      TEXT NOT NULL,
    event_id     TEXT NOT NULL,

    PRIMARY KEY (resource_id, time_bucket)
);
"""

_RESOURCE_SLOTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_slots_trip ON resource_slots(trip_id);",
]

# 被新 trip 取代的 trip（事件本身不可变）
_SUPERSEDED_TRIPS_DDL = """
CREATE TABLE IF NOT EXISTS superseded_trips (
    trip_id        TEXT PRIMARY KEY,
    superseded_by  TEXT NOT NULL,
    superseded_at  TEXT NOT NULL
);
"""

# restrictions 表 DDL
_RESTRICTIONS_DDL = """
CREATE TABLE IF NOT EXISTS restrictions (
    restriction_id  TEXT PRIMARY KEY,
    project_id      TEXT NOT NULL DEFAULT '',
    start_ts        TEXT NOT NULL,
    end_ts          TEXT NOT NULL,
    pattern         TEXT NOT NULL DEFAULT 'once',
    kinds           TEXT NOT NULL DEFAULT '[]',
    comment         TEXT,
    updated_at      TEXT NOT NULL,

    CHECK (end_ts > start_ts)
);
"""

_RESTRICTION_TRACKS_DDL = """
CREATE TABLE IF NOT EXISTS restriction_tracks (
    restriction_id  TEXT NOT NULL,
    track_id        TEXT NOT NULL,

    PRIMARY KEY (restriction_id, track_id),
    FOREIGN KEY (restriction_id) REFERENCES restrictions(restriction_id) ON DELETE CASCADE
);
"""

# daily_restriction_windows 表 DDL -- restrictions 的派生表
_DAILY_WINDOWS_DDL = """
CREATE TABLE IF NOT EXISTS daily_restriction_windows (
    restriction_id  TEXT NOT NULL,
    project_id      TEXT NOT NULL DEFAULT '',
    date            TEXT NOT NULL,
    time_from       TEXT NOT NULL,
    time_to         TEXT NOT NULL,
    kind            TEXT NOT NULL,
    track_ids       TEXT NOT NULL DEFAULT '[]',
    comment         TEXT,

    PRIMARY KEY (restriction_id, date, kind),
    FOREIGN KEY (restriction_id) REFERENCES restrictions(restriction_id) ON DELETE CASCADE
);
"""

_RESTRICTION_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_restrictions_project ON restrictions(project_id);",
    "CREATE INDEX IF NOT EXISTS idx_restriction_tracks_track ON restriction_tracks(track_id);",
    "CREATE INDEX IF NOT EXISTS idx_daily_windows_date ON daily_restriction_windows(date);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    for ddl in (
        _TRACKS_DDL,
        _RESOURCES_DDL,
        _MOVEMENT_EVENTS_DDL,
        _RESOURCE_SLOTS_DDL,
        _SUPERSEDED_TRIPS_DDL,
        _RESTRICTIONS_DDL,
        _RESTRICTION_TRACKS_DDL,
        _DAILY_WINDOWS_DDL,
    ):
        await conn.execute(ddl)

    # 创建索引
    for idx_sql in (
        _TRACKS_INDEXES
        + _RESOURCES_INDEXES
        + _MOVEMENT_EVENTS_INDEXES
        + _RESOURCE_SLOTS_INDEXES
        + _RESTRICTION_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"


REQUIRED_TABLES = (
    "tracks",
    "resources",
    "movement_events",
    "resource_slots",
    "superseded_trips",
    "restrictions",
    "restriction_tracks",
    "daily_restriction_windows",
)


async def missing_tables(conn: aiosqlite.Connection) -> list[str]:
    """返回尚未创建的表名"""
    cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    present = {row[0] for row in await cursor.fetchall()}
    return [name for name in REQUIRED_TABLES if name not in present]
