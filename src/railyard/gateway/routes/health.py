"""健康检查路由

GET /health: 进程存活即返回 200。
GET /ready: 数据库可写入前的检查，任一项失败返回 503。
"""

import shutil
from pathlib import Path

import structlog
from fastapi import APIRouter, Request
from railyard.core.config import get_db_path
from railyard.core.store.sqlite_init import missing_tables, verify_wal_mode
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()

# 数据库所在磁盘的最低剩余空间
MIN_FREE_DISK_MB = 64


@router.get("/health")
async def health():
    return {"status": "ok"}


async def _check_sqlite(conn) -> dict[str, str]:
    try:
        missing = await missing_tables(conn)
        wal = await verify_wal_mode(conn)
    except Exception as e:
        log.warning("ready_check_failed", check="sqlite", error=str(e))
        return {"sqlite": f"error: {e}"}
    return {
        "sqlite": "ok",
        "schema": "ok" if not missing else "missing: " + ", ".join(missing),
        "wal_mode": "ok" if wal else "disabled",
    }


def _free_disk_mb() -> int:
    db_dir = Path(get_db_path()).parent
    target = db_dir if db_dir.exists() else Path.cwd()
    return shutil.disk_usage(target).free // (1024 * 1024)


@router.get("/ready")
async def ready(request: Request):
    """就绪检查

    - sqlite / schema: 连接可用且所有表已创建
    - wal_mode: 提示项，内存数据库下为 disabled，不影响就绪
    - disk_space_mb: 数据库目录所在磁盘的剩余空间
    - timezone: 当前运营时区
    """
    checks: dict[str, str | int] = await _check_sqlite(request.app.state.store_group.conn)
    ready_ok = checks["sqlite"] == "ok" and checks.get("schema") == "ok"

    try:
        checks["disk_space_mb"] = _free_disk_mb()
    except OSError as e:
        log.warning("ready_check_failed", check="disk_space_mb", error=str(e))
        checks["disk_space_mb"] = 0
    if checks["disk_space_mb"] < MIN_FREE_DISK_MB:
        ready_ok = False

    checks["timezone"] = request.app.state.engine_config.timezone

    return JSONResponse(
        status_code=200 if ready_ok else 503,
        content={"status": "ready" if ready_ok else "not_ready", "checks": checks},
    )
