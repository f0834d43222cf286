"""FastAPI 应用主文件

app 创建 + lifespan 管理：配置加载、DB 初始化/关闭、异常映射、路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from railyard.core.config import get_db_path, load_engine_config
from railyard.core.exceptions import (
    HistoryUnavailableError,
    MovementConflictError,
    NotFoundError,
    RailyardError,
    StorageUnavailableError,
    ValidationFailedError,
)
from railyard.core.store import create_store_group
from starlette.responses import JSONResponse

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, moves, restrictions, tracks

log = structlog.get_logger()

# 按顺序匹配，子类在前
_STATUS_BY_ERROR: list[tuple[type[RailyardError], int]] = [
    (NotFoundError, 404),
    (MovementConflictError, 409),
    (ValidationFailedError, 422),
    (HistoryUnavailableError, 422),
    (StorageUnavailableError, 503),
]


def status_for_error(exc: RailyardError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def railyard_error_handler(request: Request, exc: RailyardError) -> JSONResponse:
    """将领域异常渲染为 {"error": {"code", "message"}}"""
    status_code = status_for_error(exc)
    if status_code >= 500:
        log.error(
            "request_failed",
            code=exc.code,
            error=exc.message,
            recoverable=exc.recoverable,
        )
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时加载配置并初始化 DB，关闭时清理连接"""
    engine_config = load_engine_config()
    app.state.engine_config = engine_config

    db_path = get_db_path()
    store_group = await create_store_group(
        db_path, engine_config.collision_window_seconds, engine_config.tz
    )
    app.state.store_group = store_group
    log.info(
        "gateway_started",
        db_path=db_path,
        timezone=engine_config.timezone,
        collision_window_minutes=engine_config.collision_window_minutes,
    )

    yield

    # 关闭：清理数据库连接
    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Railyard Gateway",
        version="0.1.0",
        description="轨道占用、容量与访问限制 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(RailyardError, railyard_error_handler)

    # 初始化日志
    setup_logging()
    setup_logfire()

    # 注册路由
    app.include_router(tracks.router, tags=["tracks"])
    app.include_router(moves.router, tags=["moves"])
    app.include_router(restrictions.router, tags=["restrictions"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
