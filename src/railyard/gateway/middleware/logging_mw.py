"""LoggingMiddleware

每个请求绑定 request_id（沿用上游 X-Request-ID，否则生成 ULID），
请求结束时记录一条访问日志。健康探针只记 debug。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

_PROBE_PATHS = frozenset({"/health", "/ready"})


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(ULID())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - started) * 1000, 1)

        log = structlog.get_logger()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "elapsed_ms": elapsed_ms,
        }
        if response.status_code >= 500:
            await log.awarning("request_completed", **fields)
        elif request.url.path in _PROBE_PATHS:
            await log.adebug("request_completed", **fields)
        else:
            await log.ainfo("request_completed", **fields)

        response.headers["X-Request-ID"] = request_id
        return response
