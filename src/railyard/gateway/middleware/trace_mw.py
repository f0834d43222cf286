"""TraceMiddleware

为轨道与限制操作绑定 trace_id，贯穿同一对象的日志。
trace_id 从 /api/tracks/{track_id}/... 或 /api/restrictions/{restriction_id}/... 提取。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# 路径段 -> trace 前缀
_TRACED_COLLECTIONS = {
    "tracks": "track",
    "restrictions": "restriction",
}


def extract_trace_id(path: str) -> str | None:
    """从请求路径中提取 trace_id，没有对象 ID 时返回 None"""
    parts = [p for p in path.split("/") if p]
    for i, part in enumerate(parts[:-1]):
        prefix = _TRACED_COLLECTIONS.get(part)
        if prefix is not None and parts[i - 1] == "api":
            return f"trace-{prefix}-{parts[i + 1]}"
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """对象级追踪中间件 -- 为轨道/限制操作绑定 trace_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = extract_trace_id(request.url.path)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)

        return await call_next(request)
