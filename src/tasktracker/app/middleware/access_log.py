import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("tasktracker.access")

CORRELATION_HEADER = "x-correlation-id"


def correlation_id(request: Request) -> str:
    """The id attached by AccessLogMiddleware, or the inbound header, or a fresh one."""
    cid = getattr(request.state, "correlation_id", None)
    if cid is None:
        cid = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = cid
    return cid


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        cid = correlation_id(request)
        start = time.perf_counter()

        logger.info(
            "request.start",
            extra={
                "category": "http",
                "event": "request.start",
                "correlation_id": cid,
                "method": request.method,
                "path": request.url.path,
                "query": str(request.url.query),
                "client": request.client.host if request.client else None,
            },
        )

        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.error(
                "request.error",
                extra={
                    "category": "http",
                    "event": "request.error",
                    "correlation_id": cid,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                },
            )
            raise

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers[CORRELATION_HEADER] = cid

        logger.info(
            "request.end",
            extra={
                "category": "http",
                "event": "request.end",
                "correlation_id": cid,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "user_agent": request.headers.get("user-agent"),
            },
        )
        return response
