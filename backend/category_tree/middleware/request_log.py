import logging
import re
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from category_tree.core.logging_config import request_id_ctx_var

logger = logging.getLogger("category_tree.request")

REQUEST_ID_HEADER = "X-Request-ID"
# Caller-supplied ids end up in every log line, so only short plain tokens are kept.
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")
_QUIET_PATHS = frozenset({"/api/v1/health"})


def resolve_request_id(header_value: str | None) -> str:
    if header_value and _REQUEST_ID_RE.match(header_value):
        return header_value
    return uuid.uuid4().hex


def _level_for(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.WARNING
    if path in _QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log one line per response."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_ctx_var.set(request_id)
        request.state.request_id = request_id
        start = time.perf_counter()
        path = request.url.path
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                extra={"path": path, "method": request.method, "duration_ms": _elapsed_ms(start)},
            )
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.log(
                _level_for(path, response.status_code),
                "request",
                extra={
                    "path": path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": _elapsed_ms(start),
                },
            )
            return response
        finally:
            request_id_ctx_var.reset(token)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
