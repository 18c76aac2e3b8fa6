from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
# Per-request fields (caller id, role) that every log line in the request carries.
log_context_ctx_var: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)
logger = logging.getLogger("rentalhub.request")

QUIET_PATHS = frozenset({"/health", "/metrics"})


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Give every request a correlation id and log one line when it finishes."""

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid4())
        token = request_id_ctx_var.set(request_id)
        principal_token = principal_ctx_var.set(None)
        context: dict[str, Any] = {}
        context_token = log_context_ctx_var.set(context)
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
            principal = getattr(request.state, "principal", None)
        finally:
            request_id_ctx_var.reset(token)
            principal_ctx_var.reset(principal_token)
            log_context_ctx_var.reset(context_token)
        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")
        if request.url.path in QUIET_PATHS:
            return response
        extra_data = {
            **context,
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if principal:
            extra_data["principal"] = principal
        route = request.scope.get("route")
        if route is not None:
            # Template plus ids, e.g. /v1/rentals/{rental_id} and rental_id.
            extra_data["route"] = getattr(route, "path", None)
            extra_data.update(request.scope.get("path_params") or {})
        log = logger.warning if response.status_code >= 500 else logger.info
        log("request.completed", extra={"extra_data": extra_data})
        return response
