"""
Request Context Middleware Module
=================================

Starlette middleware for request processing.

Features:
- Request ID generation (or propagation of an incoming X-Request-ID)
- Request timing
- One structured log line per completed request

Authentication itself is done in the dependency layer.
"""

import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from statuspage.core.logging import get_logger, request_id_context, tenant_id_context

# Initialize logger
logger = get_logger(__name__)

QUIET_PATHS = frozenset({"/", "/health", "/ready"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_token = request_id_context.set(request_id)
        tenant_token = tenant_id_context.set(None)

        request.state.request_id = request_id
        request.state.user_id = None
        request.state.tenant_id = None

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise
        finally:
            request_id_context.reset(request_token)
            tenant_id_context.reset(tenant_token)

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        self._log_request(request, response, process_time)
        return response

    def _log_request(self, request: Request, response: Response, process_time: float) -> None:
        if request.url.path in QUIET_PATHS:
            return

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round(process_time * 1000, 2),
            "request_id": getattr(request.state, "request_id", None),
            "user_id": getattr(request.state, "user_id", None),
            "tenant_id": getattr(request.state, "tenant_id", None),
        }

        if response.status_code >= 500:
            logger.error("request_completed", **log_data)
        elif response.status_code >= 400:
            logger.warning("request_completed", **log_data)
        else:
            logger.info("request_completed", **log_data)
