"""
Security Middleware Module
==========================

- SecurityHeadersMiddleware: hardening headers on every HTTP response
- RateLimitMiddleware: per-IP request budget on the API routes, with a
  tighter budget for login attempts
"""

import time
from typing import Callable, Dict, List, Optional

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from statuspage.core.config import settings
from statuspage.core.logging import get_logger

# Initialize logger
logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Headers added:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: DENY
    - Referrer-Policy
    - Cross-Origin-Resource-Policy / Cross-Origin-Opener-Policy (public
      status pages are embedded and fetched cross-origin)
    - Content-Security-Policy
    - Strict-Transport-Security (in production)
    """

    # Paths that serve Swagger / ReDoc UI assets
    _DOCS_PATHS = {"/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin-allow-popups"

        # Swagger UI and ReDoc load their assets from cdn.jsdelivr.net
        if settings.DEBUG and request.url.path in self._DOCS_PATHS:
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "img-src 'self' data: https://cdn.jsdelivr.net https://fastapi.tiangolo.com; "
                "frame-ancestors 'none';"
            )
        else:
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "img-src 'self' data:; "
                "frame-ancestors 'none';"
            )

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window, in-memory rate limiting keyed by client IP.

    Only paths under the API prefix count. Health checks and the Socket.IO
    endpoint are never limited. Counters are per process.
    """

    LOGIN_WINDOW_SECONDS = 60

    def __init__(
        self,
        app: ASGIApp,
        enabled: Optional[bool] = None,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        login_max_requests: Optional[int] = None,
        prefix: Optional[str] = None,
    ):
        super().__init__(app)
        self.enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled
        self.max_requests = max_requests or settings.RATE_LIMIT_REQUESTS
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self.login_max_requests = login_max_requests or settings.LOGIN_RATE_LIMIT
        self.prefix = prefix if prefix is not None else settings.API_PREFIX
        self._requests: Dict[str, List[float]] = {}  # bucket key -> timestamps

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self.enabled or not path.startswith(self.prefix):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"

        if request.method == "POST" and path == f"{self.prefix}/auth/login":
            if self._is_rate_limited(f"login:{client_ip}", self.login_max_requests, self.LOGIN_WINDOW_SECONDS):
                return self._too_many(
                    client_ip,
                    path,
                    "Too many login attempts. Please try again later.",
                    self.LOGIN_WINDOW_SECONDS,
                )

        if self._is_rate_limited(f"api:{client_ip}", self.max_requests, self.window_seconds):
            return self._too_many(
                client_ip,
                path,
                "Too many requests from this IP. Please try again later.",
                self.window_seconds,
            )

        return await call_next(request)

    def _too_many(self, client_ip: str, path: str, message: str, retry_after: int) -> JSONResponse:
        logger.warning("rate_limit_exceeded", ip_address=client_ip, endpoint=path)
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "message": message,
                "details": {"retry_after_seconds": retry_after},
                "retryable": True,
            },
            headers={"Retry-After": str(retry_after)},
        )

    def _is_rate_limited(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """Record one request under ``key``; True if the window is already full."""
        current_time = time.time()
        window_start = current_time - window_seconds

        recent = [ts for ts in self._requests.get(key, []) if ts > window_start]
        if len(recent) >= max_requests:
            self._requests[key] = recent
            return True

        recent.append(current_time)
        self._requests[key] = recent
        return False
