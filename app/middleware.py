"""Request logging, security headers and per-client rate limiting."""

from __future__ import annotations

import logging
import time
import uuid
from threading import Lock
from typing import Callable, Dict, Tuple

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.responses import ERR_RATE_LIMITED, error_body

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def _client_ip(request: Request) -> str:
    # Peer address; forwarding headers are not trusted.
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs method, path, status and latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        client_ip = _client_ip(request)
        start = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "%s %s -> %s",
                request.method,
                request.url.path,
                status_code,
                extra={
                    "request_id": request_id,
                    "client_ip": client_ip,
                    "status": status_code,
                    "processing_ms": round(elapsed_ms, 1),
                },
            )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response: Response = await call_next(request)
        for header, value in _SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


class FixedWindowRateLimiter:
    """Counts hits per key inside fixed windows; a limit of 0 disables limiting."""

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = Lock()
        # key -> (window_start, count)
        self._counters: Dict[str, Tuple[float, int]] = {}
        self._next_sweep = clock() + window_seconds

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._counters)

    def hit(self, key: str) -> bool:
        """Record a hit for ``key``; returns False once the window is exhausted."""
        if not self.enabled:
            return True
        now = self._clock()
        with self._lock:
            window_start, count = self._counters.get(key, (now, 0))
            if now - window_start >= self.window_seconds:
                window_start, count = now, 0
            count += 1
            self._counters[key] = (window_start, count)
            if now >= self._next_sweep:
                self._evict(now)
                self._next_sweep = now + self.window_seconds
            return count <= self.limit

    def _evict(self, now: float) -> None:
        # Caller holds the lock.
        expired = [
            key
            for key, (window_start, _) in self._counters.items()
            if now - window_start >= self.window_seconds
        ]
        for key in expired:
            del self._counters[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: FixedWindowRateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = _client_ip(request)
        if not self.limiter.hit(client_ip):
            logger.warning("Rate limit exceeded", extra={"client_ip": client_ip})
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=error_body(ERR_RATE_LIMITED),
                headers={"Retry-After": str(int(self.limiter.window_seconds))},
            )
        return await call_next(request)


def install_middleware(
    app: FastAPI,
    cors_origins: Tuple[str, ...] = (),
    rate_limit_per_minute: int = 0,
) -> None:
    """Register the middleware stack; the last one added runs first."""
    if rate_limit_per_minute > 0:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=FixedWindowRateLimiter(rate_limit_per_minute),
        )
    app.add_middleware(SecurityHeadersMiddleware)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
    app.add_middleware(RequestLoggingMiddleware)
