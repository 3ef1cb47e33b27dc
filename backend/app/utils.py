from __future__ import annotations

import asyncio
import ipaddress
import logging
import math
import time
from contextvars import ContextVar
from uuid import uuid4

from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .metrics import rate_limit_hits_total, rate_limit_requests_total
from .settings import settings

# Request ID for the current request; read by the log processors
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

# Probes and docs are never throttled
RATE_LIMIT_EXEMPT_PREFIXES = ("/health", "/metrics", "/docs", "/openapi.json")

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


def add_cors(app):
    origins = settings.allow_origins
    if not origins:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        response = await call_next(request)
        for key, value in SECURITY_HEADERS.items():
            response.headers.setdefault(key, value)
        if request.url.scheme == "https":
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=63072000; includeSubDomains"
            )
        return response


def add_security_headers(app):
    app.add_middleware(SecurityHeadersMiddleware)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate or mint an X-Request-ID and expose it to logging via a context var."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        token = request_id_ctx.set(request_id)
        request.state.request_id = request_id
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestIDLogFilter(logging.Filter):
    """Stamp stdlib log records with the current request id ('-' outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get("") or "-"  # type: ignore[attr-defined]
        return True


def add_request_id_tracing(app):
    app.add_middleware(RequestIDMiddleware)
    logging.getLogger().addFilter(RequestIDLogFilter())


def _trusted_networks(raw: str) -> list[ipaddress.IPv4Network | ipaddress.IPv6Network]:
    networks = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry or entry == "*":
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return networks


def _is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class RateLimiter:
    """Token bucket per client IP, refilled continuously over the configured window."""

    def __init__(self, shards: int = 32) -> None:
        self._buckets: dict[str, dict[str, float]] = {}
        self._locks = [asyncio.Lock() for _ in range(max(1, shards))]
        self._last_cleanup = 0.0

    async def dispatch(self, request: Request, call_next):
        limit = settings.RATE_LIMIT_REQUESTS
        window = settings.RATE_LIMIT_WINDOW_SECONDS
        if not settings.RATE_LIMIT_ENABLED or limit <= 0 or window <= 0:
            return await call_next(request)
        if request.url.path.startswith(RATE_LIMIT_EXEMPT_PREFIXES):
            return await call_next(request)

        allowed, remaining, reset_in = await self._consume(
            self._identifier_for(request), limit, window, time.monotonic()
        )
        if not allowed:
            rate_limit_hits_total.inc()
            rate_limit_requests_total.labels(result="throttle").inc()
            retry_after = max(1, math.ceil(reset_in))
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests"},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(retry_after),
                },
            )

        response = await call_next(request)
        rate_limit_requests_total.labels(result="allow").inc()
        response.headers.setdefault("X-RateLimit-Limit", str(limit))
        response.headers["X-RateLimit-Remaining"] = str(max(0, remaining))
        response.headers["X-RateLimit-Reset"] = str(max(0, math.ceil(reset_in)))
        return response

    async def _consume(
        self, identifier: str, limit: int, window: int, now: float
    ) -> tuple[bool, int, float]:
        refill_rate = limit / window
        async with self._locks[hash(identifier) % len(self._locks)]:
            bucket = self._buckets.setdefault(identifier, {"tokens": float(limit), "last": now})
            elapsed = max(0.0, now - bucket["last"])
            tokens = min(float(limit), bucket["tokens"] + elapsed * refill_rate)
            bucket["last"] = now
            self._maybe_cleanup(now, window)
            if tokens >= 1:
                tokens -= 1
                bucket["tokens"] = tokens
                return True, int(tokens), (limit - tokens) / refill_rate
            bucket["tokens"] = tokens
            return False, 0, (1 - tokens) / refill_rate

    def reset(self) -> None:
        self._buckets.clear()
        self._last_cleanup = 0.0

    def _maybe_cleanup(self, now: float, window: int) -> None:
        """Drop buckets idle for three windows; runs at most once per window."""
        if now - self._last_cleanup < window:
            return
        cutoff = now - window * 3
        for key in [k for k, meta in self._buckets.items() if meta["last"] < cutoff]:
            self._buckets.pop(key, None)
        self._last_cleanup = now

    def _identifier_for(self, request: Request) -> str:
        """Client IP; X-Forwarded-For is honoured only when the peer is a trusted proxy."""
        peer = request.client.host if request.client else None
        if not peer or not self._is_trusted_proxy(peer):
            return peer or "anonymous"
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            for candidate in (part.strip() for part in forwarded.split(",")):
                if _is_valid_ip(candidate):
                    return candidate
        return peer

    def _is_trusted_proxy(self, ip: str) -> bool:
        trusted = settings.TRUSTED_PROXIES.strip()
        if not trusted:
            return False
        if trusted == "*":
            return True
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            return False
        return any(address in network for network in _trusted_networks(trusted))


def add_rate_limiting(app):
    limiter = RateLimiter()
    app.state.rate_limiter = limiter

    @app.middleware("http")
    async def _rate_limit(request: Request, call_next):  # type: ignore[override]
        return await limiter.dispatch(request, call_next)
