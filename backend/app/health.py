"""Health check module with dependency verification."""

from __future__ import annotations

import time
from typing import Any

from .db.core import ping_db
from .places.base import SearchProvider
from .settings import settings

STARTED_AT = time.time()


def _is_configured(value: str | None) -> bool:
    """Return True when a config string is non-empty after trimming."""
    if value is None:
        return False
    return bool(value.strip())


class HealthChecker:
    """Health checker for monitoring service dependencies."""

    def __init__(self, cache_ttl: float = 30.0) -> None:
        self._check_cache: dict[str, tuple[dict[str, Any], float]] = {}
        self._cache_ttl = cache_ttl

    def liveness(self, provider_name: str) -> dict[str, Any]:
        now = time.time()
        return {
            "status": "ok",
            "timestamp": now,
            "uptime_seconds": round(now - STARTED_AT, 1),
            "environment": settings.ENVIRONMENT,
            "provider": provider_name,
        }

    async def check_all(self, provider: SearchProvider, *, ai_enabled: bool) -> dict[str, Any]:
        """
        Check health of all dependencies.

        Only the database decides readiness; a provider that is down degrades
        the report without failing it because search errors surface per request.
        """
        checks = {
            "database": await self._check_database(),
            "provider": await self._check_provider(provider),
            "ai": {"status": "ok" if ai_enabled else "disabled"},
            "sentry": (
                {"status": "ok", "environment": settings.SENTRY_ENVIRONMENT}
                if _is_configured(settings.SENTRY_DSN)
                else {"status": "disabled"}
            ),
        }
        ready = checks["database"]["status"] == "ok"
        all_ok = all(check.get("status") in {"ok", "disabled"} for check in checks.values())
        if not ready:
            status = "unavailable"
        elif all_ok:
            status = "healthy"
        else:
            status = "degraded"
        return {"status": status, "ready": ready, "timestamp": time.time(), "checks": checks}

    async def _check_database(self) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            await ping_db()
        except Exception as exc:
            return {"status": "error", "error": str(exc), "error_type": type(exc).__name__}
        return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}

    async def _check_provider(self, provider: SearchProvider) -> dict[str, Any]:
        cache_key = f"provider:{provider.name}"
        cached = self._get_cached_check(cache_key)
        if cached is not None:
            return cached
        reachable = await provider.validate_connection()
        result = {
            "status": "ok" if reachable else "error",
            "name": provider.name,
        }
        self._cache_check(cache_key, result)
        return result

    def _get_cached_check(self, key: str) -> dict[str, Any] | None:
        """Get cached health check result if still valid."""
        if key not in self._check_cache:
            return None
        result, timestamp = self._check_cache[key]
        if time.time() - timestamp > self._cache_ttl:
            return None
        return result

    def _cache_check(self, key: str, result: dict[str, Any]) -> None:
        self._check_cache[key] = (result, time.time())

    def clear_cache(self) -> None:
        """Clear cached dependency checks (useful for tests)."""
        self._check_cache.clear()


__all__ = ["HealthChecker"]
