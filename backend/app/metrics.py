"""Prometheus metrics for monitoring and observability."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from functools import lru_cache

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# ==============================================================================
# APPLICATION INFO
# ==============================================================================

app_info = Info("restaurant_discovery", "Restaurant discovery API information")
app_info.info({"version": "1.0.0", "service": "restaurant-discovery-api"})

# ==============================================================================
# HTTP METRICS
# ==============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"],
)

# ==============================================================================
# SEARCH PROVIDER METRICS
# ==============================================================================

provider_requests_total = Counter(
    "provider_requests_total",
    "Outbound search provider requests",
    ["provider", "operation", "outcome"],
)

provider_request_duration_seconds = Histogram(
    "provider_request_duration_seconds",
    "Search provider request duration in seconds",
    ["provider", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

nearby_provider_topups_total = Counter(
    "nearby_provider_topups_total",
    "Nearby lookups that asked the provider for more results",
    ["outcome"],
)

# ==============================================================================
# AI METRICS
# ==============================================================================

ai_requests_total = Counter(
    "ai_requests_total",
    "AI operations by how they were answered",
    ["operation", "outcome"],
)

# ==============================================================================
# CACHE METRICS
# ==============================================================================

cache_hits_total = Counter(
    "cache_hits_total",
    "Total cache hits",
    ["cache_name"],
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total cache misses",
    ["cache_name"],
)

cache_size = Gauge(
    "cache_size",
    "Current cache size (number of entries)",
    ["cache_name"],
)

# ==============================================================================
# RATE LIMITER METRICS
# ==============================================================================

rate_limit_hits_total = Counter(
    "rate_limit_hits_total",
    "Total rate limit hits (requests blocked)",
)

rate_limit_requests_total = Counter(
    "rate_limit_requests_total",
    "Total requests checked by rate limiter",
    ["result"],
)

# ==============================================================================
# PERSISTENCE METRICS
# ==============================================================================

restaurants_upserted_total = Counter(
    "restaurants_upserted_total",
    "Provider businesses written to the restaurant table",
    ["mode"],
)

_UUID_RE = re.compile(
    r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
_OSM_ID_RE = re.compile(r"/osm-(node|way|relation)-\d+", re.IGNORECASE)


@lru_cache(maxsize=2048)
def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path to reduce cardinality.

    Examples:
        /restaurants/123 -> /restaurants/{id}
        /restaurants/osm-node-42/details -> /restaurants/{id}/details
    """
    path = _UUID_RE.sub("/{id}", path)
    path = _OSM_ID_RE.sub("/{id}", path)
    path = re.sub(r"/\d+", "/{id}", path)
    # provider slugs such as "gary-danko-san-francisco"
    path = re.sub(r"/[a-zA-Z0-9_-]{20,}", "/{id}", path)
    return path


# ==============================================================================
# PROMETHEUS MIDDLEWARE
# ==============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = normalize_endpoint(request.url.path)
        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            http_requests_total.labels(method=method, endpoint=endpoint, status="500").inc()
            raise
        finally:
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                time.time() - start_time
            )

        http_requests_total.labels(
            method=method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        return response


def get_metrics() -> Response:
    """Generate Prometheus metrics response."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PrometheusMiddleware",
    "ai_requests_total",
    "cache_hits_total",
    "cache_misses_total",
    "cache_size",
    "get_metrics",
    "http_request_duration_seconds",
    "http_requests_total",
    "nearby_provider_topups_total",
    "normalize_endpoint",
    "provider_request_duration_seconds",
    "provider_requests_total",
    "rate_limit_hits_total",
    "rate_limit_requests_total",
    "restaurants_upserted_total",
]
