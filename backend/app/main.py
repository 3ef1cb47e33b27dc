from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import sentry_sdk
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .ai_service import AIService
from .api.routes import ai as ai_routes
from .api.routes import favorites as favorites_routes
from .api.routes import restaurants as restaurants_routes
from .cache import TTLCache
from .db.core import dispose_engine, init_db
from .discovery import DiscoveryService
from .health import HealthChecker
from .logging_config import configure_structlog, get_logger
from .metrics import PrometheusMiddleware, get_metrics
from .places import ProviderError, build_search_provider
from .seed import seed
from .settings import settings
from .storage import Database
from .utils import (
    add_cors,
    add_rate_limiting,
    add_request_id_tracing,
    add_security_headers,
)

# Configure structured logging (must be done before any logging calls)
configure_structlog(json_logs=not settings.DEBUG)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        release=settings.SENTRY_RELEASE or "restaurant-discovery@dev",
        integrations=[FastApiIntegration()],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    db = Database()
    provider = build_search_provider(settings)
    ai = AIService.from_settings(settings)
    app.state.db = db
    app.state.provider = provider
    app.state.ai = ai
    app.state.discovery = DiscoveryService(
        db,
        provider,
        ai,
        search_cache=TTLCache("search", settings.SEARCH_CACHE_TTL_SECONDS),
        trending_demo_fallback=settings.TRENDING_DEMO_FALLBACK,
    )
    app.state.health = HealthChecker()
    if settings.SEED_DEMO_DATA:
        await seed(db)
    logger.info(
        "service_started",
        provider=provider.name,
        ai_enabled=ai.enabled,
        environment=settings.ENVIRONMENT,
    )
    try:
        yield
    finally:
        await provider.aclose()
        await ai.aclose()
        await dispose_engine()


app = FastAPI(
    title="Restaurant Discovery API",
    version="1.0.0",
    description="Restaurant search, nearby discovery and AI-assisted insights",
    lifespan=lifespan,
)
add_cors(app)
add_security_headers(app)
add_request_id_tracing(app)
add_rate_limiting(app)
app.add_middleware(PrometheusMiddleware)

app.include_router(restaurants_routes.router)
app.include_router(favorites_routes.router)
app.include_router(ai_routes.router)


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.warning(
        "provider_error",
        path=request.url.path,
        status_code=exc.status_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
async def health(request: Request):
    """Liveness: the process is up and serving."""
    return request.app.state.health.liveness(request.app.state.provider.name)


@app.get("/health/ready")
async def health_ready(request: Request):
    """Readiness including database and provider checks."""
    state = request.app.state
    health_status = await state.health.check_all(state.provider, ai_enabled=state.ai.enabled)
    status_code = 200 if health_status["ready"] else 503
    body: dict[str, Any] = dict(health_status)
    if not settings.DEBUG:
        body["checks"] = _scrub_health_details(health_status["checks"])
    body["service"] = "restaurant-discovery"
    body["version"] = "1.0.0"
    return JSONResponse(content=body, status_code=status_code)


@app.get("/metrics")
def metrics():
    """Expose Prometheus metrics."""
    try:
        return get_metrics()
    except Exception:  # pragma: no cover
        logger.exception("Metrics export failed")
        raise HTTPException(status_code=503, detail="metrics unavailable")


@app.get("/", include_in_schema=False)
def root_redirect():
    return RedirectResponse(url="/docs", status_code=307)


def _scrub_health_details(payload: dict[str, Any]) -> dict[str, Any]:
    """Remove error internals before returning health details outside debug mode."""

    def _scrub(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: _scrub(inner)
                for key, inner in value.items()
                if key not in {"error", "error_type", "traceback"}
            }
        if isinstance(value, list):
            return [_scrub(item) for item in value]
        return value

    return _scrub(payload)
