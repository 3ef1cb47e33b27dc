import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import httpx
import pytest
import sentry_sdk
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="restaurant-discovery-tests-"))
os.environ["DATA_DIR"] = str(TEST_DATA_DIR)
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DATA_DIR / 'test.db'}"
os.environ["SENTRY_DSN"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["SEARCH_PROVIDER"] = "osm"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["TRENDING_DEMO_FALLBACK"] = "false"

from backend.app.db.core import Base, engine  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.places.osm import OsmProvider  # noqa: E402
from backend.app.settings import settings  # noqa: E402

OVERPASS_URL = "https://overpass.test/api/interpreter"
NOMINATIM_URL = "https://nominatim.test"


def osm_node(
    node_id: int,
    name: str | None,
    lat: float | None,
    lon: float | None,
    **tags: str,
) -> dict[str, Any]:
    """Overpass node element; tag keys use '__' for ':' (addr__street -> addr:street)."""
    element_tags = {key.replace("__", ":"): value for key, value in tags.items()}
    element_tags.setdefault("amenity", "restaurant")
    if name is not None:
        element_tags["name"] = name
    element: dict[str, Any] = {"type": "node", "id": node_id, "tags": element_tags}
    if lat is not None:
        element["lat"] = lat
    if lon is not None:
        element["lon"] = lon
    return element


class FakeOsm:
    """Scripted Overpass + Nominatim backend served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.elements: list[dict[str, Any]] = []
        self.geocode_results: list[dict[str, Any]] = []
        self.fail_with: int | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, text="upstream failure")
        if request.url.host == "nominatim.test":
            return httpx.Response(200, json=self.geocode_results)
        return httpx.Response(200, json={"elements": self.elements})

    @property
    def overpass_queries(self) -> list[str]:
        queries = []
        for request in self.requests:
            if request.url.host != "overpass.test":
                continue
            body = httpx.QueryParams(request.content.decode())
            queries.append(body.get("data", ""))
        return queries

    def provider(self) -> OsmProvider:
        return OsmProvider(
            overpass_url=OVERPASS_URL,
            nominatim_url=NOMINATIM_URL,
            client=httpx.AsyncClient(transport=httpx.MockTransport(self)),
        )


async def _truncate_tables() -> None:
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())


@pytest.fixture(scope="session")
def client():
    with TestClient(app, base_url="http://api.testserver") as test_client:
        original = app.state.provider
        yield test_client
        app.state.provider = original
        app.state.discovery.provider = original


@pytest.fixture
def fake_osm(client) -> FakeOsm:
    fake = FakeOsm()
    provider = fake.provider()
    app.state.provider = provider
    app.state.discovery.provider = provider
    app.state.discovery.search_cache.clear()
    app.state.health.clear_cache()
    return fake


@pytest.fixture(autouse=True)
def clean_state(client):
    settings.RATE_LIMIT_ENABLED = False
    settings.OPENAI_API_KEY = None
    settings.SENTRY_DSN = None
    limiter = getattr(app.state, "rate_limiter", None)
    if limiter:
        limiter.reset()
    app.state.discovery.trending_demo_fallback = False
    asyncio.run(_truncate_tables())
    yield
    asyncio.run(_truncate_tables())
