from __future__ import annotations

import logging

import httpx

from ..settings import Settings
from .base import SearchProvider
from .osm import OsmProvider
from .yelp import YelpProvider

logger = logging.getLogger(__name__)


def build_search_provider(
    config: Settings, *, client: httpx.AsyncClient | None = None
) -> SearchProvider:
    """Pick the search strategy named by SEARCH_PROVIDER.

    Called once at startup; the returned provider owns its HTTP client and
    must be closed with `aclose()` on shutdown.
    """
    name = (config.SEARCH_PROVIDER or "osm").lower()

    if name == "yelp":
        provider: SearchProvider = YelpProvider(
            config.YELP_API_KEY,
            base_url=config.YELP_API_BASE,
            client=client,
            timeout=config.PROVIDER_TIMEOUT_SECONDS,
            max_redirects=config.PROVIDER_MAX_REDIRECTS,
        )
    elif name == "osm":
        provider = OsmProvider(
            overpass_url=config.OVERPASS_URL,
            nominatim_url=config.NOMINATIM_URL,
            user_agent=config.PROVIDER_USER_AGENT,
            client=client,
            timeout=config.PROVIDER_TIMEOUT_SECONDS,
            max_redirects=config.PROVIDER_MAX_REDIRECTS,
        )
    else:
        raise RuntimeError(
            f"Unsupported SEARCH_PROVIDER '{config.SEARCH_PROVIDER}'. Use osm or yelp."
        )

    logger.info("Search provider selected: %s", provider.name)
    return provider
