"""Provider selection from settings."""

import asyncio

import pytest
from backend.app.places import OsmProvider, YelpProvider, build_search_provider
from backend.app.settings import settings


def test_osm_is_default():
    provider = build_search_provider(settings.model_copy(update={"SEARCH_PROVIDER": "osm"}))
    assert isinstance(provider, OsmProvider)
    asyncio.run(provider.aclose())


def test_yelp_selected():
    config = settings.model_copy(update={"SEARCH_PROVIDER": "yelp", "YELP_API_KEY": "k"})
    provider = build_search_provider(config)
    assert isinstance(provider, YelpProvider)
    assert provider.name == "yelp"
    asyncio.run(provider.aclose())


def test_unknown_provider_rejected():
    with pytest.raises(RuntimeError):
        build_search_provider(settings.model_copy(update={"SEARCH_PROVIDER": "google"}))
