"""Yelp Fusion client over a mocked transport."""

import asyncio

import httpx
import pytest
from backend.app.places.base import (
    ProviderBadGateway,
    ProviderNotFound,
    ProviderUnavailable,
    SearchParams,
)
from backend.app.places.yelp import RESTAURANT_CATEGORIES, YelpProvider

SEARCH_PAYLOAD = {
    "businesses": [
        {
            "id": "tartine-bakery",
            "name": "Tartine Bakery",
            "rating": 4.0,
            "review_count": 8000,
            "categories": [{"alias": "bakeries", "title": "Bakeries"}],
            "coordinates": {"latitude": 37.7614, "longitude": -122.4241},
            "location": {"display_address": ["600 Guerrero St", "San Francisco, CA 94110"]},
            "price": "$$",
        }
    ],
    "total": 1,
    "region": {"center": {"latitude": 37.76, "longitude": -122.42}},
}


def _provider(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return YelpProvider(api_key, base_url="https://yelp.test/v3", client=client)


class TestQueryBuilding:
    def test_restaurant_categories_always_appended(self):
        query = YelpProvider.build_query(SearchParams(term="pizza", location="NYC"))
        assert ("categories", RESTAURANT_CATEGORIES) in query
        assert ("term", "pizza") in query

    def test_radius_and_limit_clamped(self):
        query = dict(YelpProvider.build_query(SearchParams(radius=90_000, limit=200)))
        assert query["radius"] == "40000"
        assert query["limit"] == "50"

    def test_open_now_serialised_as_lowercase(self):
        query = dict(YelpProvider.build_query(SearchParams(location="SF", open_now=False)))
        assert query["open_now"] == "false"


class TestYelpRequests:
    def test_search_parses_businesses_and_sends_bearer(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        provider = _provider(handler)
        result = asyncio.run(provider.search(SearchParams(location="San Francisco")))

        assert result.total == 1
        assert result.businesses[0].id == "tartine-bakery"
        assert seen[0].headers["Authorization"] == "Bearer test-key"
        assert seen[0].url.path == "/v3/businesses/search"
        assert "restaurants,food" in seen[0].url.params.get_list("categories")

    def test_missing_key_fails_without_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        provider = _provider(handler, api_key="  ")
        with pytest.raises(ProviderUnavailable) as exc:
            asyncio.run(provider.search(SearchParams(location="SF")))
        assert exc.value.status_code == 503
        assert calls == []
        assert asyncio.run(provider.validate_connection()) is False

    def test_upstream_error_is_bad_gateway(self):
        provider = _provider(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(ProviderBadGateway) as exc:
            asyncio.run(provider.search(SearchParams(location="SF")))
        assert exc.value.status_code == 502

    def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = _provider(handler)
        with pytest.raises(ProviderUnavailable) as exc:
            asyncio.run(provider.search(SearchParams(location="SF")))
        assert exc.value.status_code == 503

    def test_unknown_business_is_not_found(self):
        provider = _provider(lambda request: httpx.Response(404, json={"error": {}}))
        with pytest.raises(ProviderNotFound) as exc:
            asyncio.run(provider.get_details("nope"))
        assert exc.value.status_code == 404

    def test_details_and_reviews(self):
        def handler(request):
            if request.url.path.endswith("/reviews"):
                assert request.url.params["locale"] == "fr_FR"
                return httpx.Response(
                    200,
                    json={
                        "reviews": [{"id": "r1", "rating": 5, "text": "Amazing bread"}],
                        "total": 1,
                        "possible_languages": ["fr"],
                    },
                )
            return httpx.Response(
                200, json={**SEARCH_PAYLOAD["businesses"][0], "photos": ["https://p/1.jpg"]}
            )

        provider = _provider(handler)
        details = asyncio.run(provider.get_details("tartine-bakery"))
        reviews = asyncio.run(provider.get_reviews("tartine-bakery", "fr_FR"))

        assert details.photos == ["https://p/1.jpg"]
        assert reviews.reviews[0].rating == 5
        assert reviews.possible_languages == ["fr"]

    def test_malformed_payload_is_bad_gateway(self):
        provider = _provider(lambda request: httpx.Response(200, json={"businesses": "nope"}))
        with pytest.raises(ProviderBadGateway):
            asyncio.run(provider.search(SearchParams(location="SF")))
