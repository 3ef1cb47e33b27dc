from __future__ import annotations

import logging

import httpx

from ..geo import clamp_limit, clamp_radius
from .base import (
    BusinessDetails,
    ProviderUnavailable,
    ReviewsResult,
    SearchParams,
    SearchResult,
    build_http_client,
    parse_record,
    send_json,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.yelp.com/v3"
RESTAURANT_CATEGORIES = "restaurants,food"


class YelpProvider:
    """Yelp Fusion business search. Disabled (fails fast) without an API key."""

    name = "yelp"

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_redirects: int = 3,
    ) -> None:
        self.api_key = (api_key or "").strip() or None
        self.base_url = base_url.rstrip("/") or DEFAULT_BASE_URL
        self._client = client or build_http_client(timeout=timeout, max_redirects=max_redirects)
        if not self.api_key:
            logger.warning("YELP_API_KEY not provided. Yelp integration will be disabled.")

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ProviderUnavailable("Yelp API key not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def build_query(params: SearchParams) -> list[tuple[str, str]]:
        query: list[tuple[str, str]] = []
        if params.term:
            query.append(("term", params.term))
        if params.location:
            query.append(("location", params.location))
        if params.latitude is not None:
            query.append(("latitude", str(params.latitude)))
        if params.longitude is not None:
            query.append(("longitude", str(params.longitude)))
        if params.radius:
            query.append(("radius", str(clamp_radius(params.radius))))
        if params.categories:
            query.append(("categories", params.categories))
        if params.price:
            query.append(("price", params.price))
        if params.open_now is not None:
            query.append(("open_now", "true" if params.open_now else "false"))
        if params.sort_by:
            query.append(("sort_by", params.sort_by))
        if params.limit:
            query.append(("limit", str(clamp_limit(params.limit))))
        if params.offset:
            query.append(("offset", str(params.offset)))
        query.append(("categories", RESTAURANT_CATEGORIES))
        return query

    async def search(self, params: SearchParams) -> SearchResult:
        headers = self._headers()
        payload = await send_json(
            self._client,
            "GET",
            f"{self.base_url}/businesses/search",
            params=self.build_query(params),
            headers=headers,
            provider=self.name,
            operation="search",
            unavailable_message="Yelp search service temporarily unavailable",
            bad_gateway_message="Failed to search restaurants from Yelp",
        )
        result = parse_record(
            SearchResult,
            payload,
            provider=self.name,
            message="Failed to search restaurants from Yelp",
        )
        logger.info("Yelp search returned %d results", len(result.businesses))
        return result

    async def get_details(self, external_id: str) -> BusinessDetails:
        headers = self._headers()
        payload = await send_json(
            self._client,
            "GET",
            f"{self.base_url}/businesses/{external_id}",
            headers=headers,
            provider=self.name,
            operation="details",
            unavailable_message="Yelp details service temporarily unavailable",
            bad_gateway_message="Failed to get restaurant details from Yelp",
            not_found_message="Restaurant not found on Yelp",
        )
        return parse_record(
            BusinessDetails,
            payload,
            provider=self.name,
            message="Failed to get restaurant details from Yelp",
        )

    async def get_reviews(self, external_id: str, locale: str = "en_US") -> ReviewsResult:
        headers = self._headers()
        payload = await send_json(
            self._client,
            "GET",
            f"{self.base_url}/businesses/{external_id}/reviews",
            params={"locale": locale, "sort_by": "newest"},
            headers=headers,
            provider=self.name,
            operation="reviews",
            unavailable_message="Yelp reviews service temporarily unavailable",
            bad_gateway_message="Failed to get restaurant reviews from Yelp",
            not_found_message="Restaurant reviews not found on Yelp",
        )
        return parse_record(
            ReviewsResult,
            payload,
            provider=self.name,
            message="Failed to get restaurant reviews from Yelp",
        )

    async def validate_connection(self) -> bool:
        if not self.api_key:
            return False
        try:
            await self.search(SearchParams(term="restaurant", location="San Francisco", limit=1))
        except Exception as exc:
            logger.error("Yelp API connection validation failed: %s", exc)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["YelpProvider", "RESTAURANT_CATEGORIES"]
