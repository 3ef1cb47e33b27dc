from __future__ import annotations

import logging
import time
from typing import Any

from .ai_service import AIService
from .cache import TTLCache
from .geo import MAX_RESULTS, clamp_limit, clamp_radius, haversine_m
from .insights import build_insights
from .mapping import business_to_fields
from .metrics import nearby_provider_topups_total
from .places.base import SearchParams, SearchProvider, SearchResult
from .schemas import DiningPreferences
from .seed import demo_trending
from .serializers import restaurant_to_dict
from .storage import Database

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
DEFAULT_NEARBY_LIMIT = 20
DEFAULT_TRENDING_LIMIT = 10


class DiscoveryService:
    """Search, sync and nearby composition over one search provider and the SQL store."""

    def __init__(
        self,
        db: Database,
        provider: SearchProvider,
        ai: AIService,
        *,
        search_cache: TTLCache | None = None,
        trending_demo_fallback: bool = False,
    ) -> None:
        self.db = db
        self.provider = provider
        self.ai = ai
        self.search_cache = search_cache
        self.trending_demo_fallback = trending_demo_fallback

    async def _provider_search(self, params: SearchParams) -> SearchResult:
        if self.search_cache is None:
            return await self.provider.search(params)
        key = f"{self.provider.name}:{params.cache_key()}"
        cached = self.search_cache.get(key)
        if cached is not None:
            return cached
        result = await self.provider.search(params)
        self.search_cache.set(key, result)
        return result

    async def search(self, params: SearchParams, *, user_id: str | None = None) -> dict[str, Any]:
        started = time.perf_counter()
        result = await self._provider_search(params)
        # insert-if-absent: rows already stored keep their data until an explicit sync
        stored = await self.db.insert_missing(
            business_to_fields(business) for business in result.businesses
        )
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        page_size = params.limit or DEFAULT_PAGE_SIZE
        filters = params.model_dump(exclude_none=True, exclude={"term", "location"})
        try:
            await self.db.record_search(
                user_id=user_id,
                query=params.term,
                location=params.location,
                filters=filters,
                results_count=len(result.businesses),
                latitude=params.latitude,
                longitude=params.longitude,
                response_time_ms=elapsed_ms,
            )
        except Exception:
            logger.exception("Failed to record search history")

        return {
            "restaurants": stored,
            "businesses": [business.model_dump() for business in result.businesses],
            "total": result.total,
            "page": (params.offset or 0) // page_size + 1,
            "region": result.region.model_dump(),
        }

    async def sync(self, external_id: str) -> dict[str, Any]:
        details = await self.provider.get_details(external_id)
        return await self.db.upsert_from_provider(business_to_fields(details))

    async def nearby(
        self,
        latitude: float,
        longitude: float,
        radius: int | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        limit = clamp_limit(limit, DEFAULT_NEARBY_LIMIT)
        radius = clamp_radius(radius)

        located: list[tuple[float, dict[str, Any]]] = []
        for restaurant in await self.db.geotagged_restaurants():
            distance = haversine_m(
                latitude, longitude, restaurant["latitude"], restaurant["longitude"]
            )
            if radius is not None and distance > radius:
                continue
            located.append((distance, restaurant))
        located.sort(key=lambda pair: pair[0])
        results = [restaurant for _, restaurant in located[:limit]]

        if len(results) < limit:
            known = {r["external_id"] for r in results if r.get("external_id")}
            try:
                external = await self.provider.search(
                    SearchParams(
                        latitude=latitude,
                        longitude=longitude,
                        radius=radius,
                        limit=limit,
                        sort_by="distance",
                    )
                )
            except Exception as exc:
                nearby_provider_topups_total.labels(outcome="failed").inc()
                logger.warning("Nearby provider lookup failed, returning local results: %s", exc)
            else:
                nearby_provider_topups_total.labels(outcome="ok").inc()
                for business in external.businesses:
                    if len(results) >= limit:
                        break
                    if business.id in known:
                        continue
                    known.add(business.id)
                    results.append(restaurant_to_dict(business_to_fields(business)))

        # distance is never part of the output, whichever branch produced the row
        return [{k: v for k, v in row.items() if k != "distance"} for row in results]

    async def trending(self, limit: int | None = None) -> list[dict[str, Any]]:
        limit = clamp_limit(limit, DEFAULT_TRENDING_LIMIT)
        rows = await self.db.top_rated(limit)
        if rows:
            return rows
        if self.trending_demo_fallback:
            logger.info("No stored restaurants; serving demo trending list")
            return demo_trending(limit)
        return []

    async def recommendations(
        self, user_id: str | None, preferences: DiningPreferences
    ) -> list[dict[str, Any]]:
        restaurants = await self.db.top_rated(MAX_RESULTS)
        history = await self.db.recent_searches(user_id) if user_id else []
        recommendations = await self.ai.generate_recommendations(
            restaurants, preferences, history
        )
        return [rec.model_dump(mode="json") for rec in recommendations]

    async def details(self, external_id: str) -> dict[str, Any]:
        details = await self.provider.get_details(external_id)
        return details.model_dump()

    async def reviews(self, external_id: str, locale: str = "en_US") -> dict[str, Any]:
        result = await self.provider.get_reviews(external_id, locale)
        sentiments = await self.ai.analyze_review_sentiment(result.reviews)
        return {
            "reviews": [
                {**review.model_dump(), "sentiment": sentiment.model_dump()}
                for review, sentiment in zip(result.reviews, sentiments)
            ],
            "total": result.total,
            "possible_languages": result.possible_languages,
        }

    async def review_summary(self, external_id: str) -> dict[str, Any]:
        result = await self.provider.get_reviews(external_id)
        summary = await self.ai.summarize_reviews(result.reviews)
        return summary.model_dump()

    async def insights(self, rid: int) -> dict[str, Any]:
        restaurant = await self.db.require_restaurant(rid)
        return build_insights(restaurant)

    async def analyze_menu(self, external_id: str, restrictions: list[str]) -> dict[str, Any]:
        restaurant = await self.db.get_by_external_id(external_id)
        menu_items = await self.db.list_menu_items(restaurant["id"]) if restaurant else []
        analysis = await self.ai.analyze_dietary_compatibility(menu_items, restrictions)
        return {
            "restaurant": restaurant,
            "menu_items": len(menu_items),
            "analysis": analysis.model_dump(),
        }


__all__ = ["DiscoveryService"]
