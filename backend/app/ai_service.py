from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from .json_utils import extract_json_dict, extract_json_list
from .metrics import ai_requests_total
from .places.base import ProviderReview
from .schemas import (
    DietaryAnalysis,
    DiningContext,
    DiningPreferences,
    Recommendation,
    ReviewSummary,
    SentimentAnalysis,
    TopMention,
)
from .settings import Settings

logger = logging.getLogger(__name__)

POSITIVE_WORDS = ("great", "excellent", "amazing", "delicious", "perfect")
NEGATIVE_WORDS = ("terrible", "awful", "bad", "horrible", "disappointing")
FALLBACK_CONFIDENCE = 0.7

MAX_PROMPT_RESTAURANTS = 10
MAX_PROMPT_HISTORY = 5
MAX_SENTIMENT_REVIEWS = 10
MAX_SUMMARY_REVIEWS = 15

RECOMMENDATION_PROMPT = (
    "You are a restaurant recommendation expert. Analyze the given restaurants and user "
    "preferences to provide personalized recommendations. Return a JSON object "
    '{"recommendations": [...]} where each entry has restaurant_id (number), '
    "match_score (0-1), reasons (list of strings) and tags (list of strings)."
)
SENTIMENT_PROMPT = (
    "Analyze the sentiment of restaurant reviews. Return a JSON object "
    '{"sentiments": [...]} with one entry per review, in order, each with score (-1 to 1), '
    "label (positive/neutral/negative), confidence (0-1) and keywords."
)
SUMMARY_PROMPT = (
    "Summarize restaurant reviews. Return a JSON object with overall_sentiment "
    "(score, label, confidence, keywords), common_praises, common_complaints, top_mentions "
    "(topic, sentiment, count) and recommendation_status "
    "(highly_recommended/recommended/mixed/not_recommended)."
)
DIETARY_PROMPT = (
    "Analyze menu items for dietary restrictions compatibility. Return a JSON object with "
    "compatibility (0-1), safe_items, risky_items, alternatives and warnings."
)
SUGGESTIONS_PROMPT = (
    "Generate personalized dining suggestions based on context. Return a JSON object "
    '{"suggestions": [...]} holding specific, actionable suggestions as strings.'
)


class AIUnavailable(RuntimeError):
    """Raised internally when a completion cannot be used; never leaves this module."""


def _label_for(rating: float) -> str:
    if rating >= 4:
        return "positive"
    if rating >= 3:
        return "neutral"
    return "negative"


def _status_for(rating: float) -> str:
    if rating >= 4.5:
        return "highly_recommended"
    if rating >= 4:
        return "recommended"
    if rating >= 3:
        return "mixed"
    return "not_recommended"


def extract_keywords(text: str) -> list[str]:
    words = set((text or "").lower().split())
    return [word for word in (*POSITIVE_WORDS, *NEGATIVE_WORDS) if word in words]


def fallback_sentiment(review: ProviderReview) -> SentimentAnalysis:
    rating = float(review.rating)
    return SentimentAnalysis(
        score=max(-1.0, min(1.0, (rating - 3) / 2)),
        label=_label_for(rating),
        confidence=FALLBACK_CONFIDENCE,
        keywords=extract_keywords(review.text),
    )


def fallback_summary(reviews: Sequence[ProviderReview]) -> ReviewSummary:
    if not reviews:
        return ReviewSummary(
            overall_sentiment=SentimentAnalysis(
                score=0.0, label="neutral", confidence=FALLBACK_CONFIDENCE, keywords=[]
            ),
            common_praises=[],
            common_complaints=[],
            top_mentions=[],
            recommendation_status="mixed",
        )
    average = sum(float(review.rating) for review in reviews) / len(reviews)
    return ReviewSummary(
        overall_sentiment=SentimentAnalysis(
            score=max(-1.0, min(1.0, (average - 3) / 2)),
            label=_label_for(average),
            confidence=FALLBACK_CONFIDENCE,
            keywords=[],
        ),
        common_praises=["Good food", "Nice atmosphere"],
        common_complaints=["Long wait times"],
        top_mentions=[TopMention(topic="food", sentiment="positive", count=len(reviews))],
        recommendation_status=_status_for(average),
    )


def _category_titles(restaurant: dict[str, Any]) -> list[str]:
    return [
        str(category.get("title") or "")
        for category in restaurant.get("categories") or []
        if isinstance(category, dict)
    ]


def fallback_match_score(restaurant: dict[str, Any], preferences: DiningPreferences) -> float:
    score = 0.5
    rating = restaurant.get("rating")
    if rating:
        score += (float(rating) - 3) * 0.1
    if (restaurant.get("review_count") or 0) > 50:
        score += 0.1
    price_level = restaurant.get("price_level")
    if preferences.price_range and price_level and price_level in preferences.price_range:
        score += 0.2
    if preferences.cuisine_types:
        titles = [title.lower() for title in _category_titles(restaurant)]
        wanted = [cuisine.lower() for cuisine in preferences.cuisine_types]
        if any(pref in title for pref in wanted for title in titles):
            score += 0.2
    return min(max(score, 0.0), 1.0)


def fallback_reasons(restaurant: dict[str, Any], preferences: DiningPreferences) -> list[str]:
    reasons: list[str] = []
    rating = restaurant.get("rating")
    if rating and rating >= 4.5:
        reasons.append("Highly rated restaurant")
    if (restaurant.get("review_count") or 0) > 100:
        reasons.append("Popular choice with many reviews")
    if preferences.cuisine_types:
        wanted = [cuisine.lower() for cuisine in preferences.cuisine_types]
        for title in _category_titles(restaurant):
            if any(pref in title.lower() for pref in wanted):
                reasons.append(f"Matches your {title} preference")
                break
    return reasons or ["Good overall rating and reviews"]


def fallback_tags(restaurant: dict[str, Any]) -> list[str]:
    tags: list[str] = []
    rating = restaurant.get("rating")
    if rating and rating >= 4.5:
        tags.append("highly-rated")
    if (restaurant.get("review_count") or 0) > 100:
        tags.append("popular")
    if restaurant.get("price_level") == 1:
        tags.append("budget-friendly")
    if restaurant.get("price_level") == 4:
        tags.append("upscale")
    for category in restaurant.get("categories") or []:
        if isinstance(category, dict) and category.get("alias"):
            tags.append(category["alias"])
    return tags


def fallback_recommendations(
    restaurants: Sequence[dict[str, Any]], preferences: DiningPreferences
) -> list[Recommendation]:
    results = [
        Recommendation(
            restaurant=restaurant,
            match_score=fallback_match_score(restaurant, preferences),
            reasons=fallback_reasons(restaurant, preferences),
            tags=fallback_tags(restaurant),
        )
        for restaurant in restaurants
    ]
    results.sort(key=lambda rec: rec.match_score, reverse=True)
    return results


def fallback_dietary(
    menu_items: Sequence[dict[str, Any]], restrictions: Sequence[str]
) -> DietaryAnalysis:
    return DietaryAnalysis(
        compatibility=0.5,
        safe_items=[str(item.get("name")) for item in menu_items[:3]],
        risky_items=[],
        alternatives=["Ask server for modifications"],
        warnings=["Please verify ingredients with restaurant"] if restrictions else [],
    )


def fallback_suggestions(context: DiningContext) -> list[str]:
    suggestions = [
        "Try a local favorite restaurant",
        "Consider checking the restaurant hours before visiting",
        "Read recent reviews for current experience quality",
    ]
    if (context.occasion or "").strip().lower() == "date":
        suggestions.append("Look for restaurants with romantic ambiance")
    return suggestions


class AIService:
    """Chat-completion features, each backed by a deterministic local fallback.

    Every public method returns a usable answer: a missing key, a transport or
    API error, or a reply that does not parse into the expected shape all
    resolve to the fallback and are logged and counted, never raised.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "gpt-3.5-turbo",
        base_url: str | None = None,
        timeout: float = 15.0,
        connect_timeout: float = 5.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client
        key = (api_key or "").strip()
        if self._client is None and key:
            self._client = AsyncOpenAI(
                api_key=key,
                base_url=base_url or None,
                timeout=httpx.Timeout(timeout, connect=connect_timeout),
                max_retries=0,
            )
        if self._client is None:
            logger.warning("OPENAI_API_KEY not provided. AI features will use local fallbacks.")

    @classmethod
    def from_settings(cls, config: Settings) -> AIService:
        return cls(
            config.OPENAI_API_KEY,
            model=config.OPENAI_MODEL,
            base_url=config.OPENAI_API_BASE,
            timeout=config.OPENAI_TIMEOUT_SECONDS,
            connect_timeout=config.OPENAI_CONNECT_TIMEOUT_SECONDS,
        )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def _complete(
        self, system: str, user: str, *, temperature: float, max_tokens: int
    ) -> str:
        if self._client is None:
            raise AIUnavailable("AI client not configured")
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as exc:
            raise AIUnavailable(str(exc)) from exc
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise AIUnavailable("No response from AI")
        return content

    def _record(self, operation: str, outcome: str) -> None:
        ai_requests_total.labels(operation=operation, outcome=outcome).inc()

    def _fell_back(self, operation: str, exc: Exception) -> None:
        if self.enabled:
            logger.error("AI %s failed, using fallback: %s", operation, exc)
        self._record(operation, "fallback")

    async def generate_recommendations(
        self,
        restaurants: Sequence[dict[str, Any]],
        preferences: DiningPreferences,
        search_history: Sequence[dict[str, Any]] = (),
    ) -> list[Recommendation]:
        operation = "recommendations"
        if not restaurants:
            return []
        try:
            shortlist = json.dumps(list(restaurants[:MAX_PROMPT_RESTAURANTS]), default=str)
            history = json.dumps(list(search_history[:MAX_PROMPT_HISTORY]), default=str)
            prompt = (
                "Analyze these restaurants and user preferences to generate personalized "
                "recommendations.\n\n"
                f"Restaurants: {shortlist}\n\n"
                f"User Preferences: {preferences.model_dump_json()}\n\n"
                f"Search History: {history}"
            )
            raw = await self._complete(
                RECOMMENDATION_PROMPT, prompt, temperature=0.7, max_tokens=2000
            )
            by_id = {restaurant.get("id"): restaurant for restaurant in restaurants}
            results: list[Recommendation] = []
            for entry in extract_json_list(raw, key="recommendations"):
                if not isinstance(entry, dict):
                    continue
                rid = entry.get("restaurant_id")
                if not isinstance(rid, int) or isinstance(rid, bool) or rid not in by_id:
                    continue
                restaurant = by_id[rid]
                results.append(
                    Recommendation(
                        restaurant=restaurant,
                        match_score=entry.get("match_score", 0),
                        reasons=entry.get("reasons") or [],
                        tags=entry.get("tags") or [],
                    )
                )
            if not results:
                raise ValueError("AI reply referenced no known restaurants")
        except (AIUnavailable, ValueError, ValidationError) as exc:
            self._fell_back(operation, exc)
            return fallback_recommendations(restaurants, preferences)
        self._record(operation, "ai")
        results.sort(key=lambda rec: rec.match_score, reverse=True)
        return results

    async def analyze_review_sentiment(
        self, reviews: Sequence[ProviderReview]
    ) -> list[SentimentAnalysis]:
        operation = "sentiment"
        if not reviews:
            return []
        batch = list(reviews[:MAX_SENTIMENT_REVIEWS])
        try:
            numbered = "\n\n".join(
                f"{index}. {review.text}" for index, review in enumerate(batch, start=1)
            )
            raw = await self._complete(
                SENTIMENT_PROMPT,
                f"Analyze these restaurant reviews:\n\n{numbered}",
                temperature=0.3,
                max_tokens=1500,
            )
            analysed = [
                SentimentAnalysis.model_validate(entry)
                for entry in extract_json_list(raw, key="sentiments")
            ]
            if len(analysed) != len(batch):
                raise ValueError(f"expected {len(batch)} sentiments, got {len(analysed)}")
        except (AIUnavailable, ValueError, ValidationError) as exc:
            self._fell_back(operation, exc)
            return [fallback_sentiment(review) for review in reviews]
        self._record(operation, "ai")
        return analysed + [fallback_sentiment(review) for review in reviews[len(batch):]]

    async def summarize_reviews(self, reviews: Sequence[ProviderReview]) -> ReviewSummary:
        operation = "summary"
        if not reviews:
            return fallback_summary(reviews)
        try:
            lines = "\n\n".join(
                f"{review.rating}/5: {review.text}" for review in reviews[:MAX_SUMMARY_REVIEWS]
            )
            raw = await self._complete(
                SUMMARY_PROMPT,
                f"Summarize these restaurant reviews:\n\n{lines}",
                temperature=0.5,
                max_tokens=1000,
            )
            summary = ReviewSummary.model_validate(extract_json_dict(raw))
        except (AIUnavailable, ValueError, ValidationError) as exc:
            self._fell_back(operation, exc)
            return fallback_summary(reviews)
        self._record(operation, "ai")
        return summary

    async def analyze_dietary_compatibility(
        self, menu_items: Sequence[dict[str, Any]], restrictions: Sequence[str]
    ) -> DietaryAnalysis:
        operation = "dietary"
        if not menu_items:
            self._record(operation, "fallback")
            return fallback_dietary(menu_items, restrictions)
        try:
            menu_text = "\n".join(
                f"{item.get('name')}: {item.get('description') or ''} - "
                f"${item.get('price') if item.get('price') is not None else 'N/A'}"
                for item in menu_items
            )
            raw = await self._complete(
                DIETARY_PROMPT,
                f"Analyze this menu for dietary restrictions: {', '.join(restrictions)}\n\n"
                f"Menu:\n{menu_text}",
                temperature=0.3,
                max_tokens=1000,
            )
            analysis = DietaryAnalysis.model_validate(extract_json_dict(raw))
        except (AIUnavailable, ValueError, ValidationError) as exc:
            self._fell_back(operation, exc)
            return fallback_dietary(menu_items, restrictions)
        self._record(operation, "ai")
        return analysis

    async def generate_dining_suggestions(self, context: DiningContext) -> list[str]:
        operation = "suggestions"
        try:
            raw = await self._complete(
                SUGGESTIONS_PROMPT,
                f"Generate dining suggestions for: {context.model_dump_json(exclude_none=True)}",
                temperature=0.8,
                max_tokens=500,
            )
            suggestions = [
                str(item).strip()
                for item in extract_json_list(raw, key="suggestions")
                if str(item).strip()
            ]
            if not suggestions:
                raise ValueError("AI reply held no suggestions")
        except (AIUnavailable, ValueError) as exc:
            self._fell_back(operation, exc)
            return fallback_suggestions(context)
        self._record(operation, "ai")
        return suggestions


__all__ = [
    "AIService",
    "NEGATIVE_WORDS",
    "POSITIVE_WORDS",
    "extract_keywords",
    "fallback_dietary",
    "fallback_match_score",
    "fallback_recommendations",
    "fallback_sentiment",
    "fallback_suggestions",
    "fallback_summary",
]
