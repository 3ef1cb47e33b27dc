from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .contracts import Restaurant
from .validators import normalize_tags

SentimentLabel = Literal["positive", "neutral", "negative"]
RecommendationStatus = Literal["highly_recommended", "recommended", "mixed", "not_recommended"]


# --- AI request payloads ---
class DiningPreferences(BaseModel):
    cuisine_types: list[str] = Field(default_factory=list)
    price_range: list[int] = Field(default_factory=list)
    dietary_restrictions: list[str] = Field(default_factory=list)
    ambiance: list[str] = Field(default_factory=list)
    previous_likes: list[str] = Field(default_factory=list)
    previous_dislikes: list[str] = Field(default_factory=list)

    @field_validator("price_range")
    @classmethod
    def _price_levels(cls, value: list[int]) -> list[int]:
        for level in value:
            if level < 1 or level > 4:
                raise ValueError("price_range entries must be between 1 and 4")
        return value


class DiningContext(BaseModel):
    occasion: str | None = Field(default=None, max_length=100)
    time_of_day: str | None = Field(default=None, max_length=50)
    weather: str | None = Field(default=None, max_length=50)
    group_size: int | None = Field(default=None, ge=1, le=100)
    budget: str | None = Field(default=None, max_length=50)
    location: str | None = Field(default=None, max_length=255)


class MenuAnalysisRequest(BaseModel):
    dietary_restrictions: list[str] = Field(default_factory=list)

    @field_validator("dietary_restrictions", mode="before")
    @classmethod
    def _restrictions(cls, value):  # type: ignore[override]
        return normalize_tags(value)


# --- AI results ---
class SentimentAnalysis(BaseModel):
    score: float = Field(ge=-1, le=1)
    label: SentimentLabel
    confidence: float = Field(ge=0, le=1)
    keywords: list[str] = Field(default_factory=list)


class TopMention(BaseModel):
    topic: str
    sentiment: str
    count: int = 0


class ReviewSummary(BaseModel):
    overall_sentiment: SentimentAnalysis
    common_praises: list[str] = Field(default_factory=list)
    common_complaints: list[str] = Field(default_factory=list)
    top_mentions: list[TopMention] = Field(default_factory=list)
    recommendation_status: RecommendationStatus


class DietaryAnalysis(BaseModel):
    compatibility: float = Field(ge=0, le=1)
    safe_items: list[str] = Field(default_factory=list)
    risky_items: list[str] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class Recommendation(BaseModel):
    restaurant: Restaurant
    match_score: float = Field(ge=0, le=1)
    reasons: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class DiningSuggestions(BaseModel):
    suggestions: list[str]


# --- Discovery responses ---
class SearchResponse(BaseModel):
    restaurants: list[Restaurant]
    businesses: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    region: dict[str, Any] = Field(default_factory=dict)


class ReviewWithSentiment(BaseModel):
    id: str
    rating: float
    text: str = ""
    time_created: str = ""
    url: str | None = None
    user: dict[str, Any] = Field(default_factory=dict)
    sentiment: SentimentAnalysis


class ReviewsResponse(BaseModel):
    reviews: list[ReviewWithSentiment]
    total: int = 0
    possible_languages: list[str] = Field(default_factory=list)


class MenuAnalysisResponse(BaseModel):
    restaurant: Restaurant | None = None
    menu_items: int = 0
    analysis: DietaryAnalysis


class RestaurantInsights(BaseModel):
    restaurant_id: int
    review_summary: str
    dietary_tags: list[str]
    best_time_to_visit: str
    suggested_dishes: list[str]


class RecommendationsResponse(BaseModel):
    recommendations: list[Recommendation]
    total: int = 0
