from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .validators import normalize_display_name, normalize_note, normalize_phone, normalize_tags


# --- Restaurants ---
class CategoryOut(BaseModel):
    alias: str = ""
    title: str = ""


class HoursSpan(BaseModel):
    day: int = Field(ge=0, le=6)
    start: str
    end: str
    is_overnight: bool = False


class Restaurant(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    # None for provider results that are not stored yet (nearby top-up)
    id: int | None = None
    external_id: str | None = None
    name: str
    description: str | None = None
    cuisine: str = ""
    address: str = ""
    phone: str | None = None
    rating: float | None = None
    review_count: int = 0
    latitude: float | None = None
    longitude: float | None = None
    photos: list[str] = Field(default_factory=list)
    price_level: int | None = None
    categories: list[CategoryOut] = Field(default_factory=list)
    hours: list[HoursSpan] = Field(default_factory=list)
    url: str | None = None
    is_closed: bool = False
    transactions: list[str] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)
    last_synced_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RestaurantCreate(BaseModel):
    name: str
    description: str | None = None
    cuisine: str
    address: str
    phone: str | None = None
    rating: float | None = Field(default=None, ge=1, le=5)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    price_level: int | None = Field(default=None, ge=1, le=4)
    categories: list[CategoryOut] = Field(default_factory=list)
    hours: list[HoursSpan] = Field(default_factory=list)
    url: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return normalize_display_name(value)

    @field_validator("cuisine", "address")
    @classmethod
    def _required_text(cls, value: str, info) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError(f"{info.field_name} cannot be blank")
        return cleaned

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str | None) -> str | None:
        return normalize_phone(value)


class RestaurantUpdate(BaseModel):
    """Every field optional; only supplied fields are written."""

    name: str | None = None
    description: str | None = None
    cuisine: str | None = None
    address: str | None = None
    phone: str | None = None
    rating: float | None = Field(default=None, ge=1, le=5)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    price_level: int | None = Field(default=None, ge=1, le=4)
    categories: list[CategoryOut] | None = None
    hours: list[HoursSpan] | None = None
    url: str | None = None
    is_closed: bool | None = None
    attributes: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_display_name(value)

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str | None) -> str | None:
        return normalize_phone(value)


# --- Favorites ---
class FavoriteCreate(BaseModel):
    user_id: str = Field(min_length=1, max_length=255)
    restaurant_id: int
    collection: str | None = Field(default=None, max_length=100)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    priority: int = Field(default=3, ge=1, le=5)

    @field_validator("notes")
    @classmethod
    def _notes(cls, value: str | None) -> str | None:
        return normalize_note(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):  # type: ignore[override]
        return normalize_tags(value)


class FavoriteUpdate(BaseModel):
    collection: str | None = Field(default=None, max_length=100)
    notes: str | None = None
    tags: list[str] | None = None
    priority: int | None = Field(default=None, ge=1, le=5)
    is_visited: bool | None = None
    visit_date: date | None = None
    personal_rating: float | None = Field(default=None, ge=1, le=5)

    @field_validator("notes")
    @classmethod
    def _notes(cls, value: str | None) -> str | None:
        return normalize_note(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):  # type: ignore[override]
        if value is None:
            return None
        return normalize_tags(value)


class Favorite(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    restaurant_id: int
    collection: str | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    priority: int = 3
    is_visited: bool = False
    visit_date: date | None = None
    personal_rating: float | None = None
    created_at: datetime | None = None
    restaurant: Restaurant | None = None


# --- Menu ---
class MenuItemCreate(BaseModel):
    name: str
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    category: str | None = Field(default=None, max_length=100)
    image_url: str | None = None
    dietary_tags: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    is_available: bool = True
    notes: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return normalize_display_name(value)

    @field_validator("currency")
    @classmethod
    def _currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("dietary_tags", "allergens", mode="before")
    @classmethod
    def _tag_lists(cls, value):  # type: ignore[override]
        return normalize_tags(value)


class MenuItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    description: str | None = None
    price: float | None = None
    currency: str = "USD"
    category: str | None = None
    image_url: str | None = None
    dietary_tags: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    popularity_score: int = 0
    is_available: bool = True
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
