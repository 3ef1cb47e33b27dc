from __future__ import annotations

from datetime import date, datetime
from typing import Any


def get_attr(o: Any, key: str, default=None):
    if isinstance(o, dict):
        return o.get(key, default)
    return getattr(o, key, default)


def _iso(value: Any) -> str | None:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def restaurant_to_dict(r: Any) -> dict[str, Any]:
    rating = get_attr(r, "rating")
    return {
        "id": get_attr(r, "id"),
        "external_id": get_attr(r, "external_id"),
        "name": get_attr(r, "name"),
        "description": get_attr(r, "description"),
        "cuisine": get_attr(r, "cuisine") or "",
        "address": get_attr(r, "address") or "",
        "phone": get_attr(r, "phone"),
        "rating": round(float(rating), 1) if rating is not None else None,
        "review_count": int(get_attr(r, "review_count", 0) or 0),
        "latitude": get_attr(r, "latitude"),
        "longitude": get_attr(r, "longitude"),
        "photos": list(get_attr(r, "photos", []) or []),
        "price_level": get_attr(r, "price_level"),
        "categories": list(get_attr(r, "categories", []) or []),
        "hours": list(get_attr(r, "hours", []) or []),
        "url": get_attr(r, "url"),
        "is_closed": bool(get_attr(r, "is_closed", False)),
        "transactions": list(get_attr(r, "transactions", []) or []),
        "attributes": dict(get_attr(r, "attributes", {}) or {}),
        "last_synced_at": _iso(get_attr(r, "last_synced_at")),
        "created_at": _iso(get_attr(r, "created_at")),
        "updated_at": _iso(get_attr(r, "updated_at")),
    }


def favorite_to_dict(f: Any, restaurant: Any | None = None) -> dict[str, Any]:
    payload = {
        "id": get_attr(f, "id"),
        "user_id": get_attr(f, "user_id"),
        "restaurant_id": get_attr(f, "restaurant_id"),
        "collection": get_attr(f, "collection"),
        "notes": get_attr(f, "notes"),
        "tags": list(get_attr(f, "tags", []) or []),
        "priority": int(get_attr(f, "priority", 3) or 3),
        "is_visited": bool(get_attr(f, "is_visited", False)),
        "visit_date": _iso(get_attr(f, "visit_date")),
        "personal_rating": get_attr(f, "personal_rating"),
        "created_at": _iso(get_attr(f, "created_at")),
    }
    if restaurant is not None:
        payload["restaurant"] = restaurant_to_dict(restaurant)
    return payload


def menu_item_to_dict(m: Any) -> dict[str, Any]:
    return {
        "id": get_attr(m, "id"),
        "restaurant_id": get_attr(m, "restaurant_id"),
        "name": get_attr(m, "name"),
        "description": get_attr(m, "description"),
        "price": get_attr(m, "price"),
        "currency": get_attr(m, "currency") or "USD",
        "category": get_attr(m, "category"),
        "image_url": get_attr(m, "image_url"),
        "dietary_tags": list(get_attr(m, "dietary_tags", []) or []),
        "allergens": list(get_attr(m, "allergens", []) or []),
        "popularity_score": int(get_attr(m, "popularity_score", 0) or 0),
        "is_available": bool(get_attr(m, "is_available", True)),
        "notes": get_attr(m, "notes"),
        "created_at": _iso(get_attr(m, "created_at")),
        "updated_at": _iso(get_attr(m, "updated_at")),
    }
