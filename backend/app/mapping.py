"""Provider business records -> restaurant table fields."""

from __future__ import annotations

from typing import Any

from .places.base import Business, BusinessDetails, format_categories, price_level_from_symbols

# Columns a provider record owns; sync overwrites exactly these.
MAPPED_FIELDS = (
    "external_id",
    "name",
    "cuisine",
    "address",
    "phone",
    "rating",
    "review_count",
    "latitude",
    "longitude",
    "photos",
    "price_level",
    "categories",
    "hours",
    "url",
    "is_closed",
    "transactions",
    "attributes",
)


def _flatten_hours(details: BusinessDetails) -> list[dict[str, Any]]:
    spans: list[dict[str, Any]] = []
    for block in details.hours:
        for span in block.open:
            spans.append(
                {
                    "day": span.day,
                    "start": span.start,
                    "end": span.end,
                    "is_overnight": span.is_overnight,
                }
            )
    return spans


def business_to_fields(business: Business) -> dict[str, Any]:
    """Map one provider business onto restaurant columns.

    Pure and total: every key in MAPPED_FIELDS is present, optional values
    come back as None, False or an empty collection.
    """
    photos: list[str] = []
    hours: list[dict[str, Any]] = []
    attributes: dict[str, Any] = {}
    if isinstance(business, BusinessDetails):
        photos = [photo for photo in business.photos if photo]
        hours = _flatten_hours(business)
        attributes = dict(business.attributes or {})
    if not photos:
        photos = [photo for photo in [business.image_url] if photo]

    coords = business.coordinates
    latitude, longitude = coords.latitude, coords.longitude
    if latitude is None or longitude is None:
        latitude = longitude = None

    return {
        "external_id": business.id,
        "name": business.name,
        "cuisine": format_categories(business.categories),
        "address": ", ".join(part for part in business.location.display_address if part),
        "phone": business.display_phone or business.phone or None,
        "rating": business.rating,
        "review_count": business.review_count or 0,
        "latitude": latitude,
        "longitude": longitude,
        "photos": photos,
        "price_level": price_level_from_symbols(business.price),
        "categories": [category.model_dump() for category in business.categories],
        "hours": hours,
        "url": business.url or None,
        "is_closed": bool(business.is_closed),
        "transactions": list(business.transactions),
        "attributes": attributes,
    }


__all__ = ["MAPPED_FIELDS", "business_to_fields"]
