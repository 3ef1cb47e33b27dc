"""Heuristic restaurant insights.

Everything here is string templating over the lookup tables below: no I/O,
no model calls, same input always gives the same output.
"""

from __future__ import annotations

import re
from typing import Any

from .serializers import get_attr

DEFAULT_DIETARY_TAG = "Happy to tailor dishes on request"
TRUTHY_FLAG_VALUES = {"yes", "only", "true", "1", "limited"}
EVENING_START_MINUTES = 17 * 60
WEEKEND_DAYS = {5, 6}
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MAX_DISHES = 3

# tag -> (category keywords, attribute flag)
DIETARY_RULES: tuple[tuple[str, tuple[str, ...], str | None], ...] = (
    ("Vegan friendly", ("vegan",), "diet:vegan"),
    ("Vegetarian friendly", ("vegetarian", "veggie"), "diet:vegetarian"),
    ("Gluten-free options", ("gluten-free", "gluten free", "gluten_free"), "diet:gluten_free"),
    ("Halal", ("halal",), None),
    ("Kosher", ("kosher",), None),
)

DISHES_BY_CUISINE: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("pizza", ("Margherita pizza", "Pepperoni pizza", "Garlic knots")),
    ("italian", ("Handmade pasta", "Risotto", "Tiramisu")),
    ("sushi", ("Chef's omakase", "Salmon nigiri", "Spicy tuna roll")),
    ("japanese", ("Ramen", "Tempura", "Miso black cod")),
    ("chinese", ("Peking duck", "Dim sum", "Kung pao chicken")),
    ("indian", ("Butter chicken", "Lamb biryani", "Garlic naan")),
    ("thai", ("Pad thai", "Green curry", "Mango sticky rice")),
    ("mexican", ("Tacos al pastor", "Guacamole", "Churros")),
    ("french", ("Steak frites", "French onion soup", "Creme brulee")),
    ("korean", ("Bibimbap", "Korean fried chicken", "Kimchi stew")),
    ("vietnamese", ("Pho", "Banh mi", "Fresh spring rolls")),
    ("greek", ("Souvlaki", "Moussaka", "Greek salad")),
    ("mediterranean", ("Mezze platter", "Grilled halloumi", "Falafel")),
    ("seafood", ("Grilled catch of the day", "Oysters", "Clam chowder")),
    ("steak", ("Ribeye", "Creamed spinach", "Truffle fries")),
    ("burger", ("House burger", "Onion rings", "Milkshake")),
    ("american", ("Cheeseburger", "BBQ ribs", "Mac and cheese")),
    ("bbq", ("Smoked brisket", "Pulled pork", "Cornbread")),
    ("cafe", ("Avocado toast", "Flat white", "Seasonal pastry")),
)

_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")


def _category_titles(restaurant: Any) -> list[str]:
    titles = []
    for category in get_attr(restaurant, "categories", []) or []:
        title = get_attr(category, "title")
        if title:
            titles.append(str(title))
    return titles


def _first_sentence(text: str | None) -> str | None:
    cleaned = " ".join((text or "").split())
    if not cleaned:
        return None
    sentence = _SENTENCE_END_RE.split(cleaned, maxsplit=1)[0]
    if sentence[-1] not in ".!?":
        sentence += "."
    return sentence


def _rating_clause(rating: float, review_count: int) -> str:
    if rating >= 4.5:
        lead = "Guests rave about this spot"
    elif rating >= 4:
        lead = "Diners consistently rate it well"
    elif rating >= 3:
        lead = "Reviews are generally positive"
    else:
        lead = "Reviews are mixed"
    if review_count:
        return f"{lead} ({rating:.1f}/5 from {review_count} reviews)."
    return f"{lead} ({rating:.1f}/5)."


def summarize_reviews(restaurant: Any) -> str:
    rating = get_attr(restaurant, "rating")
    review_count = int(get_attr(restaurant, "review_count", 0) or 0)
    sentence = _first_sentence(get_attr(restaurant, "description"))
    if rating is not None and sentence:
        return f"{_rating_clause(float(rating), review_count)} {sentence}"
    if rating is not None:
        cuisine = (get_attr(restaurant, "cuisine") or "").strip()
        focus = f"for {cuisine.lower()}" if cuisine else "for a meal out"
        return f"{_rating_clause(float(rating), review_count)} A dependable choice {focus}."
    if sentence:
        return f"Not yet rated. {sentence}"
    return "No reviews yet. Be among the first to share your experience."


def _flag_is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY_FLAG_VALUES


def dietary_tags(restaurant: Any) -> list[str]:
    haystack = " ".join(_category_titles(restaurant)).lower()
    attributes = get_attr(restaurant, "attributes", {}) or {}
    tags: list[str] = []
    for tag, keywords, flag in DIETARY_RULES:
        by_keyword = any(keyword in haystack for keyword in keywords)
        by_flag = bool(flag) and flag in attributes and _flag_is_truthy(attributes[flag])
        if by_keyword or by_flag:
            tags.append(tag)
    return tags or [DEFAULT_DIETARY_TAG]


def _minutes(value: Any) -> int | None:
    digits = re.sub(r"\D", "", str(value or ""))
    if not digits:
        return None
    digits = digits.zfill(4)[-4:]
    hours, minutes = int(digits[:2]), int(digits[2:])
    if hours > 24 or minutes > 59:
        return None
    return hours * 60 + minutes


def _clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def best_time_to_visit(restaurant: Any) -> str:
    slots: list[tuple[int, int]] = []
    for span in get_attr(restaurant, "hours", []) or []:
        start = _minutes(get_attr(span, "start"))
        day = get_attr(span, "day")
        if start is None or day is None:
            continue
        slots.append((int(day), start))

    weekend = sorted((start, day) for day, start in slots if day in WEEKEND_DAYS)
    if weekend:
        start, day = weekend[0]
        return (
            f"Weekend afternoons are a relaxed time to drop by; doors open at {_clock(start)} "
            f"on {DAY_NAMES[day]}."
        )

    evening = sorted(start for _, start in slots if start >= EVENING_START_MINUTES)
    if evening:
        return f"Best enjoyed in the evening, from {_clock(evening[0])} onwards."

    if slots:
        start = min(start for _, start in slots)
        return f"Arrive soon after opening at {_clock(start)} to beat the crowds."

    rating = get_attr(restaurant, "rating")
    if rating is not None and float(rating) >= 4.5:
        return "A popular spot, so book ahead or try a weekday lunch."
    return "Any time works well; check opening hours before you go."


def suggested_dishes(restaurant: Any) -> list[str]:
    titles = _category_titles(restaurant)
    haystack = " ".join([get_attr(restaurant, "cuisine") or "", *titles]).lower()
    dishes: list[str] = []
    for keyword, options in DISHES_BY_CUISINE:
        if keyword not in haystack:
            continue
        for dish in options:
            if dish not in dishes:
                dishes.append(dish)
            if len(dishes) >= MAX_DISHES:
                return dishes
    if dishes:
        return dishes
    if titles:
        return [f"The chef's special {titles[0].lower()} dish"]
    return ["Ask the team for today's favourites"]


def build_insights(restaurant: Any) -> dict[str, Any]:
    return {
        "restaurant_id": get_attr(restaurant, "id"),
        "review_summary": summarize_reviews(restaurant),
        "dietary_tags": dietary_tags(restaurant),
        "best_time_to_visit": best_time_to_visit(restaurant),
        "suggested_dishes": suggested_dishes(restaurant),
    }


__all__ = [
    "DEFAULT_DIETARY_TAG",
    "best_time_to_visit",
    "build_insights",
    "dietary_tags",
    "suggested_dishes",
    "summarize_reviews",
]
