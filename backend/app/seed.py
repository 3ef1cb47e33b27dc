from __future__ import annotations

import logging
from typing import Any

from .contracts import CategoryOut, RestaurantCreate
from .storage import Database

logger = logging.getLogger(__name__)


def _sample(name, description, cuisine, address, phone, rating) -> RestaurantCreate:
    return RestaurantCreate(
        name=name,
        description=description,
        cuisine=cuisine,
        address=address,
        phone=phone,
        rating=rating,
        categories=[CategoryOut(alias=cuisine.lower(), title=cuisine)],
    )


SAMPLE_RESTAURANTS: tuple[RestaurantCreate, ...] = (
    _sample(
        "The Italian Corner",
        "Authentic Italian cuisine with handmade pasta and traditional recipes",
        "Italian",
        "123 Main St, Downtown",
        "+1-555-0101",
        4.5,
    ),
    _sample(
        "Spice Garden",
        "Aromatic Indian dishes with fresh spices and vegetarian options",
        "Indian",
        "456 Oak Ave, Midtown",
        "+1-555-0102",
        4.8,
    ),
    _sample(
        "Sakura Sushi",
        "Fresh sushi and Japanese delicacies prepared by skilled chefs",
        "Japanese",
        "789 Pine St, Uptown",
        "+1-555-0103",
        4.6,
    ),
    _sample(
        "Le Petit Bistro",
        "Classic French bistro with wine selection and cozy atmosphere",
        "French",
        "321 Elm St, Old Town",
        "+1-555-0104",
        4.7,
    ),
    _sample(
        "Dragon Palace",
        "Traditional Chinese cuisine with dim sum and Peking duck",
        "Chinese",
        "654 Maple Dr, Chinatown",
        "+1-555-0105",
        4.4,
    ),
)


def demo_trending(limit: int) -> list[dict[str, Any]]:
    """Unsaved sample rows, best rated first, for an empty store."""
    ranked = sorted(SAMPLE_RESTAURANTS, key=lambda r: r.rating or 0, reverse=True)
    return [
        {
            **sample.model_dump(mode="json"),
            "id": index,
            "external_id": f"demo-{index}",
            "attributes": {"demo": True},
        }
        for index, sample in enumerate(ranked[: max(1, limit)], start=1)
    ]


async def seed(db: Database) -> int:
    """Insert the sample restaurants into an empty table. Returns rows created."""
    if await db.count_restaurants():
        logger.info("Restaurants already present, skipping demo seed")
        return 0
    for sample in SAMPLE_RESTAURANTS:
        await db.create_restaurant(sample)
    logger.info("Seeded %d demo restaurants", len(SAMPLE_RESTAURANTS))
    return len(SAMPLE_RESTAURANTS)
