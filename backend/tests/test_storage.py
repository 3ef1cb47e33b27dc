"""SQL repository behaviour not covered through the HTTP routes."""

import asyncio
from contextlib import asynccontextmanager

import pytest
from backend.app.contracts import FavoriteCreate, MenuItemCreate, RestaurantCreate
from backend.app.db.core import get_session
from backend.app.seed import SAMPLE_RESTAURANTS, seed
from backend.app.storage import Database
from fastapi import HTTPException


def _mapped(external_id, name, **fields):
    return {"external_id": external_id, "name": name, "cuisine": "", "address": "", **fields}


def _losing_race_for(external_id):
    """Session factory whose first session sees `external_id` stored right after its read."""
    raced = []

    @asynccontextmanager
    async def factory():
        async with get_session() as session:
            if not raced:
                raced.append(external_id)
                read = session.execute

                async def execute(*args, **kwargs):
                    result = await read(*args, **kwargs)
                    session.execute = read
                    await Database().insert_missing([_mapped(external_id, "Stored first")])
                    return result

                session.execute = execute
            yield session

    return factory


class TestInsertMissing:
    """Test insert-if-absent for provider rows."""

    def test_returns_rows_in_input_order(self):
        """Known rows should be returned unchanged, in input order."""
        db = Database()
        asyncio.run(db.insert_missing([_mapped("b", "Existing B")]))
        stored = asyncio.run(
            db.insert_missing([_mapped("a", "New A"), _mapped("b", "Upstream B")])
        )
        assert [row["external_id"] for row in stored] == ["a", "b"]
        assert stored[1]["name"] == "Existing B"
        assert asyncio.run(db.count_restaurants()) == 2

    def test_rows_without_external_id_skipped(self):
        """Rows without an external id should be ignored."""
        assert asyncio.run(Database().insert_missing([_mapped(None, "Anon")])) == []

    def test_concurrent_insert_is_reread(self):
        """A row stored by another writer should be re-read, not fail."""
        db = Database(session_factory=_losing_race_for("race-1"))
        stored = asyncio.run(db.insert_missing([_mapped("race-1", "Mine"), _mapped("c", "C")]))
        assert [row["name"] for row in stored] == ["Stored first", "C"]
        assert asyncio.run(Database().count_restaurants()) == 2

    def test_concurrent_upsert_overwrites(self):
        """A sync racing another insert should overwrite the stored row."""
        db = Database(session_factory=_losing_race_for("race-2"))
        synced = _mapped(
            "race-2",
            "Synced",
            review_count=0,
            photos=[],
            categories=[],
            hours=[],
            is_closed=False,
            transactions=[],
            attributes={},
        )
        stored = asyncio.run(db.upsert_from_provider(synced))
        assert stored["name"] == "Synced"
        assert asyncio.run(Database().count_restaurants()) == 1


class TestCascade:
    """Test restaurant deletion."""

    def test_delete_removes_favorites_and_menu(self):
        """Deleting a restaurant should remove its favorites and menu."""
        db = Database()
        rid = asyncio.run(
            db.create_restaurant(RestaurantCreate(name="Gone", cuisine="Thai", address="1 St"))
        )["id"]
        asyncio.run(db.create_favorite(FavoriteCreate(user_id="u", restaurant_id=rid)))
        asyncio.run(db.create_menu_item(rid, MenuItemCreate(name="Pad thai")))

        asyncio.run(db.delete_restaurant(rid))

        assert asyncio.run(db.list_favorites(user_id="u")) == []
        assert asyncio.run(db.list_menu_items(rid)) == []
        with pytest.raises(HTTPException) as exc:
            asyncio.run(db.delete_restaurant(rid))
        assert exc.value.status_code == 404


class TestSeed:
    """Test sample data seeding."""

    def test_seed_only_fills_empty_table(self):
        """Seeding should only run against an empty table."""
        db = Database()
        assert asyncio.run(seed(db)) == len(SAMPLE_RESTAURANTS)
        assert asyncio.run(seed(db)) == 0
        assert asyncio.run(db.count_restaurants()) == len(SAMPLE_RESTAURANTS)
