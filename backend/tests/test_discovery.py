"""Search persistence, provider sync and the nearby composer."""

import asyncio

from backend.app.ai_service import AIService
from backend.app.cache import TTLCache
from backend.app.contracts import RestaurantCreate, RestaurantUpdate
from backend.app.discovery import DiscoveryService
from backend.app.places.base import SearchParams
from backend.app.storage import Database
from conftest import FakeOsm, osm_node

ORIGIN = (40.7, -74.0)


def _service(fake: FakeOsm, **kwargs) -> DiscoveryService:
    return DiscoveryService(Database(), fake.provider(), AIService(None), **kwargs)


def _local(name: str, lat: float | None, lon: float | None, **extra) -> RestaurantCreate:
    return RestaurantCreate(
        name=name, cuisine="Italian", address="1 Test St", latitude=lat, longitude=lon, **extra
    )


class TestSearchPersistence:
    def test_search_inserts_unknown_results(self):
        fake = FakeOsm()
        fake.elements = [
            osm_node(1, "Joe's Pizza", 40.701, -74.0, cuisine="pizza"),
            osm_node(2, "Luigi's", 40.702, -74.0, cuisine="italian"),
        ]
        service = _service(fake)

        payload = asyncio.run(service.search(SearchParams(location="40.7,-74.0")))

        assert [r["external_id"] for r in payload["restaurants"]] == [
            "osm-node-1",
            "osm-node-2",
        ]
        assert all(r["id"] for r in payload["restaurants"])
        assert payload["total"] == 2
        assert payload["page"] == 1
        assert asyncio.run(service.db.count_restaurants()) == 2

    def test_search_does_not_overwrite_stored_rows(self):
        fake = FakeOsm()
        fake.elements = [osm_node(1, "Joe's Pizza", 40.701, -74.0)]
        service = _service(fake)
        first = asyncio.run(service.search(SearchParams(location="40.7,-74.0")))
        rid = first["restaurants"][0]["id"]
        asyncio.run(service.db.update_restaurant(rid, RestaurantUpdate(name="Local Edit")))

        fake.elements = [osm_node(1, "Renamed Upstream", 40.701, -74.0)]
        second = asyncio.run(service.search(SearchParams(location="40.7,-74.0")))

        assert second["restaurants"][0]["id"] == rid
        assert second["restaurants"][0]["name"] == "Local Edit"
        assert asyncio.run(service.db.count_restaurants()) == 1

    def test_page_from_offset(self):
        fake = FakeOsm()
        payload = asyncio.run(
            _service(fake).search(SearchParams(latitude=1.0, longitude=2.0, limit=10, offset=20))
        )
        assert payload["page"] == 3

    def test_search_history_recorded_per_user(self):
        fake = FakeOsm()
        service = _service(fake)
        asyncio.run(
            service.search(SearchParams(term="pizza", location="40.7,-74.0"), user_id="u-1")
        )
        history = asyncio.run(service.db.recent_searches("u-1"))
        assert history[0]["query"] == "pizza"
        assert history[0]["location"] == "40.7,-74.0"

    def test_cached_search_still_persists(self):
        fake = FakeOsm()
        fake.elements = [osm_node(1, "Joe's Pizza", 40.701, -74.0)]
        service = _service(fake, search_cache=TTLCache("test-search", 60))
        params = SearchParams(location="40.7,-74.0")

        first = asyncio.run(service.search(params))
        asyncio.run(service.db.delete_restaurant(first["restaurants"][0]["id"]))
        payload = asyncio.run(service.search(params))

        assert len(fake.overpass_queries) == 1
        assert payload["restaurants"][0]["external_id"] == "osm-node-1"
        assert asyncio.run(service.db.count_restaurants()) == 1


class TestSync:
    def test_sync_creates_then_overwrites(self):
        fake = FakeOsm()
        fake.elements = [osm_node(7, "Cafe Uno", 40.7, -74.0)]
        service = _service(fake)

        created = asyncio.run(service.sync("osm-node-7"))
        asyncio.run(
            service.db.update_restaurant(
                created["id"], RestaurantUpdate(name="Edited", description="kept")
            )
        )
        synced = asyncio.run(service.sync("osm-node-7"))

        assert synced["id"] == created["id"]
        assert synced["name"] == "Cafe Uno"
        assert synced["description"] == "kept"
        assert synced["last_synced_at"] is not None
        assert asyncio.run(service.db.count_restaurants()) == 1

    def test_sync_is_idempotent(self):
        fake = FakeOsm()
        fake.elements = [osm_node(8, "Cafe Dos", 40.7, -74.0, cuisine="coffee")]
        service = _service(fake)
        first = asyncio.run(service.sync("osm-node-8"))
        second = asyncio.run(service.sync("osm-node-8"))
        ignored = {"last_synced_at", "updated_at"}
        assert {k: v for k, v in first.items() if k not in ignored} == {
            k: v for k, v in second.items() if k not in ignored
        }


class TestNearby:
    def test_local_rows_filtered_and_sorted_by_distance(self):
        fake = FakeOsm()
        service = _service(fake)
        db = service.db
        asyncio.run(db.create_restaurant(_local("Two km", 40.718, -74.0)))
        asyncio.run(db.create_restaurant(_local("Next door", 40.7005, -74.0)))
        asyncio.run(db.create_restaurant(_local("Far away", 41.5, -74.0)))
        asyncio.run(db.create_restaurant(_local("No coords", None, None)))

        rows = asyncio.run(service.nearby(*ORIGIN, radius=5000, limit=2))

        assert [r["name"] for r in rows] == ["Next door", "Two km"]
        assert all("distance" not in r for r in rows)
        # local results filled the limit, provider not consulted
        assert fake.requests == []

    def test_provider_tops_up_short_results(self):
        fake = FakeOsm()
        service = _service(fake)
        local = asyncio.run(
            service.db.insert_missing(
                [
                    {
                        "external_id": "osm-node-1",
                        "name": "Stored",
                        "cuisine": "",
                        "address": "",
                        "latitude": 40.7001,
                        "longitude": -74.0,
                    }
                ]
            )
        )
        fake.elements = [
            osm_node(1, "Stored (upstream copy)", 40.7001, -74.0),
            osm_node(2, "Fresh", 40.701, -74.0),
            osm_node(3, "Fresher", 40.702, -74.0),
        ]

        rows = asyncio.run(service.nearby(*ORIGIN, radius=2000, limit=2))

        assert [r["name"] for r in rows] == ["Stored", "Fresh"]
        assert rows[0]["id"] == local[0]["id"]
        assert rows[1]["id"] is None
        assert rows[1]["external_id"] == "osm-node-2"
        assert all("distance" not in r for r in rows)
        # top-ups are not persisted
        assert asyncio.run(service.db.count_restaurants()) == 1

    def test_provider_failure_returns_local_results(self):
        fake = FakeOsm()
        fake.fail_with = 503
        service = _service(fake)
        asyncio.run(service.db.create_restaurant(_local("Only one", 40.7001, -74.0)))

        rows = asyncio.run(service.nearby(*ORIGIN, limit=5))

        assert [r["name"] for r in rows] == ["Only one"]

    def test_empty_everywhere(self):
        assert asyncio.run(_service(FakeOsm()).nearby(*ORIGIN)) == []


class TestTrending:
    def test_ranked_by_rating_with_nulls_last(self):
        service = _service(FakeOsm())
        db = service.db
        asyncio.run(db.create_restaurant(_local("Unrated", 1.0, 1.0)))
        asyncio.run(db.create_restaurant(_local("Good", 1.0, 1.0, rating=4.2)))
        asyncio.run(db.create_restaurant(_local("Best", 1.0, 1.0, rating=4.9)))

        rows = asyncio.run(service.trending(10))

        assert [r["name"] for r in rows] == ["Best", "Good", "Unrated"]

    def test_empty_store_returns_nothing_by_default(self):
        assert asyncio.run(_service(FakeOsm()).trending()) == []

    def test_demo_fallback_when_enabled(self):
        service = _service(FakeOsm(), trending_demo_fallback=True)
        rows = asyncio.run(service.trending(3))
        assert len(rows) == 3
        assert rows[0]["name"] == "Spice Garden"
        assert all(row["attributes"] == {"demo": True} for row in rows)
