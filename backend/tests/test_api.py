"""HTTP surface: discovery routes, CRUD, favorites, menu, health and middleware."""

from backend.app.main import app
from backend.app.settings import settings
from conftest import osm_node


def _create_restaurant(client, **overrides):
    payload = {
        "name": "Trattoria Roma",
        "cuisine": "Italian",
        "address": "12 Via Appia",
        "phone": "+1 (555) 010-0000",
        "rating": 4.4,
        "latitude": 40.7001,
        "longitude": -74.0001,
        "categories": [{"alias": "italian", "title": "Italian"}],
    }
    payload.update(overrides)
    resp = client.post("/restaurants", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestSearchRoutes:
    def test_search_requires_location_or_coordinates(self, client, fake_osm):
        resp = client.get("/restaurants/search", params={"term": "pizza"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == (
            "Either location or coordinates (latitude/longitude) must be provided"
        )
        assert fake_osm.requests == []

    def test_search_with_coordinate_location(self, client, fake_osm):
        fake_osm.elements = [
            osm_node(10, "Joe's Pizza", 40.701, -74.001, cuisine="pizza"),
            osm_node(11, None, 40.702, -74.002),
        ]
        resp = client.get(
            "/restaurants/search", params={"term": "pizza", "location": "40.7,-74.0"}
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert [r["external_id"] for r in body["restaurants"]] == ["osm-node-10", "osm-node-11"]
        assert body["restaurants"][1]["name"] == "Unnamed Restaurant"
        assert body["restaurants"][1]["categories"] == [
            {"alias": "restaurant", "title": "Restaurant"}
        ]
        assert body["total"] == 2
        assert len(body["businesses"]) == 2

    def test_provider_outage_maps_to_bad_gateway(self, client, fake_osm):
        fake_osm.fail_with = 500
        resp = client.get("/restaurants/search", params={"latitude": 1, "longitude": 2})
        assert resp.status_code == 502
        assert resp.json()["detail"] == "OSM search service temporarily unavailable"

    def test_parameter_bounds(self, client, fake_osm):
        assert client.get("/restaurants/nearby", params={"latitude": 1}).status_code == 422
        too_far = {"latitude": 1, "longitude": 2, "radius": 50_000}
        assert client.get("/restaurants/nearby", params=too_far).status_code == 422
        too_many = {"latitude": 1, "longitude": 2, "limit": 51}
        assert client.get("/restaurants/nearby", params=too_many).status_code == 422

    def test_nearby_combines_local_and_provider(self, client, fake_osm):
        local = _create_restaurant(client)
        fake_osm.elements = [osm_node(20, "Upstream", 40.701, -74.0)]
        resp = client.get(
            "/restaurants/nearby", params={"latitude": 40.7, "longitude": -74.0, "limit": 5}
        )
        assert resp.status_code == 200
        rows = resp.json()
        assert rows[0]["id"] == local["id"]
        assert rows[1]["external_id"] == "osm-node-20"
        assert rows[1]["id"] is None
        assert all("distance" not in row for row in rows)

    def test_trending_demo_fallback(self, client, fake_osm):
        assert client.get("/restaurants/trending").json() == []
        app.state.discovery.trending_demo_fallback = True
        rows = client.get("/restaurants/trending", params={"limit": 2}).json()
        assert [row["external_id"] for row in rows] == ["demo-1", "demo-2"]

    def test_sync_and_details(self, client, fake_osm):
        fake_osm.elements = [osm_node(5, "Cafe Sync", 1.0, 2.0, cuisine="coffee_shop")]
        synced = client.post("/restaurants/osm-node-5/sync")
        assert synced.status_code == 200
        assert synced.json()["cuisine"] == "coffee_shop"

        details = client.get("/restaurants/osm-node-5/details")
        assert details.status_code == 200
        assert details.json()["photos"] == []

    def test_details_not_found(self, client, fake_osm):
        resp = client.get("/restaurants/osm-node-404/details")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Restaurant not found on OSM"

    def test_reviews_and_summary_for_osm(self, client, fake_osm):
        reviews = client.get("/restaurants/osm-node-5/reviews").json()
        assert reviews == {"reviews": [], "total": 0, "possible_languages": ["en_US"]}
        summary = client.get("/restaurants/osm-node-5/reviews/summary").json()
        assert summary["overall_sentiment"]["label"] == "neutral"
        assert summary["recommendation_status"] == "mixed"

    def test_bad_locale_rejected(self, client, fake_osm):
        resp = client.get("/restaurants/osm-node-5/reviews", params={"locale": "english"})
        assert resp.status_code == 422


class TestRestaurantCrud:
    def test_create_get_update_delete(self, client):
        created = _create_restaurant(client)
        rid = created["id"]
        assert created["phone"] == "+1 (555) 010-0000"

        assert client.get(f"/restaurants/{rid}").json()["name"] == "Trattoria Roma"

        updated = client.patch(f"/restaurants/{rid}", json={"rating": 4.9})
        assert updated.status_code == 200
        assert updated.json()["rating"] == 4.9
        assert updated.json()["cuisine"] == "Italian"

        assert [r["id"] for r in client.get("/restaurants").json()] == [rid]

        deleted = client.delete(f"/restaurants/{rid}")
        assert deleted.json() == {"message": f"Restaurant with ID {rid} deleted successfully"}
        missing = client.get(f"/restaurants/{rid}")
        assert missing.status_code == 404
        assert missing.json()["detail"] == f"Restaurant with ID {rid} not found"

    def test_validation_errors(self, client):
        assert client.post("/restaurants", json={"name": "X"}).status_code == 422
        blank = {"name": "X", "cuisine": "  ", "address": "1 St"}
        assert client.post("/restaurants", json=blank).status_code == 422
        bad_rating = {"name": "X", "cuisine": "Thai", "address": "1 St", "rating": 6}
        assert client.post("/restaurants", json=bad_rating).status_code == 422

    def test_insights(self, client):
        rid = _create_restaurant(client, description="Fresh pasta daily. Cash only.")["id"]
        resp = client.get(f"/restaurants/{rid}/insights")
        assert resp.status_code == 200
        body = resp.json()
        assert body["restaurant_id"] == rid
        assert body["suggested_dishes"] == ["Handmade pasta", "Risotto", "Tiramisu"]
        assert body["review_summary"].endswith("Fresh pasta daily.")
        assert client.get("/restaurants/999999/insights").status_code == 404


class TestMenu:
    def test_menu_items(self, client, fake_osm):
        restaurant = _create_restaurant(client)
        rid = restaurant["id"]
        item = client.post(
            f"/restaurants/{rid}/menu",
            json={"name": "Cacio e pepe", "price": 18, "dietary_tags": "Vegetarian, vegetarian"},
        )
        assert item.status_code == 201
        assert item.json()["dietary_tags"] == ["vegetarian"]
        assert item.json()["currency"] == "USD"

        items = client.get(f"/restaurants/{rid}/menu").json()
        assert [i["name"] for i in items] == ["Cacio e pepe"]

        assert client.post("/restaurants/999999/menu", json={"name": "Ghost"}).status_code == 404

    def test_analyze_menu_without_stored_restaurant(self, client, fake_osm):
        resp = client.post(
            "/restaurants/unknown-id/analyze-menu", json={"dietary_restrictions": ["vegan"]}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["restaurant"] is None
        assert body["menu_items"] == 0
        assert body["analysis"]["compatibility"] == 0.5


class TestFavorites:
    def test_favorite_lifecycle(self, client):
        rid = _create_restaurant(client)["id"]
        payload = {"user_id": "user-1", "restaurant_id": rid, "tags": "Date Night, date night"}

        created = client.post("/favorites", json=payload)
        assert created.status_code == 201
        favorite = created.json()
        assert favorite["tags"] == ["date night"]
        assert favorite["restaurant"]["id"] == rid

        duplicate = client.post("/favorites", json=payload)
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "Restaurant already in favorites"

        listed = client.get("/favorites", params={"user_id": "user-1"}).json()
        assert [f["id"] for f in listed] == [favorite["id"]]
        assert client.get("/favorites", params={"user_id": "someone-else"}).json() == []

        patched = client.patch(
            f"/favorites/{favorite['id']}", json={"is_visited": True, "personal_rating": 5}
        )
        assert patched.json()["is_visited"] is True

        assert client.delete(f"/favorites/{favorite['id']}").status_code == 204
        assert client.delete(f"/favorites/{favorite['id']}").status_code == 404

    def test_unknown_restaurant(self, client):
        resp = client.post("/favorites", json={"user_id": "u", "restaurant_id": 424242})
        assert resp.status_code == 404

    def test_deleting_restaurant_removes_favorites(self, client):
        rid = _create_restaurant(client)["id"]
        client.post("/favorites", json={"user_id": "u", "restaurant_id": rid})
        client.delete(f"/restaurants/{rid}")
        assert client.get("/favorites", params={"user_id": "u"}).json() == []


class TestAiRoutes:
    def test_recommendations_with_preferences(self, client):
        _create_restaurant(
            client,
            name="Thai Smile",
            cuisine="Thai",
            rating=4.0,
            categories=[{"alias": "thai", "title": "Thai"}],
        )
        resp = client.get(
            "/restaurants/recommendations",
            params={"preferences": '{"cuisine_types": ["thai"]}'},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        assert "Matches your Thai preference" in body["recommendations"][0]["reasons"]

    def test_recommendations_bad_preferences(self, client):
        resp = client.get("/restaurants/recommendations", params={"preferences": "{not json"})
        assert resp.status_code == 400

    def test_dining_suggestions(self, client):
        resp = client.post("/ai/dining-suggestions", json={"occasion": "date", "group_size": 2})
        assert resp.status_code == 200
        assert "Look for restaurants with romantic ambiance" in resp.json()["suggestions"]


class TestOperations:
    def test_liveness(self, client, fake_osm):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["provider"] == "osm"

    def test_readiness(self, client, fake_osm):
        resp = client.get("/health/ready")
        assert resp.status_code == 200
        body = resp.json()
        assert body["ready"] is True
        assert body["status"] == "healthy"
        assert body["checks"]["ai"]["status"] == "disabled"

    def test_readiness_degraded_when_provider_down(self, client, fake_osm):
        fake_osm.fail_with = 503
        resp = client.get("/health/ready")
        assert resp.status_code == 200
        assert resp.json()["status"] == "degraded"

    def test_metrics(self, client):
        client.get("/restaurants")
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "restaurant_discovery_info" in resp.text
        assert "http_requests_total" in resp.text

    def test_request_id_and_security_headers(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "trace-123"})
        assert resp.headers["X-Request-ID"] == "trace-123"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"

    def test_rate_limiting(self, client, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
        monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)
        assert client.get("/restaurants").status_code == 200
        assert client.get("/restaurants").status_code == 200
        limited = client.get("/restaurants")
        assert limited.status_code == 429
        assert int(limited.headers["Retry-After"]) >= 1
        # probes stay reachable while a client is throttled
        assert client.get("/health").status_code == 200
