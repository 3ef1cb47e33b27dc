from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ...contracts import MenuItem, MenuItemCreate, Restaurant, RestaurantCreate, RestaurantUpdate
from ...discovery import DiscoveryService
from ...places.base import SearchParams
from ...schemas import (
    MenuAnalysisRequest,
    MenuAnalysisResponse,
    RecommendationsResponse,
    RestaurantInsights,
    ReviewsResponse,
    ReviewSummary,
    SearchResponse,
)
from ...storage import Database
from ..deps import get_db, get_discovery
from ..types import (
    ExternalId,
    Latitude,
    LocationText,
    Longitude,
    Offset,
    OptionalLatitude,
    OptionalLongitude,
    Radius,
    RestaurantId,
    ResultLimit,
    SearchTerm,
    SortOrder,
)
from ..utils import parse_preferences, require_search_origin

router = APIRouter(prefix="/restaurants", tags=["restaurants"])


# ---------- discovery (static paths first so they never match /{rid}) ----------


@router.get("/search", response_model=SearchResponse)
async def search_restaurants(
    term: SearchTerm = None,
    location: LocationText = None,
    latitude: OptionalLatitude = None,
    longitude: OptionalLongitude = None,
    radius: Radius = None,
    categories: str | None = Query(default=None, max_length=255),
    price: str | None = Query(default=None, pattern=r"^[1-4](,[1-4])*$"),
    open_now: bool | None = None,
    sort_by: SortOrder = None,
    limit: ResultLimit = None,
    offset: Offset = None,
    user_id: str | None = Query(default=None, max_length=255),
    discovery: DiscoveryService = Depends(get_discovery),
):
    require_search_origin(location, latitude, longitude)
    params = SearchParams(
        term=term,
        location=location,
        latitude=latitude,
        longitude=longitude,
        radius=radius,
        categories=categories,
        price=price,
        open_now=open_now,
        sort_by=sort_by,
        limit=limit,
        offset=offset,
    )
    return await discovery.search(params, user_id=user_id)


@router.get("/nearby", response_model=list[Restaurant])
async def nearby_restaurants(
    latitude: Latitude,
    longitude: Longitude,
    radius: Radius = None,
    limit: ResultLimit = None,
    discovery: DiscoveryService = Depends(get_discovery),
):
    return await discovery.nearby(latitude, longitude, radius=radius, limit=limit)


@router.get("/trending", response_model=list[Restaurant])
async def trending_restaurants(
    limit: ResultLimit = None,
    discovery: DiscoveryService = Depends(get_discovery),
):
    return await discovery.trending(limit)


@router.get("/recommendations", response_model=RecommendationsResponse)
async def recommendations(
    user_id: str | None = Query(default=None, max_length=255),
    preferences: str | None = Query(
        default=None, max_length=2000, description="JSON-encoded dining preferences"
    ),
    discovery: DiscoveryService = Depends(get_discovery),
):
    parsed = parse_preferences(preferences)
    items = await discovery.recommendations(user_id, parsed)
    return {"recommendations": items, "total": len(items)}


@router.post("/{external_id}/sync", response_model=Restaurant)
async def sync_restaurant(
    external_id: ExternalId, discovery: DiscoveryService = Depends(get_discovery)
):
    return await discovery.sync(external_id)


@router.get("/{external_id}/details")
async def restaurant_details(
    external_id: ExternalId, discovery: DiscoveryService = Depends(get_discovery)
):
    return await discovery.details(external_id)


@router.get("/{external_id}/reviews", response_model=ReviewsResponse)
async def restaurant_reviews(
    external_id: ExternalId,
    locale: str = Query(default="en_US", pattern=r"^[a-z]{2}_[A-Z]{2}$"),
    discovery: DiscoveryService = Depends(get_discovery),
):
    return await discovery.reviews(external_id, locale)


@router.get("/{external_id}/reviews/summary", response_model=ReviewSummary)
async def restaurant_review_summary(
    external_id: ExternalId, discovery: DiscoveryService = Depends(get_discovery)
):
    return await discovery.review_summary(external_id)


@router.get("/{rid}/insights", response_model=RestaurantInsights)
async def restaurant_insights(
    rid: RestaurantId, discovery: DiscoveryService = Depends(get_discovery)
):
    return await discovery.insights(rid)


@router.post("/{external_id}/analyze-menu", response_model=MenuAnalysisResponse)
async def analyze_menu(
    external_id: ExternalId,
    payload: MenuAnalysisRequest | None = None,
    discovery: DiscoveryService = Depends(get_discovery),
):
    restrictions = payload.dietary_restrictions if payload else []
    return await discovery.analyze_menu(external_id, restrictions)


# ---------- menu ----------


@router.get("/{rid}/menu", response_model=list[MenuItem])
async def list_menu(rid: RestaurantId, db: Database = Depends(get_db)):
    await db.require_restaurant(rid)
    return await db.list_menu_items(rid)


@router.post("/{rid}/menu", response_model=MenuItem, status_code=201)
async def create_menu_item(
    rid: RestaurantId, payload: MenuItemCreate, db: Database = Depends(get_db)
):
    return await db.create_menu_item(rid, payload)


# ---------- CRUD ----------


@router.post("", response_model=Restaurant, status_code=201)
async def create_restaurant(payload: RestaurantCreate, db: Database = Depends(get_db)):
    return await db.create_restaurant(payload)


@router.get("", response_model=list[Restaurant])
async def list_restaurants(db: Database = Depends(get_db)):
    return await db.list_restaurants()


@router.get("/{rid}", response_model=Restaurant)
async def get_restaurant(rid: RestaurantId, db: Database = Depends(get_db)):
    return await db.require_restaurant(rid)


@router.patch("/{rid}", response_model=Restaurant)
async def update_restaurant(
    rid: RestaurantId, payload: RestaurantUpdate, db: Database = Depends(get_db)
):
    return await db.update_restaurant(rid, payload)


@router.delete("/{rid}")
async def delete_restaurant(rid: RestaurantId, db: Database = Depends(get_db)):
    await db.delete_restaurant(rid)
    return {"message": f"Restaurant with ID {rid} deleted successfully"}
