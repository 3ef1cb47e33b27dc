from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from ..geo import clamp_limit, clamp_radius, haversine_m, parse_coordinate_string
from .base import (
    Business,
    BusinessDetails,
    Category,
    Coordinates,
    Location,
    ProviderBadRequest,
    ProviderNotFound,
    ReviewsResult,
    SearchParams,
    SearchRegion,
    SearchResult,
    build_http_client,
    send_json,
)

logger = logging.getLogger(__name__)

DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"
DEFAULT_NOMINATIM_URL = "https://nominatim.openstreetmap.org"
DEFAULT_USER_AGENT = "restaurant-discovery-engine/1.0"
DEFAULT_RADIUS_METERS = 5000
DEFAULT_LIMIT = 20
QUERY_TIMEOUT_SECONDS = 25
ELEMENT_TYPES = ("node", "way", "relation")
DEFAULT_CATEGORY = Category(alias="restaurant", title="Restaurant")

_OSM_ID_RE = re.compile(r"osm-(node|way|relation)-(\d+)", re.IGNORECASE)


def _ql_literal(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_search_query(
    latitude: float,
    longitude: float,
    radius: int,
    limit: int,
    *,
    cuisine: str | None = None,
    name: str | None = None,
) -> str:
    """Overpass QL for restaurant nodes, ways and relations around a point."""
    filters = '["amenity"="restaurant"]'
    if cuisine:
        filters += f'["cuisine"~"{_ql_literal(cuisine)}",i]'
    if name:
        # literal, case-insensitive name match
        filters += f'["name"~"{_ql_literal(re.escape(name))}",i]'
    around = f"(around:{radius},{latitude},{longitude})"
    lines = [f"[out:json][timeout:{QUERY_TIMEOUT_SECONDS}];", "("]
    lines.extend(f"  {kind}{filters}{around};" for kind in ELEMENT_TYPES)
    lines.append(");")
    lines.append(f"out center tags {limit};")
    return "\n".join(lines)


def build_element_query(element_type: str, element_id: str) -> str:
    return "\n".join(
        [
            f"[out:json][timeout:{QUERY_TIMEOUT_SECONDS}];",
            f"{element_type}({element_id});",
            "out center tags;",
        ]
    )


def parse_osm_id(value: str) -> tuple[str, str]:
    """'osm-way-42' -> ('way', '42'); anything else is read as a bare node id."""
    match = _OSM_ID_RE.search(str(value))
    if match:
        return match.group(1).lower(), match.group(2)
    return "node", re.sub(r"\D", "", str(value))


def osm_element_to_business(element: dict[str, Any]) -> Business:
    tags = element.get("tags") or {}
    center = element.get("center") or {"lat": element.get("lat"), "lon": element.get("lon")}
    external_id = f"osm-{element.get('type')}-{element.get('id')}"

    cuisines = [part.strip() for part in (tags.get("cuisine") or "").split(";") if part.strip()]
    if cuisines:
        categories = [
            Category(alias=re.sub(r"\s+", "-", cuisine.lower()), title=cuisine)
            for cuisine in cuisines
        ]
    else:
        categories = [DEFAULT_CATEGORY.model_copy()]

    housenumber = tags.get("addr:housenumber")
    street = tags.get("addr:street")
    city = tags.get("addr:city") or tags.get("addr:town") or tags.get("addr:village") or ""
    if housenumber and street:
        street_line = f"{housenumber} {street}"
    else:
        street_line = street or ""
    address_parts = [
        part
        for part in (street_line, city, tags.get("addr:state", ""), tags.get("addr:postcode", ""))
        if part
    ]

    return Business(
        id=external_id,
        alias=external_id,
        name=tags.get("name") or "Unnamed Restaurant",
        image_url="",
        is_closed=False,
        url=tags.get("website") or tags.get("contact:website") or "",
        review_count=0,
        categories=categories,
        rating=None,
        coordinates=Coordinates(latitude=center.get("lat"), longitude=center.get("lon")),
        transactions=[],
        price=None,
        location=Location(
            address1=address_parts[0] if address_parts else "",
            address2="",
            address3="",
            city=city,
            zip_code=tags.get("addr:postcode", ""),
            country=tags.get("addr:country", ""),
            state=tags.get("addr:state", ""),
            display_address=address_parts,
        ),
        phone=tags.get("phone") or tags.get("contact:phone") or "",
        display_phone=tags.get("phone") or tags.get("contact:phone") or "",
    )


class OsmProvider:
    """OpenStreetMap search: Nominatim geocoding plus Overpass tag queries.

    The open dataset has no ratings or reviews, so every business reports a
    null rating, zero reviews, and `get_reviews` is always empty.
    """

    name = "osm"

    def __init__(
        self,
        *,
        overpass_url: str = DEFAULT_OVERPASS_URL,
        nominatim_url: str = DEFAULT_NOMINATIM_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_redirects: int = 3,
    ) -> None:
        self.overpass_url = overpass_url
        self.nominatim_url = nominatim_url.rstrip("/")
        self.user_agent = user_agent
        self._client = client or build_http_client(
            timeout=timeout, max_redirects=max_redirects, user_agent=user_agent
        )

    async def geocode(self, location: str) -> tuple[float, float] | None:
        try:
            return parse_coordinate_string(location)
        except ValueError:
            pass
        payload = await send_json(
            self._client,
            "GET",
            f"{self.nominatim_url}/search",
            params={"format": "json", "q": location, "limit": 1},
            headers={"User-Agent": self.user_agent},
            provider=self.name,
            operation="geocode",
            unavailable_message="Geocoding service temporarily unavailable",
            bad_gateway_message="Geocoding service returned an invalid response",
        )
        if not isinstance(payload, list) or not payload:
            return None
        try:
            return float(payload[0]["lat"]), float(payload[0]["lon"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Nominatim match for %r had no usable coordinates", location)
            return None

    async def _interpreter(self, query: str, *, operation: str, label: str) -> dict[str, Any]:
        payload = await send_json(
            self._client,
            "POST",
            self.overpass_url,
            data={"data": query},
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "User-Agent": self.user_agent,
            },
            provider=self.name,
            operation=operation,
            unavailable_message=f"OSM {label} service temporarily unavailable",
            bad_gateway_message=f"OSM {label} service temporarily unavailable",
        )
        return payload if isinstance(payload, dict) else {}

    async def search(self, params: SearchParams) -> SearchResult:
        latitude, longitude = params.latitude, params.longitude
        if (latitude is None or longitude is None) and params.location:
            resolved = await self.geocode(params.location)
            if resolved:
                latitude, longitude = resolved
        if latitude is None or longitude is None:
            raise ProviderBadRequest("Missing coordinates or resolvable location")

        radius = clamp_radius(params.radius, DEFAULT_RADIUS_METERS)
        limit = clamp_limit(params.limit, DEFAULT_LIMIT)
        query = build_search_query(
            latitude,
            longitude,
            radius,
            limit,
            cuisine=params.categories,
            name=params.term,
        )
        payload = await self._interpreter(query, operation="search", label="search")

        businesses: list[Business] = []
        for element in payload.get("elements") or []:
            if not isinstance(element, dict):
                continue
            business = osm_element_to_business(element)
            coords = business.coordinates
            if coords.latitude is not None and coords.longitude is not None:
                business.distance = round(
                    haversine_m(latitude, longitude, coords.latitude, coords.longitude), 1
                )
            businesses.append(business)
        if params.sort_by == "distance":
            businesses.sort(key=lambda b: b.distance if b.distance is not None else float("inf"))

        logger.info("OSM search returned %d results", len(businesses))
        return SearchResult(
            businesses=businesses,
            total=len(businesses),
            region=SearchRegion(center=Coordinates(latitude=latitude, longitude=longitude)),
        )

    async def get_details(self, external_id: str) -> BusinessDetails:
        element_type, element_id = parse_osm_id(external_id)
        if not element_id:
            raise ProviderNotFound("Restaurant not found on OSM")
        query = build_element_query(element_type, element_id)
        payload = await self._interpreter(query, operation="details", label="details")
        elements = payload.get("elements") or []
        if not elements or not isinstance(elements[0], dict):
            raise ProviderNotFound("Restaurant not found on OSM")
        base = osm_element_to_business(elements[0])
        return BusinessDetails(
            **base.model_dump(),
            photos=[],
            hours=[],
            special_hours=[],
            attributes={},
        )

    async def get_reviews(self, external_id: str, locale: str = "en_US") -> ReviewsResult:
        return ReviewsResult(reviews=[], total=0, possible_languages=[locale])

    async def validate_connection(self) -> bool:
        try:
            await self.search(
                SearchParams(term="restaurant", latitude=37.7749, longitude=-122.4194, limit=1)
            )
        except Exception as exc:
            logger.error("OSM connection validation failed: %s", exc)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = [
    "OsmProvider",
    "build_element_query",
    "build_search_query",
    "osm_element_to_business",
    "parse_osm_id",
]
