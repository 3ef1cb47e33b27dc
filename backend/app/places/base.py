from __future__ import annotations

import logging
import time
from typing import Any, Literal, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..metrics import provider_request_duration_seconds, provider_requests_total

logger = logging.getLogger(__name__)

SortBy = Literal["best_match", "rating", "review_count", "distance"]


# --- Errors -----------------------------------------------------------------


class ProviderError(RuntimeError):
    """Base class for errors raised by a search provider."""

    status_code = 503

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProviderUnavailable(ProviderError):
    status_code = 503


class ProviderBadGateway(ProviderUnavailable):
    status_code = 502


class ProviderBadRequest(ProviderError):
    status_code = 400


class ProviderNotFound(ProviderError):
    status_code = 404


# --- Provider records -------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Category(_Record):
    alias: str = ""
    title: str = ""


class Coordinates(_Record):
    latitude: float | None = None
    longitude: float | None = None


class Location(_Record):
    address1: str | None = ""
    address2: str | None = None
    address3: str | None = None
    city: str | None = ""
    zip_code: str | None = ""
    country: str | None = ""
    state: str | None = ""
    display_address: list[str] = Field(default_factory=list)


class Business(_Record):
    id: str
    alias: str = ""
    name: str = ""
    image_url: str | None = None
    is_closed: bool = False
    url: str | None = None
    review_count: int = 0
    categories: list[Category] = Field(default_factory=list)
    rating: float | None = None
    coordinates: Coordinates = Field(default_factory=Coordinates)
    transactions: list[str] = Field(default_factory=list)
    price: str | None = None
    location: Location = Field(default_factory=Location)
    phone: str | None = ""
    display_phone: str | None = ""
    distance: float | None = None


class OpenSpan(_Record):
    day: int
    start: str
    end: str
    is_overnight: bool = False


class HoursBlock(_Record):
    open: list[OpenSpan] = Field(default_factory=list)
    hours_type: str = "REGULAR"
    is_open_now: bool = False


class BusinessDetails(Business):
    photos: list[str] = Field(default_factory=list)
    hours: list[HoursBlock] = Field(default_factory=list)
    special_hours: list[dict[str, Any]] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)


class ReviewUser(_Record):
    id: str = ""
    profile_url: str | None = ""
    image_url: str | None = None
    name: str = ""


class ProviderReview(_Record):
    id: str
    rating: float
    user: ReviewUser = Field(default_factory=ReviewUser)
    text: str = ""
    time_created: str = ""
    url: str | None = ""


class ReviewsResult(_Record):
    reviews: list[ProviderReview] = Field(default_factory=list)
    total: int = 0
    possible_languages: list[str] = Field(default_factory=list)


class SearchRegion(_Record):
    center: Coordinates = Field(default_factory=Coordinates)


class SearchResult(_Record):
    businesses: list[Business] = Field(default_factory=list)
    total: int = 0
    region: SearchRegion = Field(default_factory=SearchRegion)


class SearchParams(BaseModel):
    term: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius: int | None = None
    categories: str | None = None
    price: str | None = None
    open_now: bool | None = None
    sort_by: SortBy | None = None
    limit: int | None = None
    offset: int | None = None

    def cache_key(self) -> str:
        return self.model_dump_json(exclude_none=True)


# --- Capability interface ---------------------------------------------------


class SearchProvider(Protocol):
    name: str

    async def search(self, params: SearchParams) -> SearchResult: ...

    async def get_details(self, external_id: str) -> BusinessDetails: ...

    async def get_reviews(self, external_id: str, locale: str = "en_US") -> ReviewsResult: ...

    async def validate_connection(self) -> bool: ...

    async def aclose(self) -> None: ...


# --- Helpers ----------------------------------------------------------------


def price_level_from_symbols(price: str | None) -> int | None:
    """Price level is the symbol count ('$$$' -> 3); absent means no level, never 0."""
    if not price:
        return None
    return len(price)


def format_categories(categories: list[Category]) -> str:
    return ", ".join(cat.title for cat in categories)


def build_http_client(
    *, timeout: float, max_redirects: int, user_agent: str | None = None
) -> httpx.AsyncClient:
    headers = {"User-Agent": user_agent} if user_agent else None
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        max_redirects=max_redirects,
        headers=headers,
    )


async def send_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    provider: str,
    operation: str,
    unavailable_message: str,
    bad_gateway_message: str,
    not_found_message: str | None = None,
    **kwargs: Any,
) -> Any:
    """Issue one request and return its decoded JSON body.

    Transport failures become ProviderUnavailable, non-2xx responses become
    ProviderBadGateway (or ProviderNotFound for a 404 when a message is given).
    """
    started = time.perf_counter()
    outcome = "ok"
    try:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            outcome = "unavailable"
            logger.error("%s %s request failed: %s", provider, operation, exc)
            raise ProviderUnavailable(unavailable_message) from exc

        if response.status_code == 404 and not_found_message:
            outcome = "not_found"
            raise ProviderNotFound(not_found_message)
        if response.status_code >= 400:
            outcome = "bad_gateway"
            logger.error(
                "%s %s returned HTTP %s: %s",
                provider,
                operation,
                response.status_code,
                response.text[:200],
            )
            raise ProviderBadGateway(bad_gateway_message)
        try:
            return response.json()
        except ValueError as exc:
            outcome = "bad_gateway"
            logger.error("%s %s returned invalid JSON", provider, operation)
            raise ProviderBadGateway(bad_gateway_message) from exc
    finally:
        provider_requests_total.labels(
            provider=provider, operation=operation, outcome=outcome
        ).inc()
        provider_request_duration_seconds.labels(provider=provider, operation=operation).observe(
            time.perf_counter() - started
        )


def parse_record(model: type[_Record], payload: Any, *, provider: str, message: str):
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        logger.error("%s payload did not match %s: %s", provider, model.__name__, exc)
        raise ProviderBadGateway(message) from exc


__all__ = [
    "Business",
    "BusinessDetails",
    "Category",
    "Coordinates",
    "HoursBlock",
    "Location",
    "OpenSpan",
    "ProviderBadGateway",
    "ProviderBadRequest",
    "ProviderError",
    "ProviderNotFound",
    "ProviderReview",
    "ProviderUnavailable",
    "ReviewUser",
    "ReviewsResult",
    "SearchParams",
    "SearchProvider",
    "SearchRegion",
    "SearchResult",
    "build_http_client",
    "format_categories",
    "parse_record",
    "price_level_from_symbols",
    "send_json",
]
