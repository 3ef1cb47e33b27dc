"""Restaurant search providers: Yelp Fusion and OpenStreetMap."""

from .base import (
    Business,
    BusinessDetails,
    ProviderBadGateway,
    ProviderBadRequest,
    ProviderError,
    ProviderNotFound,
    ProviderReview,
    ProviderUnavailable,
    ReviewsResult,
    SearchParams,
    SearchProvider,
    SearchResult,
)
from .factory import build_search_provider
from .osm import OsmProvider
from .yelp import YelpProvider

__all__ = [
    "Business",
    "BusinessDetails",
    "OsmProvider",
    "ProviderBadGateway",
    "ProviderBadRequest",
    "ProviderError",
    "ProviderNotFound",
    "ProviderReview",
    "ProviderUnavailable",
    "ReviewsResult",
    "SearchParams",
    "SearchProvider",
    "SearchResult",
    "YelpProvider",
    "build_search_provider",
]
