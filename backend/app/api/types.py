from __future__ import annotations

from typing import Annotated

from fastapi import Path, Query

from ..geo import MAX_RADIUS_METERS, MAX_RESULTS
from ..places.base import SortBy

MIN_RADIUS_METERS = 500

Latitude = Annotated[float, Query(ge=-90, le=90, description="Latitude in decimal degrees")]
Longitude = Annotated[float, Query(ge=-180, le=180, description="Longitude in decimal degrees")]
OptionalLatitude = Annotated[float | None, Query(ge=-90, le=90)]
OptionalLongitude = Annotated[float | None, Query(ge=-180, le=180)]

Radius = Annotated[
    int | None,
    Query(
        ge=MIN_RADIUS_METERS,
        le=MAX_RADIUS_METERS,
        description=f"Search radius in meters (max {MAX_RADIUS_METERS})",
    ),
]

ResultLimit = Annotated[
    int | None,
    Query(ge=1, le=MAX_RESULTS, description=f"Number of results (max {MAX_RESULTS})"),
]

Offset = Annotated[int | None, Query(ge=0, description="Offset for pagination")]

SortOrder = Annotated[SortBy | None, Query(description="Sort order")]

SearchTerm = Annotated[
    str | None,
    Query(min_length=1, max_length=80, description="Optional search term for restaurants"),
]

LocationText = Annotated[
    str | None,
    Query(
        min_length=1,
        max_length=255,
        description="Address, city or 'lat,lon' (e.g., 40.7,-74.0)",
    ),
]

ExternalId = Annotated[
    str,
    Path(min_length=1, max_length=255, description="Provider business id (e.g., osm-node-42)"),
]

RestaurantId = Annotated[int, Path(ge=1, description="Restaurant ID")]
