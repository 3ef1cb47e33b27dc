from __future__ import annotations

import json

from fastapi import HTTPException
from pydantic import ValidationError

from ..schemas import DiningPreferences


def parse_preferences(raw: str | None) -> DiningPreferences:
    """Decode the JSON-encoded `preferences` query parameter."""
    if not raw or not raw.strip():
        return DiningPreferences()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(400, "preferences must be a JSON object") from exc
    if not isinstance(payload, dict):
        raise HTTPException(400, "preferences must be a JSON object")
    try:
        return DiningPreferences.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(400, f"Invalid preferences: {exc.errors()[0]['msg']}") from exc


def require_search_origin(
    location: str | None, latitude: float | None, longitude: float | None
) -> None:
    if location and location.strip():
        return
    if latitude is None or longitude is None:
        raise HTTPException(
            400, "Either location or coordinates (latitude/longitude) must be provided"
        )
