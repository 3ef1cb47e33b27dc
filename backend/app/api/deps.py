from __future__ import annotations

from fastapi import Request

from ..ai_service import AIService
from ..discovery import DiscoveryService
from ..storage import Database


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_discovery(request: Request) -> DiscoveryService:
    return request.app.state.discovery


def get_ai(request: Request) -> AIService:
    return request.app.state.ai
