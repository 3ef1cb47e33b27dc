from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .contracts import (
    FavoriteCreate,
    FavoriteUpdate,
    MenuItemCreate,
    RestaurantCreate,
    RestaurantUpdate,
)
from .db.core import get_session
from .db.models import FavoriteRecord, MenuItemRecord, RestaurantRecord, SearchHistoryRecord
from .geo import has_coordinates
from .mapping import MAPPED_FIELDS
from .metrics import restaurants_upserted_total
from .serializers import favorite_to_dict, menu_item_to_dict, restaurant_to_dict

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _now() -> datetime:
    return datetime.now(UTC)


class Database:
    """SQL-backed repository for restaurants, favorites, menu items and search history.

    Methods return public dicts (see `serializers`) and raise `HTTPException`
    for not-found and conflict cases so routes can pass them straight through.
    """

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session = session_factory

    # -------- restaurants --------
    async def list_restaurants(self) -> list[dict[str, Any]]:
        async with self._session() as session:
            stmt = select(RestaurantRecord).order_by(
                RestaurantRecord.created_at.desc(), RestaurantRecord.id.desc()
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [restaurant_to_dict(row) for row in rows]

    async def count_restaurants(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count(RestaurantRecord.id)))
            return int(result.scalar_one() or 0)

    async def get_restaurant(self, rid: int) -> dict[str, Any] | None:
        async with self._session() as session:
            record = await session.get(RestaurantRecord, rid)
            return restaurant_to_dict(record) if record else None

    async def require_restaurant(self, rid: int) -> dict[str, Any]:
        restaurant = await self.get_restaurant(rid)
        if restaurant is None:
            raise HTTPException(status_code=404, detail=f"Restaurant with ID {rid} not found")
        return restaurant

    async def get_by_external_id(self, external_id: str) -> dict[str, Any] | None:
        async with self._session() as session:
            stmt = select(RestaurantRecord).where(RestaurantRecord.external_id == external_id)
            record = (await session.execute(stmt)).scalar_one_or_none()
            return restaurant_to_dict(record) if record else None

    async def create_restaurant(self, payload: RestaurantCreate) -> dict[str, Any]:
        async with self._session() as session:
            record = RestaurantRecord(**payload.model_dump(mode="json"))
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return restaurant_to_dict(record)

    async def update_restaurant(self, rid: int, payload: RestaurantUpdate) -> dict[str, Any]:
        async with self._session() as session:
            record = await session.get(RestaurantRecord, rid)
            if not record:
                raise HTTPException(status_code=404, detail=f"Restaurant with ID {rid} not found")
            for key, value in payload.model_dump(mode="json", exclude_unset=True).items():
                setattr(record, key, value)
            await session.commit()
            await session.refresh(record)
            return restaurant_to_dict(record)

    async def delete_restaurant(self, rid: int) -> None:
        async with self._session() as session:
            record = await session.get(RestaurantRecord, rid)
            if not record:
                raise HTTPException(status_code=404, detail=f"Restaurant with ID {rid} not found")
            # sqlite does not enforce ON DELETE CASCADE without a pragma
            await session.execute(delete(FavoriteRecord).where(FavoriteRecord.restaurant_id == rid))
            await session.execute(delete(MenuItemRecord).where(MenuItemRecord.restaurant_id == rid))
            await session.delete(record)
            await session.commit()

    async def insert_missing(self, mapped: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert provider rows whose external id is unknown; known rows are left untouched.

        Returns the stored row for every input, in input order. A concurrent
        writer that stores one of the ids first causes a single re-read.
        """
        entries = [entry for entry in mapped if entry.get("external_id")]
        if not entries:
            return []
        try:
            return await self._insert_missing(entries)
        except IntegrityError:
            logger.info("Provider rows inserted concurrently, re-reading %d ids", len(entries))
            return await self._insert_missing(entries)

    async def _insert_missing(self, entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
        external_ids = [entry["external_id"] for entry in entries]
        async with self._session() as session:
            stmt = select(RestaurantRecord).where(RestaurantRecord.external_id.in_(external_ids))
            known = {row.external_id: row for row in (await session.execute(stmt)).scalars()}
            created = 0
            for entry in entries:
                if entry["external_id"] in known:
                    continue
                record = RestaurantRecord(**entry)
                session.add(record)
                known[entry["external_id"]] = record
                created += 1
            if created:
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise
                restaurants_upserted_total.labels(mode="insert").inc(created)
            stored = []
            for external_id in external_ids:
                record = known[external_id]
                if created:
                    await session.refresh(record)
                stored.append(restaurant_to_dict(record))
            return stored

    async def upsert_from_provider(self, mapped: dict[str, Any]) -> dict[str, Any]:
        """Overwrite every mapped column of the row keyed by external id, or create it."""
        try:
            return await self._upsert_from_provider(mapped)
        except IntegrityError:
            logger.info("Restaurant %s inserted concurrently, overwriting", mapped["external_id"])
            return await self._upsert_from_provider(mapped)

    async def _upsert_from_provider(self, mapped: dict[str, Any]) -> dict[str, Any]:
        external_id = mapped["external_id"]
        async with self._session() as session:
            stmt = select(RestaurantRecord).where(RestaurantRecord.external_id == external_id)
            record = (await session.execute(stmt)).scalar_one_or_none()
            if record is None:
                record = RestaurantRecord(external_id=external_id)
                session.add(record)
                mode = "insert"
            else:
                mode = "overwrite"
            for key in MAPPED_FIELDS:
                setattr(record, key, mapped.get(key))
            record.last_synced_at = _now()
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise
            await session.refresh(record)
            restaurants_upserted_total.labels(mode=mode).inc()
            return restaurant_to_dict(record)

    async def geotagged_restaurants(self) -> list[dict[str, Any]]:
        async with self._session() as session:
            stmt = select(RestaurantRecord).where(
                RestaurantRecord.latitude.is_not(None), RestaurantRecord.longitude.is_not(None)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                restaurant_to_dict(row)
                for row in rows
                if has_coordinates(row.latitude, row.longitude)
            ]

    async def top_rated(self, limit: int) -> list[dict[str, Any]]:
        async with self._session() as session:
            stmt = (
                select(RestaurantRecord)
                .order_by(
                    RestaurantRecord.rating.is_(None),
                    RestaurantRecord.rating.desc(),
                    RestaurantRecord.review_count.desc(),
                )
                .limit(max(1, limit))
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [restaurant_to_dict(row) for row in rows]

    # -------- favorites --------
    async def list_favorites(
        self, user_id: str | None = None, collection: str | None = None
    ) -> list[dict[str, Any]]:
        async with self._session() as session:
            stmt = (
                select(FavoriteRecord, RestaurantRecord)
                .join(RestaurantRecord, RestaurantRecord.id == FavoriteRecord.restaurant_id)
                .order_by(FavoriteRecord.priority.desc(), FavoriteRecord.id.desc())
            )
            if user_id:
                stmt = stmt.where(FavoriteRecord.user_id == user_id)
            if collection:
                stmt = stmt.where(FavoriteRecord.collection == collection)
            rows = (await session.execute(stmt)).all()
            return [favorite_to_dict(fav, restaurant) for fav, restaurant in rows]

    async def create_favorite(self, payload: FavoriteCreate) -> dict[str, Any]:
        async with self._session() as session:
            restaurant = await session.get(RestaurantRecord, payload.restaurant_id)
            if not restaurant:
                raise HTTPException(
                    status_code=404,
                    detail=f"Restaurant with ID {payload.restaurant_id} not found",
                )
            existing = await session.execute(
                select(FavoriteRecord.id).where(
                    FavoriteRecord.user_id == payload.user_id,
                    FavoriteRecord.restaurant_id == payload.restaurant_id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise HTTPException(status_code=409, detail="Restaurant already in favorites")
            record = FavoriteRecord(**payload.model_dump())
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise HTTPException(
                    status_code=409, detail="Restaurant already in favorites"
                ) from exc
            await session.refresh(record)
            return favorite_to_dict(record, restaurant)

    async def update_favorite(self, fid: int, payload: FavoriteUpdate) -> dict[str, Any]:
        async with self._session() as session:
            record = await session.get(FavoriteRecord, fid)
            if not record:
                raise HTTPException(status_code=404, detail="Favorite not found")
            for key, value in payload.model_dump(exclude_unset=True).items():
                setattr(record, key, value)
            await session.commit()
            await session.refresh(record)
            restaurant = await session.get(RestaurantRecord, record.restaurant_id)
            return favorite_to_dict(record, restaurant)

    async def delete_favorite(self, fid: int) -> None:
        async with self._session() as session:
            record = await session.get(FavoriteRecord, fid)
            if not record:
                raise HTTPException(status_code=404, detail="Favorite not found")
            await session.delete(record)
            await session.commit()

    # -------- menu items --------
    async def list_menu_items(self, rid: int) -> list[dict[str, Any]]:
        async with self._session() as session:
            stmt = (
                select(MenuItemRecord)
                .where(MenuItemRecord.restaurant_id == rid)
                .order_by(MenuItemRecord.category, MenuItemRecord.name)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [menu_item_to_dict(row) for row in rows]

    async def create_menu_item(self, rid: int, payload: MenuItemCreate) -> dict[str, Any]:
        async with self._session() as session:
            if not await session.get(RestaurantRecord, rid):
                raise HTTPException(status_code=404, detail=f"Restaurant with ID {rid} not found")
            record = MenuItemRecord(restaurant_id=rid, **payload.model_dump())
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return menu_item_to_dict(record)

    # -------- search history --------
    async def record_search(
        self,
        *,
        user_id: str | None,
        query: str | None,
        location: str | None,
        filters: dict[str, Any],
        results_count: int,
        latitude: float | None,
        longitude: float | None,
        response_time_ms: int | None,
    ) -> None:
        async with self._session() as session:
            session.add(
                SearchHistoryRecord(
                    user_id=user_id,
                    query=query or "",
                    location=location or "",
                    filters=filters,
                    results_count=results_count,
                    latitude=latitude,
                    longitude=longitude,
                    response_time_ms=response_time_ms,
                )
            )
            await session.commit()

    async def recent_searches(self, user_id: str, limit: int = 5) -> list[dict[str, Any]]:
        async with self._session() as session:
            stmt = (
                select(SearchHistoryRecord)
                .where(SearchHistoryRecord.user_id == user_id)
                .order_by(SearchHistoryRecord.created_at.desc(), SearchHistoryRecord.id.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                {
                    "query": row.query,
                    "location": row.location,
                    "filters": row.filters or {},
                    "results_count": row.results_count,
                }
                for row in rows
            ]
