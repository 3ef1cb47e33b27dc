from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query

from ...contracts import Favorite, FavoriteCreate, FavoriteUpdate
from ...storage import Database
from ..deps import get_db

router = APIRouter(prefix="/favorites", tags=["favorites"])


@router.get("", response_model=list[Favorite])
async def list_favorites(
    user_id: str | None = Query(default=None, max_length=255),
    collection: str | None = Query(default=None, max_length=100),
    db: Database = Depends(get_db),
):
    return await db.list_favorites(user_id=user_id, collection=collection)


@router.post("", response_model=Favorite, status_code=201)
async def create_favorite(payload: FavoriteCreate, db: Database = Depends(get_db)):
    return await db.create_favorite(payload)


@router.patch("/{fid}", response_model=Favorite)
async def update_favorite(
    payload: FavoriteUpdate,
    fid: int = Path(ge=1),
    db: Database = Depends(get_db),
):
    return await db.update_favorite(fid, payload)


@router.delete("/{fid}", status_code=204)
async def delete_favorite(fid: int = Path(ge=1), db: Database = Depends(get_db)):
    await db.delete_favorite(fid)
