"""Catalog route handlers."""

import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.api.routes import handle_route_error
from skintracker.database.db import get_db_session
from skintracker.services import skin_service, cache_service
from skintracker.api.auth_dependencies import get_current_user_optional
from skintracker.models.schemas import SkinSummary, SkinIdsRequest, SkinImage
from skintracker.utils.constants import ITEMS_PER_PAGE

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/skins", response_model=List[SkinSummary])
async def list_skins(
    weapon: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(ITEMS_PER_PAGE),
    session: AsyncSession = Depends(get_db_session),
    current_user: Optional[dict] = Depends(get_current_user_optional),
):
    """
    List skins by name, optionally filtered by weapon and a name search.
    Signed-in viewers get their collection/wishlist flags on each item.
    """
    try:
        return await skin_service.list_skins(
            session,
            weapon=weapon,
            search=search,
            page=page,
            limit=limit,
            viewer_id=current_user["id"] if current_user else None,
        )
    except Exception as e:
        raise handle_route_error(e, "listing skins")


@router.get("/api/skins/standard", response_model=Dict[str, Optional[str]])
async def get_standard_images(session: AsyncSession = Depends(get_db_session)):
    """Weapon -> image of its default skin, used for empty loadout slots."""
    try:
        return await skin_service.get_standard_images(session)
    except Exception as e:
        raise handle_route_error(e, "loading standard skin images")


@router.post("/api/skins/by-ids", response_model=List[SkinImage])
async def get_skins_by_ids(payload: SkinIdsRequest, session: AsyncSession = Depends(get_db_session)):
    """Bulk image lookup. Unknown ids are left out."""
    try:
        return await skin_service.get_skins_by_ids(session, payload.ids or [])
    except Exception as e:
        raise handle_route_error(e, "looking up skins")


@router.get("/api/skins/{skin_id}", response_model=Dict[str, Any])
async def get_skin(
    skin_id: str,
    session: AsyncSession = Depends(get_db_session),
    current_user: Optional[dict] = Depends(get_current_user_optional),
):
    """Skin detail with tier info and the viewer's membership flags."""
    viewer_id = current_user["id"] if current_user else None
    path = f"/skins/{skin_id}"
    try:
        cached = await cache_service.get_view(viewer_id, path)
        if cached is not None:
            return cached

        skin = await skin_service.get_skin(session, skin_id, viewer_id=viewer_id)
        await cache_service.set_view(viewer_id, path, skin)
        return skin
    except Exception as e:
        raise handle_route_error(e, f"loading skin {skin_id}")
