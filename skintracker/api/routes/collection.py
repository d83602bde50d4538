"""Collection and wishlist route handlers."""

import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.api.routes import handle_route_error
from skintracker.database.db import get_db_session
from skintracker.services import membership_service, cache_service
from skintracker.api.auth_dependencies import get_current_user
from skintracker.models.schemas import MembershipRequest, OkResponse, SuccessResponse
from skintracker.utils.constants import ITEMS_PER_PAGE

logger = logging.getLogger(__name__)
router = APIRouter()


async def _list_view(
    request: Request,
    session: AsyncSession,
    kind: str,
    user_id: str,
    weapon: Optional[str],
    search: Optional[str],
    page: int,
    limit: int,
) -> List[Dict[str, Any]]:
    """Cached per user and query string; membership changes invalidate it."""
    path = f"/{kind}"
    query = request.url.query
    cached = await cache_service.get_view(user_id, path, query)
    if cached is not None:
        return cached

    skins = await membership_service.list_members(
        session, kind, user_id, weapon=weapon, search=search, page=page, limit=limit
    )
    await cache_service.set_view(user_id, path, skins, query)
    return skins


# Collection


@router.get("/api/collection", response_model=List[Dict[str, Any]])
async def get_collection(
    request: Request,
    weapon: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(ITEMS_PER_PAGE),
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Skins the user owns."""
    try:
        return await _list_view(
            request, session, membership_service.COLLECTION, current_user["id"], weapon, search, page, limit
        )
    except Exception as e:
        raise handle_route_error(e, "loading collection")


@router.post("/api/collection", response_model=SuccessResponse)
async def post_collection(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        await membership_service.add_to_collection(session, current_user["id"], payload.skin_id)
        return SuccessResponse()
    except Exception as e:
        raise handle_route_error(e, "adding to collection")


@router.delete("/api/collection", response_model=SuccessResponse)
async def delete_collection(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        await membership_service.remove_from_collection(session, current_user["id"], payload.skin_id)
        return SuccessResponse()
    except Exception as e:
        raise handle_route_error(e, "removing from collection")


@router.post("/api/collection/add", response_model=OkResponse)
async def add_to_collection(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Mark a skin as owned. Removes it from the wishlist if it was there."""
    try:
        await membership_service.add_to_collection(session, current_user["id"], payload.skin_id)
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "adding to collection")


@router.post("/api/collection/remove", response_model=OkResponse)
async def remove_from_collection(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        await membership_service.remove_from_collection(session, current_user["id"], payload.skin_id)
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "removing from collection")


# Wishlist


@router.get("/api/wishlist", response_model=List[Dict[str, Any]])
async def get_wishlist(
    request: Request,
    weapon: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(ITEMS_PER_PAGE),
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Skins the user wants."""
    try:
        return await _list_view(
            request, session, membership_service.WISHLIST, current_user["id"], weapon, search, page, limit
        )
    except Exception as e:
        raise handle_route_error(e, "loading wishlist")


@router.post("/api/wishlist", response_model=SuccessResponse)
async def post_wishlist(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        await membership_service.add_to_wishlist(session, current_user["id"], payload.skin_id)
        return SuccessResponse()
    except Exception as e:
        raise handle_route_error(e, "adding to wishlist")


@router.delete("/api/wishlist", response_model=SuccessResponse)
async def delete_wishlist(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        await membership_service.remove_from_wishlist(session, current_user["id"], payload.skin_id)
        return SuccessResponse()
    except Exception as e:
        raise handle_route_error(e, "removing from wishlist")


@router.post("/api/wishlist/add", response_model=OkResponse)
async def add_to_wishlist(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    """Mark a skin as wanted. Removes it from the collection if it was there."""
    try:
        await membership_service.add_to_wishlist(session, current_user["id"], payload.skin_id)
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "adding to wishlist")


@router.post("/api/wishlist/remove", response_model=OkResponse)
async def remove_from_wishlist(
    payload: MembershipRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: dict = Depends(get_current_user),
):
    try:
        await membership_service.remove_from_wishlist(session, current_user["id"], payload.skin_id)
        return OkResponse()
    except Exception as e:
        raise handle_route_error(e, "removing from wishlist")
