"""
Collection and wishlist membership.

A (user, skin) pair is in at most one of the two sets. Adding to one set
evicts the pair from the other inside the same transaction. Adds and removes
are idempotent.
"""

import logging
from typing import Optional, List, Dict

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.database.models import Skin, CollectionEntry, WishlistEntry
from skintracker.services import skin_service, cache_service
from skintracker.services.errors import NotFound, ValidationError
from skintracker.utils.constants import ITEMS_PER_PAGE

logger = logging.getLogger(__name__)

COLLECTION = "collection"
WISHLIST = "wishlist"

_MODELS = {COLLECTION: CollectionEntry, WISHLIST: WishlistEntry}
_OPPOSITE = {COLLECTION: WishlistEntry, WISHLIST: CollectionEntry}


def _model_for(kind: str):
    try:
        return _MODELS[kind]
    except KeyError:
        raise ValueError(f"Unknown membership set: {kind}")


async def _add(session: AsyncSession, kind: str, user_id: str, skin_id: str) -> None:
    if not skin_id:
        raise ValidationError("Missing skinId")
    model = _model_for(kind)

    if not await skin_service.skin_exists(session, skin_id):
        raise NotFound("Skin not found")

    try:
        await session.execute(
            delete(_OPPOSITE[kind]).where(
                _OPPOSITE[kind].user_id == user_id, _OPPOSITE[kind].skin_id == skin_id
            )
        )
        existing = await session.execute(
            select(model.id).where(model.user_id == user_id, model.skin_id == skin_id)
        )
        if existing.scalar_one_or_none() is None:
            session.add(model(user_id=user_id, skin_id=skin_id))
        await session.commit()
    except IntegrityError:
        # A concurrent add won the insert; its transaction also evicted the
        # opposite set, so the end state is the same
        await session.rollback()
        logger.debug(f"Duplicate {kind} add for user {user_id}, skin {skin_id}")

    await cache_service.invalidate_membership_views(user_id, skin_id)


async def _remove(session: AsyncSession, kind: str, user_id: str, skin_id: str) -> None:
    if not skin_id:
        raise ValidationError("Missing skinId")
    model = _model_for(kind)

    await session.execute(delete(model).where(model.user_id == user_id, model.skin_id == skin_id))
    await session.commit()
    await cache_service.invalidate_membership_views(user_id, skin_id)


async def add_to_collection(session: AsyncSession, user_id: str, skin_id: str) -> None:
    """Mark a skin as owned, removing it from the wishlist."""
    await _add(session, COLLECTION, user_id, skin_id)


async def remove_from_collection(session: AsyncSession, user_id: str, skin_id: str) -> None:
    """Remove a skin from the collection. Not an error if it was never there."""
    await _remove(session, COLLECTION, user_id, skin_id)


async def add_to_wishlist(session: AsyncSession, user_id: str, skin_id: str) -> None:
    """Mark a skin as wanted, removing it from the collection."""
    await _add(session, WISHLIST, user_id, skin_id)


async def remove_from_wishlist(session: AsyncSession, user_id: str, skin_id: str) -> None:
    """Remove a skin from the wishlist. Not an error if it was never there."""
    await _remove(session, WISHLIST, user_id, skin_id)


async def is_member(session: AsyncSession, kind: str, user_id: str, skin_id: str) -> bool:
    model = _model_for(kind)
    result = await session.execute(
        select(model.id).where(model.user_id == user_id, model.skin_id == skin_id)
    )
    return result.scalar_one_or_none() is not None


async def list_members(
    session: AsyncSession,
    kind: str,
    user_id: str,
    weapon: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = ITEMS_PER_PAGE,
) -> List[Dict]:
    """
    List full skin records in one of the user's sets.

    Same filtering, ordering and paging as the catalog listing.
    """
    skin_service.validate_paging(page, limit)
    model = _model_for(kind)

    query = select(Skin).join(model, model.skin_id == Skin.id).where(model.user_id == user_id)
    query = skin_service.apply_skin_filters(query, weapon, search)
    query = query.order_by(Skin.name.asc(), Skin.id.asc()).offset((page - 1) * limit).limit(limit)

    result = await session.execute(query)
    return [skin_service.skin_to_dict(skin) for skin in result.scalars().all()]


async def list_collection(session: AsyncSession, user_id: str, **filters) -> List[Dict]:
    return await list_members(session, COLLECTION, user_id, **filters)


async def list_wishlist(session: AsyncSession, user_id: str, **filters) -> List[Dict]:
    return await list_members(session, WISHLIST, user_id, **filters)
