"""
Catalog read access: filtered, paginated skin listings and lookups.
"""

import logging
from typing import Optional, List, Dict, Iterable

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.database.models import Skin, CollectionEntry, WishlistEntry
from skintracker.services.errors import ValidationError, NotFound
from skintracker.utils.constants import ITEMS_PER_PAGE, MAX_ITEMS_PER_PAGE, get_tier_info

logger = logging.getLogger(__name__)


def validate_paging(page: int, limit: int) -> None:
    """Pages are 1-indexed; limit must be between 1 and MAX_ITEMS_PER_PAGE."""
    if page < 1:
        raise ValidationError("page must be 1 or greater")
    if limit < 1 or limit > MAX_ITEMS_PER_PAGE:
        raise ValidationError(f"limit must be between 1 and {MAX_ITEMS_PER_PAGE}")


def apply_skin_filters(query, weapon: Optional[str], search: Optional[str]):
    """
    Exact weapon match and case-insensitive substring match on name.

    The search text is matched literally; % and _ are escaped rather than
    treated as LIKE wildcards.
    """
    if weapon:
        query = query.where(Skin.weapon == weapon)
    if search:
        query = query.where(Skin.name.icontains(search, autoescape=True))
    return query


def skin_to_dict(skin: Skin) -> Dict:
    """Full skin record as served by the collection and detail endpoints."""
    return {
        "id": skin.id,
        "name": skin.name,
        "weapon": skin.weapon,
        "imageUrl": skin.image_url,
        "cost": skin.cost,
        "tier": skin.tier,
        "chromas": skin.chromas or [],
        "levels": skin.levels or [],
        "videoUrl": skin.video_url,
    }


async def _membership_ids(
    session: AsyncSession, model, user_id: str, skin_ids: Iterable[str]
) -> set:
    skin_ids = list(skin_ids)
    if not skin_ids:
        return set()
    result = await session.execute(
        select(model.skin_id).where(model.user_id == user_id, model.skin_id.in_(skin_ids))
    )
    return set(result.scalars().all())


async def list_skins(
    session: AsyncSession,
    weapon: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = ITEMS_PER_PAGE,
    viewer_id: Optional[str] = None,
) -> List[Dict]:
    """
    List catalog skins ordered by name.

    Args:
        session: Database session
        weapon: Optional exact weapon filter
        search: Optional case-insensitive name substring
        page: 1-indexed page number
        limit: Page size
        viewer_id: Optional user whose collection/wishlist flags to resolve

    Returns:
        List of {id, name, weapon, imageUrl, inCollection, inWishlist}
    """
    validate_paging(page, limit)

    query = apply_skin_filters(
        select(Skin.id, Skin.name, Skin.weapon, Skin.image_url), weapon, search
    )
    # id breaks ties between identically named skins so pages never overlap
    query = query.order_by(Skin.name.asc(), Skin.id.asc()).offset((page - 1) * limit).limit(limit)

    result = await session.execute(query)
    rows = result.all()

    owned, wanted = set(), set()
    if viewer_id:
        ids = [row.id for row in rows]
        owned = await _membership_ids(session, CollectionEntry, viewer_id, ids)
        wanted = await _membership_ids(session, WishlistEntry, viewer_id, ids)

    return [
        {
            "id": row.id,
            "name": row.name,
            "weapon": row.weapon,
            "imageUrl": row.image_url,
            "inCollection": row.id in owned,
            "inWishlist": row.id in wanted,
        }
        for row in rows
    ]


async def get_skins_by_ids(session: AsyncSession, ids: List[str]) -> List[Dict]:
    """
    Bulk lookup returning only id and image URL.

    Unknown ids are left out; empty input returns an empty list.
    """
    if not ids:
        return []
    result = await session.execute(select(Skin.id, Skin.image_url).where(Skin.id.in_(ids)))
    return [{"id": row.id, "imageUrl": row.image_url} for row in result.all()]


async def get_standard_images(session: AsyncSession) -> Dict[str, Optional[str]]:
    """
    Map each weapon to its default skin image.

    Default skins are named "Standard <Weapon>", except the knife which is
    just "Melee".
    """
    result = await session.execute(
        select(Skin.weapon, Skin.image_url).where(
            or_(Skin.name.like("Standard%"), Skin.name == "Melee")
        )
    )
    return {row.weapon: row.image_url for row in result.all()}


async def get_skin(session: AsyncSession, skin_id: str, viewer_id: Optional[str] = None) -> Dict:
    """
    Full skin detail with tier display info and the viewer's membership flags.

    Raises:
        NotFound: If the skin does not exist
    """
    skin = await session.get(Skin, skin_id)
    if not skin:
        raise NotFound("Skin not found")

    data = skin_to_dict(skin)
    data["tierInfo"] = get_tier_info(skin.tier)
    data["inCollection"] = False
    data["inWishlist"] = False
    if viewer_id:
        data["inCollection"] = bool(await _membership_ids(session, CollectionEntry, viewer_id, [skin_id]))
        data["inWishlist"] = bool(await _membership_ids(session, WishlistEntry, viewer_id, [skin_id]))
    return data


async def skin_exists(session: AsyncSession, skin_id: str) -> bool:
    result = await session.execute(select(Skin.id).where(Skin.id == skin_id))
    return result.scalar_one_or_none() is not None
