"""
Loadout service: named weapon -> skin presets owned by a user.

Updates always replace the full entry set (delete all, insert new) in one
transaction; there is no per-slot update path.
"""

import re
import logging
from typing import Optional, Dict, List, Any, Tuple

from sqlalchemy import select, delete, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.database.models import Loadout, LoadoutEntry, Skin, User
from skintracker.services.errors import ValidationError, NotFound, Forbidden, LimitExceeded
from skintracker.utils.constants import (
    WEAPONS,
    MAX_LOADOUTS_PER_USER,
    MAX_LOADOUT_NAME_LENGTH,
)

logger = logging.getLogger(__name__)

# Marks "icon not supplied" on update, as opposed to an explicit None that clears it
UNSET: Any = object()


def validate_name(name: Optional[str]) -> str:
    """Trim and check a loadout name (1-26 characters)."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Loadout name is required")
    if len(trimmed) > MAX_LOADOUT_NAME_LENGTH:
        raise ValidationError(f"Loadout name must be {MAX_LOADOUT_NAME_LENGTH} characters or less")
    return trimmed


def _normalize_icon(icon: Optional[str]) -> Optional[str]:
    if icon is None:
        return None
    return icon.strip() or None


async def _resolve_entries(
    session: AsyncSession, entries: Optional[Dict[str, Optional[str]]]
) -> List[Tuple[str, str]]:
    """
    Drop unassigned slots and check the rest name real weapons and skins.

    Returns:
        List of (weapon, skin_id) pairs
    """
    pairs = [(weapon, skin_id) for weapon, skin_id in (entries or {}).items() if skin_id]

    unknown_weapons = sorted(weapon for weapon, _ in pairs if weapon not in WEAPONS)
    if unknown_weapons:
        raise ValidationError(f"Unknown weapon(s) in entries: {', '.join(unknown_weapons)}")

    skin_ids = {skin_id for _, skin_id in pairs}
    if skin_ids:
        result = await session.execute(select(Skin.id).where(Skin.id.in_(skin_ids)))
        missing = skin_ids - set(result.scalars().all())
        if missing:
            raise ValidationError(f"Unknown skin id(s) in entries: {', '.join(sorted(missing))}")

    return pairs


def loadout_to_dict(loadout: Loadout) -> Dict:
    """Serialize a loadout with entries resolved to skin display data."""
    return {
        "id": loadout.id,
        "userId": loadout.user_id,
        "name": loadout.name,
        "icon": loadout.icon,
        "createdAt": loadout.created_at.isoformat() if loadout.created_at else None,
        "updatedAt": loadout.updated_at.isoformat() if loadout.updated_at else None,
        "entries": [
            {
                "weapon": entry.weapon,
                "skin": {
                    "id": entry.skin.id,
                    "name": entry.skin.name,
                    "imageUrl": entry.skin.image_url,
                }
                if entry.skin
                else None,
            }
            for entry in loadout.entries
        ],
    }


async def _load_full(session: AsyncSession, loadout_id: str) -> Optional[Loadout]:
    result = await session.execute(
        select(Loadout)
        .where(Loadout.id == loadout_id)
        .options(selectinload(Loadout.entries).selectinload(LoadoutEntry.skin))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_owned(session: AsyncSession, user_id: str, loadout_id: str) -> Loadout:
    """Fetch a loadout row, enforcing existence then ownership."""
    result = await session.execute(select(Loadout).where(Loadout.id == loadout_id))
    loadout = result.scalar_one_or_none()
    if not loadout:
        raise NotFound("Loadout not found")
    if loadout.user_id != user_id:
        raise Forbidden()
    return loadout


async def count_loadouts(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(select(func.count(Loadout.id)).where(Loadout.user_id == user_id))
    return result.scalar_one()


def owner_lock_query(user_id: str):
    """
    Row lock on the owning user. Taken before the cap check so concurrent
    creates for one user run one after another (SQLite ignores FOR UPDATE and
    already serializes writers).
    """
    return select(User.id).where(User.id == user_id).with_for_update()


async def create_loadout(
    session: AsyncSession,
    user_id: str,
    name: str,
    icon: Optional[str] = None,
    entries: Optional[Dict[str, Optional[str]]] = None,
) -> Dict:
    """
    Create a loadout with its initial entries.

    Args:
        session: Database session
        user_id: Owner
        name: Loadout name (trimmed, 1-26 characters)
        icon: Optional icon image URL
        entries: Mapping of weapon name to skin id (None = unassigned)

    Returns:
        Created loadout dictionary

    Raises:
        ValidationError: Bad name or entries
        LimitExceeded: User already owns the maximum number of loadouts
    """
    trimmed = validate_name(name)

    # Held until commit; on error the request session's rollback releases it
    await session.execute(owner_lock_query(user_id))
    if await count_loadouts(session, user_id) >= MAX_LOADOUTS_PER_USER:
        raise LimitExceeded(f"Maximum of {MAX_LOADOUTS_PER_USER} loadouts allowed per account")

    pairs = await _resolve_entries(session, entries)

    loadout = Loadout(user_id=user_id, name=trimmed, icon=_normalize_icon(icon))
    session.add(loadout)
    await session.flush()
    loadout_id = loadout.id

    for weapon, skin_id in pairs:
        session.add(LoadoutEntry(loadout_id=loadout_id, weapon=weapon, skin_id=skin_id))
    await session.commit()

    logger.info(f"Created loadout {loadout_id} for user {user_id} with {len(pairs)} entries")
    return loadout_to_dict(await _load_full(session, loadout_id))


async def update_loadout(
    session: AsyncSession,
    user_id: str,
    loadout_id: str,
    name: str,
    icon: Any = UNSET,
    entries: Optional[Dict[str, Optional[str]]] = None,
) -> Dict:
    """
    Rename / re-icon a loadout and replace its whole entry set.

    Callers always submit the complete desired state; slots missing from
    ``entries`` end up unassigned. ``icon`` left as UNSET keeps the current
    icon, None or "" clears it.

    Raises:
        NotFound: Loadout does not exist
        Forbidden: Loadout belongs to someone else
        ValidationError: Bad name or entries
    """
    loadout = await _get_owned(session, user_id, loadout_id)
    trimmed = validate_name(name)
    pairs = await _resolve_entries(session, entries)

    try:
        await session.execute(delete(LoadoutEntry).where(LoadoutEntry.loadout_id == loadout_id))
        loadout.name = trimmed
        if icon is not UNSET:
            loadout.icon = _normalize_icon(icon)
        for weapon, skin_id in pairs:
            session.add(LoadoutEntry(loadout_id=loadout_id, weapon=weapon, skin_id=skin_id))
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return loadout_to_dict(await _load_full(session, loadout_id))


async def get_loadout(session: AsyncSession, user_id: str, loadout_id: str) -> Dict:
    """Fetch one owned loadout with resolved entries."""
    await _get_owned(session, user_id, loadout_id)
    return loadout_to_dict(await _load_full(session, loadout_id))


async def list_loadouts(session: AsyncSession, user_id: str) -> List[Dict]:
    """All loadouts owned by the user, newest first."""
    result = await session.execute(
        select(Loadout)
        .where(Loadout.user_id == user_id)
        .options(selectinload(Loadout.entries).selectinload(LoadoutEntry.skin))
        .order_by(Loadout.created_at.desc(), Loadout.id.desc())
    )
    return [loadout_to_dict(loadout) for loadout in result.scalars().all()]


async def delete_loadout(session: AsyncSession, user_id: str, loadout_id: str) -> None:
    """Delete an owned loadout; entries go first."""
    await _get_owned(session, user_id, loadout_id)
    try:
        await session.execute(delete(LoadoutEntry).where(LoadoutEntry.loadout_id == loadout_id))
        await session.execute(delete(Loadout).where(Loadout.id == loadout_id))
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    logger.info(f"Deleted loadout {loadout_id} for user {user_id}")


# Import / export


def validate_import_payload(payload: Any) -> Tuple[str, Optional[str], Dict[str, Optional[str]]]:
    """
    Check the structure of an imported loadout.

    Expected shape: {"name": str, "icon"?: str, "entries": {weapon: str | null}}

    Returns:
        (name, icon, entries)

    Raises:
        ValidationError: Naming the offending field
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid format: expected a JSON object")

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Invalid format: missing or invalid 'name' field")

    entries = payload.get("entries")
    if not isinstance(entries, dict):
        raise ValidationError("Invalid format: missing or invalid 'entries' field")
    for weapon, skin_id in entries.items():
        if skin_id is not None and not isinstance(skin_id, str):
            raise ValidationError(f"Invalid format: entry for {weapon} must be a string or null")

    icon = payload.get("icon")
    if icon is not None and (not isinstance(icon, str) or not icon.strip()):
        raise ValidationError("Invalid format: 'icon' must be a non-empty string")

    return name, icon, entries


async def import_loadout(session: AsyncSession, user_id: str, payload: Any) -> Dict:
    """Validate an exported loadout document and create it for the user."""
    name, icon, entries = validate_import_payload(payload)
    return await create_loadout(session, user_id, name=name, icon=icon, entries=entries)


def export_loadout(loadout: Dict) -> Dict:
    """
    Interchange form of a loadout: {name, icon?, entries: {weapon: skinId}}.

    Unassigned slots are left out; id and timestamps are not part of the format.
    """
    exported = {
        "name": loadout["name"],
        "entries": {
            entry["weapon"]: entry["skin"]["id"]
            for entry in loadout["entries"]
            if entry.get("skin") and entry["skin"].get("id")
        },
    }
    if loadout.get("icon"):
        exported["icon"] = loadout["icon"]
    return exported


def safe_filename(name: str, suffix: str) -> str:
    """Lowercase name with anything but ASCII letters and digits replaced by "_"."""
    return f"{re.sub(r'[^a-z0-9]', '_', name, flags=re.IGNORECASE).lower()}{suffix}"


def export_filename(name: str) -> str:
    """File name for a downloaded export, e.g. "My Loadout" -> "my_loadout_loadout.json"."""
    return safe_filename(name, "_loadout.json")
