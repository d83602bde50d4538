"""
Catalog sync from the public skin API.

Fetches the weapon list (to map each skin to its weapon) and the full skin
list, then upserts every usable skin. Skins without a name, without chromas,
without a known weapon, or without any full-render image are skipped. Each
upsert commits on its own, so a failure part-way through keeps the rows
already written.

Run manually with:
    python -m skintracker.services.sync_service
"""

import asyncio
import logging
import os
import time
from typing import Optional, Dict, List, Tuple, Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from skintracker.database.models import Skin
from skintracker.services import cache_service
from skintracker.services.errors import ConfigurationError, InvalidCredentials, UpstreamFailure
from skintracker.utils.constants import UNKNOWN_TIER
from skintracker.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

SKIN_API_BASE_URL = os.getenv("SKIN_API_BASE_URL", "https://valorant-api.com").rstrip("/")
WEAPONS_PATH = "/v1/weapons"
SKINS_PATH = "/v1/weapons/skins"
REQUEST_TIMEOUT = 30.0


def check_cron_authorization(authorization: Optional[str], cron_secret: Optional[str]) -> None:
    """
    Check the Authorization header against the configured cron secret.

    Raises:
        ConfigurationError: No secret configured (reported as 500)
        InvalidCredentials: Header missing or not an exact match (401)
    """
    if not cron_secret:
        logger.error("CRON_SECRET not configured")
        raise ConfigurationError("Cron job not configured")
    if authorization != f"Bearer {cron_secret}":
        raise InvalidCredentials("Unauthorized")


async def _get_json(client: httpx.AsyncClient, path: str) -> Dict:
    try:
        resp = await client.get(f"{SKIN_API_BASE_URL}{path}")
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as e:
        raise UpstreamFailure(f"Failed to fetch {path}: {e.response.status_code}")
    except httpx.HTTPError as e:
        raise UpstreamFailure(f"Failed to fetch {path}: {e}")
    except ValueError as e:
        raise UpstreamFailure(f"Malformed response from {path}: {e}")


def build_skin_weapon_map(weapons: List[Dict]) -> Dict[str, str]:
    """Map every skin id listed under a weapon to that weapon's display name."""
    skin_to_weapon = {}
    for weapon in weapons:
        for skin in weapon.get("skins") or []:
            skin_to_weapon[skin["uuid"]] = weapon["displayName"]
    return skin_to_weapon


def select_image(chromas: List[Dict]) -> Optional[str]:
    """First non-null full render among the chromas."""
    for chroma in chromas:
        if chroma.get("fullRender"):
            return chroma["fullRender"]
    return None


def skin_fields(record: Dict, weapon: str, image_url: str) -> Dict[str, Any]:
    """Column values for one external skin record."""
    levels = record.get("levels") or []
    return {
        "name": record["displayName"],
        "weapon": weapon,
        "tier": record.get("contentTierUuid") or UNKNOWN_TIER,
        "image_url": image_url,
        "chromas": record.get("chromas") or [],
        "levels": levels,
        "video_url": levels[0].get("streamedVideo") if levels else None,
    }


async def upsert_skin(session: AsyncSession, skin_id: str, fields: Dict[str, Any]) -> bool:
    """
    Insert or update one skin and commit.

    Returns:
        True if the skin was created, False if it already existed
    """
    skin = await session.get(Skin, skin_id)
    created = skin is None
    if created:
        skin = Skin(id=skin_id, cost=0, **fields)
        session.add(skin)
    else:
        for key, value in fields.items():
            setattr(skin, key, value)
    await session.commit()
    return created


async def fetch_catalog(client: httpx.AsyncClient) -> Tuple[List[Dict], List[Dict]]:
    """Fetch (weapons, skins) from the skin API."""
    weapons_json = await _get_json(client, WEAPONS_PATH)
    skins_json = await _get_json(client, SKINS_PATH)
    try:
        return list(weapons_json["data"]), list(skins_json["data"])
    except (KeyError, TypeError) as e:
        raise UpstreamFailure(f"Malformed catalog response: missing {e}")


async def sync_catalog(session: AsyncSession, client: Optional[httpx.AsyncClient] = None) -> Dict:
    """
    Run a full catalog sync.

    Args:
        session: Database session
        client: Optional httpx client (a temporary one is created otherwise)

    Returns:
        {success, stats: {new, updated, skipped, total, duration}, timestamp}

    Raises:
        UpstreamFailure: Fetch failed or the response could not be parsed
    """
    start = time.monotonic()
    logger.info("Starting skin sync...")

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
    try:
        weapons, skins = await fetch_catalog(client)
    finally:
        if owns_client:
            await client.aclose()

    new_count = 0
    updated_count = 0
    skipped_count = 0

    try:
        skin_to_weapon = build_skin_weapon_map(weapons)

        for record in skins:
            if not record.get("displayName") or not record.get("chromas"):
                skipped_count += 1
                continue

            weapon = skin_to_weapon.get(record["uuid"])
            if not weapon:
                skipped_count += 1
                continue

            image_url = select_image(record["chromas"])
            if not image_url:
                skipped_count += 1
                continue

            if await upsert_skin(session, record["uuid"], skin_fields(record, weapon, image_url)):
                new_count += 1
            else:
                updated_count += 1
    except (KeyError, TypeError, AttributeError) as e:
        await session.rollback()
        logger.error(
            f"Skin sync aborted after {new_count} new / {updated_count} updated: malformed record ({e})"
        )
        raise UpstreamFailure(f"Malformed catalog record: {e}")
    finally:
        # Rows committed before an abort still change cached views
        if updated_count:
            await cache_service.invalidate_catalog_views()

    duration_ms = int((time.monotonic() - start) * 1000)
    stats = {
        "new": new_count,
        "updated": updated_count,
        "skipped": skipped_count,
        "total": new_count + updated_count,
        "duration": f"{duration_ms}ms",
    }
    logger.info(f"Skin sync completed: {stats}")

    return {"success": True, "stats": stats, "timestamp": utcnow().isoformat()}


async def main():
    """Sync the catalog into the configured database."""
    from skintracker.database.db import AsyncSessionLocal, init_database, close_database

    print("Syncing skins...")
    await init_database()
    try:
        async with AsyncSessionLocal() as session:
            result = await sync_catalog(session)
        stats = result["stats"]
        print(f"  New: {stats['new']}, updated: {stats['updated']}, skipped: {stats['skipped']}")
        print(f"  Took {stats['duration']}")
    finally:
        await close_database()
    print("Done.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    asyncio.run(main())
