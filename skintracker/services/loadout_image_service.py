"""
Loadout image rendering for sharing.

Lays the loadout out as one column per weapon group (sidearms, SMGs, ...) with
a tile per weapon, on the dark background used by the web UI. Each tile shows
the assigned skin, or the weapon's standard skin when the slot is empty.
Downloads that fail leave the tile blank instead of failing the render.
"""

import asyncio
import logging
from io import BytesIO
from typing import Dict, Optional, List

import httpx
from PIL import Image, ImageDraw, ImageFont

from skintracker.utils.constants import WEAPON_GROUPS

logger = logging.getLogger(__name__)

BACKGROUND_COLOR = "#171717"
TILE_COLOR = "#262626"
TEXT_COLOR = "#e5e5e5"
HEADER_COLOR = "#a3a3a3"

TILE_WIDTH = 256
TILE_HEIGHT = 112
LABEL_HEIGHT = 18
HEADER_HEIGHT = 28
PADDING = 16
DOWNLOAD_TIMEOUT = 10.0

# Same guard as uploaded images; remote skin renders are small
MAX_IMAGE_PIXELS = 25_000_000
Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS


def tile_image_urls(loadout: Dict, standard_images: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
    """
    Resolve the image URL for every weapon slot.

    Args:
        loadout: Loadout dictionary as returned by loadout_service
        standard_images: Weapon -> default skin image URL

    Returns:
        Weapon -> image URL (None when neither source has one)
    """
    assigned = {
        entry["weapon"]: entry["skin"].get("imageUrl")
        for entry in loadout.get("entries", [])
        if entry.get("skin")
    }
    urls = {}
    for _, weapons in WEAPON_GROUPS:
        for weapon in weapons:
            urls[weapon] = assigned.get(weapon) or standard_images.get(weapon)
    return urls


async def _download(client: httpx.AsyncClient, weapon: str, url: Optional[str]) -> Optional[Image.Image]:
    if not url:
        return None
    try:
        resp = await client.get(url)
        resp.raise_for_status()
        img = Image.open(BytesIO(resp.content))
        img.load()
        return img.convert("RGBA")
    except Exception:
        logger.warning("Could not load image for %s from %s", weapon, url, exc_info=True)
        return None


async def fetch_tile_images(
    urls: Dict[str, Optional[str]], client: Optional[httpx.AsyncClient] = None
) -> Dict[str, Optional[Image.Image]]:
    """Download all tile images concurrently."""
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    try:
        weapons = list(urls.keys())
        images = await asyncio.gather(*(_download(client, weapon, urls[weapon]) for weapon in weapons))
    finally:
        if owns_client:
            await client.aclose()
    return dict(zip(weapons, images))


def _fit(img: Image.Image, width: int, height: int) -> Image.Image:
    """Scale to fit inside width x height, keeping aspect ratio."""
    img = img.copy()
    img.thumbnail((width, height), Image.Resampling.LANCZOS)
    return img


def compose_grid(images: Dict[str, Optional[Image.Image]]) -> Image.Image:
    """
    Draw the grid: one column per weapon group, one tile per weapon.

    Args:
        images: Weapon -> image (None draws an empty tile)

    Returns:
        RGB image
    """
    rows = max(len(weapons) for _, weapons in WEAPON_GROUPS)
    columns = len(WEAPON_GROUPS)
    width = PADDING + columns * (TILE_WIDTH + PADDING)
    height = PADDING + HEADER_HEIGHT + rows * (TILE_HEIGHT + PADDING)

    canvas = Image.new("RGB", (width, height), BACKGROUND_COLOR)
    draw = ImageDraw.Draw(canvas)
    font = ImageFont.load_default()

    for col, (label, weapons) in enumerate(WEAPON_GROUPS):
        x = PADDING + col * (TILE_WIDTH + PADDING)
        draw.text((x, PADDING), label, fill=HEADER_COLOR, font=font)

        for row, weapon in enumerate(weapons):
            y = PADDING + HEADER_HEIGHT + row * (TILE_HEIGHT + PADDING)
            draw.rectangle((x, y, x + TILE_WIDTH - 1, y + TILE_HEIGHT - 1), fill=TILE_COLOR)
            draw.text((x + 6, y + TILE_HEIGHT - LABEL_HEIGHT), weapon, fill=TEXT_COLOR, font=font)

            img = images.get(weapon)
            if img is None:
                continue
            art = _fit(img, TILE_WIDTH - 12, TILE_HEIGHT - LABEL_HEIGHT - 8)
            # Center in the area above the label
            left = x + (TILE_WIDTH - art.width) // 2
            top = y + 4 + (TILE_HEIGHT - LABEL_HEIGHT - 8 - art.height) // 2
            canvas.paste(art, (left, top), art)

    return canvas


async def render_loadout_image(
    loadout: Dict,
    standard_images: Dict[str, Optional[str]],
    client: Optional[httpx.AsyncClient] = None,
) -> bytes:
    """
    Render a loadout as PNG bytes.

    Args:
        loadout: Loadout dictionary as returned by loadout_service
        standard_images: Weapon -> default skin image URL
        client: Optional httpx client (a temporary one is created otherwise)

    Returns:
        PNG image bytes
    """
    urls = tile_image_urls(loadout, standard_images)
    images = await fetch_tile_images(urls, client=client)
    missing: List[str] = [weapon for weapon, img in images.items() if img is None]
    if missing:
        logger.info(f"Loadout {loadout.get('id')} rendered with {len(missing)} empty tiles")

    canvas = compose_grid(images)
    output = BytesIO()
    canvas.save(output, format="PNG", optimize=True)
    return output.getvalue()
