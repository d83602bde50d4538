"""
Client-side editing helpers for loadouts.

LoadoutEditor tracks whether an in-progress loadout has unsaved work:
- UNSAVED_NEW: never saved
- SAVED_CLEAN: matches what was last saved
- SAVED_DIRTY: saved before, edited since

SkinPager drives the infinite-scroll skin picker. Every filter change bumps a
generation counter and resets the pages; a page response tagged with an older
generation is discarded instead of being appended.
"""

import enum
import logging
from typing import Optional, Dict, List, Callable, Awaitable, Any

from skintracker.utils.constants import WEAPONS, DEFAULT_LOADOUT_NAME, ITEMS_PER_PAGE

logger = logging.getLogger(__name__)


class EditorState(str, enum.Enum):
    UNSAVED_NEW = "unsaved_new"
    SAVED_CLEAN = "saved_clean"
    SAVED_DIRTY = "saved_dirty"


class LoadoutEditor:
    """State of one loadout being edited."""

    def __init__(
        self,
        loadout_id: Optional[str] = None,
        name: str = "",
        icon: Optional[str] = None,
        entries: Optional[Dict[str, Optional[str]]] = None,
    ):
        self.loadout_id = loadout_id
        self.name = name
        self.icon = icon
        self.entries: Dict[str, Optional[str]] = dict(entries or {})
        self.state = EditorState.SAVED_CLEAN if loadout_id else EditorState.UNSAVED_NEW
        self.has_edits = False
        self.error: Optional[str] = None

    @classmethod
    def from_loadout(cls, loadout: Dict) -> "LoadoutEditor":
        """Start editing a loadout dictionary as returned by loadout_service."""
        entries = {
            entry["weapon"]: entry["skin"]["id"] if entry.get("skin") else None
            for entry in loadout.get("entries", [])
        }
        return cls(
            loadout_id=loadout["id"],
            name=loadout.get("name", ""),
            icon=loadout.get("icon"),
            entries=entries,
        )

    def _mark_edited(self) -> None:
        self.has_edits = True
        if self.state == EditorState.SAVED_CLEAN:
            self.state = EditorState.SAVED_DIRTY

    def select_skin(self, weapon: str, skin_id: Optional[str]) -> None:
        """Assign a skin to a weapon slot (None clears the slot)."""
        if weapon not in WEAPONS:
            raise ValueError(f"Unknown weapon: {weapon}")
        self.entries[weapon] = skin_id
        self._mark_edited()

    def rename(self, name: str) -> None:
        self.name = name
        self._mark_edited()

    def set_icon(self, icon: Optional[str]) -> None:
        self.icon = icon
        self._mark_edited()

    def save_payload(self) -> Dict[str, Any]:
        """Body for the create/update request. Blank names fall back to the default."""
        return {
            "name": self.name.strip() or DEFAULT_LOADOUT_NAME,
            "icon": self.icon,
            "entries": {weapon: skin_id for weapon, skin_id in self.entries.items() if skin_id},
        }

    async def save(self, save_fn: Callable[[Dict[str, Any]], Awaitable[Dict]]) -> Optional[Dict]:
        """
        Persist the loadout through save_fn.

        On success the editor becomes SAVED_CLEAN and adopts the returned id.
        On failure the state is left as it was and the error message recorded.

        Args:
            save_fn: Coroutine function taking the payload and returning the
                saved loadout dictionary

        Returns:
            Saved loadout dictionary, or None if saving failed
        """
        try:
            saved = await save_fn(self.save_payload())
        except Exception as e:
            logger.warning(f"Failed to save loadout {self.loadout_id or '(new)'}: {e}")
            self.error = str(e) or "Failed to save loadout"
            return None

        self.loadout_id = saved.get("id", self.loadout_id)
        self.state = EditorState.SAVED_CLEAN
        self.has_edits = False
        self.error = None
        return saved

    def needs_leave_confirmation(self) -> bool:
        """True when leaving would lose work; the caller should ask first."""
        if self.state == EditorState.SAVED_DIRTY:
            return True
        return self.state == EditorState.UNSAVED_NEW and self.has_edits


class SkinPager:
    """
    Paged skin listing that drops responses for superseded filters.

    fetch_page is called as fetch_page(filters, page, page_size) and returns
    the list of skins for that page.
    """

    def __init__(
        self,
        fetch_page: Callable[[Dict[str, Optional[str]], int, int], Awaitable[List[Dict]]],
        page_size: int = ITEMS_PER_PAGE,
    ):
        self._fetch_page = fetch_page
        self.page_size = page_size
        self.generation = 0
        self.filters: Dict[str, Optional[str]] = {"weapon": None, "search": None}
        self.items: List[Dict] = []
        self.page = 0
        self.has_more = True
        self.is_loading = False

    def set_filters(self, weapon: Optional[str] = None, search: Optional[str] = None) -> int:
        """Replace the filters and reset paging. Returns the new generation."""
        self.generation += 1
        self.filters = {"weapon": weapon, "search": search}
        self.items = []
        self.page = 0
        self.has_more = True
        self.is_loading = False
        return self.generation

    def receive(self, generation: int, page: int, results: List[Dict]) -> bool:
        """
        Apply a page response.

        Returns:
            False if the response belongs to an older generation (discarded)
        """
        if generation != self.generation:
            logger.debug(f"Discarding page {page} from generation {generation} (now {self.generation})")
            return False
        if page == 1:
            self.items = list(results)
        else:
            self.items.extend(results)
        self.page = page
        self.has_more = len(results) >= self.page_size
        return True

    async def load_next(self) -> bool:
        """
        Fetch the next page for the current filters.

        Returns False without fetching while a page for the current generation
        is already in flight, so overlapping calls never load a page twice.
        """
        if not self.has_more or self.is_loading:
            return False
        generation = self.generation
        page = self.page + 1
        self.is_loading = True
        try:
            results = await self._fetch_page(dict(self.filters), page, self.page_size)
        finally:
            # A filter change while in flight already reset the flag for the new generation
            if generation == self.generation:
                self.is_loading = False
        return self.receive(generation, page, results)
