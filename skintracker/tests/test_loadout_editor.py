"""
Tests for the loadout editing state machine and the generation-tagged skin pager.
"""
import asyncio

import pytest

from skintracker.services.loadout_editor import LoadoutEditor, EditorState, SkinPager


# ============================================================================
# LoadoutEditor
# ============================================================================

class TestLoadoutEditor:
    def test_new_editor_is_unsaved(self):
        editor = LoadoutEditor()
        assert editor.state == EditorState.UNSAVED_NEW
        assert editor.needs_leave_confirmation() is False

    def test_new_editor_with_edits_needs_confirmation(self):
        editor = LoadoutEditor()
        editor.select_skin("Vandal", "prime-vandal")
        assert editor.state == EditorState.UNSAVED_NEW
        assert editor.needs_leave_confirmation() is True

    def test_selecting_skin_dirties_saved_loadout(self):
        editor = LoadoutEditor(loadout_id="abc", name="Main")
        assert editor.state == EditorState.SAVED_CLEAN
        assert editor.needs_leave_confirmation() is False

        editor.select_skin("Phantom", "oni-phantom")
        assert editor.state == EditorState.SAVED_DIRTY
        assert editor.needs_leave_confirmation() is True

    def test_unknown_weapon(self):
        editor = LoadoutEditor()
        with pytest.raises(ValueError):
            editor.select_skin("Laser", "x")

    def test_from_loadout(self):
        editor = LoadoutEditor.from_loadout(
            {
                "id": "abc",
                "name": "Main",
                "icon": None,
                "entries": [{"weapon": "Vandal", "skin": {"id": "prime-vandal", "name": "Prime Vandal", "imageUrl": None}}],
            }
        )
        assert editor.state == EditorState.SAVED_CLEAN
        assert editor.entries == {"Vandal": "prime-vandal"}

    def test_save_payload_defaults_name_and_drops_empty_slots(self):
        editor = LoadoutEditor(name="   ")
        editor.select_skin("Vandal", "prime-vandal")
        editor.select_skin("Phantom", None)
        assert editor.save_payload() == {
            "name": "Unnamed Loadout",
            "icon": None,
            "entries": {"Vandal": "prime-vandal"},
        }

    @pytest.mark.asyncio
    async def test_save_success_cleans_state(self):
        editor = LoadoutEditor()
        editor.select_skin("Vandal", "prime-vandal")
        received = []

        async def fake_save(payload):
            received.append(payload)
            return {"id": "new-id", **payload}

        saved = await editor.save(fake_save)

        assert saved["id"] == "new-id"
        assert received[0]["entries"] == {"Vandal": "prime-vandal"}
        assert editor.state == EditorState.SAVED_CLEAN
        assert editor.loadout_id == "new-id"
        assert editor.needs_leave_confirmation() is False

    @pytest.mark.asyncio
    async def test_save_failure_keeps_state_and_records_error(self):
        editor = LoadoutEditor(loadout_id="abc", name="Main")
        editor.select_skin("Vandal", "prime-vandal")

        async def failing_save(payload):
            raise RuntimeError("Failed to save loadout")

        assert await editor.save(failing_save) is None
        assert editor.state == EditorState.SAVED_DIRTY
        assert editor.error == "Failed to save loadout"
        assert editor.needs_leave_confirmation() is True

        async def ok_save(payload):
            return {"id": "abc", **payload}

        await editor.save(ok_save)
        assert editor.error is None
        assert editor.state == EditorState.SAVED_CLEAN


# ============================================================================
# SkinPager
# ============================================================================

def _page(prefix, n):
    return [{"id": f"{prefix}-{i}"} for i in range(n)]


class TestSkinPager:
    @pytest.mark.asyncio
    async def test_pages_append_until_short_page(self):
        async def fetch(filters, page, page_size):
            return _page(f"p{page}", 2 if page < 3 else 1)

        pager = SkinPager(fetch, page_size=2)
        pager.set_filters(weapon="Vandal")

        assert await pager.load_next() is True
        assert pager.has_more is True
        await pager.load_next()
        await pager.load_next()
        assert [s["id"] for s in pager.items] == ["p1-0", "p1-1", "p2-0", "p2-1", "p3-0"]
        assert pager.has_more is False
        # No further fetches once exhausted
        assert await pager.load_next() is False

    @pytest.mark.asyncio
    async def test_filters_passed_to_fetch(self):
        calls = []

        async def fetch(filters, page, page_size):
            calls.append((filters, page, page_size))
            return []

        pager = SkinPager(fetch, page_size=20)
        pager.set_filters(weapon="Phantom", search="oni")
        await pager.load_next()
        assert calls == [({"weapon": "Phantom", "search": "oni"}, 1, 20)]

    def test_filter_change_resets(self):
        async def fetch(filters, page, page_size):
            return []

        pager = SkinPager(fetch, page_size=2)
        generation = pager.set_filters()
        pager.receive(generation, 1, _page("a", 2))
        assert pager.items

        new_generation = pager.set_filters(weapon="Vandal")
        assert new_generation == generation + 1
        assert pager.items == []
        assert pager.page == 0
        assert pager.has_more is True

    def test_stale_response_dropped(self):
        async def fetch(filters, page, page_size):
            return []

        pager = SkinPager(fetch, page_size=2)
        old = pager.set_filters(search="prime")
        new = pager.set_filters(search="reaver")

        assert pager.receive(new, 1, _page("reaver", 1)) is True
        assert pager.receive(old, 2, _page("prime", 2)) is False
        assert [s["id"] for s in pager.items] == ["reaver-0"]

    @pytest.mark.asyncio
    async def test_in_flight_fetch_for_old_filter_is_discarded(self):
        release_old = asyncio.Event()

        async def fetch(filters, page, page_size):
            if filters["search"] == "old":
                await release_old.wait()
                return _page("old", 2)
            return _page("new", 1)

        pager = SkinPager(fetch, page_size=2)
        pager.set_filters(search="old")
        slow = asyncio.create_task(pager.load_next())
        await asyncio.sleep(0)

        pager.set_filters(search="new")
        assert await pager.load_next() is True

        release_old.set()
        assert await slow is False
        assert [s["id"] for s in pager.items] == ["new-0"]
        assert pager.has_more is False

    @pytest.mark.asyncio
    async def test_overlapping_loads_fetch_each_page_once(self):
        calls = []

        async def fetch(filters, page, page_size):
            calls.append(page)
            await asyncio.sleep(0)
            return _page(f"p{page}", 2)

        pager = SkinPager(fetch, page_size=2)
        pager.set_filters()
        await pager.load_next()

        results = await asyncio.gather(pager.load_next(), pager.load_next())

        assert sorted(results) == [False, True]
        assert calls == [1, 2]
        assert [s["id"] for s in pager.items] == ["p1-0", "p1-1", "p2-0", "p2-1"]
        assert pager.is_loading is False

    @pytest.mark.asyncio
    async def test_failed_fetch_clears_loading_flag(self):
        attempts = []

        async def fetch(filters, page, page_size):
            attempts.append(page)
            if len(attempts) == 1:
                raise RuntimeError("network down")
            return _page("ok", 1)

        pager = SkinPager(fetch, page_size=2)
        pager.set_filters()
        with pytest.raises(RuntimeError):
            await pager.load_next()

        assert pager.is_loading is False
        assert await pager.load_next() is True
        assert attempts == [1, 1]

    @pytest.mark.asyncio
    async def test_filter_change_allows_load_while_old_one_in_flight(self):
        release_old = asyncio.Event()

        async def fetch(filters, page, page_size):
            if filters["weapon"] == "Vandal":
                await release_old.wait()
            return _page(filters["weapon"], 1)

        pager = SkinPager(fetch, page_size=2)
        pager.set_filters(weapon="Vandal")
        slow = asyncio.create_task(pager.load_next())
        await asyncio.sleep(0)
        assert pager.is_loading is True

        pager.set_filters(weapon="Phantom")
        assert pager.is_loading is False
        assert await pager.load_next() is True

        release_old.set()
        assert await slow is False
        assert pager.is_loading is False
        assert [s["id"] for s in pager.items] == ["Phantom-0"]
