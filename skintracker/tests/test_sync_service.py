"""
Tests for the catalog sync, with the skin API mocked through httpx.MockTransport.
"""
import httpx
import pytest
from sqlalchemy import select

from skintracker.database.models import Skin
from skintracker.services import sync_service
from skintracker.services.errors import ConfigurationError, InvalidCredentials, UpstreamFailure

WEAPONS = {
    "data": [
        {"displayName": "Vandal", "skins": [{"uuid": "s-prime"}, {"uuid": "s-norender"}, {"uuid": "s-existing"}]},
        {"displayName": "Phantom", "skins": [{"uuid": "s-nochromas"}, {"uuid": "s-noname"}]},
    ]
}

SKINS = {
    "data": [
        {
            "uuid": "s-prime",
            "displayName": "Prime Vandal",
            "contentTierUuid": "60bca009-4182-7998-dee7-b8a2558dc369",
            "chromas": [
                {"uuid": "c0", "fullRender": None, "swatch": None},
                {"uuid": "c1", "fullRender": "https://img/prime.png", "swatch": None},
            ],
            "levels": [{"streamedVideo": "https://vid/prime.mp4"}, {"streamedVideo": None}],
        },
        {
            "uuid": "s-existing",
            "displayName": "Reaver Vandal",
            "contentTierUuid": None,
            "chromas": [{"uuid": "c2", "fullRender": "https://img/reaver.png", "swatch": None}],
            "levels": [],
        },
        # no fullRender anywhere
        {
            "uuid": "s-norender",
            "displayName": "Ghost Skin",
            "contentTierUuid": None,
            "chromas": [{"uuid": "c3", "fullRender": None, "swatch": None}],
            "levels": [],
        },
        # no chromas
        {"uuid": "s-nochromas", "displayName": "Empty", "contentTierUuid": None, "chromas": [], "levels": []},
        # no name
        {
            "uuid": "s-noname",
            "displayName": "",
            "contentTierUuid": None,
            "chromas": [{"uuid": "c4", "fullRender": "https://img/x.png"}],
            "levels": [],
        },
        # not listed under any weapon
        {
            "uuid": "s-orphan",
            "displayName": "Orphan",
            "contentTierUuid": None,
            "chromas": [{"uuid": "c5", "fullRender": "https://img/orphan.png"}],
            "levels": [],
        },
    ]
}


def make_client(weapons=WEAPONS, skins=SKINS, fail_path=None):
    def handler(request):
        if fail_path and request.url.path == fail_path:
            return httpx.Response(503, json={"error": "down"})
        if request.url.path == "/v1/weapons":
            return httpx.Response(200, json=weapons)
        if request.url.path == "/v1/weapons/skins":
            return httpx.Response(200, json=skins)
        return httpx.Response(404)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_sync_counts_and_upserts(db_session):
    db_session.add(Skin(id="s-existing", name="Old Name", weapon="Vandal", image_url="old.png"))
    await db_session.commit()

    async with make_client() as client:
        result = await sync_service.sync_catalog(db_session, client=client)

    assert result["success"] is True
    stats = result["stats"]
    assert stats["new"] == 1
    assert stats["updated"] == 1
    assert stats["skipped"] == 4
    assert stats["total"] == 2
    assert stats["duration"].endswith("ms")
    assert result["timestamp"]

    prime = await db_session.get(Skin, "s-prime")
    assert prime.name == "Prime Vandal"
    assert prime.weapon == "Vandal"
    assert prime.tier == "60bca009-4182-7998-dee7-b8a2558dc369"
    assert prime.image_url == "https://img/prime.png"
    assert prime.video_url == "https://vid/prime.mp4"
    assert prime.cost == 0
    assert len(prime.chromas) == 2

    existing = await db_session.get(Skin, "s-existing")
    assert existing.name == "Reaver Vandal"
    assert existing.tier == "Unknown"
    assert existing.image_url == "https://img/reaver.png"
    assert existing.video_url is None

    ids = set((await db_session.execute(select(Skin.id))).scalars().all())
    assert ids == {"s-prime", "s-existing"}


@pytest.mark.asyncio
async def test_second_sync_counts_updates(db_session):
    async with make_client() as client:
        await sync_service.sync_catalog(db_session, client=client)
        result = await sync_service.sync_catalog(db_session, client=client)

    assert result["stats"]["new"] == 0
    assert result["stats"]["updated"] == 2


@pytest.mark.asyncio
async def test_upstream_failure(db_session):
    async with make_client(fail_path="/v1/weapons/skins") as client:
        with pytest.raises(UpstreamFailure):
            await sync_service.sync_catalog(db_session, client=client)


@pytest.mark.asyncio
async def test_malformed_response(db_session):
    async with make_client(weapons={"unexpected": []}) as client:
        with pytest.raises(UpstreamFailure):
            await sync_service.sync_catalog(db_session, client=client)


@pytest.mark.asyncio
async def test_malformed_record_keeps_committed_rows(db_session):
    skins = {"data": [SKINS["data"][0], {"displayName": "No uuid", "chromas": [{"fullRender": "x"}]}]}
    async with make_client(skins=skins) as client:
        with pytest.raises(UpstreamFailure):
            await sync_service.sync_catalog(db_session, client=client)

    assert await db_session.get(Skin, "s-prime") is not None


def test_select_image_picks_first_render():
    chromas = [{"fullRender": None}, {"fullRender": "a.png"}, {"fullRender": "b.png"}]
    assert sync_service.select_image(chromas) == "a.png"
    assert sync_service.select_image([{"fullRender": None}]) is None


class TestCronAuthorization:
    def test_missing_secret_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            sync_service.check_cron_authorization("Bearer anything", None)

    def test_wrong_secret(self):
        with pytest.raises(InvalidCredentials):
            sync_service.check_cron_authorization("Bearer wrong", "right")
        with pytest.raises(InvalidCredentials):
            sync_service.check_cron_authorization(None, "right")

    def test_exact_match(self):
        sync_service.check_cron_authorization("Bearer right", "right")


@pytest.mark.asyncio
async def test_updates_invalidate_cached_catalog_views(db_session, monkeypatch):
    calls = []

    async def fake_invalidate():
        calls.append(True)
        return 0

    monkeypatch.setattr(sync_service.cache_service, "invalidate_catalog_views", fake_invalidate)

    async with make_client() as client:
        await sync_service.sync_catalog(db_session, client=client)
        assert calls == []

        await sync_service.sync_catalog(db_session, client=client)
        assert calls == [True]


@pytest.mark.asyncio
async def test_aborted_sync_still_invalidates_committed_updates(db_session, monkeypatch):
    calls = []

    async def fake_invalidate():
        calls.append(True)
        return 0

    monkeypatch.setattr(sync_service.cache_service, "invalidate_catalog_views", fake_invalidate)
    db_session.add(Skin(id="s-prime", name="Old", weapon="Vandal", image_url="old.png"))
    await db_session.commit()

    skins = {"data": [SKINS["data"][0], {"displayName": "No uuid", "chromas": [{"fullRender": "x"}]}]}
    async with make_client(skins=skins) as client:
        with pytest.raises(UpstreamFailure):
            await sync_service.sync_catalog(db_session, client=client)

    assert calls == [True]
