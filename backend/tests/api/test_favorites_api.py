import pytest

from mio.domain.matching.models import MAX_FAVORITES, MAX_WEEKLY_REMOVALS


def _headers(user_id):
    return {"X-User-Id": user_id}


@pytest.mark.asyncio
async def test_add_list_and_remove(api_client):
    added = await api_client.put("/favorites/show-1", headers=_headers("u"))
    assert added.status_code == 200
    assert added.json()["item_ids"] == ["show-1"]

    listing = await api_client.get("/favorites", headers=_headers("u"))
    assert listing.json() == {"item_ids": ["show-1"], "remaining_removals": MAX_WEEKLY_REMOVALS}

    removed = await api_client.delete("/favorites/show-1", headers=_headers("u"))
    assert removed.json() == {"item_ids": [], "remaining_removals": MAX_WEEKLY_REMOVALS - 1}


@pytest.mark.asyncio
async def test_limit_maps_to_conflict(api_client):
    for n in range(MAX_FAVORITES):
        await api_client.put(f"/favorites/show-{n}", headers=_headers("u"))

    resp = await api_client.put("/favorites/overflow", headers=_headers("u"))

    assert resp.status_code == 409
    assert resp.json()["detail"] == "favorites_limit"


@pytest.mark.asyncio
async def test_removal_cooldown_maps_to_429(api_client):
    for n in range(MAX_WEEKLY_REMOVALS + 1):
        await api_client.put(f"/favorites/show-{n}", headers=_headers("u"))
    for n in range(MAX_WEEKLY_REMOVALS):
        await api_client.delete(f"/favorites/show-{n}", headers=_headers("u"))

    resp = await api_client.delete(f"/favorites/show-{MAX_WEEKLY_REMOVALS}", headers=_headers("u"))

    assert resp.status_code == 429
    assert resp.json()["detail"] == "removal_cooldown"
    assert int(resp.headers["Retry-After"]) > 0
