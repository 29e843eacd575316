import pytest

from mio.infra import jwt as jwt_helper


def _headers(user_id):
    return {"X-User-Id": user_id}


@pytest.mark.asyncio
async def test_search_requires_authentication(api_client):
    resp = await api_client.post("/matches/search")
    assert resp.status_code == 401
    body = resp.json()
    assert body["detail"] == "invalid_token"
    assert body["request_id"]


@pytest.mark.asyncio
async def test_bearer_token_is_accepted(api_client, make_user):
    await make_user("u", ["A", "B", "C"])
    token = jwt_helper.encode_access({"sub": "u"})

    resp = await api_client.get("/matches", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 200
    assert resp.json() == {"matches": []}


@pytest.mark.asyncio
async def test_search_then_cooldown(api_client, make_user):
    await make_user("u", ["A", "B", "C", "D"])
    await make_user("v", ["A", "B", "C", "E"])

    first = await api_client.post("/matches/search", headers=_headers("u"))
    assert first.status_code == 200
    body = first.json()
    assert body["status"] == "ok"
    assert body["new_match_count"] == 1
    card = body["new_matches"][0]
    assert card["user_id"] == "v"
    assert card["match_level"] == "match"
    assert card["common_show_ids"] == ["A", "B", "C"]
    assert card["is_new"] is True
    assert body["cooldown_end"]

    second = await api_client.post("/matches/search", headers=_headers("u"))
    assert second.status_code == 200
    assert second.json()["status"] == "cooldown"
    assert second.json()["remaining_time"].startswith("0")
    assert int(second.headers["Retry-After"]) > 0

    status_resp = await api_client.get("/matches/cooldown", headers=_headers("u"))
    status_body = status_resp.json()
    assert status_body["can_search"] is False
    assert status_body["search_count"] == 1

    other_side = await api_client.get("/matches", headers=_headers("v"))
    assert [match["user_id"] for match in other_side.json()["matches"]] == ["u"]


@pytest.mark.asyncio
async def test_search_without_favorites_is_rejected(api_client, make_user):
    await make_user("u", [])

    resp = await api_client.post("/matches/search", headers=_headers("u"))

    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    assert resp.json()["reason"] == "no_favorites"


@pytest.mark.asyncio
async def test_unmatch_block_and_unblock(api_client, make_user):
    await make_user("u", ["A", "B", "C"])
    await make_user("v", ["A", "B", "C"])
    await api_client.post("/matches/search", headers=_headers("u"))

    chatting = await api_client.post("/matches/v/chatting", headers=_headers("u"))
    assert chatting.json()["changed"] is True

    unmatched = await api_client.delete("/matches/v", headers=_headers("u"))
    assert unmatched.status_code == 200
    assert unmatched.json() == {"status": "ok", "changed": True, "warnings": []}

    repeat = await api_client.delete("/matches/v", headers=_headers("u"))
    assert repeat.json()["changed"] is False

    blocked = await api_client.post("/matches/v/block", headers=_headers("u"))
    assert blocked.status_code == 200
    listing = await api_client.get("/matches/blocked", headers=_headers("u"))
    assert listing.json() == {"user_ids": ["v"]}

    unblocked = await api_client.post("/matches/v/unblock", headers=_headers("u"))
    assert unblocked.json()["changed"] is True
    listing = await api_client.get("/matches/blocked", headers=_headers("u"))
    assert listing.json() == {"user_ids": []}


@pytest.mark.asyncio
async def test_self_block_is_conflict(api_client):
    resp = await api_client.post("/matches/u/block", headers=_headers("u"))
    assert resp.status_code == 409
    assert resp.json()["detail"] == "self_action"
