from datetime import datetime, timedelta, timezone

import pytest

from mio.domain.matching.index import PreferenceIndex
from mio.domain.matching.models import MAX_FAVORITES, MAX_WEEKLY_REMOVALS
from mio.domain.matching.outcomes import FavoriteLimited, FavoriteOk, FavoriteOnCooldown
from mio.domain.matching.providers import RedisFavoritesProvider

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_add_favorite_updates_index():
    provider = RedisFavoritesProvider()

    outcome = await provider.add_favorite("u", "show-1")

    assert isinstance(outcome, FavoriteOk)
    assert outcome.item_ids == ("show-1",)
    assert "u" in await PreferenceIndex().lookup_favoriters("show-1")


@pytest.mark.asyncio
async def test_add_beyond_limit_is_refused():
    provider = RedisFavoritesProvider()
    for n in range(MAX_FAVORITES):
        assert isinstance(await provider.add_favorite("u", f"show-{n}"), FavoriteOk)

    outcome = await provider.add_favorite("u", "one-more")
    repeat = await provider.add_favorite("u", "show-0")

    assert outcome == FavoriteLimited(limit=MAX_FAVORITES)
    assert isinstance(repeat, FavoriteOk)
    assert len(await provider.get_favorite_item_ids("u")) == MAX_FAVORITES


@pytest.mark.asyncio
async def test_remove_favorite_updates_index_and_meter():
    provider = RedisFavoritesProvider()
    await provider.add_favorite("u", "show-1")

    outcome = await provider.remove_favorite("u", "show-1", now=T0)

    assert isinstance(outcome, FavoriteOk)
    assert outcome.item_ids == ()
    assert outcome.remaining_removals == MAX_WEEKLY_REMOVALS - 1
    assert await PreferenceIndex().lookup_favoriters("show-1") == set()


@pytest.mark.asyncio
async def test_removing_absent_item_is_not_metered():
    provider = RedisFavoritesProvider()

    outcome = await provider.remove_favorite("u", "never-added", now=T0)

    assert isinstance(outcome, FavoriteOk)
    assert outcome.remaining_removals == MAX_WEEKLY_REMOVALS


@pytest.mark.asyncio
async def test_removal_quota_opens_cooldown():
    provider = RedisFavoritesProvider()
    for n in range(MAX_WEEKLY_REMOVALS + 1):
        await provider.add_favorite("u", f"show-{n}")
    for n in range(MAX_WEEKLY_REMOVALS):
        assert isinstance(await provider.remove_favorite("u", f"show-{n}", now=T0), FavoriteOk)

    blocked = await provider.remove_favorite("u", f"show-{MAX_WEEKLY_REMOVALS}", now=T0 + timedelta(minutes=1))
    later = await provider.remove_favorite("u", f"show-{MAX_WEEKLY_REMOVALS}", now=T0 + timedelta(minutes=6))

    assert blocked == FavoriteOnCooldown(remaining_seconds=240)
    assert isinstance(later, FavoriteOk)
    assert later.remaining_removals == MAX_WEEKLY_REMOVALS - 1
