from datetime import datetime, timedelta, timezone

import pytest

from mio.domain.chat.models import ConversationKey
from mio.domain.matching.exceptions import BlockLimitExceeded, SelfActionError
from mio.domain.matching.models import BLOCK_PER_MINUTE
from mio.domain.matching.outcomes import SearchCompleted, SearchFailed, SearchOnCooldown, SearchRejected
from mio.domain.matching.service import MatchService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class _BrokenConversations:
    async def delete_conversation_data(self, user_id, other_user_id):
        raise RuntimeError("chat store offline")


async def _matched_pair(make_user, service=None):
    await make_user("u", ["A", "B", "C"])
    await make_user("v", ["A", "B", "C"])
    service = service or MatchService()
    outcome = await service.search_matches("u", now=NOW)
    assert isinstance(outcome, SearchCompleted) and outcome.new_match_count == 1
    return service


@pytest.mark.asyncio
async def test_search_during_cooldown_changes_nothing(make_user):
    service = await _matched_pair(make_user)
    await make_user("w", ["A", "B", "C"])
    before = await service.list_matches("u")

    outcome = await service.search_matches("u", now=NOW + timedelta(seconds=10))

    assert isinstance(outcome, SearchOnCooldown)
    assert outcome.remaining_seconds == 50
    assert outcome.cooldown_end == NOW + timedelta(seconds=60)
    assert await service.list_matches("u") == before
    assert (await service.cooldown_status("u")).search_count == 1


@pytest.mark.asyncio
async def test_search_without_favorites_is_rejected(make_user):
    await make_user("u", [])
    service = MatchService()

    outcome = await service.search_matches("u", now=NOW)

    assert isinstance(outcome, SearchRejected)
    assert outcome.reason == "no_favorites"
    assert await service.governor.can_search("u", now=NOW)


@pytest.mark.asyncio
async def test_incomplete_requester_does_not_consume_cooldown(make_user, fake_redis):
    await make_user("u", ["A", "B", "C"])
    await fake_redis.hdel("profile:u", "display_name")
    service = MatchService()

    outcome = await service.search_matches("u", now=NOW)

    assert isinstance(outcome, SearchRejected)
    assert outcome.reason == "profile_incomplete"
    assert (await service.cooldown_status("u")).search_count == 0


@pytest.mark.asyncio
async def test_search_with_no_candidates_returns_hint(make_user):
    await make_user("u", ["A", "B", "C"])

    outcome = await MatchService().search_matches("u", now=NOW)

    assert isinstance(outcome, SearchCompleted)
    assert outcome.new_match_count == 0
    assert outcome.message and "No matches found" in outcome.message


@pytest.mark.asyncio
async def test_search_in_progress_is_rejected(make_user):
    await make_user("u", ["A", "B", "C"])
    service = MatchService()
    service._searching.add("u")

    outcome = await service.search_matches("u", now=NOW)

    assert isinstance(outcome, SearchRejected)
    assert outcome.reason == "search_in_progress"


@pytest.mark.asyncio
async def test_unexpected_error_becomes_failed_outcome(make_user, monkeypatch):
    await make_user("u", ["A", "B", "C"])
    service = MatchService()

    async def explode(*args, **kwargs):
        raise RuntimeError("resolver bug")

    monkeypatch.setattr(service.resolver, "resolve", explode)

    outcome = await service.search_matches("u", now=NOW)

    assert isinstance(outcome, SearchFailed)
    assert outcome.message == "An error occurred while finding matches."
    assert "u" not in service._searching


@pytest.mark.asyncio
async def test_unmatch_is_idempotent(make_user):
    service = await _matched_pair(make_user)

    first = await service.unmatch_user("u", "v")
    second = await service.unmatch_user("u", "v")

    assert first.changed is True
    assert second.changed is False
    assert second.warnings == []
    assert await service.list_matches("u") == []
    assert await service.list_matches("v") == []


@pytest.mark.asyncio
async def test_unmatch_drops_conversation(make_user, fake_redis):
    service = await _matched_pair(make_user)
    conversation = ConversationKey.from_participants("v", "u")
    await fake_redis.hset(conversation.conversation_id, mapping={"opened_by": "u"})
    await fake_redis.rpush(conversation.messages_key, "hi")

    result = await service.unmatch_user("u", "v")

    assert result.warnings == []
    assert await fake_redis.exists(conversation.conversation_id, conversation.messages_key) == 0


@pytest.mark.asyncio
async def test_conversation_failure_is_a_warning_not_a_rollback(make_user):
    service = MatchService(conversations=_BrokenConversations())
    await _matched_pair(make_user, service)

    result = await service.unmatch_user("u", "v")

    assert result.changed is True
    assert result.warnings == ["conversation_cleanup_failed"]
    assert await service.list_matches("v") == []


@pytest.mark.asyncio
async def test_block_removes_pair_and_prevents_rematch(make_user):
    service = await _matched_pair(make_user)

    result = await service.block_user("u", "v")
    again = await service.search_matches("u", now=NOW + timedelta(minutes=5))

    assert result.changed is True
    assert await service.list_blocked("u") == ["v"]
    assert await service.list_matches("v") == []
    assert isinstance(again, SearchCompleted)
    assert again.new_match_count == 0


@pytest.mark.asyncio
async def test_block_is_enforced_from_the_blocked_side(make_user):
    service = await _matched_pair(make_user)
    await service.block_user("u", "v")

    outcome = await service.search_matches("v", now=NOW)

    assert isinstance(outcome, SearchCompleted)
    assert outcome.new_match_count == 0


@pytest.mark.asyncio
async def test_unblock_does_not_restore_match(make_user):
    service = await _matched_pair(make_user)
    await service.block_user("u", "v")

    result = await service.unblock_user("u", "v")

    assert result.changed is True
    assert await service.list_blocked("u") == []
    assert await service.list_matches("u") == []


@pytest.mark.asyncio
async def test_self_actions_are_rejected():
    service = MatchService()
    with pytest.raises(SelfActionError):
        await service.block_user("u", "u")
    with pytest.raises(SelfActionError):
        await service.unmatch_user("u", "u")


@pytest.mark.asyncio
async def test_block_rate_limit():
    service = MatchService()
    for n in range(BLOCK_PER_MINUTE):
        await service.block_user("u", f"target-{n}")
    with pytest.raises(BlockLimitExceeded):
        await service.block_user("u", "one-too-many")


@pytest.mark.asyncio
async def test_mark_chatting_flips_both_records_once(make_user):
    service = await _matched_pair(make_user)

    assert await service.mark_chatting("v", "u") is True
    assert await service.mark_chatting("u", "v") is False

    mine = await service.repository.get_match("u", "v")
    theirs = await service.repository.get_match("v", "u")
    assert mine.chatting_with is True
    assert theirs.chatting_with is True


@pytest.mark.asyncio
async def test_mark_chatting_without_match_is_noop():
    assert await MatchService().mark_chatting("u", "stranger") is False


@pytest.mark.asyncio
async def test_new_match_badge_expires_after_a_day(make_user):
    service = await _matched_pair(make_user)
    record = (await service.list_matches("u"))[0]

    assert service.is_new_match(record, NOW + timedelta(hours=23))
    assert not service.is_new_match(record, NOW + timedelta(hours=24))


@pytest.mark.asyncio
async def test_search_appends_audit_event(make_user, fake_redis):
    await _matched_pair(make_user)

    entries = await fake_redis.xrange("x:matches.events")

    assert entries
    _, fields = entries[-1]
    assert fields["event"] == "search"
    assert fields["new_matches"] == "1"
