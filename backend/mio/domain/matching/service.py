"""Match service orchestrating searches and pair operations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set

from redis.exceptions import RedisError

from mio.domain.chat.gateway import ConversationGateway, RedisConversationGateway
from mio.domain.matching import audit, policy
from mio.domain.matching.cooldown import SearchCooldownGovernor
from mio.domain.matching.exceptions import NoFavorites, ProfileIncomplete
from mio.domain.matching.index import PreferenceIndex
from mio.domain.matching.models import CooldownState, MatchRecord, utcnow
from mio.domain.matching.outcomes import (
	SearchCompleted,
	SearchFailed,
	SearchOnCooldown,
	SearchOutcome,
	SearchRejected,
)
from mio.domain.matching.providers import (
	FavoritesProvider,
	ProfileProvider,
	RedisFavoritesProvider,
	RedisProfileProvider,
)
from mio.domain.matching.repository import MatchRepository
from mio.domain.matching.resolver import MatchResolver, merge_matches
from mio.settings import settings

logger = logging.getLogger(__name__)

NO_FAVORITES_MESSAGE = "Add some favorite shows first to find matches!"
PROFILE_INCOMPLETE_MESSAGE = "Please complete your profile before searching for matches."
SEARCH_IN_PROGRESS_MESSAGE = "A search is already running."
NO_MATCHES_MESSAGE = "No matches found. Try adding more shows to your favorites!"
SEARCH_FAILED_MESSAGE = "An error occurred while finding matches."
REMOTE_UNAVAILABLE_MESSAGE = "Search failed. Please try again."

_REJECTION_MESSAGES = {
	NoFavorites.reason: NO_FAVORITES_MESSAGE,
	ProfileIncomplete.reason: PROFILE_INCOMPLETE_MESSAGE,
}


@dataclass(slots=True)
class PairActionResult:
	changed: bool
	warnings: List[str] = field(default_factory=list)


class MatchService:
	"""Owns the search flow: cooldown admission, index refresh, resolution, merge."""

	def __init__(
		self,
		*,
		repository: Optional[MatchRepository] = None,
		index: Optional[PreferenceIndex] = None,
		governor: Optional[SearchCooldownGovernor] = None,
		profiles: Optional[ProfileProvider] = None,
		favorites: Optional[FavoritesProvider] = None,
		conversations: Optional[ConversationGateway] = None,
		fanout_concurrency: Optional[int] = None,
	) -> None:
		self.repository = repository or MatchRepository()
		self.index = index or PreferenceIndex()
		self.governor = governor or SearchCooldownGovernor()
		self.profiles = profiles or RedisProfileProvider()
		self.favorites = favorites or RedisFavoritesProvider()
		self.conversations = conversations or RedisConversationGateway()
		self.resolver = MatchResolver(
			index=self.index,
			repository=self.repository,
			profiles=self.profiles,
			favorites=self.favorites,
			concurrency=fanout_concurrency or settings.match_fanout_concurrency,
		)
		self._searching: Set[str] = set()

	async def search_matches(self, user_id: str, *, now: Optional[datetime] = None) -> SearchOutcome:
		"""Run one search for `user_id`. Never raises; failures come back as SearchFailed."""

		if user_id in self._searching:
			audit.inc_search("in_progress")
			return SearchRejected(reason="search_in_progress", message=SEARCH_IN_PROGRESS_MESSAGE)
		self._searching.add(user_id)
		try:
			return await self._search(user_id, now or utcnow())
		except (NoFavorites, ProfileIncomplete) as exc:
			audit.inc_search(exc.reason)
			return SearchRejected(reason=exc.reason, message=_REJECTION_MESSAGES[exc.reason])
		except RedisError:
			logger.warning("match search lost the store", extra={"user_id": user_id}, exc_info=True)
			audit.inc_search("remote_unavailable")
			return SearchFailed(reason="remote_unavailable", message=REMOTE_UNAVAILABLE_MESSAGE)
		except Exception:
			logger.exception("match search failed", extra={"user_id": user_id})
			audit.inc_search("error")
			return SearchFailed(reason="internal", message=SEARCH_FAILED_MESSAGE)
		finally:
			self._searching.discard(user_id)

	async def _search(self, user_id: str, now: datetime) -> SearchOutcome:
		state = await self.governor.load(user_id)
		if state.is_cooling(now):
			audit.inc_search("cooldown")
			return self._cooldown_outcome(state, now)

		favorites = await self.favorites.get_favorite_item_ids(user_id)
		if not favorites:
			raise NoFavorites()

		requester = await self.profiles.get_compatibility_profile(user_id)
		if requester is None or not requester.is_complete:
			raise ProfileIncomplete()

		admitted = await self.governor.admit(user_id, now=now)
		if admitted is None:
			audit.inc_search("cooldown")
			return self._cooldown_outcome(await self.governor.load(user_id), now)

		started = time.perf_counter()
		existing = await self.repository.list_matches(user_id)
		blocked = await self.repository.blocked_ids(user_id)
		resolution = await self.resolver.resolve(
			requester,
			favorites,
			existing_ids={record.user_id for record in existing},
			blocked_ids=blocked,
			now=now,
		)
		merged = merge_matches(existing, resolution.new_matches)
		audit.observe_search(time.perf_counter() - started, resolution.candidate_count)
		audit.inc_search("ok")
		await audit.log_match_event(
			"search",
			{
				"user_id": user_id,
				"new_matches": str(len(resolution.new_matches)),
				"candidates": str(resolution.candidate_count),
				"search_count": str(admitted.search_count),
			},
		)
		logger.info(
			"match search completed",
			extra={
				"user_id": user_id,
				"new_matches": len(resolution.new_matches),
				"candidates": resolution.candidate_count,
			},
		)
		return SearchCompleted(
			new_matches=tuple(resolution.new_matches),
			matches=tuple(merged),
			cooldown=admitted,
			warnings=tuple(resolution.warnings),
			message=NO_MATCHES_MESSAGE if not merged else None,
		)

	@staticmethod
	def _cooldown_outcome(state: CooldownState, now: datetime) -> SearchOutcome:
		if state.cooldown_end is None:
			# Lost an admission race against a search that has not persisted yet
			return SearchRejected(reason="search_in_progress", message=SEARCH_IN_PROGRESS_MESSAGE)
		return SearchOnCooldown(cooldown_end=state.cooldown_end, remaining_seconds=state.remaining_seconds(now))

	async def list_matches(self, user_id: str) -> List[MatchRecord]:
		return await self.repository.list_matches(user_id)

	async def cooldown_status(self, user_id: str) -> CooldownState:
		return await self.governor.load(user_id)

	async def unmatch_user(self, user_id: str, other_id: str) -> PairActionResult:
		policy.guard_not_self(user_id, other_id)
		removed = await self.repository.remove_match_pair(user_id, other_id)
		warnings = await self._drop_conversation(user_id, other_id)
		if removed:
			audit.inc_unmatch()
			await audit.log_match_event("unmatch", {"user_id": user_id, "other_id": other_id})
		return PairActionResult(changed=removed, warnings=warnings)

	async def block_user(self, user_id: str, target_id: str) -> PairActionResult:
		policy.guard_not_self(user_id, target_id)
		await policy.enforce_block_limits(user_id)
		removed = await self.repository.block_and_remove_pair(user_id, target_id)
		warnings = await self._drop_conversation(user_id, target_id)
		audit.inc_block("block")
		await audit.log_match_event(
			"block",
			{"user_id": user_id, "target_id": target_id, "unmatched": str(removed).lower()},
		)
		return PairActionResult(changed=True, warnings=warnings)

	async def unblock_user(self, user_id: str, target_id: str) -> PairActionResult:
		policy.guard_not_self(user_id, target_id)
		await policy.enforce_block_limits(user_id)
		removed = await self.repository.remove_block(user_id, target_id)
		if removed:
			audit.inc_block("unblock")
			await audit.log_match_event("unblock", {"user_id": user_id, "target_id": target_id})
		return PairActionResult(changed=removed)

	async def list_blocked(self, user_id: str) -> List[str]:
		return sorted(await self.repository.blocked_ids(user_id))

	async def mark_chatting(self, user_id: str, other_id: str) -> bool:
		policy.guard_not_self(user_id, other_id)
		changed = await self.repository.mark_chatting_pair(user_id, other_id)
		if changed:
			await audit.log_match_event("chatting", {"user_id": user_id, "other_id": other_id})
		return changed

	@staticmethod
	def is_new_match(record: MatchRecord, now: Optional[datetime] = None) -> bool:
		return record.is_new(now)

	async def _drop_conversation(self, user_id: str, other_id: str) -> List[str]:
		try:
			await self.conversations.delete_conversation_data(user_id, other_id)
		except Exception:
			# Pair removal already committed; report rather than roll back
			logger.warning(
				"conversation cleanup failed",
				extra={"user_id": user_id, "other_id": other_id},
				exc_info=True,
			)
			audit.inc_partial_write("conversation_cleanup")
			return ["conversation_cleanup_failed"]
		return []


_service: Optional[MatchService] = None


def get_match_service() -> MatchService:
	global _service
	if _service is None:
		_service = MatchService()
	return _service


def set_match_service(service: Optional[MatchService]) -> None:
	global _service
	_service = service
