"""Candidate discovery, compatibility filtering and pair persistence."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from mio.domain.matching import audit
from mio.domain.matching.exceptions import PartialWriteFailure
from mio.domain.matching.index import PreferenceIndex
from mio.domain.matching.models import (
	MATCH_THRESHOLD,
	SUPER_MATCH_THRESHOLD,
	CompatibilityProfile,
	GenderPreference,
	LocationPreference,
	MatchLevel,
	MatchRecord,
	utcnow,
)
from mio.domain.matching.providers import FavoritesProvider, ProfileProvider
from mio.domain.matching.repository import MatchRepository

logger = logging.getLogger(__name__)


def match_level_for(common_count: int) -> Optional[MatchLevel]:
	if common_count >= SUPER_MATCH_THRESHOLD:
		return MatchLevel.SUPER_MATCH
	if common_count >= MATCH_THRESHOLD:
		return MatchLevel.MATCH
	return None


def gender_accepts(preference: Optional[str], gender: Optional[str]) -> bool:
	pref = (preference or GenderPreference.EVERYONE.value).strip().lower()
	if pref == GenderPreference.EVERYONE.value:
		return True
	return bool(gender) and pref == gender.strip().lower()


def _wants_local(profile: CompatibilityProfile) -> bool:
	return (profile.match_location or "").strip().lower() == LocationPreference.LOCAL.value


def _same_location(a: Optional[str], b: Optional[str]) -> bool:
	if not a or not b:
		return False
	return a == b


def is_compatible(a: CompatibilityProfile, b: CompatibilityProfile) -> bool:
	"""Both gender preferences must accept; either side asking for local binds both."""

	if not gender_accepts(a.match_with, b.gender) or not gender_accepts(b.match_with, a.gender):
		return False
	if _wants_local(a) or _wants_local(b):
		return _same_location(a.location, b.location)
	return True


def common_items(mine: Sequence[str], theirs: Iterable[str]) -> List[str]:
	"""Intersection in the order of `mine`, without duplicates."""

	their_set = set(theirs)
	return [item for item in dict.fromkeys(mine) if item in their_set]


def build_match_pair(
	requester: CompatibilityProfile,
	candidate: CompatibilityProfile,
	common: Sequence[str],
	level: MatchLevel,
	now: datetime,
) -> Tuple[MatchRecord, MatchRecord]:
	"""Mirrored records: the first goes into the requester's list, the second into the candidate's."""

	shared = tuple(common)

	def _card(other: CompatibilityProfile) -> MatchRecord:
		return MatchRecord(
			user_id=other.user_id,
			display_name=other.display_name or "",
			match_level=level,
			common_show_ids=shared,
			match_timestamp=now,
			profile_pic=other.profile_pic or "",
			age=other.age,
			location=other.location or "",
			gender=other.gender or "",
		)

	return _card(candidate), _card(requester)


def merge_matches(existing: Iterable[MatchRecord], new: Iterable[MatchRecord]) -> List[MatchRecord]:
	merged: dict[str, MatchRecord] = {}
	for record in list(existing) + list(new):
		current = merged.get(record.user_id)
		if current is None or len(record.common_show_ids) > len(current.common_show_ids):
			merged[record.user_id] = record
	return sorted(merged.values(), key=lambda record: record.match_timestamp, reverse=True)


@dataclass(slots=True)
class ResolutionResult:
	new_matches: List[MatchRecord] = field(default_factory=list)
	warnings: List[str] = field(default_factory=list)
	candidate_count: int = 0


@dataclass(slots=True)
class _Candidate:
	profile: Optional[CompatibilityProfile]
	favorites: List[str]


class MatchResolver:
	def __init__(
		self,
		*,
		index: PreferenceIndex,
		repository: MatchRepository,
		profiles: ProfileProvider,
		favorites: FavoritesProvider,
		concurrency: int = 32,
	) -> None:
		self._index = index
		self._repository = repository
		self._profiles = profiles
		self._favorites = favorites
		self._concurrency = max(1, concurrency)

	async def gather_candidates(self, user_id: str, favorites: Sequence[str], *, now: datetime) -> Counter:
		"""Refresh the requester in the index and tally co-favoriters per item."""

		await self._index.upsert_many(favorites, user_id, now=now)
		lookups = await self._index.lookup_many(favorites)
		tally: Counter = Counter()
		for favoriters in lookups.values():
			tally.update(favoriters)
		return tally

	async def _load_candidate(self, semaphore: asyncio.Semaphore, candidate_id: str) -> _Candidate:
		async with semaphore:
			profile, favorites = await asyncio.gather(
				self._profiles.get_compatibility_profile(candidate_id),
				self._favorites.get_favorite_item_ids(candidate_id),
			)
		return _Candidate(profile=profile, favorites=list(favorites))

	async def resolve(
		self,
		requester: CompatibilityProfile,
		favorites: Sequence[str],
		*,
		existing_ids: Set[str],
		blocked_ids: Set[str],
		now: Optional[datetime] = None,
	) -> ResolutionResult:
		now = now or utcnow()
		user_id = requester.user_id
		result = ResolutionResult()

		tally = await self.gather_candidates(user_id, favorites, now=now)
		excluded = {user_id} | existing_ids | blocked_ids
		candidate_ids = [candidate for candidate, _ in tally.most_common() if candidate not in excluded]
		result.candidate_count = len(candidate_ids)
		if not candidate_ids:
			return result

		blocked_by = await self._repository.blocked_by_any(user_id, candidate_ids)
		semaphore = asyncio.Semaphore(self._concurrency)
		loaded = await asyncio.gather(*(self._load_candidate(semaphore, cid) for cid in candidate_ids))

		for candidate_id, candidate in zip(candidate_ids, loaded):
			profile = candidate.profile
			if profile is None or not profile.is_complete:
				continue
			if candidate_id in blocked_by:
				continue
			if not is_compatible(requester, profile):
				continue
			common = common_items(favorites, candidate.favorites)
			level = match_level_for(len(common))
			if level is None:
				continue
			for_requester, for_candidate = build_match_pair(requester, profile, common, level, now)
			try:
				written = await self._repository.add_match_pair(user_id, for_requester, candidate_id, for_candidate)
			except PartialWriteFailure:
				logger.warning(
					"match pair write failed",
					extra={"user_id": user_id, "other_id": candidate_id},
					exc_info=True,
				)
				audit.inc_partial_write("match_pair")
				result.warnings.append(f"match_write_failed:{candidate_id}")
				continue
			if written.existed_for_b:
				logger.info(
					"kept existing match half",
					extra={"user_id": candidate_id, "other_id": user_id},
				)
				result.warnings.append(f"match_already_present:{candidate_id}")
			else:
				audit.inc_match_created(level.value)
			result.new_matches.append(written.record_for_a)
		return result
