"""Escalating search cooldowns.

State lives in `cooldown:{user_id}` as a hash with `search_count`, `last_search`
and `cooldown_end` (epoch seconds). Admission is a WATCH/MULTI check-and-set so
two devices of the same user cannot both start a search inside one window.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Sequence

from redis.exceptions import WatchError

from mio.domain.matching.models import (
	COOLDOWN_TIERS_SECONDS,
	SEARCH_COUNT_RESET_HOURS,
	CooldownState,
	utcnow,
)
from mio.infra.redis import redis_client

logger = logging.getLogger(__name__)


def cooldown_key(user_id: str) -> str:
	return f"cooldown:{user_id}"


def duration_for(search_count: int, tiers: Sequence[int] = COOLDOWN_TIERS_SECONDS) -> timedelta:
	"""Cooldown applied after the `search_count`-th search; the last tier repeats."""

	if search_count <= 0:
		return timedelta(0)
	index = min(search_count, len(tiers)) - 1
	return timedelta(seconds=tiers[index])


def format_remaining(seconds: float) -> str:
	"""Render a countdown as MM:SS, rounding partial seconds up."""

	total = max(0, math.ceil(seconds))
	minutes, secs = divmod(total, 60)
	return f"{minutes:02d}:{secs:02d}"


def _from_epoch(value: Optional[str]) -> Optional[datetime]:
	if value in (None, ""):
		return None
	return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _parse_state(raw: Mapping[str, str]) -> CooldownState:
	return CooldownState(
		search_count=int(raw.get("search_count") or 0),
		last_search=_from_epoch(raw.get("last_search")),
		cooldown_end=_from_epoch(raw.get("cooldown_end")),
	)


class SearchCooldownGovernor:
	def __init__(
		self,
		client=None,
		*,
		tiers: Sequence[int] = COOLDOWN_TIERS_SECONDS,
		reset_after: timedelta = timedelta(hours=SEARCH_COUNT_RESET_HOURS),
	) -> None:
		self._redis = client if client is not None else redis_client
		self._tiers = tuple(tiers)
		self._reset_after = reset_after

	async def load(self, user_id: str) -> CooldownState:
		return _parse_state(await self._redis.hgetall(cooldown_key(user_id)))

	async def can_search(self, user_id: str, *, now: Optional[datetime] = None) -> bool:
		state = await self.load(user_id)
		return not state.is_cooling(now or utcnow())

	async def remaining_seconds(self, user_id: str, *, now: Optional[datetime] = None) -> int:
		state = await self.load(user_id)
		return state.remaining_seconds(now or utcnow())

	def effective_count(self, state: CooldownState, now: datetime) -> int:
		if state.last_search is not None and now - state.last_search >= self._reset_after:
			return 0
		return state.search_count

	async def admit(self, user_id: str, *, now: Optional[datetime] = None) -> Optional[CooldownState]:
		"""Record a search start; returns the new state or None when not admitted."""

		now = now or utcnow()
		key = cooldown_key(user_id)
		async with self._redis.pipeline(transaction=True) as pipe:
			try:
				await pipe.watch(key)
				state = _parse_state(await pipe.hgetall(key))
				if state.is_cooling(now):
					await pipe.unwatch()
					return None
				count = self.effective_count(state, now) + 1
				updated = CooldownState(
					search_count=count,
					last_search=now,
					cooldown_end=now + duration_for(count, self._tiers),
				)
				pipe.multi()
				pipe.hset(
					key,
					mapping={
						"search_count": str(updated.search_count),
						"last_search": str(now.timestamp()),
						"cooldown_end": str(updated.cooldown_end.timestamp()),
					},
				)
				await pipe.execute()
			except WatchError:
				logger.info("search admission lost race", extra={"user_id": user_id})
				return None
		return updated

	async def reset(self, user_id: str) -> None:
		await self._redis.delete(cooldown_key(user_id))
