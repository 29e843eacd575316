"""Favorites and profile collaborators used by the match service."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol

from redis.exceptions import WatchError

from mio.domain.matching import index as prefidx
from mio.domain.matching.exceptions import RemoteUnavailable
from mio.domain.matching.models import (
	FAVORITE_REMOVAL_COOLDOWN_MINUTES,
	MAX_FAVORITES,
	MAX_WEEKLY_REMOVALS,
	CompatibilityProfile,
	utcnow,
)
from mio.domain.matching.outcomes import FavoriteLimited, FavoriteOk, FavoriteOnCooldown, FavoriteOutcome
from mio.infra.redis import redis_client

logger = logging.getLogger(__name__)

_CAS_ATTEMPTS = 3


class FavoritesProvider(Protocol):
	async def get_favorite_item_ids(self, user_id: str) -> List[str]:
		...


class ProfileProvider(Protocol):
	async def get_compatibility_profile(self, user_id: str) -> Optional[CompatibilityProfile]:
		...


def favorites_key(user_id: str) -> str:
	return f"favorites:{user_id}"


def removals_key(user_id: str) -> str:
	return f"favorites:removals:{user_id}"


def profile_key(user_id: str) -> str:
	return f"profile:{user_id}"


class RedisProfileProvider:
	def __init__(self, client=None) -> None:
		self._redis = client if client is not None else redis_client

	async def get_compatibility_profile(self, user_id: str) -> Optional[CompatibilityProfile]:
		raw = await self._redis.hgetall(profile_key(user_id))
		if not raw:
			return None
		return CompatibilityProfile.from_mapping(user_id, raw)

	async def save_profile(self, profile: CompatibilityProfile) -> None:
		key = profile_key(profile.user_id)
		mapping = profile.to_mapping()
		async with self._redis.pipeline(transaction=True) as pipe:
			pipe.delete(key)
			if mapping:
				pipe.hset(key, mapping=mapping)
			await pipe.execute()


class RedisFavoritesProvider:
	"""Owns `favorites:{user}` and keeps the preference index in step with it.

	Removals are metered: every MAX_WEEKLY_REMOVALS-th removal resets the counter
	and opens a short cooldown during which further removals are refused.
	"""

	def __init__(self, client=None) -> None:
		self._redis = client if client is not None else redis_client

	async def get_favorite_item_ids(self, user_id: str) -> List[str]:
		return sorted(await self._redis.smembers(favorites_key(user_id)))

	async def remaining_removals(self, user_id: str) -> int:
		count = await self._redis.hget(removals_key(user_id), "count")
		return MAX_WEEKLY_REMOVALS - int(count or 0)

	async def add_favorite(self, user_id: str, item_id: str, *, now: Optional[datetime] = None) -> FavoriteOutcome:
		now = now or utcnow()
		key = favorites_key(user_id)
		for _ in range(_CAS_ATTEMPTS):
			async with self._redis.pipeline(transaction=True) as pipe:
				try:
					await pipe.watch(key)
					current = set(await pipe.smembers(key))
					if item_id not in current and len(current) >= MAX_FAVORITES:
						await pipe.unwatch()
						return FavoriteLimited(limit=MAX_FAVORITES)
					pipe.multi()
					pipe.sadd(key, item_id)
					pipe.hset(prefidx.entry_key(item_id), user_id, str(now.timestamp()))
					pipe.sadd(prefidx.ITEMS_KEY, item_id)
					await pipe.execute()
				except WatchError:
					continue
			return FavoriteOk(
				item_ids=tuple(sorted(current | {item_id})),
				remaining_removals=await self.remaining_removals(user_id),
			)
		raise RemoteUnavailable("favorites_contention")

	async def remove_favorite(self, user_id: str, item_id: str, *, now: Optional[datetime] = None) -> FavoriteOutcome:
		now = now or utcnow()
		key = favorites_key(user_id)
		meter_key = removals_key(user_id)
		for _ in range(_CAS_ATTEMPTS):
			async with self._redis.pipeline(transaction=True) as pipe:
				try:
					await pipe.watch(key, meter_key)
					meter = await pipe.hgetall(meter_key)
					cooldown_end = meter.get("cooldown_end")
					if cooldown_end:
						end = datetime.fromtimestamp(float(cooldown_end), tz=timezone.utc)
						if end > now:
							await pipe.unwatch()
							return FavoriteOnCooldown(remaining_seconds=math.ceil((end - now).total_seconds()))
					current = set(await pipe.smembers(key))
					count = int(meter.get("count") or 0)
					if item_id not in current:
						await pipe.unwatch()
						return FavoriteOk(item_ids=tuple(sorted(current)), remaining_removals=MAX_WEEKLY_REMOVALS - count)
					count += 1
					meter_update = {"count": str(count), "cooldown_end": ""}
					if count >= MAX_WEEKLY_REMOVALS:
						end = now + timedelta(minutes=FAVORITE_REMOVAL_COOLDOWN_MINUTES)
						meter_update = {"count": "0", "cooldown_end": str(end.timestamp())}
						count = 0
					pipe.multi()
					pipe.srem(key, item_id)
					pipe.hdel(prefidx.entry_key(item_id), user_id)
					pipe.hset(meter_key, mapping=meter_update)
					await pipe.execute()
				except WatchError:
					continue
			if count == 0:
				logger.info("favorite removal cooldown started", extra={"user_id": user_id})
			return FavoriteOk(
				item_ids=tuple(sorted(current - {item_id})),
				remaining_removals=MAX_WEEKLY_REMOVALS - count,
			)
		raise RemoteUnavailable("favorites_contention")
