"""Reverse index from content item to the users who favorited it.

Layout::

	prefidx:items          set of item ids that have ever been indexed
	prefidx:item:{item}    hash user_id -> epoch seconds of last confirmation

Writes are idempotent: re-upserting refreshes the timestamp, removing an absent
user is a no-op.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Set

from mio.domain.matching.models import PreferenceIndexEntry, utcnow
from mio.infra.redis import redis_client

ITEMS_KEY = "prefidx:items"


def entry_key(item_id: str) -> str:
	return f"prefidx:item:{item_id}"


class PreferenceIndex:
	def __init__(self, client=None) -> None:
		self._redis = client if client is not None else redis_client

	async def upsert_favoriter(self, item_id: str, user_id: str, *, now: Optional[datetime] = None) -> None:
		stamp = (now or utcnow()).timestamp()
		async with self._redis.pipeline(transaction=True) as pipe:
			pipe.hset(entry_key(item_id), str(user_id), str(stamp))
			pipe.sadd(ITEMS_KEY, item_id)
			await pipe.execute()

	async def upsert_many(self, item_ids: Iterable[str], user_id: str, *, now: Optional[datetime] = None) -> None:
		"""Refresh the user's entry under every item in one round trip."""

		items = list(dict.fromkeys(item_ids))
		if not items:
			return
		stamp = str((now or utcnow()).timestamp())
		async with self._redis.pipeline(transaction=True) as pipe:
			for item_id in items:
				pipe.hset(entry_key(item_id), str(user_id), stamp)
			pipe.sadd(ITEMS_KEY, *items)
			await pipe.execute()

	async def remove_favoriter(self, item_id: str, user_id: str) -> None:
		await self._redis.hdel(entry_key(item_id), str(user_id))

	async def lookup_favoriters(self, item_id: str) -> Set[str]:
		return set(await self._redis.hkeys(entry_key(item_id)))

	async def lookup_many(self, item_ids: Iterable[str]) -> Dict[str, Set[str]]:
		items = list(dict.fromkeys(item_ids))
		results = await asyncio.gather(*(self.lookup_favoriters(item_id) for item_id in items))
		return dict(zip(items, results))

	async def favoriter_timestamps(self, item_id: str) -> PreferenceIndexEntry:
		raw = await self._redis.hgetall(entry_key(item_id))
		favoriters = {
			user_id: datetime.fromtimestamp(float(stamp), tz=timezone.utc)
			for user_id, stamp in raw.items()
		}
		return PreferenceIndexEntry(item_id=item_id, favoriters=favoriters)

	async def known_items(self) -> Set[str]:
		return set(await self._redis.smembers(ITEMS_KEY))
