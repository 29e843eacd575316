"""Redis-backed storage for match records and block lists.

Key families:

	matches:{user_id}   hash other_id -> JSON match document (see documents.py)
	blocks:{user_id}    set of user ids this user has blocked

Both halves of a pair are written inside one MULTI/EXEC so a reader never sees
a one-sided match. Pair writes are append-only: a half that is already stored
is merged, never replaced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Set

from pydantic import ValidationError
from redis.exceptions import RedisError, WatchError

from mio.domain.matching.documents import decode_match, encode_match
from mio.domain.matching.exceptions import DocumentVersionError, PartialWriteFailure, RemoteUnavailable
from mio.domain.matching.models import MatchRecord
from mio.infra.redis import redis_client

logger = logging.getLogger(__name__)

_CAS_ATTEMPTS = 3


def matches_key(user_id: str) -> str:
	return f"matches:{user_id}"


def blocks_key(user_id: str) -> str:
	return f"blocks:{user_id}"


def _decode(owner_id: str, other_id: str, payload: Optional[str]) -> Optional[MatchRecord]:
	if payload is None:
		return None
	try:
		return decode_match(payload)
	except (DocumentVersionError, ValidationError, ValueError):
		logger.warning(
			"skipping unreadable match document",
			extra={"owner_id": owner_id, "other_id": other_id},
			exc_info=True,
		)
		return None


def merge_half(existing: Optional[MatchRecord], fresh: MatchRecord) -> MatchRecord:
	if existing is None:
		return fresh
	if len(fresh.common_show_ids) <= len(existing.common_show_ids):
		return existing
	return replace(
		fresh,
		match_timestamp=existing.match_timestamp,
		chatting_with=existing.chatting_with or fresh.chatting_with,
	)


@dataclass(frozen=True, slots=True)
class PairWrite:
	"""What ended up stored for each side, and whether that side already had a half."""

	record_for_a: MatchRecord
	record_for_b: MatchRecord
	existed_for_a: bool = False
	existed_for_b: bool = False


class MatchRepository:
	def __init__(self, client=None) -> None:
		self._redis = client if client is not None else redis_client

	async def list_matches(self, user_id: str) -> List[MatchRecord]:
		raw = await self._redis.hgetall(matches_key(user_id))
		records = [
			record
			for other_id, payload in raw.items()
			if (record := _decode(user_id, other_id, payload)) is not None
		]
		records.sort(key=lambda record: record.match_timestamp, reverse=True)
		return records

	async def get_match(self, user_id: str, other_id: str) -> Optional[MatchRecord]:
		payload = await self._redis.hget(matches_key(user_id), other_id)
		return _decode(user_id, other_id, payload)

	async def add_match_pair(
		self,
		user_a: str,
		record_for_a: MatchRecord,
		user_b: str,
		record_for_b: MatchRecord,
	) -> PairWrite:
		"""Write both halves of a pair, merging into any half that already exists.

		An existing readable half keeps its timestamp and a set `chatting_with`;
		it only takes the fresh overlap when that overlap is larger.
		"""

		key_a = matches_key(user_a)
		key_b = matches_key(user_b)
		try:
			for _ in range(_CAS_ATTEMPTS):
				async with self._redis.pipeline(transaction=True) as pipe:
					try:
						await pipe.watch(key_a, key_b)
						existing_a = _decode(user_a, user_b, await pipe.hget(key_a, user_b))
						existing_b = _decode(user_b, user_a, await pipe.hget(key_b, user_a))
						stored_a = merge_half(existing_a, record_for_a)
						stored_b = merge_half(existing_b, record_for_b)
						writes = [
							(key, record)
							for key, record, existing in ((key_a, stored_a, existing_a), (key_b, stored_b, existing_b))
							if record != existing
						]
						if writes:
							pipe.multi()
							for key, record in writes:
								pipe.hset(key, record.user_id, encode_match(record))
							await pipe.execute()
						else:
							await pipe.unwatch()
					except WatchError:
						continue
				return PairWrite(
					record_for_a=stored_a,
					record_for_b=stored_b,
					existed_for_a=existing_a is not None,
					existed_for_b=existing_b is not None,
				)
		except RedisError as exc:
			raise PartialWriteFailure(f"match_pair:{user_b}") from exc
		raise PartialWriteFailure(f"match_pair:{user_b}")

	async def remove_match_pair(self, user_a: str, user_b: str) -> bool:
		"""Delete both halves; returns True when either half existed."""

		async with self._redis.pipeline(transaction=True) as pipe:
			pipe.hdel(matches_key(user_a), user_b)
			pipe.hdel(matches_key(user_b), user_a)
			removed_a, removed_b = await pipe.execute()
		return bool(removed_a or removed_b)

	async def block_and_remove_pair(self, user_id: str, target_id: str) -> bool:
		async with self._redis.pipeline(transaction=True) as pipe:
			pipe.sadd(blocks_key(user_id), target_id)
			pipe.hdel(matches_key(user_id), target_id)
			pipe.hdel(matches_key(target_id), user_id)
			_, removed_a, removed_b = await pipe.execute()
		return bool(removed_a or removed_b)

	async def mark_chatting_pair(self, user_a: str, user_b: str) -> bool:
		"""Flip `chatting_with` on both halves. Returns True if anything changed."""

		key_a = matches_key(user_a)
		key_b = matches_key(user_b)
		for _ in range(_CAS_ATTEMPTS):
			async with self._redis.pipeline(transaction=True) as pipe:
				try:
					await pipe.watch(key_a, key_b)
					record_a = _decode(user_a, user_b, await pipe.hget(key_a, user_b))
					record_b = _decode(user_b, user_a, await pipe.hget(key_b, user_a))
					updates: Dict[str, MatchRecord] = {}
					if record_a is not None and not record_a.chatting_with:
						updates[key_a] = record_a.with_chatting()
					if record_b is not None and not record_b.chatting_with:
						updates[key_b] = record_b.with_chatting()
					if not updates:
						await pipe.unwatch()
						return False
					pipe.multi()
					for key, record in updates.items():
						pipe.hset(key, record.user_id, encode_match(record))
					await pipe.execute()
					return True
				except WatchError:
					continue
		raise RemoteUnavailable("mark_chatting_contention")

	async def remove_block(self, user_id: str, target_id: str) -> bool:
		return bool(await self._redis.srem(blocks_key(user_id), target_id))

	async def blocked_ids(self, user_id: str) -> Set[str]:
		return set(await self._redis.smembers(blocks_key(user_id)))

	async def blocked_by_any(self, user_id: str, candidate_ids: List[str]) -> Set[str]:
		"""Subset of `candidate_ids` whose own block list contains `user_id`."""

		if not candidate_ids:
			return set()
		async with self._redis.pipeline(transaction=False) as pipe:
			for candidate_id in candidate_ids:
				pipe.sismember(blocks_key(candidate_id), user_id)
			flags = await pipe.execute()
		return {candidate_id for candidate_id, flag in zip(candidate_ids, flags) if flag}
