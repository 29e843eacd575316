"""Fixed-window action budgets kept in Redis.

Counters live at ``rl:{kind}:{actor_id}:{window}:{slot}`` and expire with their
window, so a budget refills on the next window boundary.
"""

from __future__ import annotations

import time
from typing import Optional

from mio.infra.redis import redis_client


def window_key(kind: str, actor_id: str, window_seconds: int, now: float) -> str:
	window = max(1, int(window_seconds))
	return f"rl:{kind}:{actor_id}:{window}:{int(now // window)}"


async def hit(kind: str, actor_id: str, *, window_seconds: int = 60, now: Optional[float] = None) -> int:
	"""Count one action against the current window and return the running total."""

	key = window_key(kind, actor_id, window_seconds, now if now is not None else time.time())
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, max(1, int(window_seconds)))
		count, _ = await pipe.execute()
	return int(count)


async def allow(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> bool:
	if limit <= 0:
		return False
	return await hit(kind, actor_id, window_seconds=window_seconds, now=now) <= limit


class RateLimitExceeded(Exception):
	"""An actor spent its budget for the current window."""

	reason: str = "rate_limit"
