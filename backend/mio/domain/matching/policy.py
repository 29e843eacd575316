"""Policy helpers and guard checks for pair operations."""

from __future__ import annotations

from mio.domain.matching.exceptions import BlockLimitExceeded, SelfActionError
from mio.domain.matching.models import BLOCK_PER_MINUTE
from mio.infra import rate_limit


async def enforce_block_limits(user_id: str) -> None:
	if not await rate_limit.allow("block", user_id, limit=BLOCK_PER_MINUTE, window_seconds=60):
		raise BlockLimitExceeded("per_minute")


def guard_not_self(user_id: str, target_id: str) -> None:
	if str(user_id) == str(target_id):
		raise SelfActionError()
