"""Audit helpers for searches and pair operations."""

from __future__ import annotations

import logging
from typing import Dict

from redis.exceptions import RedisError

from mio.infra.redis import redis_client
from mio.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

MATCH_EVENTS_STREAM = "x:matches.events"


async def log_match_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **{key: str(value) for key, value in fields.items()}}
	try:
		await redis_client.xadd(MATCH_EVENTS_STREAM, payload, maxlen=10_000, approximate=True)
	except RedisError:
		# The pair operation already committed; losing the audit line is tolerated
		logger.warning("match audit append failed", extra={"event": event}, exc_info=True)


def inc_search(result: str) -> None:
	obs_metrics.inc_match_search(result)


def observe_search(elapsed_seconds: float, candidates: int) -> None:
	obs_metrics.observe_match_search(elapsed_seconds, candidates)


def inc_match_created(level: str) -> None:
	obs_metrics.inc_match_created(level)


def inc_unmatch() -> None:
	obs_metrics.inc_unmatch()


def inc_block(action: str) -> None:
	obs_metrics.inc_block(action)


def inc_partial_write(op: str) -> None:
	obs_metrics.inc_partial_write(op)


def inc_favorite(action: str, result: str) -> None:
	obs_metrics.inc_favorite(action, result)
