"""Typed results returned by match searches and favorite mutations.

Callers branch on the concrete class instead of passing success/limit/cooldown
callbacks around.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple, Union

from mio.domain.matching.models import CooldownState, MatchRecord


@dataclass(slots=True, frozen=True)
class SearchCompleted:
	new_matches: Tuple[MatchRecord, ...]
	matches: Tuple[MatchRecord, ...]
	cooldown: CooldownState
	warnings: Tuple[str, ...] = ()
	message: str | None = None

	@property
	def new_match_count(self) -> int:
		return len(self.new_matches)


@dataclass(slots=True, frozen=True)
class SearchOnCooldown:
	cooldown_end: datetime
	remaining_seconds: int


@dataclass(slots=True, frozen=True)
class SearchRejected:
	reason: str
	message: str


@dataclass(slots=True, frozen=True)
class SearchFailed:
	reason: str
	message: str


SearchOutcome = Union[SearchCompleted, SearchOnCooldown, SearchRejected, SearchFailed]


@dataclass(slots=True, frozen=True)
class FavoriteOk:
	item_ids: Tuple[str, ...]
	remaining_removals: int


@dataclass(slots=True, frozen=True)
class FavoriteLimited:
	limit: int


@dataclass(slots=True, frozen=True)
class FavoriteOnCooldown:
	remaining_seconds: int


FavoriteOutcome = Union[FavoriteOk, FavoriteLimited, FavoriteOnCooldown]
