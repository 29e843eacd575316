"""Pydantic schemas for the match and favorites REST surface."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from mio.domain.matching.cooldown import format_remaining
from mio.domain.matching.models import CooldownState, MatchRecord, utcnow


class MatchCard(BaseModel):
	user_id: str
	display_name: str
	profile_pic: str = ""
	age: Optional[int] = None
	location: str = ""
	gender: str = ""
	match_level: Literal["match", "superMatch"]
	common_show_ids: List[str] = Field(default_factory=list)
	match_timestamp: datetime
	chatting_with: bool = False
	is_new: bool = False

	@classmethod
	def from_record(cls, record: MatchRecord, now: Optional[datetime] = None) -> "MatchCard":
		return cls(
			user_id=record.user_id,
			display_name=record.display_name,
			profile_pic=record.profile_pic,
			age=record.age,
			location=record.location,
			gender=record.gender,
			match_level=record.match_level.value,
			common_show_ids=list(record.common_show_ids),
			match_timestamp=record.match_timestamp,
			chatting_with=record.chatting_with,
			is_new=record.is_new(now),
		)


class MatchListResponse(BaseModel):
	matches: List[MatchCard] = Field(default_factory=list)


class SearchResponse(BaseModel):
	status: Literal["ok", "cooldown", "rejected", "error"]
	new_match_count: int = 0
	new_matches: List[MatchCard] = Field(default_factory=list)
	matches: List[MatchCard] = Field(default_factory=list)
	cooldown_end: Optional[datetime] = None
	remaining_time: str = ""
	reason: Optional[str] = None
	message: Optional[str] = None
	warnings: List[str] = Field(default_factory=list)


class CooldownStatusResponse(BaseModel):
	can_search: bool
	search_count: int
	last_search: Optional[datetime] = None
	cooldown_end: Optional[datetime] = None
	remaining_seconds: int = 0
	remaining_time: str = ""

	@classmethod
	def from_state(cls, state: CooldownState, now: Optional[datetime] = None) -> "CooldownStatusResponse":
		now = now or utcnow()
		remaining = state.remaining_seconds(now)
		return cls(
			can_search=not state.is_cooling(now),
			search_count=state.search_count,
			last_search=state.last_search,
			cooldown_end=state.cooldown_end,
			remaining_seconds=remaining,
			remaining_time=format_remaining(remaining) if remaining else "",
		)


class PairActionResponse(BaseModel):
	status: Literal["ok"] = "ok"
	changed: bool
	warnings: List[str] = Field(default_factory=list)


class BlockedUsersResponse(BaseModel):
	user_ids: List[str] = Field(default_factory=list)


class FavoritesResponse(BaseModel):
	item_ids: List[str] = Field(default_factory=list)
	remaining_removals: int
