"""Domain models for match discovery."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Mapping, Optional, Tuple


class MatchLevel(str, Enum):
	"""Two-tier match strength, keyed on the number of shared favorites."""

	MATCH = "match"
	SUPER_MATCH = "superMatch"


class GenderPreference(str, Enum):
	MALE = "male"
	FEMALE = "female"
	EVERYONE = "everyone"


class LocationPreference(str, Enum):
	LOCAL = "local"
	WORLDWIDE = "worldwide"


MATCH_THRESHOLD = 3
SUPER_MATCH_THRESHOLD = 7

# Cooldown after the 1st, 2nd and 3rd+ search
COOLDOWN_TIERS_SECONDS: Tuple[int, ...] = (60, 120, 300)
SEARCH_COUNT_RESET_HOURS = 24

NEW_MATCH_WINDOW_HOURS = 24
BLOCK_PER_MINUTE = 10

MAX_FAVORITES = 10
MAX_WEEKLY_REMOVALS = 5
FAVORITE_REMOVAL_COOLDOWN_MINUTES = 5


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _clean(value: object) -> Optional[str]:
	if value is None:
		return None
	text = str(value).strip()
	return text or None


def _parse_age(value: object) -> Optional[int]:
	if value is None or isinstance(value, bool):
		return None
	try:
		age = int(str(value).strip())
	except (TypeError, ValueError):
		return None
	return age if age > 0 else None


@dataclass(slots=True)
class CompatibilityProfile:
	"""Profile attributes relevant to match filtering and match cards."""

	user_id: str
	display_name: Optional[str] = None
	gender: Optional[str] = None
	match_with: str = GenderPreference.EVERYONE.value
	location: Optional[str] = None
	match_location: str = LocationPreference.WORLDWIDE.value
	age: Optional[int] = None
	profile_pic: Optional[str] = None

	@property
	def is_complete(self) -> bool:
		return bool(self.display_name) and bool(self.gender)

	@classmethod
	def from_mapping(cls, user_id: str, data: Mapping[str, object]) -> "CompatibilityProfile":
		match_with = (_clean(data.get("match_with")) or GenderPreference.EVERYONE.value).lower()
		match_location = (_clean(data.get("match_location")) or LocationPreference.WORLDWIDE.value).lower()
		gender = _clean(data.get("gender"))
		return cls(
			user_id=str(user_id),
			display_name=_clean(data.get("display_name")),
			gender=gender.lower() if gender else None,
			match_with=match_with,
			location=_clean(data.get("location")),
			match_location=match_location,
			age=_parse_age(data.get("age")),
			profile_pic=_clean(data.get("profile_pic")),
		)

	def to_mapping(self) -> dict[str, str]:
		data = {
			"display_name": self.display_name,
			"gender": self.gender,
			"match_with": self.match_with,
			"location": self.location,
			"match_location": self.match_location,
			"age": str(self.age) if self.age is not None else None,
			"profile_pic": self.profile_pic,
		}
		return {key: value for key, value in data.items() if value is not None}


@dataclass(slots=True)
class MatchRecord:
	"""One user's view of a discovered pairing; `user_id` is the other party."""

	user_id: str
	display_name: str
	match_level: MatchLevel
	common_show_ids: Tuple[str, ...]
	match_timestamp: datetime
	profile_pic: str = ""
	age: Optional[int] = None
	location: str = ""
	gender: str = ""
	chatting_with: bool = False

	def with_chatting(self) -> "MatchRecord":
		return replace(self, chatting_with=True)

	def is_new(self, now: Optional[datetime] = None) -> bool:
		now = now or utcnow()
		return now - self.match_timestamp < timedelta(hours=NEW_MATCH_WINDOW_HOURS)


@dataclass(slots=True)
class PreferenceIndexEntry:
	"""Users favoriting one content item, with their last confirmation time."""

	item_id: str
	favoriters: dict[str, datetime] = field(default_factory=dict)

	def user_ids(self) -> set[str]:
		return set(self.favoriters)


@dataclass(slots=True)
class CooldownState:
	search_count: int = 0
	last_search: Optional[datetime] = None
	cooldown_end: Optional[datetime] = None

	def is_cooling(self, now: Optional[datetime] = None) -> bool:
		if self.cooldown_end is None:
			return False
		return self.cooldown_end > (now or utcnow())

	def remaining_seconds(self, now: Optional[datetime] = None) -> int:
		if not self.is_cooling(now):
			return 0
		assert self.cooldown_end is not None
		delta = (self.cooldown_end - (now or utcnow())).total_seconds()
		return max(0, math.ceil(delta))
