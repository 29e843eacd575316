"""Versioned storage format for match records.

Every stored record carries an explicit `v`. Records written by the legacy
mobile client have no version field and use camelCase keys, a Firestore-style
timestamp and an age stored as text; `migrate_match_document` lifts those into
the current shape before validation.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mio.domain.matching.exceptions import DocumentVersionError
from mio.domain.matching.models import MatchLevel, MatchRecord

CURRENT_VERSION = 1

_LEGACY_FIELDS = {
	"userId": "user_id",
	"displayName": "display_name",
	"profilePic": "profile_pic",
	"matchLevel": "match_level",
	"commonShowIds": "common_show_ids",
	"matchTimestamp": "match_timestamp",
	"chattingWith": "chatting_with",
}


class MatchRecordDocument(BaseModel):
	model_config = ConfigDict(extra="ignore")

	v: Literal[1] = CURRENT_VERSION
	user_id: str = Field(min_length=1)
	display_name: str = ""
	profile_pic: str = ""
	age: Optional[int] = None
	location: str = ""
	gender: str = ""
	match_level: MatchLevel
	common_show_ids: List[str] = Field(default_factory=list)
	match_timestamp: datetime
	chatting_with: bool = False

	@field_validator("match_timestamp")
	@classmethod
	def _aware(cls, value: datetime) -> datetime:
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)

	@field_validator("age", mode="before")
	@classmethod
	def _age(cls, value: Any) -> Optional[int]:
		if value is None or value == "":
			return None
		try:
			return int(value)
		except (TypeError, ValueError):
			return None

	def to_record(self) -> MatchRecord:
		return MatchRecord(
			user_id=self.user_id,
			display_name=self.display_name,
			match_level=self.match_level,
			common_show_ids=tuple(self.common_show_ids),
			match_timestamp=self.match_timestamp,
			profile_pic=self.profile_pic,
			age=self.age,
			location=self.location,
			gender=self.gender,
			chatting_with=self.chatting_with,
		)

	@classmethod
	def from_record(cls, record: MatchRecord) -> "MatchRecordDocument":
		return cls(
			user_id=record.user_id,
			display_name=record.display_name,
			profile_pic=record.profile_pic,
			age=record.age,
			location=record.location,
			gender=record.gender,
			match_level=record.match_level,
			common_show_ids=list(record.common_show_ids),
			match_timestamp=record.match_timestamp,
			chatting_with=record.chatting_with,
		)


def _legacy_timestamp(value: Any) -> Any:
	if isinstance(value, dict):
		seconds = value.get("seconds", value.get("_seconds"))
		nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
		if seconds is None:
			return value
		return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, tz=timezone.utc)
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		# Millisecond epochs are what the JS client wrote
		seconds = value / 1000 if value > 1e11 else value
		return datetime.fromtimestamp(seconds, tz=timezone.utc)
	return value


def migrate_match_document(raw: Dict[str, Any]) -> Dict[str, Any]:
	"""Return `raw` upgraded to the current document version."""

	version = raw.get("v")
	if version == CURRENT_VERSION:
		return dict(raw)
	if version is not None:
		raise DocumentVersionError(f"unsupported_version:{version}")
	upgraded: Dict[str, Any] = {}
	for key, value in raw.items():
		upgraded[_LEGACY_FIELDS.get(key, key)] = value
	upgraded["match_timestamp"] = _legacy_timestamp(upgraded.get("match_timestamp"))
	upgraded.setdefault("chatting_with", False)
	upgraded.pop("favoriteShowIds", None)
	for text_field in ("display_name", "profile_pic", "location", "gender"):
		if upgraded.get(text_field) is None:
			upgraded[text_field] = ""
	upgraded["v"] = CURRENT_VERSION
	return upgraded


def decode_match(payload: str | bytes) -> MatchRecord:
	"""Parse a stored record; raises DocumentVersionError or pydantic.ValidationError."""

	raw = json.loads(payload)
	if not isinstance(raw, dict):
		raise DocumentVersionError("not_an_object")
	return MatchRecordDocument.model_validate(migrate_match_document(raw)).to_record()


def encode_match(record: MatchRecord) -> str:
	return MatchRecordDocument.from_record(record).model_dump_json()
