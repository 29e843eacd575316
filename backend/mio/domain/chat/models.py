"""Domain models for the 1:1 chat a match can open."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(slots=True)
class ConversationKey:
	"""Canonical representation of a 1:1 chat conversation."""

	user_a: str
	user_b: str

	@classmethod
	def from_participants(cls, user_one: str, user_two: str) -> "ConversationKey":
		ordered = tuple(sorted((str(user_one), str(user_two))))
		return cls(user_a=ordered[0], user_b=ordered[1])

	@property
	def conversation_id(self) -> str:
		return f"chat:{self.user_a}:{self.user_b}"

	@property
	def messages_key(self) -> str:
		return f"{self.conversation_id}:messages"

	@property
	def delivered_key(self) -> str:
		return f"{self.conversation_id}:delivered"

	def storage_keys(self) -> Tuple[str, str, str]:
		return (self.conversation_id, self.messages_key, self.delivered_key)
