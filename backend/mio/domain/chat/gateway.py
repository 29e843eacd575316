"""Conversation storage as seen from the match service.

Match discovery never reads chat content; it only needs to drop a pair's
conversation when the pair is dissolved.
"""

from __future__ import annotations

from typing import Protocol

from mio.domain.chat.models import ConversationKey
from mio.infra.redis import redis_client


class ConversationGateway(Protocol):
	async def delete_conversation_data(self, user_id: str, other_user_id: str) -> bool:
		...


class RedisConversationGateway:
	def __init__(self, client=None) -> None:
		self._redis = client if client is not None else redis_client

	async def delete_conversation_data(self, user_id: str, other_user_id: str) -> bool:
		"""Delete the conversation between the two users; True if anything existed."""

		conversation = ConversationKey.from_participants(user_id, other_user_id)
		deleted = await self._redis.delete(*conversation.storage_keys())
		return bool(deleted)
