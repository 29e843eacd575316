"""Domain-level exceptions for match discovery."""

from __future__ import annotations

from mio.infra.rate_limit import RateLimitExceeded


class MatchError(Exception):
	"""Base class for match discovery errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NoFavorites(MatchError):
	reason = "no_favorites"


class ProfileIncomplete(MatchError):
	reason = "profile_incomplete"


class SelfActionError(MatchError):
	reason = "self_action"


class PartialWriteFailure(MatchError):
	"""One side of a two-party operation did not complete."""

	reason = "partial_write"


class RemoteUnavailable(MatchError):
	reason = "remote_unavailable"


class DocumentVersionError(MatchError):
	reason = "unsupported_version"


class BlockLimitExceeded(RateLimitExceeded):
	"""Raised when block operations hit quota."""

	def __init__(self, reason: str) -> None:
		super().__init__(reason)
		self.reason = reason
