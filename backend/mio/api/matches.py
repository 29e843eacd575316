"""REST API surface for match discovery and pair operations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from mio.domain.matching.cooldown import format_remaining
from mio.domain.matching.exceptions import (
	BlockLimitExceeded,
	MatchError,
	RemoteUnavailable,
	SelfActionError,
)
from mio.domain.matching.models import utcnow
from mio.domain.matching.outcomes import (
	SearchCompleted,
	SearchFailed,
	SearchOnCooldown,
	SearchOutcome,
	SearchRejected,
)
from mio.domain.matching.schemas import (
	BlockedUsersResponse,
	CooldownStatusResponse,
	MatchCard,
	MatchListResponse,
	PairActionResponse,
	SearchResponse,
)
from mio.domain.matching.service import MatchService, PairActionResult, get_match_service
from mio.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/matches", tags=["matches"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, BlockLimitExceeded):
		return HTTPException(status.HTTP_429_TOO_MANY_REQUESTS, detail=getattr(exc, "reason", "rate_limit"))
	if isinstance(exc, SelfActionError):
		return HTTPException(status.HTTP_409_CONFLICT, detail=exc.reason)
	if isinstance(exc, RemoteUnavailable):
		return HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _search_response(outcome: SearchOutcome, response: Response) -> SearchResponse:
	now = utcnow()
	match outcome:
		case SearchCompleted():
			return SearchResponse(
				status="ok",
				new_match_count=outcome.new_match_count,
				new_matches=[MatchCard.from_record(record, now) for record in outcome.new_matches],
				matches=[MatchCard.from_record(record, now) for record in outcome.matches],
				cooldown_end=outcome.cooldown.cooldown_end,
				remaining_time=format_remaining(outcome.cooldown.remaining_seconds(now)),
				message=outcome.message,
				warnings=list(outcome.warnings),
			)
		case SearchOnCooldown():
			response.headers["Retry-After"] = str(outcome.remaining_seconds)
			return SearchResponse(
				status="cooldown",
				cooldown_end=outcome.cooldown_end,
				remaining_time=format_remaining(outcome.remaining_seconds),
			)
		case SearchRejected():
			return SearchResponse(status="rejected", reason=outcome.reason, message=outcome.message)
		case SearchFailed():
			response.status_code = (
				status.HTTP_503_SERVICE_UNAVAILABLE
				if outcome.reason == "remote_unavailable"
				else status.HTTP_500_INTERNAL_SERVER_ERROR
			)
			return SearchResponse(status="error", reason=outcome.reason, message=outcome.message)
	raise TypeError(f"unexpected search outcome: {outcome!r}")


def _pair_response(result: PairActionResult) -> PairActionResponse:
	return PairActionResponse(changed=result.changed, warnings=result.warnings)


@router.post("/search", response_model=SearchResponse)
async def search_matches(
	response: Response,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> SearchResponse:
	outcome = await service.search_matches(auth_user.id)
	return _search_response(outcome, response)


@router.get("", response_model=MatchListResponse)
async def list_matches(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> MatchListResponse:
	now = utcnow()
	records = await service.list_matches(auth_user.id)
	return MatchListResponse(matches=[MatchCard.from_record(record, now) for record in records])


@router.get("/cooldown", response_model=CooldownStatusResponse)
async def cooldown_status(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> CooldownStatusResponse:
	state = await service.cooldown_status(auth_user.id)
	return CooldownStatusResponse.from_state(state)


@router.get("/blocked", response_model=BlockedUsersResponse)
async def list_blocked(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> BlockedUsersResponse:
	return BlockedUsersResponse(user_ids=await service.list_blocked(auth_user.id))


@router.delete("/{user_id}", response_model=PairActionResponse)
async def unmatch_user(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> PairActionResponse:
	try:
		result = await service.unmatch_user(auth_user.id, user_id)
	except MatchError as exc:
		raise _map_error(exc) from None
	return _pair_response(result)


@router.post("/{user_id}/block", response_model=PairActionResponse)
async def block_user(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> PairActionResponse:
	try:
		result = await service.block_user(auth_user.id, user_id)
	except (MatchError, BlockLimitExceeded) as exc:
		raise _map_error(exc) from None
	return _pair_response(result)


@router.post("/{user_id}/unblock", response_model=PairActionResponse)
async def unblock_user(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> PairActionResponse:
	try:
		result = await service.unblock_user(auth_user.id, user_id)
	except (MatchError, BlockLimitExceeded) as exc:
		raise _map_error(exc) from None
	return _pair_response(result)


@router.post("/{user_id}/chatting", response_model=PairActionResponse)
async def mark_chatting(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MatchService = Depends(get_match_service),
) -> PairActionResponse:
	try:
		changed = await service.mark_chatting(auth_user.id, user_id)
	except MatchError as exc:
		raise _map_error(exc) from None
	return PairActionResponse(changed=changed)
