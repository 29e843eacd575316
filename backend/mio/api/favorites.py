"""Favorites endpoints; every write keeps the preference index in step."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, status

from mio.domain.matching import audit
from mio.domain.matching.exceptions import RemoteUnavailable
from mio.domain.matching.outcomes import FavoriteLimited, FavoriteOk, FavoriteOnCooldown, FavoriteOutcome
from mio.domain.matching.providers import RedisFavoritesProvider
from mio.domain.matching.schemas import FavoritesResponse
from mio.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/favorites", tags=["favorites"])

_provider = RedisFavoritesProvider()


def get_favorites_provider() -> RedisFavoritesProvider:
	return _provider


def _to_response(action: str, outcome: FavoriteOutcome) -> FavoritesResponse:
	if isinstance(outcome, FavoriteLimited):
		audit.inc_favorite(action, "limited")
		raise HTTPException(status.HTTP_409_CONFLICT, detail="favorites_limit")
	if isinstance(outcome, FavoriteOnCooldown):
		audit.inc_favorite(action, "cooldown")
		raise HTTPException(
			status.HTTP_429_TOO_MANY_REQUESTS,
			detail="removal_cooldown",
			headers={"Retry-After": str(outcome.remaining_seconds)},
		)
	assert isinstance(outcome, FavoriteOk)
	audit.inc_favorite(action, "ok")
	return FavoritesResponse(item_ids=list(outcome.item_ids), remaining_removals=outcome.remaining_removals)


@router.get("", response_model=FavoritesResponse)
async def list_favorites(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	provider: RedisFavoritesProvider = Depends(get_favorites_provider),
) -> FavoritesResponse:
	item_ids = await provider.get_favorite_item_ids(auth_user.id)
	remaining = await provider.remaining_removals(auth_user.id)
	return FavoritesResponse(item_ids=item_ids, remaining_removals=remaining)


@router.put("/{item_id}", response_model=FavoritesResponse)
async def add_favorite(
	item_id: str = Path(..., min_length=1, max_length=128),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	provider: RedisFavoritesProvider = Depends(get_favorites_provider),
) -> FavoritesResponse:
	try:
		outcome = await provider.add_favorite(auth_user.id, item_id)
	except RemoteUnavailable as exc:
		raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.reason) from None
	return _to_response("add", outcome)


@router.delete("/{item_id}", response_model=FavoritesResponse)
async def remove_favorite(
	item_id: str = Path(..., min_length=1, max_length=128),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	provider: RedisFavoritesProvider = Depends(get_favorites_provider),
) -> FavoritesResponse:
	try:
		outcome = await provider.remove_favorite(auth_user.id, item_id)
	except RemoteUnavailable as exc:
		raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.reason) from None
	return _to_response("remove", outcome)
