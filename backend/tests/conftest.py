import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from mio.domain.matching import service as match_service_module
from mio.domain.matching.models import CompatibilityProfile
from mio.domain.matching.providers import RedisFavoritesProvider, RedisProfileProvider
from mio.infra.redis import redis_client, set_redis_client
from mio.main import app
from mio.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    original = redis_client.client
    client = FakeRedis(decode_responses=True)
    set_redis_client(client)
    try:
        yield client
    finally:
        set_redis_client(original)
        await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
    """API tests authenticate via X-User-Id, which is only accepted in dev mode."""
    original_env = settings.environment
    original_metrics_public = settings.obs_metrics_public
    settings.environment = "dev"
    settings.obs_metrics_public = True
    try:
        yield
    finally:
        settings.environment = original_env
        settings.obs_metrics_public = original_metrics_public


@pytest.fixture(autouse=True)
def fresh_match_service():
    match_service_module.set_match_service(None)
    yield
    match_service_module.set_match_service(None)


@pytest_asyncio.fixture
async def api_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def make_user():
    """Save a complete profile plus favorites and return the profile."""

    profiles = RedisProfileProvider()
    favorites = RedisFavoritesProvider()

    async def _make(user_id, items, **overrides):
        fields = {
            "display_name": user_id.title(),
            "gender": "female",
            "match_with": "everyone",
            "location": "Montreal",
            "match_location": "worldwide",
            "age": 27,
        }
        fields.update(overrides)
        profile = CompatibilityProfile(user_id=user_id, **fields)
        await profiles.save_profile(profile)
        for item_id in items:
            await favorites.add_favorite(user_id, item_id)
        return profile

    return _make
