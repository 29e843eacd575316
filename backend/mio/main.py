"""FastAPI application entrypoint for the match service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mio.api import favorites as favorites_api
from mio.api import matches as matches_api
from mio.api import ops as ops_api
from mio.api.errors import install_error_handlers
from mio.infra.redis import close_redis
from mio.obs import init as obs_init
from mio.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	logger.info(
		"service starting",
		extra={"service": settings.service_name, "commit": settings.git_commit, "env": settings.environment},
	)
	try:
		yield
	finally:
		await close_redis()


app = FastAPI(title="Mio Match API", version="0.1.0", lifespan=lifespan)

if settings.cors_allow_origins:
	app.add_middleware(
		CORSMiddleware,
		allow_origins=list(settings.cors_allow_origins),
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

obs_init(app)
install_error_handlers(app)

app.include_router(ops_api.router)
app.include_router(matches_api.router)
app.include_router(favorites_api.router)
