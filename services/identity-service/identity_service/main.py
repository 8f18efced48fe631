"""FastAPI application wiring for the identity service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as v1_router
from .config import get_settings, validate_settings
from .domain.service import IdentityService
from .events.publisher import RedisStreamPublisher
from .repository import AccountRepository
from .security.passwords import PasswordHasher
from .security.rate_limit import build_rate_limiter
from .security.tokens import AccessTokenSigner, TokenSettings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, Redis, services) for the app lifecycle."""
    validate_settings(settings)

    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    redis_client = redis.from_url(settings.redis_url)

    signer = AccessTokenSigner(
        TokenSettings(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            access_ttl_seconds=settings.access_ttl_seconds,
        )
    )
    app.state.pool = pool
    app.state.token_signer = signer
    app.state.rate_limiter = build_rate_limiter(settings, redis_client)
    app.state.identity_service = IdentityService(
        AccountRepository(pool),
        PasswordHasher(rounds=settings.bcrypt_rounds),
        signer,
        RedisStreamPublisher(redis_client),
        registration_topic=settings.registration_topic,
        verify_base_url=settings.verify_base_url,
    )
    logger.info("%s %s started", settings.app_name, settings.version)
    try:
        yield
    finally:
        redis_client.close()
        pool.close()
        logger.info("%s stopped", settings.app_name)


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
