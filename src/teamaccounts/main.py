"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, database engine).
Middleware, CORS, sessions, and routers all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from starlette.middleware.sessions import SessionMiddleware

from teamaccounts import __version__
from teamaccounts.api import api_router, auth_router
from teamaccounts.auth.oauth import enabled_providers
from teamaccounts.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "teamaccounts.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        oauth_providers=enabled_providers(),
    )

    from teamaccounts.db.redis import close_redis, init_redis
    try:
        await init_redis()
        logger.info("teamaccounts.redis_connected", url=settings.redis_url)
    except (RedisError, OSError) as e:
        logger.warning("teamaccounts.redis_unavailable", error=str(e))
        # Redis is optional: rate limiting is skipped without it

    yield

    logger.info("teamaccounts.shutdown")
    await close_redis()

    from teamaccounts.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="teamaccounts",
        description="User accounts, OAuth and passwordless sign-in, team membership, billing snapshot",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → Session → handler

    from teamaccounts.middleware.rate_limit import RateLimitMiddleware
    from teamaccounts.middleware.request_id import RequestIdMiddleware
    from teamaccounts.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie="teamaccounts_session",
        same_site="lax",
        https_only=settings.environment != "development",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(auth_router, tags=["auth"])
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: teamaccounts.main:app)
app = create_app()
