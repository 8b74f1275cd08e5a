"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The two secrets are turned into their config structs HERE, once:
CipherConfig (encryption key) and TokenConfig (signing secret). The codec
and token service built from them live on app.state and reach handlers
through dependencies. A missing or malformed encryption key makes
create_app() raise, so the process never starts half-configured.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inkwell import __version__
from inkwell.api import api_router
from inkwell.auth.tokens import SessionTokenService, TokenConfig
from inkwell.config import Settings, settings
from inkwell.crypto.codec import CipherConfig, EncryptionCodec
from inkwell.logging_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. The database engine is created lazily on first use; shutdown
    returns its pooled connections.
    """
    config: Settings = app.state.settings
    logger.info(
        "inkwell.starting",
        version=__version__,
        environment=config.environment,
        port=config.port,
    )

    yield

    logger.info("inkwell.shutdown")

    from inkwell.db.engine import engine
    await engine.dispose()


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    config = app_settings or settings
    configure_logging(config.log_level, json_logs=config.log_json)

    app = FastAPI(
        title="Inkwell",
        description="Private journaling API with field-level encryption at rest",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Injected services ────────────────────────────────────
    app.state.settings = config
    app.state.codec = EncryptionCodec(CipherConfig.from_settings(config))
    app.state.token_service = SessionTokenService(TokenConfig.from_settings(config))
    app.state.bcrypt_rounds = config.bcrypt_rounds
    app.state.reveal_foreign_entries = config.reveal_foreign_entries

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from inkwell.middleware.request_id import RequestIdMiddleware
    from inkwell.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: inkwell.main:app)
app = create_app()
