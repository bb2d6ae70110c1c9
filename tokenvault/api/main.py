"""FastAPI application factory with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from tokenvault.config import TokenVaultConfig, config as default_config
from tokenvault.version import __version__


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        # Decrypted secrets travel in response bodies.
        response.headers["Cache-Control"] = "no-store"
        return response

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    cfg: TokenVaultConfig = app.state.config
    logger.info(f"TokenVault v{__version__} starting...")

    # 1. Database
    from tokenvault.db.database import build_engine, build_session_factory, init_db
    engine = build_engine(cfg.database_url, echo=cfg.debug)
    await init_db(engine)
    app.state.engine = engine
    app.state.async_session = build_session_factory(engine)

    # 2. Codec, fail-closed when no master secret is configured
    from tokenvault.crypto.codec import EnvelopeCodec
    app.state.codec = EnvelopeCodec(cfg.token_encryption_key, kdf_iterations=cfg.kdf_iterations)

    # 3. Identity verifier
    from tokenvault.auth.jwt import IdentityVerifier
    app.state.verifier = IdentityVerifier(secret=cfg.jwt_secret, algorithm=cfg.jwt_algorithm)

    logger.info(f"TokenVault v{__version__} ready (encryption {'on' if app.state.codec.enabled else 'OFF'})")

    yield

    # ── Shutdown ──
    logger.info("TokenVault shutting down...")
    await engine.dispose()


def create_app(settings: Optional[TokenVaultConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    cfg = settings or default_config
    app = FastAPI(
        title="TokenVault",
        description="Encryption at rest for connected-account access and refresh tokens.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["authorization", "content-type"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    from tokenvault.api.routes import credentials, health
    app.include_router(health.router, prefix="/v1")
    app.include_router(credentials.router, prefix="/v1")

    return app


app = create_app()
