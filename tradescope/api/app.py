"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tradescope.api.deps import limiter
from tradescope.api.routes import (
    analytics,
    auth,
    brokers,
    portfolio,
    strategies,
    sync,
    trades,
    trading,
    upstox,
)
from tradescope.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, PRODUCT_DESCRIPTION
from tradescope.db.database import Database
from tradescope.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API application.

    Args:
        database: Database to serve from; one is created from settings at
            start-up when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        owned = getattr(app.state, "database", None) is None
        if owned:
            app.state.database = Database()
        app.state.database.create_all()
        logger.info(f"{PRODUCT_NAME} API started ({app.state.database!r})")
        yield
        if owned:
            app.state.database.dispose()
            app.state.database = None

    app = FastAPI(
        title=f"{PRODUCT_NAME} API",
        description=PRODUCT_DESCRIPTION,
        version=PRODUCT_VERSION,
        lifespan=lifespan,
    )
    app.state.database = database

    # Add rate limiter to app state
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.get("/api/health")
    def health():
        """Health check endpoint."""
        return {
            "name": PRODUCT_NAME,
            "version": PRODUCT_VERSION,
            "status": "ok",
            "tagline": PRODUCT_TAGLINE,
        }

    # Mount API routers
    app.include_router(auth.router, prefix="/api", tags=["auth"])
    app.include_router(brokers.router, prefix="/api", tags=["brokers"])
    app.include_router(upstox.router, prefix="/api", tags=["upstox"])
    app.include_router(trades.router, prefix="/api", tags=["trades"])
    app.include_router(portfolio.router, prefix="/api", tags=["portfolio"])
    app.include_router(analytics.router, prefix="/api", tags=["analytics"])
    app.include_router(strategies.router, prefix="/api", tags=["strategies"])
    app.include_router(trading.router, prefix="/api", tags=["trading"])
    app.include_router(sync.router, prefix="/api", tags=["sync"])

    return app


app = create_app()
