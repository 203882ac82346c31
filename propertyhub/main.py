"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from propertyhub.config import settings
from propertyhub.middleware import BodySizeLimitMiddleware, SecurityHeadersMiddleware
from propertyhub.routers import auth, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    from propertyhub.database import engine

    logger.info("Starting PropertyHub accounts API (env=%s, email=%s)", settings.env, settings.email_backend)
    yield
    await engine.dispose()


app = FastAPI(
    title="PropertyHub Accounts",
    description="Account lifecycle for the PropertyHub listing backend",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS - restrict to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Accept", "Authorization", "X-User-Id"],
    max_age=3600,
)

# Middleware (order matters, outermost first)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(BodySizeLimitMiddleware, max_bytes=65_536)

# Routers
app.include_router(auth.router)
app.include_router(users.router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
