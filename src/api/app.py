"""FastAPI application for the tutor's HTTP surface."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src import __version__
from src.api.chat import get_session_registry
from src.api.chat import router as chat_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Drop every in-memory tutor session when the server stops."""
    logger.info("Math Tutor API ready")
    yield
    registry = get_session_registry()
    logger.info(f"Discarding {len(registry)} tutor session(s) on shutdown")
    registry.clear()


def create_app() -> FastAPI:
    """Build the API with the chat routes and a health probe.

    Allowed CORS origins come from the comma-separated ``CORS_ORIGINS``
    variable (default ``*``).
    """
    application = FastAPI(
        title="Socratic Math Tutor API",
        description="Streams step-by-step tutoring replies as Server-Sent Events.",
        version=__version__,
        lifespan=lifespan,
    )

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Session-Id"],
    )

    application.include_router(chat_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "math-tutor"}

    return application


app = create_app()
