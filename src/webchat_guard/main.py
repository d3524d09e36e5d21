# src/webchat_guard/main.py
"""Main entry point for the Webchat Guard application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from webchat_guard.api.v1 import abuse_router, system_router
from webchat_guard.core.settings import settings
from webchat_guard.services.challenge import load_challenge_config

logger = logging.getLogger("webchat_guard")


def configure_logging() -> None:
    """Configure root logging from the LOG_LEVEL setting."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


configure_logging()

# Initialize FastAPI app
app = FastAPI(
    title="Webchat Guard API",
    description="Inbound-message abuse control for public chat channels",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(abuse_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if load_challenge_config().bypass_enabled:
        logger.warning(
            "Challenge bypass token is configured; do not serve production traffic with it"
        )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Webchat Guard API",
        "version": settings.app_version,
        "description": "Inbound-message abuse control for public chat channels",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("webchat_guard.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
