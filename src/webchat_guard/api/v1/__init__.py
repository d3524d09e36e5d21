# src/webchat_guard/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import abuse_router, system_router

__all__ = [
    "abuse_router",
    "system_router",
]
