# src/webchat_guard/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .abuse import router as abuse_router
from .system import router as system_router

__all__ = [
    "abuse_router",
    "system_router",
]
