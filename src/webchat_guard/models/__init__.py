# src/webchat_guard/models/__init__.py
"""SQLAlchemy models for the Webchat Guard service."""

from .audit_log import AuditLog
from .organization import Organization
from .rate_limit import RateLimitEntry

__all__ = [
    "AuditLog",
    "Organization",
    "RateLimitEntry",
]
