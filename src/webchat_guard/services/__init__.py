# src/webchat_guard/services/__init__.py
"""Business logic services for the Webchat Guard service."""

from .abuse import AbuseGuardService, check_rate_limit
from .challenge import ChallengeVerifier, verify_abuse_challenge
from .guard import InboundGuard
from .ledger import RateLimitLedger, record_rate_limit_entry

__all__ = [
    "AbuseGuardService",
    "ChallengeVerifier",
    "InboundGuard",
    "RateLimitLedger",
    "check_rate_limit",
    "record_rate_limit_entry",
    "verify_abuse_challenge",
]
