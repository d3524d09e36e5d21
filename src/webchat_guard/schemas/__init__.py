"""Pydantic schemas for the Webchat Guard API."""

from .abuse import (
    AbuseDecision,
    ChallengeState,
    ChallengeVerification,
    ChallengeVerifyIn,
    InboundGuardOut,
    InboundMessageIn,
    Outcome,
    RateLimitCheckIn,
    RateLimitEntryIn,
)

__all__ = [
    "AbuseDecision",
    "ChallengeState",
    "ChallengeVerification",
    "ChallengeVerifyIn",
    "InboundGuardOut",
    "InboundMessageIn",
    "Outcome",
    "RateLimitCheckIn",
    "RateLimitEntryIn",
]
