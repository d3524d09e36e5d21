"""Schemas for abuse decisions, challenge verification and ledger writes."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from webchat_guard.core.quotas import Channel
from webchat_guard.utils.hash import storable_text

Outcome = Literal["allowed", "throttled", "blocked"]
ChallengeState = Literal["not_required", "required", "passed", "failed"]
ChallengeProvider = Literal["none", "local_bypass", "external_hook"]
ChallengeReason = Literal["repeated_message_pattern", "burst_velocity", "adaptive_throttle"]


class _CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _RequestModel(_CamelModel):
    """Base for request bodies whose raw text fields are persisted."""

    @field_validator("ip_address", "session_token", "request_id", "reason", check_fields=False)
    @classmethod
    def _storable(cls, value: str | None) -> str | None:
        return storable_text(value) if value is not None else None


class AbuseDecision(_CamelModel):
    """Result of a single rate-limit evaluation. Never persisted."""

    allowed: bool
    retry_after_ms: int | None = None
    requires_challenge: bool | None = None
    challenge_reason: ChallengeReason | None = None
    challenge_type: Literal["proof_of_human"] | None = None
    risk_score: int | None = None
    reason: str | None = None

    @property
    def retry_after_seconds(self) -> int | None:
        """Return the retry hint rounded up to whole seconds."""
        if self.retry_after_ms is None:
            return None
        return -(-self.retry_after_ms // 1000)


class ChallengeVerification(_CamelModel):
    """Outcome of verifying a human-proof token."""

    verified: bool
    provider: ChallengeProvider
    reason: str | None = None
    score: float | None = None


class RateLimitCheckIn(_RequestModel):
    """Request payload for a read-only rate-limit evaluation."""

    ip_address: str = Field(..., min_length=1)
    organization_id: int
    channel: Channel | None = None
    device_fingerprint: str | None = None
    session_token: str | None = None
    user_agent: str | None = None
    message: str | None = None


class ChallengeVerifyIn(_RequestModel):
    """Request payload for verifying a challenge token."""

    channel: Channel
    ip_address: str = Field(..., min_length=1)
    challenge_token: str
    request_id: str | None = None


class RateLimitEntryIn(RateLimitCheckIn):
    """Request payload for appending a ledger entry."""

    outcome: Outcome | None = None
    challenge_state: ChallengeState | None = None
    reason: str | None = None
    risk_score: int | None = None
    request_id: str | None = None
    should_log_signal: bool | None = None


class InboundMessageIn(RateLimitCheckIn):
    """Request payload for guarding one inbound message end to end."""

    challenge_token: str | None = None
    request_id: str | None = None


class InboundGuardOut(_CamelModel):
    """Combined result of a guarded inbound message."""

    proceed: bool
    decision: AbuseDecision
    verification: ChallengeVerification | None = None
    outcome: Outcome
    challenge_state: ChallengeState
