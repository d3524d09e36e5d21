# src/webchat_guard/services/guard.py
"""End-to-end guard for one inbound message: check, verify, record."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from webchat_guard.core.quotas import normalize_channel
from webchat_guard.db.time import Clock, now_ms
from webchat_guard.models import Organization
from webchat_guard.models.rate_limit import (
    CHALLENGE_FAILED,
    CHALLENGE_NOT_REQUIRED,
    CHALLENGE_PASSED,
    CHALLENGE_REQUIRED,
    OUTCOME_ALLOWED,
    OUTCOME_BLOCKED,
    OUTCOME_THROTTLED,
)
from webchat_guard.schemas.abuse import (
    AbuseDecision,
    ChallengeState,
    ChallengeVerification,
    InboundGuardOut,
    Outcome,
)
from webchat_guard.services.abuse import AbuseGuardService
from webchat_guard.services.challenge import ChallengeVerifier
from webchat_guard.services.ledger import LedgerRecord, RateLimitLedger

logger = logging.getLogger(__name__)


class GuardError(RuntimeError):
    """Base exception raised for guard failures."""


class OrganizationNotFoundError(GuardError):
    """Raised when an inbound message names an unknown organization."""


@dataclass(frozen=True)
class InboundMessage:
    """Inputs describing one inbound message."""

    ip_address: str
    organization_id: int
    channel: str | None = None
    device_fingerprint: str | None = None
    session_token: str | None = None
    user_agent: str | None = None
    message: str | None = None
    challenge_token: str | None = None
    request_id: str | None = None


def classify(
    decision: AbuseDecision, verification: ChallengeVerification | None
) -> tuple[Outcome, ChallengeState]:
    """Return the ledger outcome and challenge state for a decision."""
    if not decision.allowed:
        return OUTCOME_BLOCKED, CHALLENGE_NOT_REQUIRED
    if not decision.requires_challenge:
        return OUTCOME_ALLOWED, CHALLENGE_NOT_REQUIRED
    if verification is None:
        return OUTCOME_THROTTLED, CHALLENGE_REQUIRED
    if verification.verified:
        return OUTCOME_ALLOWED, CHALLENGE_PASSED
    return OUTCOME_THROTTLED, CHALLENGE_FAILED


class InboundGuard:
    """Runs the abuse check for a message and records exactly one ledger entry."""

    def __init__(
        self,
        db: Session,
        verifier: ChallengeVerifier,
        clock: Clock = now_ms,
    ) -> None:
        self.db = db
        self.verifier = verifier
        self.abuse = AbuseGuardService(db, clock=clock)
        self.ledger = RateLimitLedger(db, clock=clock)

    async def guard(self, inbound: InboundMessage) -> InboundGuardOut:
        """Evaluate, optionally verify a challenge token, and record the outcome.

        Raises:
            OrganizationNotFoundError: If the organization does not exist. Nothing
                is recorded in that case.
        """
        if self.db.get(Organization, inbound.organization_id) is None:
            raise OrganizationNotFoundError(f"Unknown organization {inbound.organization_id}")

        decision = self.abuse.check_rate_limit(
            inbound.ip_address,
            inbound.organization_id,
            channel=inbound.channel,
            device_fingerprint=inbound.device_fingerprint,
            session_token=inbound.session_token,
            user_agent=inbound.user_agent,
            message=inbound.message,
        )
        verification: ChallengeVerification | None = None
        if decision.requires_challenge and inbound.challenge_token:
            verification = await self.verifier.verify(
                normalize_channel(inbound.channel),
                inbound.ip_address,
                inbound.challenge_token,
                inbound.request_id,
            )

        outcome, challenge_state = classify(decision, verification)
        self.ledger.record(
            LedgerRecord(
                ip_address=inbound.ip_address,
                organization_id=inbound.organization_id,
                channel=inbound.channel,
                device_fingerprint=inbound.device_fingerprint,
                session_token=inbound.session_token,
                user_agent=inbound.user_agent,
                message=inbound.message,
                outcome=outcome,
                challenge_state=challenge_state,
                reason=decision.challenge_reason or decision.reason,
                risk_score=decision.risk_score,
                request_id=inbound.request_id,
            )
        )

        return InboundGuardOut(
            proceed=outcome == OUTCOME_ALLOWED,
            decision=decision,
            verification=verification,
            outcome=outcome,
            challenge_state=challenge_state,
        )
