# src/webchat_guard/services/abuse.py
"""Read-only rate-limit evaluation for inbound messages."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from webchat_guard.core.quotas import normalize_channel, resolve_quotas
from webchat_guard.core.risk import (
    BURST_WINDOW_MS,
    DAY_WINDOW_MS,
    MINUTE_WINDOW_MS,
    DecisionPolicy,
    RiskSignals,
    WindowExpiry,
    decide,
    retry_after_ms,
)
from webchat_guard.core.settings import settings
from webchat_guard.db.time import Clock, now_ms
from webchat_guard.models import Organization
from webchat_guard.schemas.abuse import AbuseDecision
from webchat_guard.services.ledger import RateLimitLedger
from webchat_guard.utils.hash import clean_token, hash_identifier, hash_message

logger = logging.getLogger(__name__)


def default_policy() -> DecisionPolicy:
    """Build the decision policy from global settings."""
    return DecisionPolicy(challenge_threshold=settings.challenge_risk_threshold)


class AbuseGuardService:
    """Evaluates inbound messages against the ledger and channel quotas."""

    def __init__(
        self,
        db: Session,
        clock: Clock = now_ms,
        policy: DecisionPolicy | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.policy = policy or default_policy()
        self.ledger = RateLimitLedger(db, clock=clock)

    def check_rate_limit(
        self,
        ip_address: str,
        organization_id: int,
        channel: str | None = None,
        device_fingerprint: str | None = None,
        session_token: str | None = None,
        user_agent: str | None = None,
        message: str | None = None,
    ) -> AbuseDecision:
        """Decide whether an inbound message may proceed.

        Nothing is written; callers record the outcome separately.

        Args:
            ip_address: Client IP address.
            organization_id: Organization owning the channel.
            channel: Inbound channel; unknown values count as webchat.
            device_fingerprint: Raw client device identifier, hashed before lookup.
            session_token: Conversation session token.
            user_agent: Client user agent; absence adds risk.
            message: Message body, hashed to detect repetition.

        Returns:
            An `AbuseDecision`. Unknown organizations get a bare deny.
        """
        org = self.db.get(Organization, organization_id)
        if org is None:
            logger.warning("Rate-limit check for unknown organization %s", organization_id)
            return AbuseDecision(allowed=False)

        normalized_channel = normalize_channel(channel)
        quotas = resolve_quotas(normalized_channel, org.effective_tier)
        device_hash = hash_identifier(device_fingerprint)
        normalized_session = clean_token(session_token)
        message_hash = hash_message(message)

        now = self.clock()
        minute_cutoff = now - MINUTE_WINDOW_MS
        burst_cutoff = now - BURST_WINDOW_MS
        day_cutoff = now - DAY_WINDOW_MS

        daily_entries = self.ledger.channel_entries_since(ip_address, normalized_channel, day_cutoff)
        minute_entries = [entry for entry in daily_entries if entry.timestamp > minute_cutoff]
        burst_entries = [entry for entry in daily_entries if entry.timestamp > burst_cutoff]
        device_entries = (
            self.ledger.device_entries_since(device_hash, minute_cutoff) if device_hash else []
        )
        session_entries = (
            self.ledger.session_entries_since(normalized_session, minute_cutoff)
            if normalized_session
            else []
        )
        repeated = (
            sum(1 for entry in minute_entries if entry.message_hash == message_hash)
            if message_hash
            else 0
        )

        signals = RiskSignals(
            user_agent_missing=not (user_agent and user_agent.strip()),
            repeated_message_count=repeated,
            burst_count=len(burst_entries),
            ip_minute_count=len(minute_entries),
            device_minute_count=len(device_entries),
            session_minute_count=len(session_entries),
            daily_count=len(daily_entries),
        )
        expiry = WindowExpiry(
            minute_ms=retry_after_ms((e.timestamp for e in minute_entries), MINUTE_WINDOW_MS, now),
            burst_ms=retry_after_ms((e.timestamp for e in burst_entries), BURST_WINDOW_MS, now),
            day_ms=retry_after_ms((e.timestamp for e in daily_entries), DAY_WINDOW_MS, now),
        )
        decision = decide(signals, quotas, expiry, self.policy)

        if not decision.allowed:
            logger.info(
                "Blocked inbound message org=%s channel=%s ip=%s score=%s",
                organization_id,
                normalized_channel,
                ip_address,
                decision.risk_score,
            )
        elif decision.requires_challenge:
            logger.info(
                "Challenge required org=%s channel=%s ip=%s reason=%s score=%s",
                organization_id,
                normalized_channel,
                ip_address,
                decision.challenge_reason,
                decision.risk_score,
            )
        return decision


def check_rate_limit(
    db: Session,
    ip_address: str,
    organization_id: int,
    channel: str | None = None,
    device_fingerprint: str | None = None,
    session_token: str | None = None,
    user_agent: str | None = None,
    message: str | None = None,
    *,
    clock: Clock = now_ms,
) -> AbuseDecision:
    """Evaluate one inbound message with default settings."""
    return AbuseGuardService(db, clock=clock).check_rate_limit(
        ip_address,
        organization_id,
        channel=channel,
        device_fingerprint=device_fingerprint,
        session_token=session_token,
        user_agent=user_agent,
        message=message,
    )
