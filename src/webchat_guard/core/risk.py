"""Risk scoring and the allow / challenge / block decision.

Both functions are pure: callers gather window counts from the ledger and pass
them in as plain values, so the heuristics can be exercised without storage.

The weights below are empirically chosen defaults. Treat them as tunable
configuration rather than validated thresholds.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Final

from webchat_guard.core.quotas import ChannelQuota
from webchat_guard.schemas.abuse import AbuseDecision, ChallengeReason

BURST_WINDOW_MS: Final[int] = 10 * 1000
MINUTE_WINDOW_MS: Final[int] = 60 * 1000
DAY_WINDOW_MS: Final[int] = 24 * 60 * 60 * 1000

DEFAULT_CHALLENGE_THRESHOLD: Final[int] = 45
HARD_LIMIT_FACTOR: Final[int] = 2


@dataclass(frozen=True)
class RiskWeights:
    """Additive score contributions for each abuse signal."""

    user_agent_missing: int = 5
    repeated_message: int = 30
    burst: int = 35
    ip_minute: int = 20
    device_minute: int = 15
    session_minute: int = 10
    daily: int = 20
    repeated_message_threshold: int = 4

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


DEFAULT_RISK_WEIGHTS: Final[RiskWeights] = RiskWeights()


@dataclass(frozen=True)
class RiskSignals:
    """Window counts for one inbound message.

    Attributes:
        user_agent_missing: True when the client sent no user agent.
        repeated_message_count: Same-channel minute entries sharing the message hash.
        burst_count: Same-channel entries for the IP in the last 10 seconds.
        ip_minute_count: Same-channel entries for the IP in the last minute.
        device_minute_count: Entries for the device hash in the last minute.
        session_minute_count: Entries for the session token in the last minute.
        daily_count: Same-channel entries for the IP in the last 24 hours.
    """

    user_agent_missing: bool = False
    repeated_message_count: int = 0
    burst_count: int = 0
    ip_minute_count: int = 0
    device_minute_count: int = 0
    session_minute_count: int = 0
    daily_count: int = 0


@dataclass(frozen=True)
class WindowExpiry:
    """Milliseconds until the oldest entry of each window expires."""

    minute_ms: int | None = None
    burst_ms: int | None = None
    day_ms: int | None = None


@dataclass(frozen=True)
class DecisionPolicy:
    """Tunables applied by `decide` on top of the channel quotas."""

    weights: RiskWeights = field(default_factory=RiskWeights)
    challenge_threshold: int = DEFAULT_CHALLENGE_THRESHOLD


def retry_after_ms(timestamps: Iterable[int], window_ms: int, now_ms: int) -> int | None:
    """Return the time until the oldest timestamp leaves its window.

    Returns None when there are no timestamps.
    """
    oldest = min(timestamps, default=None)
    if oldest is None:
        return None
    return max(0, oldest + window_ms - now_ms)


def compute_risk_score(
    signals: RiskSignals,
    quotas: ChannelQuota,
    weights: RiskWeights = DEFAULT_RISK_WEIGHTS,
) -> int:
    """Combine abuse signals into an additive, unbounded risk score."""
    score = 0
    if signals.user_agent_missing:
        score += weights.user_agent_missing
    if signals.repeated_message_count >= weights.repeated_message_threshold:
        score += weights.repeated_message
    if signals.burst_count >= quotas.burst_per_ten_seconds:
        score += weights.burst
    if signals.ip_minute_count >= quotas.soft_ip_per_minute:
        score += weights.ip_minute
    if signals.device_minute_count >= quotas.soft_device_per_minute:
        score += weights.device_minute
    if signals.session_minute_count >= quotas.soft_session_per_minute:
        score += weights.session_minute
    if signals.daily_count >= quotas.channel_per_day:
        score += weights.daily
    return score


def is_hard_breach(signals: RiskSignals, quotas: ChannelQuota) -> bool:
    """Return True when any window is at or beyond twice its limit."""
    return (
        signals.ip_minute_count >= quotas.hard_ip_per_minute * HARD_LIMIT_FACTOR
        or signals.burst_count >= quotas.burst_per_ten_seconds * HARD_LIMIT_FACTOR
        or signals.device_minute_count >= quotas.soft_device_per_minute * HARD_LIMIT_FACTOR
        or signals.daily_count >= quotas.channel_per_day * HARD_LIMIT_FACTOR
    )


def is_soft_breach(signals: RiskSignals, quotas: ChannelQuota) -> bool:
    """Return True when an IP, device or session soft quota is reached."""
    return (
        signals.ip_minute_count >= quotas.soft_ip_per_minute
        or signals.device_minute_count >= quotas.soft_device_per_minute
        or signals.session_minute_count >= quotas.soft_session_per_minute
    )


def challenge_reason(
    signals: RiskSignals,
    quotas: ChannelQuota,
    weights: RiskWeights = DEFAULT_RISK_WEIGHTS,
) -> ChallengeReason:
    """Pick the most specific reason for requesting a challenge."""
    if signals.repeated_message_count >= weights.repeated_message_threshold:
        return "repeated_message_pattern"
    if signals.burst_count >= quotas.burst_per_ten_seconds:
        return "burst_velocity"
    return "adaptive_throttle"


def decide(
    signals: RiskSignals,
    quotas: ChannelQuota,
    expiry: WindowExpiry | None = None,
    policy: DecisionPolicy | None = None,
) -> AbuseDecision:
    """Map signals to an allow, challenge or block decision.

    Hard breaches are checked first, so they always win over soft ones.

    Args:
        signals: Window counts for the message being evaluated.
        quotas: Tier-scaled quotas for the message's channel.
        expiry: Time until each window's oldest entry expires, for retry hints.
        policy: Weights and challenge threshold; defaults apply when omitted.

    Returns:
        The `AbuseDecision` for this message.
    """
    expiry = expiry or WindowExpiry()
    policy = policy or DecisionPolicy()
    score = compute_risk_score(signals, quotas, policy.weights)

    if is_hard_breach(signals, quotas):
        return AbuseDecision(
            allowed=False,
            # Zero hints fall through to the next window.
            retry_after_ms=expiry.minute_ms or expiry.burst_ms or expiry.day_ms,
            risk_score=score,
            reason="velocity_block",
        )

    if is_soft_breach(signals, quotas) or score >= policy.challenge_threshold:
        return AbuseDecision(
            allowed=True,
            requires_challenge=True,
            challenge_reason=challenge_reason(signals, quotas, policy.weights),
            challenge_type="proof_of_human",
            retry_after_ms=expiry.minute_ms,
            risk_score=score,
            reason="challenge_required",
        )

    return AbuseDecision(allowed=True, risk_score=score, reason="allowed")
