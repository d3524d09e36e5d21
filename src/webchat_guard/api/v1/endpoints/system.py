"""System and transparency endpoints for the Webchat Guard API."""

from __future__ import annotations

from fastapi import APIRouter

from webchat_guard.core.quotas import BASE_QUOTAS, PAID_TIER_MULTIPLIER
from webchat_guard.core.risk import (
    BURST_WINDOW_MS,
    DAY_WINDOW_MS,
    DEFAULT_RISK_WEIGHTS,
    HARD_LIMIT_FACTOR,
    MINUTE_WINDOW_MS,
)
from webchat_guard.core.settings import settings
from webchat_guard.services.challenge import load_challenge_config

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets, tokens and connection strings.
    """
    challenge = load_challenge_config()
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "quotas": {
            "base": {channel: quota.as_dict() for channel, quota in BASE_QUOTAS.items()},
            "paid_tier_multiplier": PAID_TIER_MULTIPLIER,
            "hard_limit_factor": HARD_LIMIT_FACTOR,
        },
        "windows_ms": {
            "burst": BURST_WINDOW_MS,
            "minute": MINUTE_WINDOW_MS,
            "day": DAY_WINDOW_MS,
        },
        "risk": {
            "weights": DEFAULT_RISK_WEIGHTS.as_dict(),
            "challenge_threshold": settings.challenge_risk_threshold,
            "signal_threshold": settings.signal_risk_threshold,
        },
        "ledger": {
            "retention_hours": settings.rate_limit_retention_hours,
        },
        "challenge": {
            "bypass_enabled": challenge.bypass_enabled,
            "hook_configured": challenge.hook_configured,
            "timeout_seconds": challenge.timeout_seconds,
        },
    }
