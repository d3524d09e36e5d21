#!/usr/bin/env python3
"""Demonstration of how inbound traffic escalates from allow to challenge to block.

Runs the decision engine directly with synthetic window counts, so no
database or running server is needed.

Usage:
    python examples/guard_demo.py [channel] [tier]
"""

import sys

sys.path.insert(0, "src")

from webchat_guard.core.quotas import resolve_quotas  # noqa: E402
from webchat_guard.core.risk import RiskSignals, WindowExpiry, decide  # noqa: E402


def demonstrate_escalation(channel: str = "webchat", tier: str = "free") -> None:
    quotas = resolve_quotas(channel, tier)
    print(f"Quotas for {channel} ({tier}): {quotas.as_dict()}")
    print()

    scenarios = {
        "quiet visitor": RiskSignals(ip_minute_count=2, daily_count=2),
        "no user agent": RiskSignals(user_agent_missing=True),
        "chatty visitor": RiskSignals(ip_minute_count=quotas.soft_ip_per_minute),
        "copy-paste spam": RiskSignals(repeated_message_count=4, burst_count=6, ip_minute_count=6),
        "burst flood": RiskSignals(burst_count=quotas.burst_per_ten_seconds * 2),
        "sustained flood": RiskSignals(ip_minute_count=quotas.hard_ip_per_minute * 2),
    }
    expiry = WindowExpiry(minute_ms=42_000, burst_ms=7_000, day_ms=3_600_000)

    for label, signals in scenarios.items():
        decision = decide(signals, quotas, expiry)
        if not decision.allowed:
            verdict = f"BLOCK  retry in {decision.retry_after_seconds}s"
        elif decision.requires_challenge:
            verdict = f"CHALLENGE ({decision.challenge_reason})"
        else:
            verdict = "ALLOW"
        print(f"  {label:<16} score={decision.risk_score:<4} {verdict}")


if __name__ == "__main__":
    demonstrate_escalation(*sys.argv[1:3])
