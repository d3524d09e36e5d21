# tests/helpers.py
"""Shared test helpers for seeding and inspecting the rate-limit ledger."""
from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from webchat_guard.models import RateLimitEntry
from webchat_guard.utils.hash import hash_identifier, hash_message

START_MS = 1_800_000_000_000
BYPASS_TOKEN = "let-me-in"
TEST_IP = "203.0.113.7"
BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64)"


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: int = START_MS) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, *, ms: int = 0, seconds: float = 0, hours: float = 0) -> int:
        self.now += ms + int(seconds * 1000) + int(hours * 3_600_000)
        return self.now


def seed_entries(
    db: Session,
    count: int,
    *,
    timestamp: int,
    organization_id: int,
    ip_address: str = TEST_IP,
    channel: str = "webchat",
    device_fingerprint: str | None = None,
    session_token: str | None = None,
    message: str | None = None,
    **extra: Any,
) -> list[RateLimitEntry]:
    """Insert ledger rows directly, bypassing the cleanup sweep."""
    entries = [
        RateLimitEntry(
            ip_address=ip_address,
            organization_id=organization_id,
            channel=channel,
            device_fingerprint_hash=hash_identifier(device_fingerprint),
            session_token=session_token,
            message_hash=hash_message(message),
            timestamp=timestamp,
            **extra,
        )
        for _ in range(count)
    ]
    db.add_all(entries)
    db.flush()
    return entries


def count_entries(db: Session, **filters: Any) -> int:
    """Return the number of ledger rows matching simple equality filters."""
    query = select(func.count()).select_from(RateLimitEntry).filter_by(**filters)
    return int(db.scalar(query) or 0)
