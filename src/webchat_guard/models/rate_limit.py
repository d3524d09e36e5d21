# src/webchat_guard/models/rate_limit.py
"""Append-only ledger of inbound-message attempts."""

from typing import Final

from sqlalchemy import BigInteger, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from webchat_guard.db.session import Base

OUTCOME_ALLOWED: Final[str] = "allowed"
OUTCOME_THROTTLED: Final[str] = "throttled"
OUTCOME_BLOCKED: Final[str] = "blocked"

CHALLENGE_NOT_REQUIRED: Final[str] = "not_required"
CHALLENGE_REQUIRED: Final[str] = "required"
CHALLENGE_PASSED: Final[str] = "passed"
CHALLENGE_FAILED: Final[str] = "failed"


class RateLimitEntry(Base):
    """One inbound-message attempt and the outcome decided for it.

    Rows are never updated; they leave the table only through the stale-entry sweep.
    """

    __tablename__ = "webchat_rate_limits"
    __table_args__ = (
        Index("by_ip_and_time", "ip_address", "timestamp"),
        Index("by_device_and_time", "device_fingerprint_hash", "timestamp"),
        Index("by_session_and_time", "session_token", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ip_address: Mapped[str] = mapped_column(Text, nullable=False)
    organization_id: Mapped[int] = mapped_column(Integer, nullable=False)
    channel: Mapped[str] = mapped_column(Text, nullable=False, default="webchat")
    # One-way hashes only; raw fingerprints and user agents are never stored.
    device_fingerprint_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    session_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_agent_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    outcome: Mapped[str] = mapped_column(Text, nullable=False, default=OUTCOME_ALLOWED)
    challenge_state: Mapped[str] = mapped_column(
        Text, nullable=False, default=CHALLENGE_NOT_REQUIRED
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    request_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Epoch milliseconds.
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
