# src/webchat_guard/services/ledger.py
"""Rate-limit ledger: append, windowed reads and the stale-entry sweep."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webchat_guard.core.quotas import Channel, normalize_channel
from webchat_guard.core.settings import settings
from webchat_guard.db.time import Clock, now_ms
from webchat_guard.models import AuditLog, RateLimitEntry
from webchat_guard.models.audit_log import ABUSE_SIGNAL_ACTION
from webchat_guard.models.rate_limit import (
    CHALLENGE_FAILED,
    CHALLENGE_NOT_REQUIRED,
    CHALLENGE_REQUIRED,
    OUTCOME_ALLOWED,
    OUTCOME_BLOCKED,
)
from webchat_guard.utils.hash import clean_token, hash_identifier, hash_message

logger = logging.getLogger(__name__)

SIGNAL_REASON_MARKERS = ("pattern", "velocity")


@dataclass(frozen=True)
class LedgerRecord:
    """Raw inputs for one ledger entry, before hashing."""

    ip_address: str
    organization_id: int
    channel: str | None = None
    device_fingerprint: str | None = None
    session_token: str | None = None
    user_agent: str | None = None
    message: str | None = None
    outcome: str | None = None
    challenge_state: str | None = None
    reason: str | None = None
    risk_score: int | None = None
    request_id: str | None = None
    should_log_signal: bool = False


def is_abuse_signal(record: LedgerRecord, risk_threshold: int | None = None) -> bool:
    """Return True when a record is suspicious enough for the audit log."""
    threshold = settings.signal_risk_threshold if risk_threshold is None else risk_threshold
    return (
        record.should_log_signal
        or record.outcome == OUTCOME_BLOCKED
        or record.challenge_state in (CHALLENGE_REQUIRED, CHALLENGE_FAILED)
        or (record.risk_score is not None and record.risk_score >= threshold)
        or (
            record.reason is not None
            and any(marker in record.reason for marker in SIGNAL_REASON_MARKERS)
        )
    )


class RateLimitLedger:
    """Append-only store of inbound attempts backed by the database.

    All timestamps come from the injected clock so tests can move time.
    """

    def __init__(
        self,
        db: Session,
        clock: Clock = now_ms,
        retention_ms: int | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.retention_ms = (
            settings.rate_limit_retention_ms if retention_ms is None else retention_ms
        )

    def record(self, record: LedgerRecord) -> RateLimitEntry:
        """Append an entry, write the audit signal if warranted, then sweep.

        Database errors from the insert or the sweep propagate to the caller.
        """
        channel = normalize_channel(record.channel)
        device_hash = hash_identifier(record.device_fingerprint)
        session_token = clean_token(record.session_token)
        timestamp = self.clock()

        entry = RateLimitEntry(
            ip_address=record.ip_address,
            organization_id=record.organization_id,
            channel=channel,
            device_fingerprint_hash=device_hash,
            session_token=session_token,
            message_hash=hash_message(record.message),
            user_agent_hash=hash_identifier(record.user_agent),
            outcome=record.outcome or OUTCOME_ALLOWED,
            challenge_state=record.challenge_state or CHALLENGE_NOT_REQUIRED,
            reason=record.reason,
            risk_score=record.risk_score,
            request_id=record.request_id,
            timestamp=timestamp,
        )
        self.db.add(entry)
        self.db.flush()

        if is_abuse_signal(record):
            self._write_signal(entry, has_device=device_hash is not None)

        self.cleanup(
            record.ip_address,
            device_fingerprint_hash=device_hash,
            session_token=session_token,
            now=timestamp,
        )
        return entry

    def _write_signal(self, entry: RateLimitEntry, *, has_device: bool) -> None:
        """Write an audit record without letting its failure reach the caller."""
        try:
            with self.db.begin_nested():
                self.db.add(
                    AuditLog(
                        organization_id=entry.organization_id,
                        action=ABUSE_SIGNAL_ACTION,
                        resource=RateLimitEntry.__tablename__,
                        resource_id=entry.request_id,
                        details={
                            "channel": entry.channel,
                            "ipAddress": entry.ip_address,
                            "outcome": entry.outcome,
                            "challengeState": entry.challenge_state,
                            "reason": entry.reason,
                            "riskScore": entry.risk_score,
                            "hasDeviceFingerprint": has_device,
                            "hasSessionToken": entry.session_token is not None,
                        },
                        success=entry.outcome != OUTCOME_BLOCKED,
                        created_at=entry.timestamp,
                    )
                )
        except SQLAlchemyError:
            logger.exception(
                "Failed to write abuse signal for org=%s request=%s",
                entry.organization_id,
                entry.request_id,
            )
        else:
            logger.info(
                "Abuse signal org=%s channel=%s outcome=%s challenge=%s reason=%s score=%s",
                entry.organization_id,
                entry.channel,
                entry.outcome,
                entry.challenge_state,
                entry.reason,
                entry.risk_score,
            )

    def cleanup(
        self,
        ip_address: str,
        device_fingerprint_hash: str | None = None,
        session_token: str | None = None,
        *,
        now: int | None = None,
    ) -> int:
        """Delete entries older than the retention window for the given keys.

        Matches by IP, and by device hash and session token when supplied. Ids
        found through more than one key are deleted once.

        Returns:
            Number of deleted entries.
        """
        cutoff = (self.clock() if now is None else now) - self.retention_ms
        lookups = [RateLimitEntry.ip_address == ip_address]
        if device_fingerprint_hash:
            lookups.append(RateLimitEntry.device_fingerprint_hash == device_fingerprint_hash)
        if session_token:
            lookups.append(RateLimitEntry.session_token == session_token)

        stale_ids: set[int] = set()
        for condition in lookups:
            stale_ids.update(
                self.db.scalars(
                    select(RateLimitEntry.id).where(condition, RateLimitEntry.timestamp < cutoff)
                )
            )

        if stale_ids:
            self.db.execute(delete(RateLimitEntry).where(RateLimitEntry.id.in_(stale_ids)))
            logger.debug("Swept %d stale ledger entries for ip=%s", len(stale_ids), ip_address)
        return len(stale_ids)

    def sweep_all(self, *, now: int | None = None) -> int:
        """Delete every entry older than the retention window, regardless of key."""
        cutoff = (self.clock() if now is None else now) - self.retention_ms
        result = self.db.execute(delete(RateLimitEntry).where(RateLimitEntry.timestamp < cutoff))
        return int(result.rowcount or 0)

    # --- Windowed reads -------------------------------------------------------------
    def ip_entries_since(self, ip_address: str, since_ms: int) -> list[RateLimitEntry]:
        """Return entries for an IP strictly newer than `since_ms`, any channel."""
        return list(
            self.db.scalars(
                select(RateLimitEntry).where(
                    RateLimitEntry.ip_address == ip_address,
                    RateLimitEntry.timestamp > since_ms,
                )
            )
        )

    def channel_entries_since(
        self, ip_address: str, channel: Channel, since_ms: int
    ) -> list[RateLimitEntry]:
        """Return an IP's entries on one channel strictly newer than `since_ms`."""
        return [
            entry
            for entry in self.ip_entries_since(ip_address, since_ms)
            if normalize_channel(entry.channel) == channel
        ]

    def device_entries_since(self, device_fingerprint_hash: str, since_ms: int) -> list[RateLimitEntry]:
        """Return entries for a device hash strictly newer than `since_ms`."""
        return list(
            self.db.scalars(
                select(RateLimitEntry).where(
                    RateLimitEntry.device_fingerprint_hash == device_fingerprint_hash,
                    RateLimitEntry.timestamp > since_ms,
                )
            )
        )

    def session_entries_since(self, session_token: str, since_ms: int) -> list[RateLimitEntry]:
        """Return entries for a session token strictly newer than `since_ms`."""
        return list(
            self.db.scalars(
                select(RateLimitEntry).where(
                    RateLimitEntry.session_token == session_token,
                    RateLimitEntry.timestamp > since_ms,
                )
            )
        )


def record_rate_limit_entry(
    db: Session,
    ip_address: str,
    organization_id: int,
    channel: str | None = None,
    device_fingerprint: str | None = None,
    session_token: str | None = None,
    user_agent: str | None = None,
    message: str | None = None,
    outcome: str | None = None,
    challenge_state: str | None = None,
    reason: str | None = None,
    risk_score: int | None = None,
    request_id: str | None = None,
    should_log_signal: bool | None = None,
    *,
    clock: Clock = now_ms,
) -> None:
    """Record one inbound attempt and sweep that caller's stale entries."""
    RateLimitLedger(db, clock=clock).record(
        LedgerRecord(
            ip_address=ip_address,
            organization_id=organization_id,
            channel=channel,
            device_fingerprint=device_fingerprint,
            session_token=session_token,
            user_agent=user_agent,
            message=message,
            outcome=outcome,
            challenge_state=challenge_state,
            reason=reason,
            risk_score=risk_score,
            request_id=request_id,
            should_log_signal=bool(should_log_signal),
        )
    )
