# src/webchat_guard/scripts/ledger_sweep.py
"""
Cron job to sweep stale rate-limit ledger entries.

Per-request cleanup only reaches the IP, device and session of the message being
recorded. This script should be run hourly to delete every entry older than the
retention window, including keys that never send again.
"""

import logging

from sqlalchemy.orm import Session

from webchat_guard.core.settings import settings
from webchat_guard.db.session import SessionLocal
from webchat_guard.services.ledger import RateLimitLedger

logger = logging.getLogger(__name__)


def sweep_stale_entries(db: Session) -> int:
    """Delete all ledger entries older than the retention window.

    Args:
        db: Database session

    Returns:
        Number of deleted entries.
    """
    deleted = RateLimitLedger(db).sweep_all()
    db.commit()
    logger.info(
        "Swept %d ledger entries older than %d hours",
        deleted,
        settings.rate_limit_retention_hours,
    )
    return deleted


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())

    db = SessionLocal()
    try:
        sweep_stale_entries(db)
    finally:
        db.close()
