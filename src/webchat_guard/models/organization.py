# src/webchat_guard/models/organization.py
"""Organization records consulted for tier-scaled quotas."""

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from webchat_guard.db.session import Base

FREE_TIER = "free"


class Organization(Base):
    """Tenant owning the inbound channels."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    plan: Mapped[str | None] = mapped_column(Text, nullable=True, default=FREE_TIER)
    # Explicit override set by support staff; wins over the billing plan.
    tier: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def effective_tier(self) -> str:
        """Return the tier used for quota scaling."""
        return self.tier or self.plan or FREE_TIER
