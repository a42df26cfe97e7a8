"""Execution log entries appended to a campaign while it runs."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, utcnow


class CampaignLog(Base):
    """One timestamped line of a campaign's execution log.

    Entries are append-only. The autoincrement primary key records insertion
    order, which is the order the orchestrator issued them in.
    """

    __tablename__ = "campaign_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    campaign_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    message: Mapped[str] = mapped_column(Text, nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="logs")

    def __repr__(self) -> str:
        return f"<CampaignLog(campaign_id={self.campaign_id!r}, message={self.message[:40]!r})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
