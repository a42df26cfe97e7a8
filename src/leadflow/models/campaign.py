"""The campaign table: one row per pipeline run."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, utcnow


class CampaignStatus(str, Enum):
    """Lifecycle of a run: pending -> scraping -> scoring -> one terminal state."""

    PENDING = "pending"
    SCRAPING = "scraping"
    SCORING = "scoring"
    READY = "ready"
    FAILED_SCRAPING = "failed_scraping"
    ERROR = "error"


TERMINAL_STATUSES = frozenset(
    (CampaignStatus.READY, CampaignStatus.FAILED_SCRAPING, CampaignStatus.ERROR)
)


def _new_campaign_id() -> str:
    return str(uuid.uuid4())


class Campaign(Base):
    """A single execution of the lead pipeline for one owner.

    Created ``pending`` by the trigger with the scraper parameters frozen as
    JSON. While it runs, only the orchestrator and the status tracker write
    the row. ``owner_id`` is not unique: polling by owner reads the newest.

    ``lead_count`` is what survived quality filtering and scoring;
    ``persisted_lead_count`` is what the store accepted. They differ only when
    some leads could not be written.
    """

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_campaign_id)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    status: Mapped[CampaignStatus] = mapped_column(
        SQLEnum(CampaignStatus, name="campaign_status"),
        default=CampaignStatus.PENDING,
        index=True,
    )

    scraper_parameters: Mapped[dict] = mapped_column(JSON, default=dict)
    research_result: Mapped[Optional[dict]] = mapped_column(JSON)

    lead_count: Mapped[int] = mapped_column(Integer, default=0)
    persisted_lead_count: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Insertion order of log rows is issue order
    logs: Mapped[list["CampaignLog"]] = relationship(
        back_populates="campaign",
        order_by="CampaignLog.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Campaign {self.id} owner={self.owner_id} status={self.status.value}>"

    @property
    def is_complete(self) -> bool:
        return self.status in TERMINAL_STATUSES
