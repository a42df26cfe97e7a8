"""The lead table: scored contacts written at the end of a campaign run."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


class OutreachStatus(str, Enum):
    """Where a lead stands in outreach. The pipeline writes only ``NEW``."""

    NEW = "new"
    EMAIL_SENT = "email_sent"
    EMAIL_OPENED = "email_opened"
    EMAIL_REPLIED = "email_replied"
    WHATSAPP_SENT = "whatsapp_sent"
    WHATSAPP_REPLIED = "whatsapp_replied"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"


_PUBLIC_COLUMNS = (
    "id",
    "campaign_id",
    "full_name",
    "email",
    "phone",
    "job_title",
    "company",
    "profile_url",
    "location",
    "match_score",
    "source",
)


class Lead(Base):
    """A contact that passed quality filtering and scoring for one campaign.

    ``email`` is stored validated and lower-cased, and is unique within a
    campaign when present. ``source`` names the lead source that produced it
    (``apify``, ``google_maps_places``, ``firecrawl_search`` or ``mock``) and
    ``raw_data`` keeps the provider payload for audit; neither takes part in
    identity or scoring.
    """

    __tablename__ = "leads"
    __table_args__ = (
        UniqueConstraint("campaign_id", "email", name="uq_leads_campaign_email"),
        Index("ix_leads_campaign_outreach_status", "campaign_id", "outreach_status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), index=True
    )

    full_name: Mapped[str] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(320))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    job_title: Mapped[Optional[str]] = mapped_column(String(255))
    company: Mapped[Optional[str]] = mapped_column(String(255))
    profile_url: Mapped[Optional[str]] = mapped_column(Text)
    location: Mapped[Optional[str]] = mapped_column(String(255))

    match_score: Mapped[int] = mapped_column(Integer, default=0, index=True)
    outreach_status: Mapped[OutreachStatus] = mapped_column(
        SQLEnum(OutreachStatus, name="outreach_status"), default=OutreachStatus.NEW
    )
    source: Mapped[Optional[str]] = mapped_column(String(100))
    raw_data: Mapped[Optional[Any]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Lead {self.full_name!r} score={self.match_score}>"

    def to_dict(self, include_raw: bool = False) -> dict[str, Any]:
        """Listing projection; ``raw_data`` only when asked for."""
        data = {column: getattr(self, column) for column in _PUBLIC_COLUMNS}
        data["outreach_status"] = self.outreach_status.value
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        if include_raw:
            data["raw_data"] = self.raw_data
        return data
