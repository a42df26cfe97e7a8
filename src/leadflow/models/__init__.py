"""Persistent records and in-flight shapes of a campaign run.

``Campaign``, ``CampaignLog`` and ``Lead`` are stored; ``LeadCandidate``,
``ScraperParameters`` and ``ScoringContext`` only live inside one run.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base shared by every table."""


# Model imports register the tables on Base.metadata
from .campaign import Campaign, CampaignStatus, TERMINAL_STATUSES
from .campaign_log import CampaignLog
from .lead import Lead, OutreachStatus
from .candidate import LeadCandidate, ScraperParameters, ScoringContext
from .database import DatabaseManager, create_test_engine, get_db_session

__all__ = [
    "Base",
    "Campaign",
    "CampaignStatus",
    "TERMINAL_STATUSES",
    "CampaignLog",
    "Lead",
    "OutreachStatus",
    "LeadCandidate",
    "ScraperParameters",
    "ScoringContext",
    "DatabaseManager",
    "get_db_session",
    "create_test_engine",
]
