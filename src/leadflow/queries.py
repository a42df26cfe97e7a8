"""Read-only projections for the polling and lead listing surfaces."""

import logging
from typing import Any, AsyncContextManager, Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Campaign, Lead, get_db_session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


async def _lead_stats(session: AsyncSession, campaign_id: str) -> dict[str, int]:
    rows = await session.execute(
        select(Lead.outreach_status, func.count(Lead.id))
        .where(Lead.campaign_id == campaign_id)
        .group_by(Lead.outreach_status)
    )
    return {status.value: count for status, count in rows.all()}


def _status_projection(campaign: Campaign, lead_stats: dict[str, int]) -> dict[str, Any]:
    return {
        "campaign_id": campaign.id,
        "owner_id": campaign.owner_id,
        "status": campaign.status.value,
        "lead_count": campaign.lead_count,
        "persisted_lead_count": campaign.persisted_lead_count,
        "execution_logs": [entry.to_dict() for entry in campaign.logs],
        "error_message": campaign.error_message,
        "lead_stats": lead_stats,
        "created_at": campaign.created_at.isoformat() if campaign.created_at else None,
        "completed_at": campaign.completed_at.isoformat() if campaign.completed_at else None,
    }


async def get_campaign_status(
    campaign_id: Optional[str] = None,
    owner_id: Optional[str] = None,
    session_factory: SessionFactory = get_db_session,
) -> Optional[dict[str, Any]]:
    """Poll projection for a campaign.

    Looks up by campaign id, or by owner id (the owner's most recently
    created campaign).

    Args:
        campaign_id: Campaign to read.
        owner_id: Owner whose latest campaign to read.
        session_factory: Session context manager factory.

    Returns:
        Status, lead count, execution logs, error message and per-outreach-status
        lead counts, or None if there is no such campaign.

    Raises:
        ValueError: If neither id is given.
    """
    if not campaign_id and not owner_id:
        raise ValueError("campaign_id or owner_id is required")

    async with session_factory() as session:
        if campaign_id:
            campaign = await session.get(Campaign, campaign_id)
        else:
            campaign = (
                await session.execute(
                    select(Campaign)
                    .where(Campaign.owner_id == owner_id)
                    .order_by(Campaign.created_at.desc())
                    .limit(1)
                )
            ).scalar_one_or_none()

        if campaign is None:
            return None

        stats = await _lead_stats(session, campaign.id)
        return _status_projection(campaign, stats)


async def list_campaign_leads(
    campaign_id: str,
    limit: Optional[int] = None,
    offset: int = 0,
    include_raw: bool = False,
    session_factory: SessionFactory = get_db_session,
) -> list[dict[str, Any]]:
    """List a campaign's leads, best match first.

    Sorted by match score descending, then newest first. Raw provider data
    is left out unless ``include_raw`` is set.
    """
    query = (
        select(Lead)
        .where(Lead.campaign_id == campaign_id)
        .order_by(Lead.match_score.desc(), Lead.created_at.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)

    async with session_factory() as session:
        leads = (await session.execute(query)).scalars().all()

    return [lead.to_dict(include_raw=include_raw) for lead in leads]
