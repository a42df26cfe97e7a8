"""Best-effort campaign status and execution log writer.

Every write runs in its own short transaction and is awaited, so log entries
for one campaign land in the order they were issued (the autoincrement id
records that order). A failed write is logged and swallowed; the pipeline
never depends on a status or log line landing.
"""

import logging
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .logging_utils import ContextAdapter
from .models import Campaign, CampaignLog, CampaignStatus, TERMINAL_STATUSES, get_db_session

logger = ContextAdapter(logging.getLogger(__name__))

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

# Campaign columns set_status may write alongside the status
UPDATABLE_FIELDS = frozenset({"lead_count", "persisted_lead_count", "error_message"})


class StatusTracker:
    """Writes campaign status transitions and log lines.

    Example:
        >>> tracker = StatusTracker()
        >>> await tracker.record_log(campaign_id, "Starting lead scraping...")
        >>> await tracker.set_status(campaign_id, CampaignStatus.READY, lead_count=5)
    """

    def __init__(self, session_factory: SessionFactory = get_db_session):
        self._session_factory = session_factory

    async def record_log(self, campaign_id: str, message: str) -> bool:
        """Append one execution log entry.

        Returns:
            True if the entry was written.
        """
        logger.info(message, extra={"campaign_id": campaign_id})
        try:
            async with self._session_factory() as session:
                session.add(CampaignLog(campaign_id=campaign_id, message=message))
            return True
        except Exception as e:
            logger.warning(
                "Failed to record campaign log: %s", e, extra={"campaign_id": campaign_id}
            )
            return False

    async def set_status(
        self,
        campaign_id: str,
        status: CampaignStatus,
        **fields: Any,
    ) -> bool:
        """Update status and accompanying fields in one transaction.

        Sets ``started_at`` on the first move to scraping and
        ``completed_at`` on any terminal status.

        Args:
            campaign_id: Campaign to update.
            status: New status.
            **fields: Any of ``lead_count``, ``persisted_lead_count``,
                ``error_message``.

        Returns:
            True if the update was written.

        Raises:
            ValueError: If an unknown field is passed.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update campaign fields: {sorted(unknown)}")

        try:
            async with self._session_factory() as session:
                campaign: Optional[Campaign] = await session.get(Campaign, campaign_id)
                if campaign is None:
                    logger.warning(
                        "Campaign not found for status update",
                        extra={"campaign_id": campaign_id},
                    )
                    return False

                campaign.status = status
                for name, value in fields.items():
                    setattr(campaign, name, value)

                now = datetime.now(timezone.utc)
                if status == CampaignStatus.SCRAPING and campaign.started_at is None:
                    campaign.started_at = now
                elif status in TERMINAL_STATUSES:
                    campaign.completed_at = now

            logger.debug(
                "Campaign status set to %s", status.value, extra={"campaign_id": campaign_id}
            )
            return True
        except Exception as e:
            logger.warning(
                "Failed to update campaign status: %s", e, extra={"campaign_id": campaign_id}
            )
            return False
