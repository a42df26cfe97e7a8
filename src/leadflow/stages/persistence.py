"""Lead persistence stage.

Writes the final leads in one multi-row insert. When the database rejects
the batch (for example a duplicate ``(campaign_id, email)``), the batch is
rolled back and each row is retried in its own transaction, so one bad row
never keeps the others out.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, Callable, Sequence

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..logging_utils import ContextAdapter
from ..models import Lead, OutreachStatus, get_db_session
from ..models.candidate import LeadCandidate

logger = ContextAdapter(logging.getLogger(__name__))

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


@dataclass
class PersistenceResult:
    """Counts from one persistence run."""

    attempted: int = 0
    inserted: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.failed == 0


class LeadPersistence:
    """Bulk-inserts leads for a campaign with per-row fallback."""

    def __init__(self, session_factory: SessionFactory = get_db_session):
        self._session_factory = session_factory

    @staticmethod
    def build_rows(campaign_id: str, leads: Sequence[LeadCandidate]) -> list[dict[str, Any]]:
        rows = []
        for lead in leads:
            row = lead.to_row(campaign_id)
            row["outreach_status"] = OutreachStatus.NEW
            rows.append(row)
        return rows

    async def _insert_one(self, row: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            session.add(Lead(**row))

    async def persist(self, campaign_id: str, leads: Sequence[LeadCandidate]) -> PersistenceResult:
        """Insert leads for a campaign.

        Never raises for database errors; failures are logged and counted.
        """
        result = PersistenceResult(attempted=len(leads))
        if not leads:
            return result

        rows = self.build_rows(campaign_id, leads)

        try:
            async with self._session_factory() as session:
                await session.execute(insert(Lead), rows)
            result.inserted = len(rows)
            logger.info("Inserted %d leads for campaign %s", len(rows), campaign_id)
            return result
        except SQLAlchemyError as e:
            logger.warning(
                "Bulk insert of %d leads failed, retrying row by row: %s",
                len(rows),
                e.__class__.__name__,
            )

        for row in rows:
            try:
                await self._insert_one(row)
                result.inserted += 1
            except SQLAlchemyError as e:
                result.failed += 1
                message = f"{row.get('full_name')} <{row.get('email') or '-'}>: {e.__class__.__name__}"
                result.errors.append(message)
                logger.warning("Lead insert failed: %s", message)

        logger.info(
            "Inserted %d of %d leads for campaign %s (%d failed)",
            result.inserted,
            result.attempted,
            campaign_id,
            result.failed,
        )
        return result
