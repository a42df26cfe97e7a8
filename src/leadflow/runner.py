"""Campaign trigger and background run registry.

:meth:`CampaignRunner.trigger` validates the input, creates the campaign in
``pending`` and returns its id right away; the pipeline runs in a detached
asyncio task. The runner keeps a reference to each task until it finishes
(the event loop itself holds only weak references) and can cancel them all
on shutdown.
"""

import asyncio
import logging
from typing import Any, AsyncContextManager, Callable, Mapping, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from .models import Campaign, CampaignStatus, get_db_session
from .models.candidate import ScraperParameters
from .orchestrator import CampaignOrchestrator, CampaignResult

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class CampaignValidationError(ValueError):
    """Raised when trigger input is rejected before a campaign is created."""

    pass


class CampaignRunner:
    """Starts campaign runs in the background and tracks them.

    Attributes:
        orchestrator: Orchestrator shared by all runs. It holds no per-run
            state, so concurrent runs are independent.

    Example:
        >>> runner = CampaignRunner()
        >>> campaign_id = await runner.trigger(
        ...     owner_id="user-1",
        ...     scraper_parameters={
        ...         "target_platforms": ["linkedin"],
        ...         "boolean_search_strings": ['"VP Sales" AND SaaS'],
        ...         "target_job_titles": ["VP Sales"],
        ...     },
        ... )
    """

    def __init__(
        self,
        orchestrator: Optional[CampaignOrchestrator] = None,
        session_factory: SessionFactory = get_db_session,
    ):
        self._orchestrator = orchestrator
        self._session_factory = session_factory
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def orchestrator(self) -> CampaignOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = CampaignOrchestrator()
        return self._orchestrator

    @staticmethod
    def validate(
        owner_id: Optional[str],
        scraper_parameters: Union[ScraperParameters, Mapping[str, Any], None],
    ) -> ScraperParameters:
        """Validate trigger input.

        Raises:
            CampaignValidationError: If the owner id or platform list is missing.
        """
        if not owner_id or not str(owner_id).strip():
            raise CampaignValidationError("owner_id is required")
        if scraper_parameters is None:
            raise CampaignValidationError("scraper_parameters are required")
        if isinstance(scraper_parameters, ScraperParameters):
            parameters = scraper_parameters
        elif isinstance(scraper_parameters, Mapping):
            parameters = ScraperParameters.from_dict(dict(scraper_parameters))
        else:
            raise CampaignValidationError("scraper_parameters must be a mapping")
        if not parameters.platforms:
            raise CampaignValidationError("At least one target platform is required")
        return parameters

    async def trigger(
        self,
        owner_id: str,
        scraper_parameters: Union[ScraperParameters, Mapping[str, Any]],
        research_result: Optional[dict[str, Any]] = None,
    ) -> str:
        """Create a campaign and start its run in the background.

        Returns:
            The new campaign id. The run has not started any stage yet.

        Raises:
            CampaignValidationError: If the input is invalid.
            ConfigError, ValueError: If the default stages cannot be built from
                the configuration.

        In both cases no campaign is created.
        """
        parameters = self.validate(owner_id, scraper_parameters)
        orchestrator = self.orchestrator

        async with self._session_factory() as session:
            campaign = Campaign(
                owner_id=str(owner_id).strip(),
                status=CampaignStatus.PENDING,
                scraper_parameters=parameters.to_dict(),
                research_result=research_result,
                lead_count=0,
                persisted_lead_count=0,
            )
            session.add(campaign)
            await session.flush()
            campaign_id = campaign.id

        logger.info("Created campaign %s for owner %s", campaign_id, owner_id)
        self._spawn(orchestrator, campaign_id, parameters)
        return campaign_id

    def _spawn(
        self,
        orchestrator: CampaignOrchestrator,
        campaign_id: str,
        parameters: ScraperParameters,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self._run_guarded(orchestrator, campaign_id, parameters),
            name=f"campaign-{campaign_id}",
        )
        self._tasks[campaign_id] = task
        task.add_done_callback(lambda _t, cid=campaign_id: self._tasks.pop(cid, None))
        return task

    async def _run_guarded(
        self,
        orchestrator: CampaignOrchestrator,
        campaign_id: str,
        parameters: ScraperParameters,
    ) -> Optional[CampaignResult]:
        """Error boundary for one detached run."""
        try:
            result = await orchestrator.run(campaign_id, parameters)
        except asyncio.CancelledError:
            logger.warning("Campaign %s run cancelled", campaign_id)
            raise
        except Exception as e:
            logger.exception("Campaign %s run crashed", campaign_id)
            await self._mark_crashed(orchestrator, campaign_id, e)
            return None

        logger.info(
            "Campaign %s finished with status %s: %d leads (%d persisted) in %.1fs",
            campaign_id,
            result.status.value,
            result.lead_count,
            result.persisted_count,
            result.duration_seconds,
        )
        return result

    @staticmethod
    async def _mark_crashed(
        orchestrator: CampaignOrchestrator, campaign_id: str, error: Exception
    ) -> None:
        """Leave the campaign in a terminal state when a fault escapes the run."""
        message = str(error) or error.__class__.__name__
        await orchestrator.tracker.record_log(campaign_id, f"Pipeline error: {message}")
        await orchestrator.tracker.set_status(
            campaign_id, CampaignStatus.ERROR, error_message=message
        )

    @property
    def active_runs(self) -> list[str]:
        """Ids of campaigns whose run has not finished."""
        return [cid for cid, task in self._tasks.items() if not task.done()]

    def is_running(self, campaign_id: str) -> bool:
        task = self._tasks.get(campaign_id)
        return task is not None and not task.done()

    async def wait(self, campaign_id: str) -> Optional[CampaignResult]:
        """Wait for a run to finish; returns None if it is not tracked."""
        task = self._tasks.get(campaign_id)
        if task is None:
            return None
        return await task

    async def wait_all(self) -> None:
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every active run and wait for them to record ``error``."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        if not tasks:
            return
        logger.warning("Cancelling %d active campaign runs", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
