"""Campaign pipeline orchestrator.

Runs one campaign through its stages in order and maps each stage outcome to
a campaign status:

    pending -> scraping -> scoring -> ready
                  |
                  +-> failed_scraping   (acquisition failed, nothing else runs)

Acquisition failure is fatal. Scoring failure is not: the run continues with
the unscored leads. Persistence failures are counted and the run still
reaches ``ready``. Any unexpected fault ends the run in ``error``. The final
status write is always the last thing a run does.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .config import Config, config as default_config
from .logging_utils import ContextAdapter, LogContext
from .models import CampaignStatus
from .models.candidate import LeadCandidate, ScoringContext, ScraperParameters
from .stages import LeadPersistence, LeadScorer, SourceAcquisitionStage
from .status_tracker import StatusTracker
from .utils import deduplicate_leads, passes_quality_filter

logger = ContextAdapter(logging.getLogger(__name__))

CANCELLED_MESSAGE = "Run cancelled before completion"


@dataclass
class PipelineConfig:
    """Tunables for one pipeline, copied from :class:`Config`.

    Attributes:
        acquisition_timeout_seconds: Bound on each (expression, platform) fetch.
        acquisition_concurrency: Pairs fetched at once.
        scoring_batch_size: Leads per scoring call.
        scoring_timeout_seconds: Bound on each scoring call.
        scoring_concurrency: Batches scored at once.
        min_match_score: Threshold a lead must meet to be kept.
        default_match_score: Score for leads whose batch could not be scored.
    """

    acquisition_timeout_seconds: float = 120.0
    acquisition_concurrency: int = 1
    scoring_batch_size: int = 20
    scoring_timeout_seconds: float = 60.0
    scoring_concurrency: int = 1
    min_match_score: int = 40
    default_match_score: int = 50

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "PipelineConfig":
        cfg = cfg or default_config
        return cls(
            acquisition_timeout_seconds=cfg.ACQUISITION_TIMEOUT_SECONDS,
            acquisition_concurrency=cfg.ACQUISITION_CONCURRENCY,
            scoring_batch_size=cfg.SCORING_BATCH_SIZE,
            scoring_timeout_seconds=cfg.SCORING_TIMEOUT_SECONDS,
            scoring_concurrency=cfg.SCORING_CONCURRENCY,
            min_match_score=cfg.MIN_MATCH_SCORE,
            default_match_score=cfg.DEFAULT_MATCH_SCORE,
        )


@dataclass
class CampaignResult:
    """Result of one campaign run, for the runner's logs.

    Attributes:
        campaign_id: The campaign ID.
        status: Final campaign status.
        raw_count: Raw records returned by the sources.
        candidate_count: Records that survived normalization.
        unique_count: Candidates left after deduplication.
        qualified_count: Unique candidates passing the quality rule.
        lead_count: Leads left after scoring (the campaign's lead count).
        persisted_count: Leads actually written.
        failed_pairs: Acquisition pairs that failed.
        failed_batches: Scoring batches that fell back to the default score.
        errors: Run-level errors.
        started_at: Execution start time.
        completed_at: Execution end time.
        duration_seconds: Total execution duration.
    """

    campaign_id: str
    status: CampaignStatus = CampaignStatus.PENDING
    raw_count: int = 0
    candidate_count: int = 0
    unique_count: int = 0
    qualified_count: int = 0
    lead_count: int = 0
    persisted_count: int = 0
    failed_pairs: list[str] = field(default_factory=list)
    failed_batches: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == CampaignStatus.READY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "campaign_id": self.campaign_id,
            "status": self.status.value,
            "success": self.success,
            "raw_count": self.raw_count,
            "candidate_count": self.candidate_count,
            "unique_count": self.unique_count,
            "qualified_count": self.qualified_count,
            "lead_count": self.lead_count,
            "persisted_count": self.persisted_count,
            "failed_pairs": self.failed_pairs,
            "failed_batches": self.failed_batches,
            "errors": self.errors,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


def _build_default_scorer(pipeline_config: PipelineConfig, cfg: Config) -> LeadScorer:
    """Create the scorer, with a model client only when a key is configured.

    Raises:
        ConfigError: A key is set but the scoring settings are out of range.
    """
    client = None
    if cfg.OPENAI_API_KEY:
        cfg.validate_for_scoring()
        from .integrations.openai_scoring import ScoringLLMClient

        client = ScoringLLMClient(
            api_key=cfg.OPENAI_API_KEY,
            model=cfg.OPENAI_MODEL,
            timeout_seconds=pipeline_config.scoring_timeout_seconds,
        )
    return LeadScorer(
        client=client,
        batch_size=pipeline_config.scoring_batch_size,
        min_score=pipeline_config.min_match_score,
        default_score=pipeline_config.default_match_score,
        timeout_seconds=pipeline_config.scoring_timeout_seconds,
        concurrency=pipeline_config.scoring_concurrency,
    )


class CampaignOrchestrator:
    """Sequences the pipeline stages for a campaign.

    Stages are injectable so tests and embedding applications can replace
    any of them; the defaults are built from the pipeline config.

    Attributes:
        config: Pipeline configuration.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        acquisition: Optional[SourceAcquisitionStage] = None,
        scorer: Optional[LeadScorer] = None,
        persistence: Optional[LeadPersistence] = None,
        tracker: Optional[StatusTracker] = None,
        app_config: Optional[Config] = None,
    ):
        app_config = app_config or default_config
        self.config = config or PipelineConfig.from_config(app_config)
        self.acquisition = acquisition or SourceAcquisitionStage(
            timeout_seconds=self.config.acquisition_timeout_seconds,
            concurrency=self.config.acquisition_concurrency,
        )
        self.scorer = scorer or _build_default_scorer(self.config, app_config)
        self.persistence = persistence or LeadPersistence()
        self.tracker = tracker or StatusTracker()

    async def run(self, campaign_id: str, parameters: ScraperParameters) -> CampaignResult:
        """Execute one campaign run.

        Never raises for stage or storage faults; the outcome is in the
        campaign's final status and in the returned result. Cancellation is
        recorded as ``error`` and then re-raised.

        Args:
            campaign_id: Campaign to run; must already exist.
            parameters: Its scraper parameters.

        Returns:
            CampaignResult with counts and the final status.
        """
        started_at = datetime.now(timezone.utc)
        result = CampaignResult(campaign_id=campaign_id, started_at=started_at)

        async def log(message: str) -> None:
            await self.tracker.record_log(campaign_id, message)

        with LogContext(campaign_id=campaign_id):
            try:
                await self._run_stages(campaign_id, parameters, result, log)
            except asyncio.CancelledError:
                logger.warning("Campaign run cancelled")
                result.status = CampaignStatus.ERROR
                result.errors.append(CANCELLED_MESSAGE)
                await log(CANCELLED_MESSAGE)
                await self.tracker.set_status(
                    campaign_id, CampaignStatus.ERROR, error_message=CANCELLED_MESSAGE
                )
                raise
            except Exception as e:
                logger.exception("Campaign run failed: %s", e)
                result.status = CampaignStatus.ERROR
                result.errors.append(str(e))
                await log(f"Pipeline error: {e}")
                await self.tracker.set_status(
                    campaign_id, CampaignStatus.ERROR, error_message=str(e)
                )
            finally:
                result.completed_at = datetime.now(timezone.utc)
                result.duration_seconds = (result.completed_at - started_at).total_seconds()

        return result

    async def _run_stages(self, campaign_id, parameters, result, log) -> None:
        # Stage 1: acquisition (fatal)
        await self.tracker.set_status(campaign_id, CampaignStatus.SCRAPING)
        await log("Starting lead scraping...")

        try:
            acquired = await self.acquisition.run(parameters, log=log)
        except Exception as e:
            logger.error("Acquisition failed: %s", e)
            result.status = CampaignStatus.FAILED_SCRAPING
            result.errors.append(str(e))
            await log(f"Scraping failed: {e}")
            await self.tracker.set_status(
                campaign_id, CampaignStatus.FAILED_SCRAPING, error_message=str(e)
            )
            return

        result.raw_count = acquired.raw_count
        result.candidate_count = len(acquired.candidates)
        result.failed_pairs = list(acquired.failed_pairs)

        # Stage 2: deduplication and quality filter
        unique = deduplicate_leads(acquired.candidates)
        qualified = [lead for lead in unique if passes_quality_filter(lead)]
        result.unique_count = len(unique)
        result.qualified_count = len(qualified)
        await log(
            f"Total leads after scraping & cleaning: {len(qualified)} "
            f"({acquired.raw_count} raw, {len(unique)} unique)"
        )

        # Stage 3: scoring (non-fatal)
        await self.tracker.set_status(campaign_id, CampaignStatus.SCORING)
        await log(f"Scoring {len(qualified)} leads with AI...")
        leads = await self._score(qualified, parameters, result, log)

        # Stage 4: persistence (non-fatal)
        persisted = 0
        if leads:
            await log(f"Saving {len(leads)} leads...")
            try:
                outcome = await self.persistence.persist(campaign_id, leads)
                persisted = outcome.inserted
                if outcome.failed:
                    await log(f"Warning: {outcome.failed} of {outcome.attempted} leads could not be saved")
            except Exception as e:
                logger.warning("Lead persistence failed: %s", e)
                result.errors.append(f"persistence: {e}")
                await log(f"Warning: saving leads failed: {e}")

        # Finalize
        result.lead_count = len(leads)
        result.persisted_count = persisted
        result.status = CampaignStatus.READY
        await log(f"Campaign complete! {len(leads)} qualified leads ready.")
        await self.tracker.set_status(
            campaign_id,
            CampaignStatus.READY,
            lead_count=len(leads),
            persisted_lead_count=persisted,
        )

    async def _score(
        self,
        leads: list[LeadCandidate],
        parameters: ScraperParameters,
        result: CampaignResult,
        log,
    ) -> list[LeadCandidate]:
        """Run the scorer; on failure keep the leads as they were."""
        if not leads:
            return []
        try:
            scored = await self.scorer.score(leads, ScoringContext.from_parameters(parameters))
        except Exception as e:
            logger.warning("Scoring failed, keeping unscored leads: %s", e)
            result.errors.append(f"scoring: {e}")
            await log(f"Warning: scoring failed, keeping {len(leads)} unscored leads: {e}")
            return list(leads)

        result.failed_batches = list(scored.failed_batches)
        if scored.failed_batches:
            await log(
                f"Warning: {len(scored.failed_batches)} scoring batches failed; "
                "their leads received the default score"
            )
        await log(f"{len(scored.leads)} leads scored at or above {self.scorer.min_score}.")
        return scored.leads


async def run_campaign_pipeline(
    campaign_id: str,
    parameters: ScraperParameters,
    config: Optional[PipelineConfig] = None,
) -> CampaignResult:
    """Run one campaign with the default stages.

    Example:
        >>> result = await run_campaign_pipeline(campaign_id, parameters)
        >>> print(result.status, result.lead_count)
    """
    orchestrator = CampaignOrchestrator(config=config)
    return await orchestrator.run(campaign_id, parameters)
