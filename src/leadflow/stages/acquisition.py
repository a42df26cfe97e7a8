"""Source acquisition stage.

Fetches raw records for every (search expression, platform) pair, isolating
failures per pair, and normalizes them into :class:`LeadCandidate` objects.
Only a registry that cannot be built at all fails the stage.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..logging_utils import ContextAdapter
from ..models.candidate import LeadCandidate, ScraperParameters
from ..sources import LeadSourceRegistry, build_source_registry, normalize_platform
from ..sources.base import BaseLeadSource
from ..utils.normalization import normalize_raw_lead

logger = ContextAdapter(logging.getLogger(__name__))

LogCallback = Callable[[str], Awaitable[Any]]
RegistryFactory = Callable[[Sequence[str]], LeadSourceRegistry]

DEFAULT_TIMEOUT_SECONDS = 120.0


async def _noop_log(message: str) -> None:
    return None


@dataclass
class AcquisitionResult:
    """Outcome of one acquisition run.

    Attributes:
        candidates: Normalized candidates in acquisition order.
        raw_count: Raw records returned by all sources.
        dropped_count: Raw records rejected by normalization.
        attempted_pairs: (expression, platform) pairs that were fetched.
        failed_pairs: Pairs that raised or timed out, as ``platform: expression``.
        skipped_platforms: Platform names no source could serve.
    """

    candidates: list[LeadCandidate] = field(default_factory=list)
    raw_count: int = 0
    dropped_count: int = 0
    attempted_pairs: int = 0
    failed_pairs: list[str] = field(default_factory=list)
    skipped_platforms: list[str] = field(default_factory=list)


class SourceAcquisitionStage:
    """Runs lead sources for a campaign's scraper parameters.

    Attributes:
        timeout_seconds: Bound on each (expression, platform) fetch.
        concurrency: Pairs fetched at once; 1 keeps them sequential.
    """

    def __init__(
        self,
        registry_factory: Optional[RegistryFactory] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        concurrency: int = 1,
    ):
        self._registry_factory = registry_factory or (
            lambda platforms: build_source_registry(platforms=platforms)
        )
        self.timeout_seconds = timeout_seconds
        self.concurrency = max(1, concurrency)

    async def _fetch_pair(
        self,
        source: BaseLeadSource,
        platform: str,
        expression: str,
        job_titles: Sequence[str],
        log: LogCallback,
    ) -> Optional[list[dict[str, Any]]]:
        """Fetch one pair; None means it failed and was skipped."""
        await log(f"Launching {source.name} scraper for {platform}: \"{expression[:60]}\"")
        try:
            records = await asyncio.wait_for(
                source.fetch(expression, job_titles),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Acquisition timed out after %.0fs for %s: %r",
                self.timeout_seconds, platform, expression,
            )
            await log(f"Scraper timed out for {platform} after {self.timeout_seconds:.0f}s")
            return None
        except Exception as e:
            logger.warning("Acquisition failed for %s: %r: %s", platform, expression, e)
            await log(f"Scraper error for {platform}: {e}")
            return None

        records = list(records or [])
        await log(f"Retrieved {len(records)} raw results from {platform}.")
        return records

    async def run(
        self,
        parameters: ScraperParameters,
        log: Optional[LogCallback] = None,
    ) -> AcquisitionResult:
        """Acquire and normalize candidates.

        Args:
            parameters: Campaign scraper parameters.
            log: Async callback receiving campaign log lines.

        Returns:
            AcquisitionResult with candidates in (expression, platform) order.

        Raises:
            AcquisitionUnavailableError: If no lead source can be initialized.
        """
        log = log or _noop_log
        result = AcquisitionResult()

        registry = self._registry_factory(parameters.platforms)

        resolved: list[tuple[str, BaseLeadSource]] = []
        for platform in parameters.platforms:
            source = registry.resolve(platform)
            if source is None:
                logger.warning("Skipping unknown platform: %s", platform)
                await log(f"Skipping unknown platform: {platform}")
                result.skipped_platforms.append(platform)
                continue
            resolved.append((normalize_platform(platform), source))

        pairs = [
            (expression, platform, source)
            for expression in parameters.search_expressions
            for platform, source in resolved
        ]
        result.attempted_pairs = len(pairs)

        if self.concurrency == 1:
            fetched = []
            for expression, platform, source in pairs:
                fetched.append(
                    await self._fetch_pair(source, platform, expression, parameters.job_titles, log)
                )
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def fetch_with_semaphore(expression, platform, source):
                async with semaphore:
                    return await self._fetch_pair(
                        source, platform, expression, parameters.job_titles, log
                    )

            fetched = await asyncio.gather(
                *(fetch_with_semaphore(e, p, s) for e, p, s in pairs)
            )

        for (expression, platform, source), records in zip(pairs, fetched):
            if records is None:
                result.failed_pairs.append(f"{platform}: {expression}")
                continue
            result.raw_count += len(records)
            for raw in records:
                candidate = normalize_raw_lead(raw, source=source.name)
                if candidate is None:
                    result.dropped_count += 1
                else:
                    result.candidates.append(candidate)

        logger.info(
            "Acquisition complete: %d raw, %d candidates, %d/%d pairs failed",
            result.raw_count,
            len(result.candidates),
            len(result.failed_pairs),
            result.attempted_pairs,
        )
        return result
