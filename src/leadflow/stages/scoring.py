"""Batched lead scoring.

Leads are split into fixed-size batches. Each batch is scored by one model
call on a minimal projection of the leads (no raw data, email presence only).
A batch whose call fails or returns something unparseable gives every lead
in it the default score; other batches are unaffected. Threshold filtering
and the descending sort happen once, after every batch is merged.
"""

import asyncio
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from ..logging_utils import ContextAdapter
from ..models.candidate import LeadCandidate, ScoringContext

logger = ContextAdapter(logging.getLogger(__name__))

DEFAULT_BATCH_SIZE = 20
DEFAULT_MIN_SCORE = 40
DEFAULT_SCORE = 50

SYSTEM_PROMPT = (
    "You are a B2B lead qualification analyst. Score each lead from 0 to 100 "
    "for how well it matches the target job titles and search intent. "
    "Leads with neither a job title nor a company must score 30 or lower. "
    'Respond with a JSON object of the form {"scores": [{"index": 0, "score": 85}]} '
    "containing one entry per lead, using the lead's index."
)


class ScoringResponseError(ValueError):
    """Raised when a scoring response cannot be parsed."""

    pass


class JSONCompletionClient(Protocol):
    async def complete_json(self, messages: list[dict[str, str]]) -> Any:
        ...


@dataclass
class ScoringResult:
    """Outcome of one scoring run.

    Attributes:
        leads: Leads at or above the threshold, sorted by score descending.
        input_count: Leads received.
        batch_count: Batches scored.
        failed_batches: Indexes of batches that fell back to the default score.
        scored_with_model: False when no client was configured.
    """

    leads: list[LeadCandidate] = field(default_factory=list)
    input_count: int = 0
    batch_count: int = 0
    failed_batches: list[int] = field(default_factory=list)
    scored_with_model: bool = True


def clamp_score(value: Any) -> int:
    """Convert a model score to an int in 0..100.

    Raises:
        ScoringResponseError: If the value is not numeric.
    """
    if isinstance(value, bool):
        raise ScoringResponseError(f"Invalid score: {value!r}")
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError) as e:
        raise ScoringResponseError(f"Invalid score: {value!r}") from e
    return max(0, min(100, score))


def parse_scores(response: Any, batch_size: int) -> dict[int, int]:
    """Parse a model response into ``{index: score}`` for one batch.

    Accepts ``{"scores": [{"index": i, "score": s}, ...]}``, a bare list of
    such objects, or a positional list of numbers. Entries with an index
    outside the batch are ignored.

    Raises:
        ScoringResponseError: If the response has no usable score array.
    """
    if isinstance(response, str):
        try:
            response = json.loads(response)
        except json.JSONDecodeError as e:
            raise ScoringResponseError(f"Response is not JSON: {e}") from e

    entries = response.get("scores") if isinstance(response, dict) else response
    if not isinstance(entries, list):
        raise ScoringResponseError("Response has no scores array")

    scores: dict[int, int] = {}
    for position, entry in enumerate(entries):
        if isinstance(entry, dict):
            index = entry.get("index", position)
            value = entry.get("score")
        else:
            index, value = position, entry
        if isinstance(index, bool) or not isinstance(index, int):
            continue
        if 0 <= index < batch_size:
            scores[index] = clamp_score(value)

    if entries and not scores:
        raise ScoringResponseError("Response contained no usable scores")
    return scores


class LeadScorer:
    """Scores leads in batches through a JSON completion client.

    Attributes:
        batch_size: Leads per model call.
        min_score: Threshold a lead must meet to be kept.
        default_score: Score given when a batch cannot be scored.
        timeout_seconds: Bound on each batch call.
        concurrency: Batches scored at once; 1 keeps them sequential.
    """

    def __init__(
        self,
        client: Optional[JSONCompletionClient] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        min_score: int = DEFAULT_MIN_SCORE,
        default_score: int = DEFAULT_SCORE,
        timeout_seconds: float = 60.0,
        concurrency: int = 1,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.client = client
        self.batch_size = batch_size
        self.min_score = min_score
        self.default_score = default_score
        self.timeout_seconds = timeout_seconds
        self.concurrency = max(1, concurrency)

    def build_messages(
        self,
        batch: Sequence[LeadCandidate],
        context: ScoringContext,
    ) -> list[dict[str, str]]:
        """Build the chat messages for one batch."""
        projection = [lead.scoring_projection(i) for i, lead in enumerate(batch)]
        user_prompt = (
            f"Target job titles: {', '.join(context.job_titles) or 'any'}\n"
            f"Search expressions: {'; '.join(context.search_expressions) or 'none'}\n\n"
            "Leads:\n" + json.dumps(projection)
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

    def partition(self, leads: Sequence[LeadCandidate]) -> list[list[LeadCandidate]]:
        return [
            list(leads[i:i + self.batch_size])
            for i in range(0, len(leads), self.batch_size)
        ]

    async def score_batch(
        self,
        batch: Sequence[LeadCandidate],
        context: ScoringContext,
    ) -> dict[int, int]:
        """Score one batch.

        Raises:
            ScoringResponseError: If the response cannot be parsed.
            Exception: Whatever the client or the timeout raises.
        """
        response = await asyncio.wait_for(
            self.client.complete_json(self.build_messages(batch, context)),
            timeout=self.timeout_seconds,
        )
        return parse_scores(response, len(batch))

    async def _score_batch_safe(
        self,
        batch_index: int,
        batch: Sequence[LeadCandidate],
        context: ScoringContext,
    ) -> Optional[dict[int, int]]:
        """Score one batch; None means it failed and gets the default."""
        try:
            return await self.score_batch(batch, context)
        except asyncio.TimeoutError:
            logger.warning(
                "Scoring batch %d timed out after %.0fs", batch_index, self.timeout_seconds
            )
        except Exception as e:
            logger.warning("Scoring batch %d failed: %s", batch_index, e)
        return None

    def filter_and_sort(self, leads: Sequence[LeadCandidate]) -> list[LeadCandidate]:
        """Keep leads at or above the threshold, highest score first.

        ``sorted`` is stable, so equal scores keep their input order.
        """
        kept = [lead for lead in leads if lead.match_score >= self.min_score]
        return sorted(kept, key=lambda lead: lead.match_score, reverse=True)

    async def score(
        self,
        leads: Sequence[LeadCandidate],
        context: ScoringContext,
    ) -> ScoringResult:
        """Score, filter and sort leads.

        Input leads are not modified; the result holds scored copies.
        """
        result = ScoringResult(input_count=len(leads))

        if not leads:
            return result

        if self.client is None:
            logger.info("No scoring client configured; using default score %d", self.default_score)
            result.scored_with_model = False
            scored = [dataclasses.replace(lead, match_score=self.default_score) for lead in leads]
            result.leads = self.filter_and_sort(scored)
            return result

        batches = self.partition(leads)
        result.batch_count = len(batches)

        if self.concurrency == 1:
            batch_scores = []
            for index, batch in enumerate(batches):
                batch_scores.append(await self._score_batch_safe(index, batch, context))
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def score_with_semaphore(index, batch):
                async with semaphore:
                    return await self._score_batch_safe(index, batch, context)

            batch_scores = await asyncio.gather(
                *(score_with_semaphore(i, b) for i, b in enumerate(batches))
            )

        scored: list[LeadCandidate] = []
        for index, (batch, scores) in enumerate(zip(batches, batch_scores)):
            if scores is None:
                result.failed_batches.append(index)
                scores = {}
            for position, lead in enumerate(batch):
                scored.append(
                    dataclasses.replace(
                        lead, match_score=scores.get(position, self.default_score)
                    )
                )

        result.leads = self.filter_and_sort(scored)
        logger.info(
            "Scored %d leads in %d batches (%d failed); %d at or above %d",
            len(scored),
            result.batch_count,
            len(result.failed_batches),
            len(result.leads),
            self.min_score,
        )
        return result
