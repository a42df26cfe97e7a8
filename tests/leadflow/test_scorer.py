"""Unit tests for batched lead scoring.

Tests cover:
- Response parsing and score clamping
- Per-batch failure isolation
- Threshold filtering and stable descending sort
- Running without a scoring client
"""

import asyncio
import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from leadflow.logging_utils import LogContext
from leadflow.models.candidate import ScoringContext
from leadflow.stages.scoring import (
    LeadScorer,
    ScoringResponseError,
    clamp_score,
    parse_scores,
)

from pipeline_fakes import FakeScoringClient, make_candidate


CONTEXT = ScoringContext(job_titles=("CEO", "Founder"), search_expressions=("marketing agency",))


def make_leads(count, prefix="Lead"):
    return [make_candidate(f"{prefix} {i}", f"lead{i}@example.com", f"Company {i}") for i in range(count)]


# =============================================================================
# Response parsing
# =============================================================================


class TestParseScores:
    """Tests for parse_scores."""

    @pytest.mark.unit
    def test_scores_object(self):
        response = {"scores": [{"index": 0, "score": 85}, {"index": 1, "score": 20}]}
        assert parse_scores(response, 2) == {0: 85, 1: 20}

    @pytest.mark.unit
    def test_bare_list_of_objects(self):
        assert parse_scores([{"index": 1, "score": 70}], 2) == {1: 70}

    @pytest.mark.unit
    def test_positional_numbers(self):
        assert parse_scores([90, 10.4], 2) == {0: 90, 1: 10}

    @pytest.mark.unit
    def test_json_string(self):
        assert parse_scores(json.dumps({"scores": [{"index": 0, "score": 61}]}), 1) == {0: 61}

    @pytest.mark.unit
    def test_out_of_range_indices_ignored(self):
        response = {"scores": [{"index": 0, "score": 55}, {"index": 7, "score": 99}]}
        assert parse_scores(response, 2) == {0: 55}

    @pytest.mark.unit
    @pytest.mark.parametrize("response", ["not json", {"result": "ok"}, {"scores": "many"}, 42])
    def test_malformed_responses_raise(self, response):
        with pytest.raises(ScoringResponseError):
            parse_scores(response, 3)

    @pytest.mark.unit
    def test_no_usable_entries_raise(self):
        with pytest.raises(ScoringResponseError):
            parse_scores({"scores": [{"index": 9, "score": 50}]}, 2)

    @pytest.mark.unit
    @pytest.mark.parametrize("value,expected", [(150, 100), (-5, 0), ("72", 72), (49.6, 50)])
    def test_clamp_score(self, value, expected):
        assert clamp_score(value) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("value", [None, "high", True])
    def test_clamp_rejects_non_numeric(self, value):
        with pytest.raises(ScoringResponseError):
            clamp_score(value)


# =============================================================================
# Scoring behavior
# =============================================================================


class TestLeadScorer:
    """Tests for LeadScorer.score."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_batches_are_sized_and_projected(self):
        """Test leads are split into batches and only the projection is sent."""
        client = FakeScoringClient()
        scorer = LeadScorer(client=client, batch_size=20)

        result = await scorer.score(make_leads(45), CONTEXT)

        assert result.batch_count == 3
        assert len(client.calls) == 3
        sent = json.loads(client.calls[2][-1]["content"].split("Leads:\n", 1)[1])
        assert len(sent) == 5
        assert set(sent[0]) == {"index", "name", "email_present", "job_title", "company", "location"}
        assert "CEO, Founder" in client.calls[0][-1]["content"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_batch_gets_default_score(self):
        """Test one failing batch does not affect the others."""
        client = FakeScoringClient(default=80, fail_on_calls={1})
        scorer = LeadScorer(client=client, batch_size=20, default_score=50)
        leads = make_leads(45)

        result = await scorer.score(leads, CONTEXT)

        assert result.failed_batches == [1]
        scores = {lead.full_name: lead.match_score for lead in result.leads}
        assert len(scores) == 45
        assert all(scores[f"Lead {i}"] == 50 for i in range(20, 40))
        assert all(scores[f"Lead {i}"] == 80 for i in list(range(20)) + list(range(40, 45)))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparseable_batch_gets_default_score(self):
        client = FakeScoringClient(response={"verdict": "great leads"})
        scorer = LeadScorer(client=client, default_score=50)

        result = await scorer.score(make_leads(3), CONTEXT)

        assert result.failed_batches == [0]
        assert [lead.match_score for lead in result.leads] == [50, 50, 50]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_index_gets_default_score(self):
        client = FakeScoringClient(response={"scores": [{"index": 0, "score": 90}]})
        scorer = LeadScorer(client=client, default_score=50)

        result = await scorer.score(make_leads(2), CONTEXT)

        assert result.failed_batches == []
        assert [(lead.full_name, lead.match_score) for lead in result.leads] == [("Lead 0", 90), ("Lead 1", 50)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_threshold_and_stable_sort(self):
        """Test leads below the threshold are dropped and ties keep input order."""
        client = FakeScoringClient(
            scores_by_name={"A": 70, "B": 39, "C": 90, "D": 70, "E": 40},
        )
        scorer = LeadScorer(client=client, min_score=40)
        leads = [make_candidate(name, f"{name.lower()}@x.com") for name in "ABCDE"]

        result = await scorer.score(leads, CONTEXT)

        assert [lead.full_name for lead in result.leads] == ["C", "A", "D", "E"]
        scores = [lead.match_score for lead in result.leads]
        assert scores == sorted(scores, reverse=True)
        assert all(score >= 40 for score in scores)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_inputs_not_modified(self):
        leads = make_leads(3)
        scorer = LeadScorer(client=FakeScoringClient(default=95))

        result = await scorer.score(leads, CONTEXT)

        assert all(lead.match_score == 0 for lead in leads)
        assert all(lead.match_score == 95 for lead in result.leads)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_without_client_uses_default(self):
        scorer = LeadScorer(client=None, default_score=50, min_score=40)

        result = await scorer.score(make_leads(4), CONTEXT)

        assert result.scored_with_model is False
        assert result.batch_count == 0
        assert [lead.match_score for lead in result.leads] == [50] * 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_default_below_threshold_drops_everything(self):
        scorer = LeadScorer(client=None, default_score=30, min_score=40)

        result = await scorer.score(make_leads(4), CONTEXT)

        assert result.leads == []
        assert result.input_count == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self):
        client = FakeScoringClient()
        result = await LeadScorer(client=client).score([], CONTEXT)

        assert result.leads == []
        assert client.calls == []

    @pytest.mark.unit
    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            LeadScorer(batch_size=0)


class TestScoringTimeoutsAndConcurrency:
    """Tests for per-batch timeouts and concurrent batches."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slow_batch_times_out_to_default(self):
        class SlowClient(FakeScoringClient):
            async def complete_json(self, messages):
                await asyncio.sleep(1)
                return await super().complete_json(messages)

        scorer = LeadScorer(client=SlowClient(), timeout_seconds=0.05, default_score=50)

        result = await scorer.score(make_leads(2), CONTEXT)

        assert result.failed_batches == [0]
        assert [lead.match_score for lead in result.leads] == [50, 50]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_batches_match_sequential(self):
        names = {f"Lead {i}": (i * 7) % 101 for i in range(25)}
        leads = make_leads(25)

        sequential = await LeadScorer(
            client=FakeScoringClient(scores_by_name=names), batch_size=4, concurrency=1
        ).score(leads, CONTEXT)
        concurrent = await LeadScorer(
            client=FakeScoringClient(scores_by_name=names, fail_on_calls={2}), batch_size=4, concurrency=3
        ).score(leads, CONTEXT)
        failing_sequential = await LeadScorer(
            client=FakeScoringClient(scores_by_name=names, fail_on_calls={2}), batch_size=4, concurrency=1
        ).score(leads, CONTEXT)

        assert sequential.batch_count == concurrent.batch_count == 7
        assert concurrent.failed_batches == failing_sequential.failed_batches == [2]
        assert [lead.full_name for lead in concurrent.leads] == [lead.full_name for lead in failing_sequential.leads]


class TestScoringLLMClient:
    """Tests for the OpenAI JSON-mode wrapper with the SDK patched."""

    @staticmethod
    def completion(content):
        message = MagicMock(content=content)
        return MagicMock(choices=[MagicMock(message=message)])

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_decodes_json_reply(self):
        from leadflow.integrations.openai_scoring import ScoringLLMClient

        with patch("leadflow.integrations.openai_scoring.OpenAI") as sdk_cls:
            create = sdk_cls.return_value.chat.completions.create
            create.return_value = self.completion('{"scores": [{"index": 0, "score": 80}]}')
            client = ScoringLLMClient(api_key="sk-test", model="gpt-4o-mini", timeout_seconds=5)

            reply = await client.complete_json([{"role": "user", "content": "score"}])

        assert reply == {"scores": [{"index": 0, "score": 80}]}
        assert create.call_args.kwargs["response_format"] == {"type": "json_object"}
        assert sdk_cls.call_args.kwargs["timeout"] == 5

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "not json"])
    async def test_empty_or_malformed_reply(self, content):
        from leadflow.integrations.openai_scoring import ScoringLLMClient

        with patch("leadflow.integrations.openai_scoring.OpenAI") as sdk_cls:
            sdk_cls.return_value.chat.completions.create.return_value = self.completion(content)
            client = ScoringLLMClient(api_key="sk-test")

            with pytest.raises(ValueError):
                await client.complete_json([])


class TestScorerLogging:
    """Tests for campaign fields on scoring log records."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_runs_keep_their_campaign(self, caplog):
        async def run(campaign_id):
            scorer = LeadScorer(client=FakeScoringClient(fail_on_calls={0}), batch_size=5)
            with LogContext(campaign_id=campaign_id):
                await scorer.score(make_leads(5, prefix=campaign_id), CONTEXT)

        with caplog.at_level(logging.WARNING, logger="leadflow.stages.scoring"):
            await asyncio.gather(run("c-1"), run("c-2"))

        failures = [r for r in caplog.records if "Scoring batch" in r.getMessage()]
        assert sorted(r.campaign_id for r in failures) == ["c-1", "c-2"]
