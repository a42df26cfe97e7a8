"""Synthetic placeholder leads for running the pipeline without providers."""

import re
from typing import Any, Sequence

from .base import BaseLeadSource

MOCK_COMPANIES = [
    "Acme SaaS Inc.",
    "GrowthForge AI",
    "DataPulse Labs",
    "CloudScale Partners",
    "NexGen Digital",
    "ProLeads Corp",
    "Velocity Marketing Group",
    "ScalePath Technologies",
]

LEADS_PER_EXPRESSION = 5
MAX_LEADS_PER_RUN = 15
DEFAULT_MOCK_TITLE = "Director of Marketing"


class MockLeadSource(BaseLeadSource):
    """Generates placeholder leads.

    One instance is shared by every platform of a run. Each search expression
    yields leads once (five per expression), and the run never gets more
    than fifteen in total.
    """

    name = "mock"

    def __init__(self, platform: str = "*"):
        super().__init__(platform)
        self._served_expressions: set[str] = set()
        self._generated = 0

    async def fetch(
        self,
        search_expression: str,
        job_titles: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        if search_expression in self._served_expressions:
            return []
        self._served_expressions.add(search_expression)

        count = min(LEADS_PER_EXPRESSION, MAX_LEADS_PER_RUN - self._generated)
        records = []
        for _ in range(max(count, 0)):
            i = self._generated
            company = MOCK_COMPANIES[i % len(MOCK_COMPANIES)]
            title = job_titles[i % len(job_titles)] if job_titles else DEFAULT_MOCK_TITLE
            domain = re.sub(r"[^a-z0-9]", "", company.lower())
            records.append(
                {
                    "fullName": f"Lead {i + 1} - {title}",
                    "email": f"lead{i + 1}@{domain}.com",
                    "phone": f"+1555010{i:04d}",
                    "jobTitle": title,
                    "company": company,
                    "linkedinUrl": f"https://linkedin.com/in/mock-lead-{i + 1}",
                    "location": "United States",
                }
            )
            self._generated += 1
        return records
