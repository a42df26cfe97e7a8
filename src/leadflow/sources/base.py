"""Base class for lead source capabilities.

A lead source turns one search expression into raw provider records. Sources
never normalize or filter; that happens in the acquisition stage so every
provider goes through the same quality rules.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence


class BaseLeadSource(ABC):
    """Abstract base class for lead sources.

    Attributes:
        name: Provenance tag written to ``Lead.source`` for records it produces.
        platform: Normalized platform name this instance serves.

    Example:
        class DirectorySource(BaseLeadSource):
            name = "directory"

            async def fetch(self, search_expression, job_titles=()):
                return [{"fullName": "Jane Doe", "email": "jane@example.com"}]
    """

    name: str = "unknown"

    def __init__(self, platform: str, logger: Optional[logging.Logger] = None):
        self.platform = platform
        self.logger = logger or logging.getLogger(self.__class__.__module__)

    @abstractmethod
    async def fetch(
        self,
        search_expression: str,
        job_titles: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        """Fetch raw records for one search expression.

        Args:
            search_expression: Boolean search expression from the campaign.
            job_titles: Target job titles, for sources that can use them.

        Returns:
            Raw provider records (dicts). May be empty.

        Raises:
            Exception: Any provider failure. The acquisition stage isolates
                it to this (expression, platform) pair.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(platform={self.platform!r})>"
