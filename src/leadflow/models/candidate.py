"""In-memory shapes that flow between pipeline stages.

These are plain dataclasses rather than ORM rows: candidates only become
``Lead`` rows in the persistence stage, after deduplication and scoring.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class LeadCandidate:
    """A normalized lead produced by acquisition and not yet persisted.

    Attributes:
        full_name: Contact name (required).
        email: Validated, lower-cased email or None.
        phone: Phone number or None.
        job_title: Job title or headline.
        company: Company or organization name.
        profile_url: Profile or reference URL.
        location: Free-form location.
        source: Provenance tag of the acquisition path.
        raw_data: Provider payload, never used for identity or scoring.
        match_score: Relevance score, 0 until the scorer annotates it.
    """

    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    profile_url: Optional[str] = None
    location: Optional[str] = None
    source: Optional[str] = None
    raw_data: Any = None
    match_score: int = 0

    def scoring_projection(self, index: int) -> dict[str, Any]:
        """Return the minimal view sent to the scoring model.

        The email itself is never sent, only whether one is present.
        """
        return {
            "index": index,
            "name": self.full_name,
            "email_present": bool(self.email),
            "job_title": self.job_title,
            "company": self.company,
            "location": self.location,
        }

    def to_row(self, campaign_id: str) -> dict[str, Any]:
        """Return column values for a bulk insert into ``leads``."""
        return {
            "campaign_id": campaign_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "job_title": self.job_title,
            "company": self.company,
            "profile_url": self.profile_url,
            "location": self.location,
            "match_score": self.match_score,
            "source": self.source,
            "raw_data": self.raw_data,
        }


@dataclass(frozen=True)
class ScraperParameters:
    """Immutable acquisition input stored on a campaign.

    Attributes:
        platforms: Target platform names, in the order given.
        search_expressions: Boolean search expressions.
        job_titles: Target job titles, also used as scoring context.
    """

    platforms: tuple[str, ...] = ()
    search_expressions: tuple[str, ...] = ()
    job_titles: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScraperParameters":
        """Build parameters from the stored JSON shape.

        Accepts both the stored key names (``target_platforms``,
        ``boolean_search_strings``, ``target_job_titles``) and the short
        names (``platforms``, ``search_expressions``, ``job_titles``).
        """
        data = data or {}

        def _pick(long_key: str, short_key: str) -> tuple[str, ...]:
            values = data.get(long_key)
            if values is None:
                values = data.get(short_key)
            if values is None:
                return ()
            if isinstance(values, str):
                values = [values]
            return tuple(str(v) for v in values if v is not None and str(v).strip())

        return cls(
            platforms=_pick("target_platforms", "platforms"),
            search_expressions=_pick("boolean_search_strings", "search_expressions"),
            job_titles=_pick("target_job_titles", "job_titles"),
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "target_platforms": list(self.platforms),
            "boolean_search_strings": list(self.search_expressions),
            "target_job_titles": list(self.job_titles),
        }


@dataclass(frozen=True)
class ScoringContext:
    """What the scoring model is told the campaign is looking for."""

    job_titles: tuple[str, ...] = field(default_factory=tuple)
    search_expressions: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_parameters(cls, parameters: ScraperParameters) -> "ScoringContext":
        return cls(
            job_titles=parameters.job_titles,
            search_expressions=parameters.search_expressions,
        )
