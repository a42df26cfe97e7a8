"""Pure helpers for turning raw provider records into unique candidates."""

from .dedup import deduplicate_leads
from .normalization import is_valid_email, normalize_raw_lead, passes_quality_filter

__all__ = [
    "deduplicate_leads",
    "is_valid_email",
    "normalize_raw_lead",
    "passes_quality_filter",
]
