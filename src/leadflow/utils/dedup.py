"""Lead deduplication.

Two leads are the same entity when their emails match, or when their
(full name, company) pairs match, both compared trimmed and case-insensitive.
The keys are checked independently: a lead already seen under either one is
dropped.
"""

from typing import Iterable, Optional

from ..models.candidate import LeadCandidate


def _key_part(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def email_key(lead: LeadCandidate) -> Optional[str]:
    """Email identity key, or None when the lead has no email."""
    return _key_part(lead.email) or None


def name_company_key(lead: LeadCandidate) -> Optional[tuple[str, str]]:
    """(name, company) identity key, or None unless both are present."""
    name = _key_part(lead.full_name)
    company = _key_part(lead.company)
    if not name or not company:
        return None
    return name, company


def deduplicate_leads(leads: Iterable[LeadCandidate]) -> list[LeadCandidate]:
    """Drop later duplicates, keeping first-seen order.

    Runs in linear time with one membership set per key type.

    Args:
        leads: Candidates in acquisition order.

    Returns:
        New list with the first occurrence of each entity.
    """
    seen_emails: set[str] = set()
    seen_name_company: set[tuple[str, str]] = set()
    unique: list[LeadCandidate] = []

    for lead in leads:
        e_key = email_key(lead)
        nc_key = name_company_key(lead)

        if e_key is not None and e_key in seen_emails:
            continue
        if nc_key is not None and nc_key in seen_name_company:
            continue

        if e_key is not None:
            seen_emails.add(e_key)
        if nc_key is not None:
            seen_name_company.add(nc_key)
        unique.append(lead)

    return unique
