"""Raw provider record to :class:`LeadCandidate` normalization.

Providers name the same field differently (``fullName`` vs ``name``,
``phoneNumber`` vs ``formatted_phone_number``). Normalization picks the
first non-empty alias per field, trims strings, lower-cases and validates
emails, and drops records that fail the quality rule: a full name plus at
least one of valid email, phone or reference URL.

Normalization is deterministic: the same raw record always yields an equal
candidate.
"""

import re
from typing import Any, Mapping, Optional

from ..models.candidate import LeadCandidate

# Shape check only: one @, no whitespace, a dot in the domain
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

EMAIL_FIELDS = ("email", "emailAddress", "mail")
PHONE_FIELDS = ("phone", "phoneNumber", "telephone", "formatted_phone_number")
JOB_TITLE_FIELDS = ("title", "jobTitle", "position", "headline")
COMPANY_FIELDS = ("company", "companyName", "organization")
URL_FIELDS = ("linkedinUrl", "profileUrl", "url", "website")
LOCATION_FIELDS = ("location", "city", "region", "address")


def _clean(value: Any) -> Optional[str]:
    """Return a trimmed string, or None for empty and non-scalar values."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    text = str(value).strip()
    return text or None


def _first(raw: Mapping[str, Any], fields: tuple[str, ...]) -> Optional[str]:
    for field_name in fields:
        value = _clean(raw.get(field_name))
        if value:
            return value
    return None


def is_valid_email(email: Optional[str]) -> bool:
    """Check an email against a permissive shape rule."""
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case an email; invalid emails become None."""
    email = _clean(email)
    if not email:
        return None
    email = email.lower()
    return email if is_valid_email(email) else None


def extract_full_name(raw: Mapping[str, Any]) -> tuple[Optional[str], bool]:
    """Return (full name, whether the name came from ``title``)."""
    first = _clean(raw.get("firstName"))
    last = _clean(raw.get("lastName"))
    if first or last:
        return " ".join(part for part in (first, last) if part), False

    for field_name in ("fullName", "name"):
        value = _clean(raw.get(field_name))
        if value:
            return value, False

    title = _clean(raw.get("title"))
    return title, bool(title)


def extract_email(raw: Mapping[str, Any]) -> Optional[str]:
    email = _first(raw, EMAIL_FIELDS)
    if not email:
        emails = raw.get("emails")
        if isinstance(emails, (list, tuple)) and emails:
            email = _clean(emails[0])
    return normalize_email(email)


def passes_quality_filter(candidate: LeadCandidate) -> bool:
    """A lead needs a full name and one contact method (email, phone or URL)."""
    if not candidate.full_name:
        return False
    return bool(
        is_valid_email(candidate.email) or candidate.phone or candidate.profile_url
    )


def normalize_raw_lead(raw: Mapping[str, Any], source: Optional[str] = None) -> Optional[LeadCandidate]:
    """Map one raw provider record to a candidate.

    Args:
        raw: Provider record.
        source: Provenance tag for the resulting lead.

    Returns:
        The candidate, or None if the record fails the quality rule.
    """
    if not isinstance(raw, Mapping):
        return None

    full_name, name_from_title = extract_full_name(raw)
    if not full_name:
        return None

    job_fields = JOB_TITLE_FIELDS[1:] if name_from_title else JOB_TITLE_FIELDS

    candidate = LeadCandidate(
        full_name=full_name,
        email=extract_email(raw),
        phone=_first(raw, PHONE_FIELDS),
        job_title=_first(raw, job_fields),
        company=_first(raw, COMPANY_FIELDS),
        profile_url=_first(raw, URL_FIELDS),
        location=_first(raw, LOCATION_FIELDS),
        source=source,
        raw_data=dict(raw),
    )

    if not passes_quality_filter(candidate):
        return None
    return candidate
