"""Unit tests for lead deduplication.

Two leads are the same entity when their emails match or their
(name, company) pairs match, both compared trimmed and case-insensitive.
"""

import pytest

from leadflow.utils.dedup import deduplicate_leads, email_key, name_company_key

from pipeline_fakes import make_candidate


class TestEmailKey:
    """Tests for email based deduplication."""

    @pytest.mark.unit
    def test_case_insensitive_email_duplicates_removed(self):
        """Test that emails differing only by case and whitespace collide."""
        leads = [
            make_candidate("Ann Lee", "ann@acme.com"),
            make_candidate("Ann B. Lee", " ANN@Acme.com "),
            make_candidate("Bo Chen", "bo@acme.com"),
        ]

        unique = deduplicate_leads(leads)

        assert [lead.full_name for lead in unique] == ["Ann Lee", "Bo Chen"]

    @pytest.mark.unit
    def test_missing_emails_do_not_collide(self):
        """Test that leads without email are not merged on the email key."""
        leads = [
            make_candidate("Ann Lee", phone="1"),
            make_candidate("Bo Chen", phone="2"),
        ]

        assert len(deduplicate_leads(leads)) == 2
        assert email_key(leads[0]) is None


class TestNameCompanyKey:
    """Tests for (name, company) based deduplication."""

    @pytest.mark.unit
    def test_same_person_same_company_removed(self):
        leads = [
            make_candidate("Ann Lee", "ann@acme.com", "Acme"),
            make_candidate(" ann lee ", "ann.lee@gmail.com", "ACME "),
        ]

        unique = deduplicate_leads(leads)

        assert len(unique) == 1
        assert unique[0].email == "ann@acme.com"

    @pytest.mark.unit
    def test_key_requires_both_fields(self):
        """Test that a name without a company never matches on this key."""
        leads = [
            make_candidate("Ann Lee", "a1@x.com"),
            make_candidate("Ann Lee", "a2@x.com"),
        ]

        assert len(deduplicate_leads(leads)) == 2
        assert name_company_key(leads[0]) is None


class TestUnionOfKeys:
    """Tests that the two keys act independently."""

    @pytest.mark.unit
    def test_either_key_drops_the_lead(self):
        leads = [
            make_candidate("Ann Lee", "ann@acme.com", "Acme"),
            make_candidate("Someone Else", "ann@acme.com", "Other"),  # email match
            make_candidate("Ann Lee", "new@acme.com", "Acme"),  # name+company match
            make_candidate("Bo Chen", "bo@acme.com", "Acme"),
        ]

        unique = deduplicate_leads(leads)

        assert [lead.full_name for lead in unique] == ["Ann Lee", "Bo Chen"]

    @pytest.mark.unit
    def test_dropped_lead_keys_not_recorded(self):
        """Test that a dropped lead's other key does not block later leads."""
        leads = [
            make_candidate("Ann Lee", "ann@acme.com", "Acme"),
            make_candidate("Cy Park", "ann@acme.com", "Globex"),  # dropped on email
            make_candidate("Cy Park", "cy@globex.com", "Globex"),
        ]

        unique = deduplicate_leads(leads)

        assert [lead.email for lead in unique] == ["ann@acme.com", "cy@globex.com"]


class TestOrderingProperties:
    """Tests for order preservation and determinism."""

    @pytest.mark.unit
    def test_first_occurrence_order_preserved(self):
        leads = [make_candidate(f"Lead {i}", f"l{i % 4}@x.com") for i in range(10)]

        unique = deduplicate_leads(leads)

        assert [lead.full_name for lead in unique] == ["Lead 0", "Lead 1", "Lead 2", "Lead 3"]

    @pytest.mark.unit
    def test_deterministic_and_pairwise_distinct(self):
        leads = [
            make_candidate("A", "a@x.com", "X"),
            make_candidate("B", "b@x.com", "X"),
            make_candidate("a", "c@x.com", "x"),
            make_candidate("C", "A@X.COM", "Y"),
            make_candidate("D", None, "Z", phone="5"),
        ]

        first = deduplicate_leads(leads)
        second = deduplicate_leads(leads)

        assert first == second
        for i, left in enumerate(first):
            for right in first[i + 1:]:
                assert email_key(left) is None or email_key(left) != email_key(right)
                assert name_company_key(left) is None or name_company_key(left) != name_company_key(right)

    @pytest.mark.unit
    def test_empty_input(self):
        assert deduplicate_leads([]) == []
