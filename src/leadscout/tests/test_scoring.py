# src/leadscout/tests/test_scoring.py
"""
Unit tests for lead scoring and the derived list views.

Tests cover:
- Score components, rounding and bounds
- Monotonicity of the score
- Chain detection
- Lead filtering order and score sorting
- Search result sort orders
"""
import pytest

from leadscout.models import BusinessRecord, Lead, LeadStatus
from leadscout.scoring import (
    SortOrder,
    calculate_lead_score,
    filter_leads,
    filter_search_results,
    is_chain,
    is_score_stale,
    matches_text,
    sort_by_score,
    sort_search_results,
)


def lead(lead_id, name=None, **fields):
    return Lead(id=lead_id, name=name or f"Business {lead_id}", **fields)


class TestCalculateLeadScore:
    """Tests for calculate_lead_score."""

    @pytest.mark.unit
    def test_full_example(self):
        """Test the worked example: 45 + 12 + 30 + 10 + 5."""
        record = BusinessRecord(
            name="Crumbs",
            rating=4.5,
            user_ratings_total=120,
            phone="555-0100",
            address="1 Main St",
        )
        assert calculate_lead_score(record) == 102

    @pytest.mark.unit
    def test_bare_record_scores_no_website_points(self):
        """Test that a name-only record scores only the missing-website bonus."""
        assert calculate_lead_score(BusinessRecord(name="Crumbs")) == 30

    @pytest.mark.unit
    def test_website_removes_bonus(self):
        """Test that a website costs 30 points."""
        record = BusinessRecord(name="Crumbs", website="https://crumbs.example")
        assert calculate_lead_score(record) == 0

    @pytest.mark.unit
    def test_review_points_capped(self):
        """Test that reviews contribute at most 20 points."""
        few = BusinessRecord(name="A", has_website=True, user_ratings_total=150)
        many = BusinessRecord(name="A", has_website=True, user_ratings_total=5000)
        assert calculate_lead_score(few) == 15
        assert calculate_lead_score(many) == 20

    @pytest.mark.unit
    def test_half_rounds_up(self):
        """Test that .5 totals round up."""
        record = BusinessRecord(name="A", has_website=True, user_ratings_total=5)
        assert calculate_lead_score(record) == 1

    @pytest.mark.unit
    def test_maximum_score(self):
        """Test the top of the range."""
        record = BusinessRecord(
            name="A", rating=5.0, user_ratings_total=10_000, phone="1", address="2"
        )
        assert calculate_lead_score(record) == 115

    @pytest.mark.unit
    def test_monotonic_in_rating_and_reviews(self):
        """Test that more rating or reviews never lowers the score."""
        scores = [
            calculate_lead_score(BusinessRecord(name="A", rating=r, user_ratings_total=n))
            for r, n in [(1.0, 0), (2.0, 0), (2.0, 40), (4.9, 40), (4.9, 400)]
        ]
        assert scores == sorted(scores)

    @pytest.mark.unit
    def test_is_score_stale(self):
        """Test that a cached score differing from a fresh one is stale."""
        assert is_score_stale(lead("a", score=0)) is True
        assert is_score_stale(lead("a", score=30)) is False


class TestChainsAndText:
    """Tests for is_chain and matches_text."""

    @pytest.mark.unit
    def test_chain_match_case_insensitive(self):
        """Test that keywords match anywhere in the name."""
        assert is_chain("STARBUCKS Reserve") is True
        assert is_chain("Joe's Coffee") is False

    @pytest.mark.unit
    def test_custom_keywords(self):
        """Test that a custom keyword list replaces the default."""
        assert is_chain("Acme Hardware", ["acme"]) is True
        assert is_chain("Starbucks", ["acme"]) is False

    @pytest.mark.unit
    def test_matches_text_fields(self):
        """Test that name, address, phone and categories are searched."""
        record = BusinessRecord(
            name="Crumbs", address="1 Main St", phone="555-0100", types=["Bakery"]
        )
        assert matches_text(record, "crumb")
        assert matches_text(record, "MAIN")
        assert matches_text(record, "0100")
        assert matches_text(record, "bakery")
        assert not matches_text(record, "pizza")


class TestFilterLeads:
    """Tests for filter_leads."""

    @pytest.fixture
    def leads(self):
        return [
            lead("1", "Crumbs", project_id="p1", status=LeadStatus.NEW, rating=3.0),
            lead("2", "Starbucks", project_id="p1", status=LeadStatus.CONTACTED, rating=5.0),
            lead("3", "Sweet Tooth", project_id="p2", status=LeadStatus.NEW, rating=4.0),
            lead("4", "Subway", status=LeadStatus.NEW, rating=1.0),
        ]

    @pytest.mark.unit
    def test_no_filters_sorts_by_score(self, leads):
        """Test that all leads come back highest score first."""
        assert [l.id for l in filter_leads(leads)] == ["2", "3", "1", "4"]

    @pytest.mark.unit
    def test_project_filter(self, leads):
        """Test that the project scope keeps only tagged leads."""
        assert [l.id for l in filter_leads(leads, project_id="p1")] == ["2", "1"]

    @pytest.mark.unit
    def test_status_filter(self, leads):
        """Test that status filtering keeps matching leads."""
        assert [l.id for l in filter_leads(leads, status="new")] == ["3", "1", "4"]
        assert len(filter_leads(leads, status="all")) == 4

    @pytest.mark.unit
    def test_unknown_status_raises(self, leads):
        """Test that an unknown status is rejected."""
        with pytest.raises(ValueError):
            filter_leads(leads, status="pending")

    @pytest.mark.unit
    def test_exclude_chains(self, leads):
        """Test that chain businesses are removed."""
        assert [l.id for l in filter_leads(leads, exclude_chains=True)] == ["3", "1"]

    @pytest.mark.unit
    def test_text_skips_chain_filter(self, leads):
        """Test that a text filter alone decides inclusion."""
        result = filter_leads(leads, text="starbucks", exclude_chains=True)
        assert [l.id for l in result] == ["2"]

    @pytest.mark.unit
    def test_combined_filters(self, leads):
        """Test that project, status and text combine."""
        result = filter_leads(leads, project_id="p1", status="new", text="crumbs")
        assert [l.id for l in result] == ["1"]

    @pytest.mark.unit
    def test_sort_uses_fresh_score(self):
        """Test that stale cached scores do not affect order."""
        stale_high = lead("a", rating=1.0, score=999)
        fresh_high = lead("b", rating=5.0, score=0)
        assert [l.id for l in sort_by_score([stale_high, fresh_high])] == ["b", "a"]


class TestSearchResultViews:
    """Tests for search result sorting and filtering."""

    @pytest.fixture
    def records(self):
        return [
            BusinessRecord(name="Bravo", rating=4.0, user_ratings_total=10),
            BusinessRecord(name="alpha", rating=None, user_ratings_total=500),
            BusinessRecord(name="Charlie", rating=4.8, user_ratings_total=None),
            BusinessRecord(name="Subway", rating=3.0, user_ratings_total=50),
        ]

    @pytest.mark.unit
    def test_relevance_keeps_order(self, records):
        """Test that relevance preserves directory order."""
        assert sort_search_results(records) == records

    @pytest.mark.unit
    def test_rating_order(self, records):
        """Test that missing ratings sort last."""
        names = [r.name for r in sort_search_results(records, SortOrder.RATING)]
        assert names == ["Charlie", "Bravo", "Subway", "alpha"]

    @pytest.mark.unit
    def test_reviews_order(self, records):
        """Test that review counts sort descending."""
        names = [r.name for r in sort_search_results(records, "reviews")]
        assert names == ["alpha", "Subway", "Bravo", "Charlie"]

    @pytest.mark.unit
    def test_name_order(self, records):
        """Test that names sort by code point."""
        names = [r.name for r in sort_search_results(records, "name")]
        assert names == ["Bravo", "Charlie", "Subway", "alpha"]

    @pytest.mark.unit
    def test_unknown_order_rejected(self, records):
        """Test that an unknown sort order raises."""
        with pytest.raises(ValueError):
            sort_search_results(records, "distance")

    @pytest.mark.unit
    def test_filter_and_sort(self, records):
        """Test that chains are dropped before sorting."""
        result = filter_search_results(records, exclude_chains=True, order="rating")
        assert [r.name for r in result] == ["Charlie", "Bravo", "alpha"]
