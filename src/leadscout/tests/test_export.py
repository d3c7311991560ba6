# src/leadscout/tests/test_export.py
"""
Unit tests for CSV export and the e-mail digest.

Tests cover:
- CSV header order and quoting of embedded quotes
- Missing values, latest notes and contact dates
- Export file naming
- Digest subject, numbering and N/A placeholders
- mailto link encoding
"""
import csv
import io
from datetime import date, datetime, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from leadscout.export import (
    CSV_HEADERS,
    csv_filename,
    email_digest,
    leads_to_csv,
    mailto_link,
)
from leadscout.models import Lead, LeadStatus


def pizza_lead(**fields):
    values = dict(
        id="p1",
        name='Joe\'s "Famous" Pizza',
        address="1 Main St",
        phone="555-0100",
        rating=4.0,
        user_ratings_total=12,
        types=["Pizza", "Restaurant"],
        google_maps_url="https://maps.google.com/?cid=1",
    )
    values.update(fields)
    return Lead(**values)


class TestCsvExport:
    """Tests for leads_to_csv."""

    @pytest.mark.unit
    def test_header_row(self):
        """Test that the header lists the columns in fixed order."""
        first_line = leads_to_csv([]).splitlines()[0]
        assert first_line == ",".join(f'"{h}"' for h in CSV_HEADERS)
        assert CSV_HEADERS[0] == "Name"
        assert CSV_HEADERS[-1] == "Google Maps"

    @pytest.mark.unit
    def test_quotes_doubled(self):
        """Test that embedded quotes are doubled inside a quoted field."""
        line = leads_to_csv([pizza_lead()]).splitlines()[1]
        assert line.startswith('"Joe\'s ""Famous"" Pizza",')

    @pytest.mark.unit
    def test_row_values(self):
        """Test that cells carry formatted values, score and latest note."""
        contacted = datetime(2024, 5, 2, 9, 30, tzinfo=timezone.utc)
        lead = pizza_lead(status=LeadStatus.CONTACTED, last_contact_date=contacted)
        text = leads_to_csv([lead], {"p1": "Call back Friday"})

        rows = list(csv.reader(io.StringIO(text)))
        assert rows[1] == [
            'Joe\'s "Famous" Pizza',
            "1 Main St",
            "555-0100",
            "4",
            "12",
            "Pizza, Restaurant",
            "contacted",
            "86",
            "Call back Friday",
            "2024-05-02",
            "https://maps.google.com/?cid=1",
        ]

    @pytest.mark.unit
    def test_missing_values_blank(self):
        """Test that absent fields export as empty cells."""
        lead = Lead(id="x", name="Bare")
        rows = list(csv.reader(io.StringIO(leads_to_csv([lead]))))
        assert rows[1] == ["Bare", "", "", "", "", "", "new", "30", "", "", ""]

    @pytest.mark.unit
    def test_csv_filename(self):
        """Test the dated export filename."""
        assert csv_filename(date(2024, 5, 1)) == "leads_2024-05-01.csv"


class TestEmailDigest:
    """Tests for email_digest and mailto_link."""

    @pytest.mark.unit
    def test_subject_and_numbering(self):
        """Test that leads are numbered from one under a counted heading."""
        leads = [pizza_lead(), Lead(id="x", name="Bare")]
        subject, body = email_digest(leads)

        assert subject == "Lead Generator - 2 Leads"
        assert body.startswith("Found 2 businesses without websites:\n\n1. Joe's")
        assert "\n2. Bare\n" in body

    @pytest.mark.unit
    def test_entry_format(self):
        """Test the per-lead lines."""
        _, body = email_digest([pizza_lead()])
        assert (
            "1. Joe's \"Famous\" Pizza\n"
            "   Address: 1 Main St\n"
            "   Phone: 555-0100\n"
            "   Rating: 4/5 (12 reviews)\n"
            "   Maps: https://maps.google.com/?cid=1\n"
        ) in body

    @pytest.mark.unit
    def test_missing_values_na(self):
        """Test that absent values read N/A."""
        _, body = email_digest([Lead(id="x", name="Bare")])
        assert "   Address: N/A\n" in body
        assert "   Phone: N/A\n" in body
        assert "   Rating: N/A\n" in body
        assert "   Maps: N/A\n" in body

    @pytest.mark.unit
    def test_empty_digest(self):
        """Test the digest of no leads."""
        subject, body = email_digest([])
        assert subject == "Lead Generator - 0 Leads"
        assert body == "Found 0 businesses without websites:\n\n"

    @pytest.mark.unit
    def test_mailto_link(self):
        """Test that subject and body are percent-encoded."""
        link = mailto_link("Lead Generator - 1 Leads", "Line one\nLine & two")
        assert link.startswith("mailto:?subject=Lead%20Generator%20-%201%20Leads&body=")
        assert "%0A" in link
        assert "%26" in link

        query = parse_qs(urlsplit(link).query)
        assert query["body"] == ["Line one\nLine & two"]
