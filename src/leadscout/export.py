"""CSV export and plain-text e-mail digest of saved leads."""

import csv
import io
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Sequence
from urllib.parse import quote

from .models import Lead
from .scoring import calculate_lead_score

CSV_HEADERS = (
    "Name",
    "Address",
    "Phone",
    "Rating",
    "Reviews",
    "Types",
    "Status",
    "Score",
    "Latest Note",
    "Last Contact",
    "Google Maps",
)

MISSING = "N/A"

# encodeURIComponent leaves these unescaped; mail clients expect the same
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _number(value: Optional[float]) -> str:
    # 4.0 renders as "4", absent and zero render empty
    return f"{value:g}" if value else ""


def _day(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else ""


def csv_row(lead: Lead, latest_note: Optional[str] = None) -> list[str]:
    """Cells of one export row, in ``CSV_HEADERS`` order."""
    return [
        lead.name,
        lead.address or "",
        lead.phone or "",
        _number(lead.rating),
        _number(lead.user_ratings_total),
        ", ".join(lead.types),
        lead.status.value,
        str(calculate_lead_score(lead)),
        latest_note or "",
        _day(lead.last_contact_date),
        lead.google_maps_url or "",
    ]


def leads_to_csv(
    leads: Iterable[Lead],
    latest_notes: Optional[Mapping[str, str]] = None,
) -> str:
    """Render leads as CSV text.

    Every cell is quoted and embedded quotes are doubled, so names like
    ``Joe's "Famous" Pizza`` survive spreadsheet imports.

    Args:
        leads: Leads in the order they should appear.
        latest_notes: Most recent note text per lead id.
    """
    latest_notes = latest_notes or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for lead in leads:
        writer.writerow(csv_row(lead, latest_notes.get(lead.id)))
    return buffer.getvalue()


def csv_filename(day: Optional[date] = None) -> str:
    """Download name for an export, e.g. ``leads_2024-05-01.csv``."""
    day = day or date.today()
    return f"leads_{day.isoformat()}.csv"


def _digest_entry(position: int, lead: Lead) -> str:
    if lead.rating:
        rating = f"{_number(lead.rating)}/5 ({lead.user_ratings_total or 0} reviews)"
    else:
        rating = MISSING
    return (
        f"{position}. {lead.name}\n"
        f"   Address: {lead.address or MISSING}\n"
        f"   Phone: {lead.phone or MISSING}\n"
        f"   Rating: {rating}\n"
        f"   Maps: {lead.google_maps_url or MISSING}\n"
    )


def email_digest(leads: Sequence[Lead]) -> tuple[str, str]:
    """Subject and body of a plain-text digest, leads numbered from 1.

    Example:
        >>> subject, body = email_digest(leads)
        >>> subject
        'Lead Generator - 2 Leads'
    """
    subject = f"Lead Generator - {len(leads)} Leads"
    entries = "\n".join(
        _digest_entry(position, lead) for position, lead in enumerate(leads, start=1)
    )
    body = f"Found {len(leads)} businesses without websites:\n\n{entries}"
    return subject, body


def mailto_link(subject: str, body: str) -> str:
    """``mailto:`` URL with an empty recipient, opening a prefilled draft."""
    return (
        f"mailto:?subject={quote(subject, safe=_URI_COMPONENT_SAFE)}"
        f"&body={quote(body, safe=_URI_COMPONENT_SAFE)}"
    )
