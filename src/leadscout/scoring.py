"""Lead scoring and the derived list views.

Score components (rounded sum, 0-115):
- rating x 10 (0-50)
- review count / 10, capped at 20
- 30 when the business has no website
- 10 when a phone number is known
- 5 when an address is known
"""

import logging
from enum import Enum
from typing import Iterable, Optional, Sequence, TypeVar, Union

from .config import chain_keywords
from .models import BusinessRecord, Lead, LeadStatus

logger = logging.getLogger(__name__)

RATING_WEIGHT = 10
REVIEWS_DIVISOR = 10
MAX_REVIEW_POINTS = 20
NO_WEBSITE_POINTS = 30
PHONE_POINTS = 10
ADDRESS_POINTS = 5

R = TypeVar("R", bound=BusinessRecord)


def _round_half_up(value: float) -> int:
    # round() would send 0.5 to 0
    return int(value + 0.5)


def calculate_lead_score(record: BusinessRecord) -> int:
    """Score a business; higher means a better outreach target.

    Example:
        >>> calculate_lead_score(BusinessRecord(
        ...     name="Crumbs", rating=4.5, user_ratings_total=120,
        ...     phone="555-0100", address="1 Main St"))
        102
    """
    score = 0.0
    if record.rating:
        score += record.rating * RATING_WEIGHT
    if record.user_ratings_total:
        score += min(record.user_ratings_total / REVIEWS_DIVISOR, MAX_REVIEW_POINTS)
    if not record.has_website:
        score += NO_WEBSITE_POINTS
    if record.phone:
        score += PHONE_POINTS
    if record.address:
        score += ADDRESS_POINTS
    return _round_half_up(score)


def is_score_stale(lead: Lead) -> bool:
    """Whether the cached score differs from a fresh computation."""
    return lead.score != calculate_lead_score(lead)


def is_chain(name: str, keywords: Optional[Sequence[str]] = None) -> bool:
    """Heuristic franchise check: case-insensitive keyword substring match.

    False positives on names that merely contain a keyword are accepted.
    """
    if keywords is None:
        keywords = chain_keywords()
    lowered = (name or "").lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def matches_text(record: BusinessRecord, text: str) -> bool:
    """Case-insensitive substring match on name, address, phone or a category."""
    needle = text.strip().lower()
    if not needle:
        return True
    haystack = [record.name, record.address or "", record.phone or "", *record.types]
    return any(needle in value.lower() for value in haystack)


def filter_leads(
    leads: Iterable[Lead],
    project_id: Optional[str] = None,
    status: Optional[Union[LeadStatus, str]] = None,
    text: Optional[str] = None,
    exclude_chains: bool = False,
    keywords: Optional[Sequence[str]] = None,
) -> list[Lead]:
    """Leads view, filtered in a fixed order and sorted by score.

    1. project scope
    2. status ("all" or None keeps every status)
    3. free text; when present it alone decides inclusion, so the chain
       filter below is skipped
    4. chain exclusion
    5. score, highest first (stable for ties)
    """
    selected = list(leads)

    if project_id:
        selected = [lead for lead in selected if lead.project_id == project_id]

    if status and status != "all":
        wanted = LeadStatus(status)
        selected = [lead for lead in selected if lead.status == wanted]

    if text and text.strip():
        selected = [lead for lead in selected if matches_text(lead, text)]
    elif exclude_chains:
        selected = [lead for lead in selected if not is_chain(lead.name, keywords)]

    return sort_by_score(selected)


def sort_by_score(leads: Iterable[R]) -> list[R]:
    """Highest freshly computed score first."""
    return sorted(leads, key=calculate_lead_score, reverse=True)


class SortOrder(str, Enum):
    """Orderings offered for search results."""

    RELEVANCE = "relevance"
    RATING = "rating"
    REVIEWS = "reviews"
    NAME = "name"


def sort_search_results(
    records: Iterable[R],
    order: Union[SortOrder, str] = SortOrder.RELEVANCE,
) -> list[R]:
    """Sort search results; relevance keeps directory order.

    Missing ratings and review counts sort as zero.
    """
    order = SortOrder(order)
    records = list(records)
    if order is SortOrder.RATING:
        return sorted(records, key=lambda r: r.rating or 0, reverse=True)
    if order is SortOrder.REVIEWS:
        return sorted(records, key=lambda r: r.user_ratings_total or 0, reverse=True)
    if order is SortOrder.NAME:
        return sorted(records, key=lambda r: r.name)
    return records


def filter_search_results(
    records: Iterable[R],
    text: Optional[str] = None,
    exclude_chains: bool = False,
    order: Union[SortOrder, str] = SortOrder.RELEVANCE,
    keywords: Optional[Sequence[str]] = None,
) -> list[R]:
    """Search-results view: text filter or chain exclusion, then sort."""
    selected = list(records)
    if text and text.strip():
        selected = [r for r in selected if matches_text(r, text)]
    elif exclude_chains:
        before = len(selected)
        selected = [r for r in selected if not is_chain(r.name, keywords)]
        logger.debug("Chain filter removed %d results", before - len(selected))
    return sort_search_results(selected, order)
