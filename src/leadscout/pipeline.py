"""Search entry point: directory lookup followed by website resolution.

The pipeline coordinates:
1. Place source - business candidates for a category and location
2. Aggregator - website presence for every candidate

Records come back unfiltered; hiding businesses that already have a
website is left to the caller.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .aggregator import LeadAggregator
from .models import BusinessRecord, Project
from .places import PlaceSource, build_place_source

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """Result of one search.

    Attributes:
        query: Query term as submitted (may be blank).
        location: Location as submitted.
        businesses: All records in directory order.
        duration_seconds: Wall-clock duration of the search.
    """

    query: str
    location: str
    businesses: list[BusinessRecord] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def without_website(self) -> list[BusinessRecord]:
        return [b for b in self.businesses if not b.has_website]

    @property
    def with_website(self) -> list[BusinessRecord]:
        return [b for b in self.businesses if b.has_website]

    def visible(self, show_with_websites: bool = False) -> list[BusinessRecord]:
        """Records to display; website owners are hidden unless requested."""
        return list(self.businesses) if show_with_websites else self.without_website

    def to_dict(self) -> dict[str, Any]:
        """Response payload of the search endpoint."""
        return {"businesses": [b.to_payload() for b in self.businesses]}


def saveable(records: Iterable[BusinessRecord]) -> list[BusinessRecord]:
    """Records eligible to be saved as leads: those without a website."""
    return [record for record in records if not record.has_website]


class LeadSearchPipeline:
    """Run a directory search and finalize website presence.

    Example:
        >>> pipeline = LeadSearchPipeline()
        >>> result = await pipeline.search("bakery", "Springfield")
        >>> len(result.without_website)
    """

    def __init__(
        self,
        source: Optional[PlaceSource] = None,
        aggregator: Optional[LeadAggregator] = None,
    ) -> None:
        self.source = source or build_place_source()
        self.aggregator = aggregator or LeadAggregator()

    async def search(self, query: Optional[str], location: Optional[str]) -> SearchResult:
        """Search and resolve websites.

        Raises:
            InvalidInput: If the location is blank.
            SourceError: If the directory rejects the search.
        """
        started = time.monotonic()
        candidates = await self.source.search(query, location)
        businesses = await self.aggregator.aggregate(candidates, location)

        result = SearchResult(
            query=(query or "").strip(),
            location=(location or "").strip(),
            businesses=businesses,
            duration_seconds=time.monotonic() - started,
        )
        logger.info(
            "Search finished in %.1fs: %d businesses, %d without website",
            result.duration_seconds,
            len(result.businesses),
            len(result.without_website),
        )
        return result

    async def search_again(self, project: Project) -> SearchResult:
        """Repeat the search that created a project."""
        return await self.search(project.query, project.location)

    def close(self) -> None:
        self.source.close()
        self.aggregator.resolver.close()
