"""Finalize website presence for a batch of search results."""

import asyncio
import logging
from typing import Optional, Sequence

from .models import BusinessRecord, record_key
from .website import WebsiteResolver

logger = logging.getLogger(__name__)


class LeadAggregator:
    """Attach a final ``has_website``/``website`` pair to each record.

    A website supplied by the directory is authoritative and never probed.
    Only records without one go through the resolver's domain guesses.
    Output order matches input order.
    """

    def __init__(self, resolver: Optional[WebsiteResolver] = None) -> None:
        self.resolver = resolver or WebsiteResolver()

    async def aggregate(
        self,
        records: Sequence[BusinessRecord],
        location: Optional[str] = None,
    ) -> list[BusinessRecord]:
        """Resolve website presence for all records concurrently.

        Records sharing a place id (or name and address) are collapsed to
        the first one.
        """
        unique = _unique(records)
        if len(unique) < len(records):
            logger.debug("Dropped %d duplicate records", len(records) - len(unique))

        logger.info("Checking websites for %d businesses", len(unique))
        finalized = await asyncio.gather(
            *(self._finalize(index, len(unique), record, location)
              for index, record in enumerate(unique))
        )

        without = sum(1 for record in finalized if not record.has_website)
        logger.info(
            "Website check complete: %d without website, %d with website",
            without,
            len(finalized) - without,
        )
        return list(finalized)

    async def _finalize(
        self,
        index: int,
        total: int,
        record: BusinessRecord,
        location: Optional[str],
    ) -> BusinessRecord:
        if record.website:
            logger.debug("[%d/%d] %s has website %s", index + 1, total, record.name, record.website)
            return record.with_website(True, record.website)

        resolution = await self.resolver.resolve(record.name, location, None)
        logger.debug(
            "[%d/%d] %s website via fallback: %s",
            index + 1,
            total,
            record.name,
            resolution.website or "none",
        )
        return record.with_website(resolution.has_website, resolution.website)


def _unique(records: Sequence[BusinessRecord]) -> list[BusinessRecord]:
    seen: set[str] = set()
    unique: list[BusinessRecord] = []
    for record in records:
        key = record_key(record)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique
