"""Places directory adapter.

Turns a category and a location into a deduplicated list of business
records using the Google Places Text Search and Place Details endpoints,
with a synthetic fallback when no API key is configured.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Optional

import googlemaps
from googlemaps.exceptions import ApiError, TransportError, Timeout
from pydantic import ValidationError

from .config import config
from .errors import InvalidInput, PartialFetchFailure, SourceError
from .models import BusinessRecord, OpeningHoursStatus

logger = logging.getLogger(__name__)

# Constants
BROAD_SEARCH_TERM = "all businesses"
REQUEST_TIMEOUT_SECONDS = 10
DETAIL_FIELDS = ["website", "formatted_phone_number", "opening_hours", "url"]
GENERIC_PLACE_TYPES = frozenset({"establishment", "point_of_interest", "place"})
MAX_CATEGORY_LABELS = 3


def format_place_types(types: Optional[list[str]]) -> list[str]:
    """Turn directory type tags into at most three readable labels.

    Example:
        >>> format_place_types(["hair_care", "point_of_interest", "beauty_salon"])
        ['Hair Care', 'Beauty Salon']
    """
    labels: list[str] = []
    for tag in types or []:
        if tag in GENERIC_PLACE_TYPES:
            continue
        labels.append(" ".join(word.capitalize() for word in tag.split("_") if word))
        if len(labels) == MAX_CATEGORY_LABELS:
            break
    return labels


def build_search_term(query: str, location: str) -> str:
    """Text search term for a query, broadening when the query is blank."""
    term = query.strip() or BROAD_SEARCH_TERM
    return f"{term} in {location.strip()}"


def unique_by_place_id(places: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop repeated place ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[dict[str, Any]] = []
    for place in places:
        place_id = place.get("place_id")
        if place_id:
            if place_id in seen:
                continue
            seen.add(place_id)
        unique.append(place)
    return unique


class PlaceSource(ABC):
    """Base class for business directories.

    Subclasses implement :meth:`fetch`; :meth:`search` validates input and
    logs the outcome.
    """

    name = "base"

    async def search(self, query: Optional[str], location: Optional[str]) -> list[BusinessRecord]:
        """Search for businesses matching ``query`` in ``location``.

        Args:
            query: Business category, may be blank for a broad search.
            location: City, address or postal code. Required.

        Returns:
            Business records in directory order, one per place id.

        Raises:
            InvalidInput: If the location is missing.
            SourceError: If the directory rejects the first request.
        """
        location = (location or "").strip()
        if not location:
            raise InvalidInput("Location is required")
        query = (query or "").strip()

        logger.info(
            "Searching %s for '%s' in '%s'",
            self.name,
            query or BROAD_SEARCH_TERM,
            location,
        )
        records = await self.fetch(query, location)
        logger.info("Search returned %d businesses", len(records))
        return records

    @abstractmethod
    async def fetch(self, query: str, location: str) -> list[BusinessRecord]:
        """Fetch records for already validated input."""

    def close(self) -> None:
        """Release resources held by the source."""

    async def __aenter__(self) -> "PlaceSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class GooglePlacesSource(PlaceSource):
    """Google Places API source with pagination and per-place details.

    Attributes:
        pagination_delay: Seconds to wait before asking for a next page.
        broad_search_pages: Page cap when the query is blank.
        query_pages: Page cap for a regular query.

    Example:
        >>> source = GooglePlacesSource()
        >>> records = await source.search("bakery", "Springfield, IL")
        >>> [r.name for r in records if not r.website]
    """

    name = "google_places"

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        pagination_delay: Optional[float] = None,
        broad_search_pages: Optional[int] = None,
        query_pages: Optional[int] = None,
    ) -> None:
        """Initialize the Places source.

        Args:
            api_key: Places API key. Defaults to GOOGLE_PLACES_API_KEY.
            client: Pre-built ``googlemaps.Client`` (or compatible double).
            pagination_delay: Override for the next-page cooldown.
            broad_search_pages: Override for the blank-query page cap.
            query_pages: Override for the regular page cap.

        Raises:
            ConfigError: If neither a client nor an API key is available.
        """
        if client is None:
            if not api_key:
                config.validate_for_search()
                api_key = config.GOOGLE_PLACES_API_KEY
            client = googlemaps.Client(
                key=api_key,
                timeout=REQUEST_TIMEOUT_SECONDS,
                retry_over_query_limit=False,
            )
        self._client = client

        self.pagination_delay = (
            pagination_delay
            if pagination_delay is not None
            else config.PLACES_PAGINATION_DELAY_SECONDS
        )
        self.broad_search_pages = broad_search_pages or config.PLACES_BROAD_SEARCH_PAGES
        self.query_pages = query_pages or config.PLACES_QUERY_PAGES

    def page_cap(self, query: str) -> int:
        """Number of result pages to request for a query."""
        return self.query_pages if query.strip() else self.broad_search_pages

    async def fetch(self, query: str, location: str) -> list[BusinessRecord]:
        term = build_search_term(query, location)
        places = await self._fetch_pages(term, self.page_cap(query))
        unique = unique_by_place_id(places)
        if len(unique) != len(places):
            logger.debug("Dropped %d duplicate places", len(places) - len(unique))

        logger.info("Fetching details for %d places", len(unique))
        records = await asyncio.gather(*(self._build_record(place) for place in unique))
        return [record for record in records if record is not None]

    async def _fetch_pages(self, term: str, max_pages: int) -> list[dict[str, Any]]:
        """Run the text search, following page tokens up to ``max_pages``."""
        loop = asyncio.get_running_loop()
        places: list[dict[str, Any]] = []
        next_page_token: Optional[str] = None

        for page_num in range(max_pages):
            try:
                if page_num == 0:
                    response = await loop.run_in_executor(
                        None, lambda: self._client.places(query=term)
                    )
                else:
                    # The token only becomes valid after a short delay
                    await asyncio.sleep(self.pagination_delay)
                    response = await loop.run_in_executor(
                        None,
                        lambda token=next_page_token: self._client.places(page_token=token),
                    )
            except ApiError as e:
                if page_num == 0:
                    logger.error("Places search rejected: %s %s", e.status, e.message)
                    raise SourceError(e.status, e.message) from e
                logger.info(
                    "Stopping pagination at page %d: %s", page_num + 1, e.status
                )
                break
            except (TransportError, Timeout) as e:
                logger.error("Transport error on page %d: %s", page_num + 1, e)
                if page_num == 0:
                    raise
                break

            results = response.get("results", [])
            places.extend(results)
            next_page_token = response.get("next_page_token")

            logger.debug(
                "Page %d: %d results, next page: %s",
                page_num + 1,
                len(results),
                bool(next_page_token),
            )

            if not next_page_token:
                break

        return places

    async def _fetch_details(self, place_id: str) -> dict[str, Any]:
        """Fetch website, phone, opening hours and map URL in one request.

        Raises:
            PartialFetchFailure: If the lookup fails for any reason.
        """
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(
                None,
                lambda: self._client.place(place_id, fields=DETAIL_FIELDS),
            )
        except ApiError as e:
            raise PartialFetchFailure(place_id, f"{e.status} {e.message or ''}".strip()) from e
        except (TransportError, Timeout) as e:
            raise PartialFetchFailure(place_id, str(e) or type(e).__name__) from e
        return response.get("result") or {}

    async def _build_record(self, place: dict[str, Any]) -> Optional[BusinessRecord]:
        """Merge a search hit with its details into a record."""
        details: dict[str, Any] = {}
        place_id = place.get("place_id")
        if place_id:
            try:
                details = await self._fetch_details(place_id)
            except PartialFetchFailure as e:
                logger.warning(
                    "Using search fields only for %s: %s", place.get("name"), e.reason
                )

        try:
            return parse_place(place, details)
        except ValidationError as e:
            logger.warning("Skipping malformed place %s: %s", place_id, e)
            return None

    def close(self) -> None:
        # googlemaps.Client holds a requests session
        session = getattr(self._client, "session", None)
        if session is not None:
            session.close()


def parse_place(place: dict[str, Any], details: Optional[dict[str, Any]] = None) -> BusinessRecord:
    """Build a record from a text-search hit and an optional details payload.

    Raises:
        ValidationError: If the hit has no usable name.
    """
    details = details or {}

    opening_hours_status = None
    open_now = (details.get("opening_hours") or {}).get("open_now")
    if open_now is not None:
        opening_hours_status = (
            OpeningHoursStatus.OPEN_NOW if open_now else OpeningHoursStatus.CLOSED_NOW
        )

    return BusinessRecord(
        name=place.get("name", ""),
        address=place.get("formatted_address") or place.get("vicinity"),
        phone=details.get("formatted_phone_number"),
        website=details.get("website"),
        rating=place.get("rating"),
        user_ratings_total=place.get("user_ratings_total"),
        types=format_place_types(place.get("types")),
        opening_hours_status=opening_hours_status,
        google_maps_url=details.get("url"),
        place_id=place.get("place_id"),
    )


class SampleSource(PlaceSource):
    """Fixed synthetic results used when no directory is configured.

    Shapes are deterministic, phone numbers are random.
    """

    name = "sample"

    STREETS = (
        "123 Main Street",
        "456 Oak Avenue",
        "789 Pine Road",
        "321 Elm Street",
        "654 Maple Drive",
    )

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def _phone(self) -> str:
        return (
            f"(555) {self._rng.randint(1000, 9999)}-{self._rng.randint(1000, 9999)}"
        )

    async def fetch(self, query: str, location: str) -> list[BusinessRecord]:
        label = query[:1].upper() + query[1:] if query else "Local Business"
        return [
            BusinessRecord(
                name=f"{label} Shop {index}",
                address=f"{street}, {location}",
                phone=self._phone(),
            )
            for index, street in enumerate(self.STREETS, start=1)
        ]


def build_place_source(api_key: Optional[str] = None) -> PlaceSource:
    """Live Places source when a key is available, sample data otherwise."""
    api_key = api_key or config.GOOGLE_PLACES_API_KEY
    if api_key:
        return GooglePlacesSource(api_key=api_key)
    logger.warning(
        "GOOGLE_PLACES_API_KEY not set - returning synthetic sample businesses"
    )
    return SampleSource()
