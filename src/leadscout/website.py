"""Website presence resolver.

Trusts a website supplied by the directory. Otherwise guesses
``<name>.com`` and ``www.<name>.com`` from the business name and probes
each guess with a HEAD request. The result is a best-effort signal:
parked domains count as websites and unusual domains are missed.
"""

import asyncio
import functools
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import requests
from requests.exceptions import RequestException

from .config import config
from .errors import ProbeFailure, ProbeTimeout

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_LEADING_ARTICLE = re.compile(r"^(the|a|an)\s+")


@dataclass(frozen=True)
class WebsiteResolution:
    """Outcome of a website lookup.

    Attributes:
        has_website: Whether a website is known or was found.
        website: The website URL, if any.
    """

    has_website: bool
    website: Optional[str] = None


NO_WEBSITE = WebsiteResolution(has_website=False)


def clean_business_name(name: str) -> str:
    """Reduce a business name to the label used for domain guesses.

    Example:
        >>> clean_business_name("The Corner Bakery & Café")
        'cornerbakerycaf'
    """
    cleaned = _NON_ALNUM.sub("", (name or "").lower())
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    cleaned = _LEADING_ARTICLE.sub("", cleaned)
    return cleaned.replace(" ", "")


def candidate_domains(name: str) -> list[str]:
    """Domains to probe for a business name, in probe order.

    Names that clean down to fewer than three characters yield nothing.
    """
    cleaned = clean_business_name(name)
    if len(cleaned) < MIN_NAME_LENGTH:
        return []
    return [f"{cleaned}.com", f"www.{cleaned}.com"]


class WebsiteResolver:
    """Decide whether a business has a website.

    Probes run on the resolver's own thread pool so several businesses can
    be resolved concurrently. At most ``max_concurrent`` probes are in
    flight; a probe waiting for a free slot has not started its
    ``timeout`` seconds of wall-clock time yet.

    Attributes:
        timeout: Seconds allowed per guessed domain.
        max_concurrent: Probes allowed in flight at once.
        session: Requests session used for probes.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        user_agent: Optional[str] = None,
        max_concurrent: Optional[int] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else config.WEBSITE_PROBE_TIMEOUT_SECONDS
        self.max_concurrent = max(1, max_concurrent or config.WEBSITE_PROBE_CONCURRENCY)
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": user_agent or config.WEBSITE_PROBE_USER_AGENT}
        )
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_concurrent, thread_name_prefix="website-probe"
        )
        self._slots: Optional[asyncio.Semaphore] = None
        self._slots_loop: Optional[asyncio.AbstractEventLoop] = None

    def close(self) -> None:
        """Close the requests session and release resources."""
        self._executor.shutdown(wait=False)
        self.session.close()

    def __enter__(self) -> "WebsiteResolver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    async def resolve(
        self,
        business_name: str,
        location: Optional[str] = None,
        existing_website: Optional[str] = None,
    ) -> WebsiteResolution:
        """Resolve website presence for one business.

        Args:
            business_name: Name as listed in the directory.
            location: Search location. Not used by the domain guesses.
            existing_website: Website supplied by the directory, trusted as is.

        Returns:
            The resolution. Probe errors never propagate.
        """
        if existing_website:
            return WebsiteResolution(has_website=True, website=existing_website)

        for domain in candidate_domains(business_name):
            url = f"https://{domain}"
            try:
                await self.probe(url)
            except ProbeFailure as e:
                logger.debug("No website at %s: %s", url, e.reason)
                continue
            logger.info("Found website for %s: %s", business_name, url)
            return WebsiteResolution(has_website=True, website=url)

        return NO_WEBSITE

    async def probe(self, url: str) -> None:
        """Check that ``url`` answers a HEAD request with 2xx or 3xx.

        Raises:
            ProbeTimeout: If no answer arrives within ``timeout`` seconds
                of the request being sent.
            ProbeFailure: On connection errors or 4xx/5xx answers.
        """
        slots = self._probe_slots()
        await slots.acquire()
        loop = asyncio.get_running_loop()
        try:
            request = loop.run_in_executor(self._executor, self._head_status, url)
        except BaseException:
            slots.release()
            raise
        # The slot stays taken until the worker thread is really done
        request.add_done_callback(functools.partial(_release_slot, slots))

        try:
            status = await asyncio.wait_for(asyncio.shield(request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProbeTimeout(url, self.timeout) from e

        if not 200 <= status < 400:
            raise ProbeFailure(url, f"HTTP {status}")

    def _probe_slots(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._slots is None or self._slots_loop is not loop:
            self._slots = asyncio.Semaphore(self.max_concurrent)
            self._slots_loop = loop
        return self._slots

    def _head_status(self, url: str) -> int:
        try:
            response = self.session.head(url, allow_redirects=True, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProbeTimeout(url, self.timeout) from e
        except RequestException as e:
            raise ProbeFailure(url, type(e).__name__) from e
        response.close()
        return response.status_code


def _release_slot(slots: asyncio.Semaphore, request: "asyncio.Future[int]") -> None:
    slots.release()
    # Retrieve the outcome of abandoned probes so it is not reported as unhandled
    if not request.cancelled():
        request.exception()
