"""Error taxonomy for the lead search pipeline and the local stores."""

from typing import Optional


class LeadScoutError(Exception):
    """Base class for all leadscout errors."""


class InvalidInput(LeadScoutError):
    """Raised when a caller omits a required field.

    The message is shown to the user verbatim.
    """


class SourceError(LeadScoutError):
    """Raised when the places directory rejects a request.

    Attributes:
        status: Upstream status code (e.g. ``REQUEST_DENIED``).
        message: Human readable message including remediation hints.
    """

    REMEDIATION_HINTS = {
        "REQUEST_DENIED": (
            ". This usually means:\n"
            "1. Places API is not enabled in Google Cloud Console\n"
            "2. Billing is not enabled for your Google Cloud project\n"
            "3. API key restrictions are blocking the request\n"
            "4. The API key is invalid\n\n"
            "Please check: https://console.cloud.google.com/apis/library/"
            "places-backend.googleapis.com"
        ),
        "INVALID_REQUEST": ". The request was invalid. Check your query parameters.",
        "OVER_QUERY_LIMIT": ". You have exceeded your API quota. Check your billing.",
        "UNKNOWN_ERROR": ". An unknown error occurred. Please try again.",
    }

    def __init__(self, status: str, detail: Optional[str] = None) -> None:
        self.status = status
        self.detail = detail
        message = f"Google Places API error: {status}"
        message += self.REMEDIATION_HINTS.get(status, "")
        if detail:
            message += f"\nUpstream message: {detail}"
        self.message = message
        super().__init__(message)


class PartialFetchFailure(LeadScoutError):
    """Raised when the details lookup for one candidate fails."""

    def __init__(self, place_id: str, reason: str) -> None:
        self.place_id = place_id
        self.reason = reason
        super().__init__(f"Details lookup failed for {place_id}: {reason}")


class ProbeFailure(LeadScoutError):
    """Raised when a guessed domain does not answer with 2xx/3xx."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Probe of {url} failed: {reason}")


class ProbeTimeout(ProbeFailure):
    """Raised when a guessed domain does not answer within the time limit."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(url, f"no response within {timeout:g}s")
        self.timeout = timeout


class PersistenceError(LeadScoutError):
    """Raised when the local key/value store cannot be read or written."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Persistence failure for '{key}': {reason}")
