"""Lead Scout configuration module.

Settings are loaded from:
1. .env file (if present)
2. Environment variables

The Places API key is optional. Without it the search falls back to a
small synthetic sample so the rest of the workflow can be exercised.

Usage:
    >>> from leadscout.config import config
    >>> config.PLACES_PAGINATION_DELAY_SECONDS
    2.0
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


DEFAULT_CHAIN_KEYWORDS = (
    "mcdonald",
    "starbucks",
    "subway",
    "burger king",
    "wendy's",
    "taco bell",
    "kfc",
    "pizza hut",
    "domino's",
    "papa john",
    "dunkin",
    "chipotle",
    "panera",
    "chick-fil-a",
    "popeyes",
    "little caesars",
    "jimmy john",
    "dairy queen",
    "sonic drive",
    "arby's",
    "walmart",
    "target",
    "costco",
    "walgreens",
    "cvs",
    "rite aid",
    "7-eleven",
    "home depot",
    "lowe's",
    "best buy",
    "autozone",
    "jiffy lube",
    "midas",
    "h&r block",
    "great clips",
    "supercuts",
    "sport clips",
    "planet fitness",
    "anytime fitness",
    "the ups store",
    "fedex",
    "state farm",
    "allstate",
    "re/max",
    "keller williams",
    "coldwell banker",
    "century 21",
)


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        APP_ENV: Deployment environment name (dev, prod).
        LOG_LEVEL: Root log level name.
        GOOGLE_PLACES_API_KEY: Places API key; empty selects the sample source.
        PLACES_PAGINATION_DELAY_SECONDS: Cooldown before requesting a next page.
        PLACES_BROAD_SEARCH_PAGES: Page cap when no query term is given.
        PLACES_QUERY_PAGES: Page cap for a "<query> in <location>" search.
        WEBSITE_PROBE_TIMEOUT_SECONDS: Wall-clock limit per guessed domain.
        WEBSITE_PROBE_USER_AGENT: User-Agent header sent with probes.
        WEBSITE_PROBE_CONCURRENCY: Probes allowed in flight at once.
        DATABASE_URL: SQLAlchemy URL of the local key/value store.
        CHAIN_KEYWORDS: Franchise keywords used by the chain filter.
    """

    def __init__(self) -> None:
        """Initialize configuration by loading from environment variables."""
        self.logger = logging.getLogger(__name__)

        # Application environment
        self.APP_ENV = self._get_optional("APP_ENV", "dev")
        self.DEBUG = self._get_bool("DEBUG")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO")

        # Places directory
        self.GOOGLE_PLACES_API_KEY = self._get_optional(
            "GOOGLE_PLACES_API_KEY"
        ) or self._get_optional("GOOGLE_MAPS_API_KEY")
        self.PLACES_PAGINATION_DELAY_SECONDS = self._get_float(
            "PLACES_PAGINATION_DELAY_SECONDS", 2.0
        )
        self.PLACES_BROAD_SEARCH_PAGES = int(
            self._get_optional("PLACES_BROAD_SEARCH_PAGES", "2")
        )
        self.PLACES_QUERY_PAGES = int(self._get_optional("PLACES_QUERY_PAGES", "1"))

        # Website probing
        self.WEBSITE_PROBE_TIMEOUT_SECONDS = self._get_float(
            "WEBSITE_PROBE_TIMEOUT_SECONDS", 2.0
        )
        self.WEBSITE_PROBE_USER_AGENT = self._get_optional(
            "WEBSITE_PROBE_USER_AGENT", "Mozilla/5.0 (compatible; LeadScout/1.0)"
        )
        self.WEBSITE_PROBE_CONCURRENCY = max(
            1, int(self._get_optional("WEBSITE_PROBE_CONCURRENCY", "8"))
        )

        # Local store
        self.DATABASE_URL = self._get_optional(
            "LEADSCOUT_DATABASE_URL", "sqlite:///leadscout.db"
        )

        # Chain filter
        self.CHAIN_KEYWORDS = self._get_list("CHAIN_KEYWORDS", DEFAULT_CHAIN_KEYWORDS)

        # API Server Configuration
        self.API_HOST = self._get_optional("API_HOST", "0.0.0.0")
        self.API_PORT = int(self._get_optional("API_PORT", "8080"))

    def _get_optional(self, name: str, default: str = "") -> str:
        """Get an optional configuration value from environment variables.

        Args:
            name: The name of the environment variable.
            default: Default value if not found (default: "").

        Returns:
            The value of the environment variable or the default value.
        """
        if name in os.environ:
            return os.environ[name]
        return default

    def _get_bool(self, name: str) -> bool:
        """Get a boolean configuration value from environment variables.

        Args:
            name: The name of the environment variable.

        Returns:
            True if the environment variable exists and is set to 'true' or '1'.
        """
        return name in os.environ and os.environ[name].lower() in ["true", "1"]

    def _get_float(self, name: str, default: float) -> float:
        """Get a float value, falling back to the default on bad input."""
        raw = self._get_optional(name)
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            self.logger.warning(
                "Environment variable %s=%r is not a number, using %s",
                name,
                raw,
                default,
            )
            return default

    def _get_list(self, name: str, default: tuple[str, ...]) -> tuple[str, ...]:
        """Get a comma-separated list, lowercased and stripped."""
        raw = self._get_optional(name)
        if not raw:
            return tuple(default)
        return tuple(item.strip().lower() for item in raw.split(",") if item.strip())

    @property
    def has_places_api_key(self) -> bool:
        """Whether a live places directory is configured."""
        return bool(self.GOOGLE_PLACES_API_KEY)

    def validate_for_search(self) -> None:
        """Validate configuration required for a live directory search.

        Raises:
            ConfigError: If the Places API key is missing.
        """
        if not self.GOOGLE_PLACES_API_KEY:
            raise ConfigError(
                "GOOGLE_PLACES_API_KEY is required for live business search"
            )

    def is_development(self) -> bool:
        """Check if running in development environment.

        Returns:
            True if APP_ENV is 'dev' or 'development'.
        """
        return self.APP_ENV.lower() in ["dev", "development"]

    def get_log_level(self) -> int:
        """Get logging level as integer.

        Returns:
            Logging level constant (e.g., logging.INFO).
        """
        level_map = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return level_map.get(self.LOG_LEVEL.upper(), logging.INFO)


# Create global singleton instance
config = Config()


def chain_keywords(override: Optional[tuple[str, ...]] = None) -> tuple[str, ...]:
    """Chain keywords from an explicit override or the shared configuration."""
    if override is not None:
        return override
    return config.CHAIN_KEYWORDS
