"""Pydantic models for business records, leads, projects and notes.

Field names are snake_case in Python and camelCase on the wire and in
the local store (``userRatingsTotal``, ``hasWebsite``, ...).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class LeadStatus(str, Enum):
    """Outreach status of a saved lead."""

    NEW = "new"
    CONTACTED = "contacted"
    REPLIED = "replied"
    WON = "won"
    LOST = "lost"


# Statuses that stamp ``last_contact_date`` when entered
CONTACT_STATUSES = frozenset({LeadStatus.CONTACTED, LeadStatus.REPLIED})


class OpeningHoursStatus(str, Enum):
    """Opening state reported by the directory at search time."""

    OPEN_NOW = "Open now"
    CLOSED_NOW = "Closed now"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class BusinessRecord(_CamelModel):
    """A single business returned by a search.

    ``has_website`` is finalized by the aggregator; it is always true when
    ``website`` is set.
    """

    name: str = Field(..., min_length=1, description="Business name")
    address: Optional[str] = Field(default=None, description="Formatted address")
    phone: Optional[str] = Field(default=None, description="Formatted phone number")
    website: Optional[str] = Field(default=None, description="Website URL")
    has_website: bool = Field(default=False, description="Website presence flag")
    rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    user_ratings_total: Optional[int] = Field(default=None, ge=0)
    types: list[str] = Field(default_factory=list, description="Category labels")
    opening_hours_status: Optional[OpeningHoursStatus] = None
    google_maps_url: Optional[str] = None
    place_id: Optional[str] = Field(default=None, description="Directory identifier")

    @field_validator(
        "address", "phone", "website", "google_maps_url", "place_id", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings from the directory or old payloads as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("types", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @model_validator(mode="after")
    def website_implies_presence(self) -> "BusinessRecord":
        if self.website:
            self.has_website = True
        return self

    @property
    def dedup_key(self) -> str:
        """Uniqueness key: the place id when known, else name and address."""
        return record_key(self)

    def with_website(self, has_website: bool, website: Optional[str]) -> "BusinessRecord":
        """Copy of this record with the website fields reconciled."""
        return self.model_copy(
            update={"has_website": has_website or bool(website), "website": website}
        )


def record_key(record: BusinessRecord) -> str:
    """Composite key used to deduplicate records and leads."""
    if record.place_id:
        return record.place_id
    return f"{record.name}_{record.address or ''}"


class Lead(BusinessRecord):
    """A business the user saved for outreach.

    ``score`` is a cached snapshot; :func:`leadscout.scoring.calculate_lead_score`
    is the source of truth.
    """

    id: str = Field(..., min_length=1, description="Stable lead identifier")
    status: LeadStatus = Field(default=LeadStatus.NEW)
    score: int = Field(default=0)
    added_date: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)
    last_contact_date: Optional[datetime] = None
    project_id: Optional[str] = None

    @field_validator("project_id", mode="before")
    @classmethod
    def blank_project_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @classmethod
    def from_record(
        cls,
        record: BusinessRecord,
        score: int = 0,
        project_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "Lead":
        """Create a new lead from a search result.

        The id is the place id when present, otherwise
        ``name_address_<epoch millis>`` taken at creation time.
        """
        now = now or utc_now()
        lead_id = record.place_id or (
            f"{record.name}_{record.address or ''}_{int(now.timestamp() * 1000)}"
        )
        return cls(
            **record.model_dump(include=set(BusinessRecord.model_fields)),
            id=lead_id,
            status=LeadStatus.NEW,
            score=score,
            added_date=now,
            last_updated=now,
            project_id=project_id,
        )


class Project(_CamelModel):
    """A user-defined label grouping leads by campaign."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = Field(..., min_length=1)
    query: Optional[str] = None
    location: Optional[str] = None
    created_date: datetime = Field(default_factory=utc_now)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("project name must not be blank")
        return v


class Note(_CamelModel):
    """A free-text annotation attached to a lead."""

    text: str
    date: datetime = Field(default_factory=utc_now)
