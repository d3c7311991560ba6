"""Saved leads.

Leads are kept as one list under the ``leads`` key and rewritten on each
mutation. Duplicates are detected with the same key as search results
(place id, else name and address); the stored lead always wins so a
re-added business keeps its status, notes and project.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Union

from pydantic import ValidationError

from .models import CONTACT_STATUSES, BusinessRecord, Lead, LeadStatus, record_key, utc_now
from .scoring import calculate_lead_score, is_score_stale
from .storage import LEADS_KEY, Collection

logger = logging.getLogger(__name__)


class LeadStore(Collection):
    """Persistent collection of leads keyed by id."""

    key = LEADS_KEY
    container = list

    def list(self) -> list[Lead]:
        """All stored leads in insertion order; unreadable entries are skipped."""
        leads: list[Lead] = []
        for raw in self._load():
            try:
                leads.append(Lead.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping unreadable lead entry: %s", e.errors()[:1])
        return leads

    def _write(self, leads: Iterable[Lead]) -> bool:
        return self._save([lead.to_payload() for lead in leads])

    def get(self, lead_id: str) -> Optional[Lead]:
        for lead in self.list():
            if lead.id == lead_id:
                return lead
        return None

    def add(
        self,
        records: Iterable[BusinessRecord],
        project_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[Lead]:
        """Merge records into the collection.

        Args:
            records: Search results (or leads) to save.
            project_id: Project to tag newly created leads with.
            now: Creation timestamp, defaults to the current time.

        Returns:
            The leads that were actually created; duplicates of stored
            leads or of earlier records in the same batch are skipped.
            Empty when the store cannot be written.
        """
        now = now or utc_now()
        leads = self.list()
        seen_keys = {record_key(lead) for lead in leads}
        seen_ids = {lead.id for lead in leads}

        created: list[Lead] = []
        for record in records:
            key = record_key(record)
            if key in seen_keys:
                logger.debug("Lead already saved: %s", record.name)
                continue
            lead = Lead.from_record(
                record,
                score=calculate_lead_score(record),
                project_id=project_id,
                now=now,
            )
            if lead.id in seen_ids:
                logger.debug("Lead id already taken: %s", lead.id)
                continue
            seen_keys.add(key)
            seen_ids.add(lead.id)
            created.append(lead)

        if created:
            if not self._write(leads + created):
                return []
            logger.info("Saved %d new leads (%d total)", len(created), len(leads) + len(created))
        return created

    def remove(self, lead_id: str) -> bool:
        """Delete a lead by id. Its notes are left in place."""
        leads = self.list()
        remaining = [lead for lead in leads if lead.id != lead_id]
        if len(remaining) == len(leads):
            return False
        if not self._write(remaining):
            return False
        logger.info("Removed lead %s", lead_id)
        return True

    def update_status(
        self,
        lead_id: str,
        status: Union[LeadStatus, str],
        now: Optional[datetime] = None,
    ) -> Optional[Lead]:
        """Move a lead to ``status``.

        Entering contacted or replied stamps ``last_contact_date``;
        ``last_updated`` is always stamped.

        Raises:
            ValueError: If ``status`` is not a known status.
        """
        status = LeadStatus(status)
        now = now or utc_now()
        leads = self.list()
        for index, lead in enumerate(leads):
            if lead.id != lead_id:
                continue
            update = {"status": status, "last_updated": now}
            if status in CONTACT_STATUSES:
                update["last_contact_date"] = now
            leads[index] = lead.model_copy(update=update)
            if not self._write(leads):
                return None
            logger.info("Lead %s is now %s", lead_id, status.value)
            return leads[index]
        return None

    def assign_project(
        self,
        lead_ids: Iterable[str],
        project_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> int:
        """Tag leads with a project, or untag them with ``None``.

        Returns:
            Number of leads changed, 0 if the store cannot be written.
        """
        wanted = set(lead_ids)
        now = now or utc_now()
        changed = 0
        leads = self.list()
        for index, lead in enumerate(leads):
            if lead.id in wanted and lead.project_id != project_id:
                leads[index] = lead.model_copy(
                    update={"project_id": project_id, "last_updated": now}
                )
                changed += 1
        if changed and not self._write(leads):
            return 0
        return changed

    def detach_project(self, project_id: str) -> int:
        """Clear ``project_id`` on every lead tagged with it."""
        ids = [lead.id for lead in self.list() if lead.project_id == project_id]
        return self.assign_project(ids, None)

    def refresh_scores(self) -> int:
        """Recompute cached scores, writing only when something changed."""
        leads = self.list()
        stale = 0
        for index, lead in enumerate(leads):
            if is_score_stale(lead):
                leads[index] = lead.model_copy(update={"score": calculate_lead_score(lead)})
                stale += 1
        if stale:
            if not self._write(leads):
                return 0
            logger.info("Refreshed %d stale scores", stale)
        return stale

    def count(self) -> int:
        return len(self.list())
