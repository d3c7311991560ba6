"""Projects: named labels that group leads by campaign.

Leads point at their project through ``Lead.project_id``; a project owns
no list of leads. Deleting a project detaches its leads instead of
deleting them.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from .leads import LeadStore
from .models import Project
from .storage import PROJECTS_KEY, Collection, KeyValueStore

logger = logging.getLogger(__name__)


class ProjectStore(Collection):
    """Persistent list of projects.

    Invalid requests (blank names, unknown ids) are ignored rather than
    raised, returning ``None`` or ``False``.
    """

    key = PROJECTS_KEY
    container = list

    def __init__(self, store: KeyValueStore, leads: Optional[LeadStore] = None) -> None:
        super().__init__(store)
        self.leads = leads or LeadStore(store)

    def list(self) -> list[Project]:
        projects: list[Project] = []
        for raw in self._load():
            try:
                projects.append(Project.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping unreadable project entry: %s", e.errors()[:1])
        return projects

    def _write(self, projects: list[Project]) -> bool:
        return self._save([project.to_payload() for project in projects])

    def get(self, project_id: str) -> Optional[Project]:
        for project in self.list():
            if project.id == project_id:
                return project
        return None

    def create(
        self,
        name: str,
        query: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Optional[Project]:
        """Create a project; a blank name is a no-op returning ``None``."""
        name = (name or "").strip()
        if not name:
            return None
        project = Project(
            name=name,
            query=(query or "").strip() or None,
            location=(location or "").strip() or None,
        )
        projects = self.list()
        projects.append(project)
        if not self._write(projects):
            return None
        logger.info("Created project %s (%s)", project.name, project.id)
        return project

    def rename(self, project_id: str, name: str) -> bool:
        """Rename a project.

        Blank names and names equal to the current one are ignored.

        Returns:
            True if the stored name changed.
        """
        name = (name or "").strip()
        if not name:
            return False
        projects = self.list()
        for index, project in enumerate(projects):
            if project.id != project_id:
                continue
            if project.name == name:
                return False
            projects[index] = project.model_copy(update={"name": name})
            if not self._write(projects):
                return False
            logger.info("Renamed project %s to %s", project_id, name)
            return True
        return False

    def delete(self, project_id: str) -> bool:
        """Delete a project and detach its leads."""
        projects = self.list()
        remaining = [project for project in projects if project.id != project_id]
        if len(remaining) == len(projects):
            return False
        if not self._write(remaining):
            return False
        detached = self.leads.detach_project(project_id)
        logger.info("Deleted project %s, detached %d leads", project_id, detached)
        return True

    def lead_counts(self) -> dict[str, int]:
        """Number of leads per project id."""
        counts = {project.id: 0 for project in self.list()}
        for lead in self.leads.list():
            if lead.project_id in counts:
                counts[lead.project_id] += 1
        return counts
