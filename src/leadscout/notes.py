"""Append-only notes per lead, stored as a mapping of lead id to notes."""

import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from .models import Note, utc_now
from .storage import NOTES_KEY, Collection

logger = logging.getLogger(__name__)


class NoteStore(Collection):
    """Chronological notes keyed by lead id.

    Notes of removed leads stay in the store and are simply never shown.
    """

    key = NOTES_KEY
    container = dict

    def add(self, lead_id: str, text: str, now: Optional[datetime] = None) -> Optional[Note]:
        """Append a note; blank text is ignored.

        Returns:
            The stored note, or ``None`` if nothing was written.
        """
        text = (text or "").strip()
        if not text:
            return None
        note = Note(text=text, date=now or utc_now())
        notes = self._load()
        entries = notes.get(lead_id)
        if not isinstance(entries, list):
            if entries is not None:
                logger.warning("Replacing malformed notes of lead %s", lead_id)
            entries = notes[lead_id] = []
        entries.append(note.to_payload())
        if not self._save(notes):
            return None
        logger.info("Added note to lead %s", lead_id)
        return note

    def for_lead(self, lead_id: str) -> list[Note]:
        """Notes for a lead, oldest first."""
        entries = self._load().get(lead_id)
        if not isinstance(entries, list):
            return []
        notes: list[Note] = []
        for raw in entries:
            try:
                notes.append(Note.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping unreadable note for lead %s", lead_id)
        return notes

    def latest(self, lead_id: str) -> Optional[Note]:
        notes = self.for_lead(lead_id)
        return notes[-1] if notes else None

    def latest_texts(self) -> dict[str, str]:
        """Most recent note text per lead id."""
        latest: dict[str, str] = {}
        for lead_id, entries in self._load().items():
            if not isinstance(entries, list) or not entries:
                continue
            if isinstance(entries[-1], dict) and entries[-1].get("text"):
                latest[lead_id] = entries[-1]["text"]
        return latest
