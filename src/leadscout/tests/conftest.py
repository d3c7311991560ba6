# src/leadscout/tests/conftest.py
"""Shared fixtures for Lead Scout tests."""
from unittest.mock import patch

import pytest

from leadscout.errors import PersistenceError
from leadscout.leads import LeadStore
from leadscout.notes import NoteStore
from leadscout.projects import ProjectStore
from leadscout.storage import memory_store


@pytest.fixture
def store():
    """Open in-memory key/value store, closed after the test."""
    kv = memory_store()
    yield kv
    kv.close()


@pytest.fixture
def lead_store(store):
    return LeadStore(store)


@pytest.fixture
def project_store(store, lead_store):
    return ProjectStore(store, lead_store)


@pytest.fixture
def note_store(store):
    return NoteStore(store)


@pytest.fixture
def read_only(store):
    """Make every write to ``store`` fail while the test body runs."""

    def enable():
        patcher = patch.object(
            store, "put", side_effect=PersistenceError("*", "attempt to write a readonly database")
        )
        patcher.start()
        patchers.append(patcher)

    patchers = []
    yield enable
    for patcher in patchers:
        patcher.stop()
