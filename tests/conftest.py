"""
Pytest configuration and fixtures for the livestock import tests.

Unit tests never touch Postgres: SKIP_DB_INIT keeps the app lifespan from
bootstrapping tables, and sink tests use an in-memory SQLite engine.
"""

import os

os.environ.setdefault("SKIP_DB_INIT", "1")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from livestock_import.db.models import create_animals_table
from tests.utils.sinks import RecordingSink


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def make_sink():
    def _make(failing_chunks=None):
        return RecordingSink(failing_chunks=set(failing_chunks or ()))
    return _make


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_animals_table(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sample_csv() -> bytes:
    return b"Tag,Animal,Weight\nA1,cow,500\n,,\nA2,Boer goat,45"
