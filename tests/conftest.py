"""Shared fixtures: a recording backend double and registered services."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from sqlbind.adapters.sqlite import SqliteConfig
from sqlbind.base import SQLBind
from sqlbind.driver import Session
from tests.fixtures.recording import RecordingConfig, RecordingConnection

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture
def recording_connection() -> RecordingConnection:
    return RecordingConnection()


@pytest.fixture
def service(recording_connection: RecordingConnection) -> Generator[SQLBind, None, None]:
    """Service with the recording connection registered as ``main``."""
    bind = SQLBind()
    bind.add_connection("main", RecordingConfig(recording_connection))
    yield bind
    bind.close()


@pytest.fixture
def session(service: SQLBind) -> Session:
    return Session(service=service)


@pytest.fixture
def sqlite_service() -> Generator[SQLBind, None, None]:
    """Service with an in-memory sqlite database registered as ``sqlite``."""
    bind = SQLBind()
    bind.add_connection("sqlite", SqliteConfig({"database": ":memory:"}))
    yield bind
    bind.close()


@pytest.fixture
def sqlite_session(sqlite_service: SQLBind) -> Session:
    return Session(service=sqlite_service)
