"""Shared pytest fixtures."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from mailtone.storage.db import MessageDatabase


@pytest.fixture
def db(tmp_path: Path) -> Iterator[MessageDatabase]:
    """A fresh SQLite-backed message store in a temporary directory."""
    database = MessageDatabase(db_path=tmp_path / "test.db")
    yield database
    database.close()

