"""Pytest configuration and shared fixtures."""

from collections.abc import Generator
from pathlib import Path

import logfire
import pytest

from habitmate.core import date_normalizer
from habitmate.core.config import settings


@pytest.fixture(scope="session", autouse=True)
def quiet_logfire() -> None:
    """Configure Logfire once so spans are created locally and nothing is exported."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
def isolated_storage(monkeypatch, tmp_path: Path) -> Generator[Path]:
    """Point the SQLite file and photo bucket at a temporary directory.

    Calendar dates are resolved in UTC so tests do not depend on the
    machine's zone.
    """
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "habitmate.db"))
    monkeypatch.setattr(settings, "photo_storage_dir", str(tmp_path / "storage"))
    monkeypatch.setattr(settings, "timezone", "UTC")
    date_normalizer.configured_timezone.cache_clear()
    yield tmp_path
    date_normalizer.configured_timezone.cache_clear()
