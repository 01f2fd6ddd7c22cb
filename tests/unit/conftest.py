"""Pytest configuration and fixtures for unit tests."""

from datetime import UTC, datetime

import pytest

from habitmate.core.config import settings
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches habitmate.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("habitmate.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("habitmate.core.db_client.upsert_record", in_memory_db.upsert_record)
    monkeypatch.setattr("habitmate.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("habitmate.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("habitmate.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("habitmate.core.db_client.delete_records", in_memory_db.delete_records)
    monkeypatch.setattr("habitmate.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("habitmate.core.db_client.get_first_record", in_memory_db.get_first_record)

    return in_memory_db


@pytest.fixture
def photo_dir(monkeypatch, tmp_path):
    """Points photo storage at a temporary directory."""
    monkeypatch.setattr(settings, "photo_storage_dir", str(tmp_path))
    return tmp_path / settings.photo_bucket


@pytest.fixture
def fixed_now():
    """A fixed UTC instant used as the injected clock."""
    return datetime(2024, 1, 12, 12, 0, tzinfo=UTC)


@pytest.fixture
def utc_timezone(monkeypatch):
    """Makes calendar dates resolve in UTC regardless of the machine's zone."""
    from habitmate.core import date_normalizer

    monkeypatch.setattr(settings, "timezone", "UTC")
    date_normalizer.configured_timezone.cache_clear()
    yield
    date_normalizer.configured_timezone.cache_clear()


async def make_profile(db: InMemoryDBClient, user_id: str, **fields) -> dict:
    """Insert a profile row."""
    data = {
        "id": user_id,
        "email": f"{user_id}@example.com",
        "username": user_id,
        "first_name": "",
        "last_name": "",
        **fields,
    }
    return await db.create_record(collection="profiles", data=data)


async def make_friends(db: InMemoryDBClient, requester_id: str, addressee_id: str, status: str = "confirmed") -> dict:
    """Insert a friendship row."""
    return await db.create_record(
        collection="friendships",
        data={"requester_id": requester_id, "addressee_id": addressee_id, "status": status},
    )
