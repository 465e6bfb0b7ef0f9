"""Shared fixtures for RupIQ Ledger tests."""

import pytest

from rupiq_ledger.config import Settings
from rupiq_ledger.store import KeyValueStore


@pytest.fixture
def settings(tmp_path):
    """Create settings pointing at a temporary database."""
    return Settings(
        database_path=tmp_path / "test.db",
        openai_api_key=None,
        owner_name="Me",
        currency_symbol="₹",
    )


@pytest.fixture
def store(settings):
    """Create a temporary key-value store."""
    kv = KeyValueStore(settings.database_path)
    yield kv
    kv.close()
