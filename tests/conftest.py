"""Pytest configuration and fixtures."""

import os
from unittest.mock import patch

import pytest

# Set before any lifemap module reads settings at import time
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["LIFEMAP_ENV"] = "test"
os.environ["LANGUAGE_DETECTION_ENABLED"] = "false"


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Re-read settings for every test so monkeypatched env vars take effect."""
    from lifemap.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_store():
    """Route every lifemap.db function to a freshly reset in-memory FakeDB."""
    from tests.fakes.fake_db import DB_FUNCTIONS, fake_db

    fake_db.reset()
    patches = [
        patch(f"{module}.{name}", side_effect=getattr(fake_db, name))
        for module, names in DB_FUNCTIONS.items()
        for name in names
    ]

    # Start all patches
    for p in patches:
        p.start()

    yield fake_db

    # Stop all patches
    for p in patches:
        p.stop()
