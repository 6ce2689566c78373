"""
Unit test fixtures and helpers.

Provides lightweight fixtures for unit testing that do NOT require
database connections, SSH servers or the user's own known_hosts.
"""

import pytest

from hostguard.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch: pytest.MonkeyPatch):
    """Isolate cached settings from the environment of the test run."""
    for name in ("HOSTGUARD_STRICT_HOST_KEY_CHECKING", "HOSTGUARD_KNOWN_HOSTS_FILES", "HOSTGUARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
