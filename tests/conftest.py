"""
Pytest configuration for Idea Archiver tests.

Patches time.sleep during tests so delivery pacing does not slow test runs.
"""

from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def sleep_mock():
    """Disable delivery sleeps in all tests; yields the mock for assertions."""
    with patch("idea_archiver.sync.time.sleep") as mock_sleep:
        yield mock_sleep


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep a developer's webhook settings out of the tests."""
    for key in ("DISCORD_WEBHOOK_URL", "DISCORD_DELAY_MS", "IDEA_ARCHIVER_CONFIG"):
        monkeypatch.delenv(key, raising=False)
    with patch("idea_archiver.config.load_dotenv"):
        yield
