import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from fakes import FakeRedis  # noqa: E402
from facilitator.config import Settings, get_settings  # noqa: E402
from facilitator.services.session_store import SessionStore  # noqa: E402


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("RECALL_API_KEY", "Token test-key")
    monkeypatch.setenv("WEBHOOK_BASE_URL", "https://relay.example.com")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test")
    monkeypatch.setenv("ANALYZER_PROVIDER", "bedrock")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    return Settings(analysis_min_interval_seconds=0.0, analysis_workers=1)


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def store(redis):
    return SessionStore(redis, buffer_size=10)
