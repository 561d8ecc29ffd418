"""Unit tests for environment-driven settings."""

import pytest

from feed_inference.config import Settings, get_settings
from feed_inference.utils.constants import DEFAULT_ARRAY_SAMPLE_SIZE, DEFAULT_MAX_PAGES


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    # Keep a developer's .env out of the results
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = Settings()

    assert settings.endpoints == []
    assert settings.auth.mode == "none"
    assert settings.discovery.max_pages == DEFAULT_MAX_PAGES
    assert settings.schema_mapping.array_sample_size == DEFAULT_ARRAY_SAMPLE_SIZE
    assert settings.storage.base_dir == "data/feed"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FEED_ENDPOINTS", '["https://x.test/feed"]')
    monkeypatch.setenv("FEED_HTTP_RETRY_TIMES", "5")
    monkeypatch.setenv("FEED_AUTH_MODE", "bearer")
    monkeypatch.setenv("FEED_AUTH_TOKEN", "secret")
    monkeypatch.setenv("FEED_SCHEMA_MAX_DEPTH", "4")
    monkeypatch.setenv("FEED_DISCOVERY_PROBE_ENTITIES", "false")

    settings = get_settings()

    assert settings.endpoints == ["https://x.test/feed"]
    assert settings.http.retry_times == 5
    assert settings.auth.mode == "bearer"
    assert settings.auth.token == "secret"
    assert settings.schema_mapping.max_depth == 4
    assert settings.discovery.probe_entities is False


def test_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("FEED_LOG_LEVEL=DEBUG\nFEED_MAX_WORKERS=2\n", encoding="utf-8")

    settings = Settings()

    assert settings.log_level == "DEBUG"
    assert settings.max_workers == 2


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_invalid_auth_mode_rejected(monkeypatch):
    monkeypatch.setenv("FEED_AUTH_MODE", "oauth")

    with pytest.raises(ValueError):
        Settings()
