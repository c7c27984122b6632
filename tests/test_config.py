from __future__ import annotations

import pytest

from arxivrag.config import Settings, get_settings
from arxivrag.errors import ConfigurationMissing

PROVIDER_ENV = (
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "ARXIVRAG_OPENAI_API_KEY",
    "ARXIVRAG_GEMINI_API_KEY",
    "ARXIVRAG_SUPABASE_URL",
    "ARXIVRAG_SUPABASE_SERVICE_ROLE_KEY",
)


@pytest.fixture(autouse=True)
def clean_provider_env(monkeypatch):
    for name in PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)


def test_admission_defaults():
    settings = Settings(_env_file=None)

    assert settings.rate_limit_requests == 10
    assert settings.rate_limit_window_seconds == 60
    assert settings.max_query_length == 500
    assert settings.default_embedding_model == "openai"
    assert settings.default_top_k == 5
    assert settings.cors_headers["Access-Control-Allow-Origin"] == "*"


def test_provider_keys_read_unprefixed_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("ARXIVRAG_RATE_LIMIT_REQUESTS", "3")

    settings = Settings(_env_file=None)

    assert settings.openai_api_key == "sk-test"
    assert settings.rate_limit_requests == 3


def test_missing_provider_settings_follow_selected_backends():
    settings = Settings(_env_file=None)
    assert settings.missing_provider_settings() == [
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
    ]

    offline = Settings(_env_file=None, embedding_backend="hash", generator_backend="template", search_backend="chroma")
    assert offline.missing_provider_settings() == []
    offline.require_provider_settings()


def test_require_provider_settings_reports_first_missing():
    settings = Settings(_env_file=None, openai_api_key="sk-test")

    with pytest.raises(ConfigurationMissing) as info:
        settings.require_provider_settings()
    assert info.value.message == "GEMINI_API_KEY not configured"
    assert info.value.status_code == 500


def test_get_settings_override_bypasses_cache():
    overridden = get_settings({"environment": "test", "max_query_length": 100})

    assert overridden.is_test
    assert overridden.max_query_length == 100
    assert get_settings() is get_settings()
