"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from webcontext.config import Settings, load_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.delenv("WEBCONTEXT_ENV_FILE", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults() -> None:
    settings = Settings()

    assert settings.brave_base_url == "https://api.search.brave.com/res/v1"
    assert settings.max_search_results == 5
    assert settings.scrape_min_word_count == 50
    assert settings.enhancement_max_iterations == 2
    assert settings.cache_ttl_s == 3600.0


def test_environment_variables_use_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEBCONTEXT_BRAVE_API_KEY", "brave-key")
    monkeypatch.setenv("WEBCONTEXT_SEARCH_FALLBACK_ENGINES", '["duckduckgo"]')
    monkeypatch.setenv("WEBCONTEXT_BROWSER_HEADLESS", "false")

    settings = load_settings()

    assert settings.brave_api_key == "brave-key"
    assert settings.search_fallback_engines == ["duckduckgo"]
    assert settings.browser_headless is False


def test_dotenv_in_working_directory(isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("WEBCONTEXT_OPENAI_MODEL", raising=False)
    (isolated_env / ".env").write_text("WEBCONTEXT_OPENAI_MODEL=local-model\n", encoding="utf-8")

    assert load_settings().openai_model == "local-model"


def test_env_file_override(isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("WEBCONTEXT_CACHE_MAX_SIZE", raising=False)
    custom = isolated_env / "custom.env"
    custom.write_text("WEBCONTEXT_CACHE_MAX_SIZE=42\n", encoding="utf-8")
    monkeypatch.setenv("WEBCONTEXT_ENV_FILE", str(custom))

    assert load_settings().cache_max_size == 42


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        Settings(scrape_max_urls=5)
