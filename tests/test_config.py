import pytest

from citation_engine.config import DEFAULT_CROSSREF_URL, load_settings
from citation_engine.errors import ConfigurationError

ENV_VARS = (
    "CITATION_ENGINE_DEFAULT_STYLE",
    "CITATION_ENGINE_LOCALE",
    "CITATION_ENGINE_CROSSREF_URL",
    "CITATION_ENGINE_OPENLIBRARY_URL",
    "CROSSREF_MAILTO",
    "CITATION_ENGINE_LOOKUP_TIMEOUT",
    "CITATION_ENGINE_LOOKUP_CANDIDATES",
    "CITATION_ENGINE_RENDER_CACHE_SIZE",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.default_style == "apa7"
    assert settings.default_locale == "en"
    assert settings.crossref_url == DEFAULT_CROSSREF_URL
    assert settings.crossref_mailto is None
    assert settings.lookup_timeout == 10.0
    assert settings.lookup_candidates == 5
    assert settings.render_cache_size == 1024


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CITATION_ENGINE_DEFAULT_STYLE", "ieee")
    monkeypatch.setenv("CITATION_ENGINE_LOCALE", "th")
    monkeypatch.setenv("CROSSREF_MAILTO", "team@example.org")
    monkeypatch.setenv("CITATION_ENGINE_LOOKUP_TIMEOUT", "2.5")
    settings = load_settings()
    assert settings.default_style == "ieee"
    assert settings.default_locale == "th"
    assert settings.crossref_mailto == "team@example.org"
    assert settings.lookup_timeout == 2.5


def test_unknown_default_style(monkeypatch):
    monkeypatch.setenv("CITATION_ENGINE_DEFAULT_STYLE", "apa6")
    with pytest.raises(ConfigurationError):
        load_settings()


@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_invalid_numbers(monkeypatch, value):
    monkeypatch.setenv("CITATION_ENGINE_LOOKUP_CANDIDATES", value)
    with pytest.raises(ConfigurationError):
        load_settings()
