"""Configuration loading for the citation engine."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional

from citation_engine.errors import ConfigurationError
from citation_engine.styles import get_style


@dataclass
class Settings:
    default_style: str
    default_locale: str
    crossref_url: str
    openlibrary_url: str
    crossref_mailto: Optional[str]
    lookup_timeout: float
    lookup_candidates: int
    render_cache_size: int


DEFAULT_CROSSREF_URL = "https://api.crossref.org/works"
DEFAULT_OPENLIBRARY_URL = "https://openlibrary.org/api/books"


def _number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be numeric, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings() -> Settings:
    """Load configuration from environment variables."""
    default_style = os.getenv("CITATION_ENGINE_DEFAULT_STYLE", "apa7")
    get_style(default_style)

    return Settings(
        default_style=default_style,
        default_locale=os.getenv("CITATION_ENGINE_LOCALE", "en"),
        crossref_url=os.getenv("CITATION_ENGINE_CROSSREF_URL", DEFAULT_CROSSREF_URL),
        openlibrary_url=os.getenv("CITATION_ENGINE_OPENLIBRARY_URL", DEFAULT_OPENLIBRARY_URL),
        crossref_mailto=os.getenv("CROSSREF_MAILTO") or None,
        lookup_timeout=_number("CITATION_ENGINE_LOOKUP_TIMEOUT", "10", float),
        lookup_candidates=_number("CITATION_ENGINE_LOOKUP_CANDIDATES", "5", int),
        render_cache_size=_number("CITATION_ENGINE_RENDER_CACHE_SIZE", "1024", int),
    )
