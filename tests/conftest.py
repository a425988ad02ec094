import pytest

from citation_engine.config import DEFAULT_CROSSREF_URL, DEFAULT_OPENLIBRARY_URL, Settings
from citation_engine.models import Reference


@pytest.fixture
def sample_settings() -> Settings:
    return Settings(
        default_style="apa7",
        default_locale="en",
        crossref_url=DEFAULT_CROSSREF_URL,
        openlibrary_url=DEFAULT_OPENLIBRARY_URL,
        crossref_mailto=None,
        lookup_timeout=5.0,
        lookup_candidates=3,
        render_cache_size=16,
    )


@pytest.fixture
def journal_reference() -> Reference:
    return Reference(
        id="smith2020",
        type="journal",
        title="deep learning for graphs",
        authors=["Smith, John A.", "Doe, Jane"],
        year="2020",
        journal_name="Journal of AI",
        volume="12",
        issue="3",
        pages="45-67",
        doi="10.1000/xyz",
    )


@pytest.fixture
def book_reference() -> Reference:
    return Reference(
        id="brown2019",
        type="book",
        title="the great book",
        authors=["Brown, Alice"],
        year="2019",
        publisher="Acme Press",
        edition="2",
    )


@pytest.fixture
def smith_pair() -> list[Reference]:
    return [
        Reference(id="beta", type="journal", title="Beta study", authors=["Smith, John"], year="2020"),
        Reference(id="alpha", type="journal", title="Alpha study", authors=["Smith, John"], year="2020"),
    ]
