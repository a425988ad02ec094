import httpx
import pytest
import respx

from citation_engine.errors import LookupNotFound, LookupServiceUnavailable
from citation_engine.services.lookup import (
    LookupService,
    classify_identifier,
    normalize_crossref,
    normalize_isbn,
    normalize_openlibrary,
)

CROSSREF_MESSAGE = {
    "DOI": "10.1000/xyz",
    "type": "journal-article",
    "title": ["Deep learning for graphs"],
    "author": [
        {"given": "John A.", "family": "Smith"},
        {"name": "Graph Consortium"},
    ],
    "container-title": ["Journal of AI"],
    "issued": {"date-parts": [[2020, 5, 1]]},
    "volume": "12",
    "issue": "3",
    "page": "45-67",
    "publisher": "AI Press",
    "abstract": "<jats:p>An <jats:italic>abstract</jats:italic>.</jats:p>",
}


def test_classify_identifier():
    assert classify_identifier("10.1000/xyz") == "doi"
    assert classify_identifier("https://doi.org/10.1000/xyz") == "doi"
    assert classify_identifier("doi:10.1000/xyz") == "doi"
    assert classify_identifier("978-0-306-40615-7") == "isbn"
    assert classify_identifier("0-306-40615-2") == "isbn"
    assert classify_identifier("978-0-306-40615-8") == "query"
    assert classify_identifier("deep learning graphs smith 2020") == "query"


def test_normalize_isbn():
    assert normalize_isbn("ISBN 0-8044-2957-X") == "080442957X"
    assert normalize_isbn("12345") is None


def test_normalize_crossref():
    result = normalize_crossref(CROSSREF_MESSAGE)
    assert result.source == "crossref"
    assert result.type == "journal"
    assert result.year == "2020"
    assert result.journal_name == "Journal of AI"
    assert result.abstract == "An abstract ."
    smith, consortium = result.authors
    assert (smith.first_name, smith.middle_name, smith.last_name) == ("John", "A.", "Smith")
    assert consortium.full_name == "Graph Consortium"


def test_title_less_record_is_not_found():
    with pytest.raises(LookupNotFound):
        normalize_crossref({"DOI": "10.1000/none", "title": []})


def test_normalize_openlibrary():
    record = {
        "title": "Signals",
        "subtitle": "a primer",
        "authors": [{"name": "Jane Doe"}],
        "publishers": [{"name": "Acme"}],
        "publish_date": "March 2001",
    }
    result = normalize_openlibrary(record, "9780306406157")
    assert result.title == "Signals: a primer"
    assert result.type == "book"
    assert result.year == "2001"
    assert result.publisher == "Acme"
    assert result.authors[0].last_name == "Doe"


@respx.mock
def test_lookup_doi(sample_settings):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        return_value=httpx.Response(200, json={"status": "ok", "message": CROSSREF_MESSAGE})
    )
    result = LookupService(settings=sample_settings).lookup_sync("https://doi.org/10.1000/xyz")
    assert route.call_count == 1
    assert result.title == "Deep learning for graphs"
    assert result.to_reference("r1").id == "r1"


@respx.mock
def test_lookup_isbn(sample_settings):
    respx.get(host="openlibrary.org", path="/api/books").mock(
        return_value=httpx.Response(200, json={"ISBN:9780306406157": {"title": "Signals", "publish_date": "2001"}})
    )
    result = LookupService(settings=sample_settings).lookup_sync("978-0-306-40615-7")
    assert result.source == "openlibrary"
    assert result.isbn == "9780306406157"


@respx.mock
def test_free_text_returns_ranked_candidates(sample_settings):
    items = [
        {"title": ["Low"], "score": 2.0},
        {"title": [], "score": 50.0},
        {"title": ["High"], "score": 9.5},
    ]
    route = respx.get(host="api.crossref.org", path="/works").mock(
        return_value=httpx.Response(200, json={"message": {"items": items}})
    )
    results = LookupService(settings=sample_settings).lookup_sync("graphs smith")
    assert [result.title for result in results] == ["High", "Low"]
    assert route.calls.last.request.url.params["query.bibliographic"] == "graphs smith"


@respx.mock
def test_not_found_is_not_retried(sample_settings):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/missing").mock(
        return_value=httpx.Response(404)
    )
    with pytest.raises(LookupNotFound):
        LookupService(settings=sample_settings).lookup_sync("10.1000/missing")
    assert route.call_count == 1


@respx.mock
def test_server_error_is_retried_once(sample_settings):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        side_effect=[httpx.Response(503), httpx.Response(200, json={"message": CROSSREF_MESSAGE})]
    )
    result = LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert result.doi == "10.1000/xyz"
    assert route.call_count == 2


@respx.mock
def test_transport_failure_becomes_unavailable(sample_settings):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(side_effect=httpx.ConnectError)
    with pytest.raises(LookupServiceUnavailable):
        LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert route.call_count == 2


@respx.mock
def test_mailto_is_sent_when_configured(sample_settings):
    sample_settings.crossref_mailto = "team@example.org"
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        return_value=httpx.Response(200, json={"message": CROSSREF_MESSAGE})
    )
    LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert route.calls.last.request.url.params["mailto"] == "team@example.org"


@respx.mock
def test_rate_limit_is_retried_once(sample_settings):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        side_effect=[httpx.Response(429), httpx.Response(200, json={"message": CROSSREF_MESSAGE})]
    )
    result = LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert result.doi == "10.1000/xyz"
    assert route.call_count == 2


@pytest.mark.parametrize("status", [408, 429])
@respx.mock
def test_persistent_transient_status_becomes_unavailable(sample_settings, status):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        return_value=httpx.Response(status)
    )
    with pytest.raises(LookupServiceUnavailable):
        LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert route.call_count == 2


@pytest.mark.parametrize("status", [400, 410])
@respx.mock
def test_definitive_client_errors_are_not_found(sample_settings, status):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        return_value=httpx.Response(status)
    )
    with pytest.raises(LookupNotFound):
        LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert route.call_count == 1


@respx.mock
def test_rejected_request_is_unavailable_without_retry(sample_settings):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        return_value=httpx.Response(403)
    )
    with pytest.raises(LookupServiceUnavailable):
        LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert route.call_count == 1


@respx.mock
def test_malformed_body_becomes_unavailable(sample_settings):
    route = respx.get(host="api.crossref.org", path="/works/10.1000/xyz").mock(
        return_value=httpx.Response(200, content=b"<html>not json</html>")
    )
    with pytest.raises(LookupServiceUnavailable):
        LookupService(settings=sample_settings).lookup_sync("10.1000/xyz")
    assert route.call_count == 2
