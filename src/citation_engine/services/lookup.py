"""Identifier classification and metadata lookup against CrossRef and Open Library."""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal, Optional, Union

import httpx

from citation_engine.config import Settings
from citation_engine.errors import (
    LookupNotFound,
    LookupServiceUnavailable,
    MetadataRetrievalError,
)
from citation_engine.models import Author, AuthorRole, LookupResult, is_thai
from citation_engine.services.exchange import normalize_year

logger = logging.getLogger(__name__)

IdentifierKind = Literal["doi", "isbn", "query"]

DOI_PREFIX = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:\s*)", re.IGNORECASE)
DOI_PATTERN = re.compile(r"^10\.\d{4,9}/\S+$")
ISBN_PATTERN = re.compile(r"^(?:\d{9}[\dX]|\d{13})$")
MARKUP_TAG = re.compile(r"<[^>]+>")

HEADERS = {"User-Agent": "CitationEngine/0.1 (+https://pypi.org/project/citation-engine/)"}

# Definitive answers about the identifier itself; never retried.
NOT_FOUND_STATUSES = {400, 404, 410, 422}
TRANSIENT_STATUSES = {408, 425, 429}

CROSSREF_TYPES = {
    "journal-article": "journal",
    "book": "book",
    "monograph": "book",
    "edited-book": "book",
    "reference-book": "book",
    "book-chapter": "book",
    "proceedings-article": "conference",
    "proceedings": "conference",
    "dissertation": "thesis",
    "report": "report",
    "posted-content": "other",
}


def strip_doi(text: str) -> str:
    return DOI_PREFIX.sub("", text.strip())


def isbn_checksum_valid(digits: str) -> bool:
    if len(digits) == 10:
        total = sum((10 - position) * (10 if char == "X" else int(char)) for position, char in enumerate(digits))
        return total % 11 == 0
    if len(digits) == 13 and digits.isdigit():
        total = sum(int(char) * (1 if position % 2 == 0 else 3) for position, char in enumerate(digits))
        return total % 10 == 0
    return False


def normalize_isbn(text: str) -> Optional[str]:
    """Return the bare ISBN digits when ``text`` is a valid ISBN-10 or ISBN-13."""
    digits = re.sub(r"[\s-]", "", text.strip()).upper()
    if digits.startswith("ISBN"):
        digits = digits[4:].lstrip(":")
    if not ISBN_PATTERN.match(digits):
        return None
    return digits if isbn_checksum_valid(digits) else None


def classify_identifier(text: str) -> IdentifierKind:
    if DOI_PATTERN.match(strip_doi(text)):
        return "doi"
    if normalize_isbn(text):
        return "isbn"
    return "query"


def _first(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def _crossref_year(message: dict[str, Any]) -> Optional[str]:
    for key in ("published-print", "published-online", "issued"):
        date_parts = (message.get(key) or {}).get("date-parts")
        if date_parts and isinstance(date_parts, list) and date_parts[0] and date_parts[0][0]:
            return str(date_parts[0][0])
    return None


def _crossref_people(entries: Any, role: AuthorRole) -> list[Author]:
    people: list[Author] = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        family = _first(entry.get("family"))
        given = _first(entry.get("given"))
        if family and not is_thai(f"{given or ''}{family}"):
            given_parts = given.split() if given else []
            people.append(
                Author(
                    first_name=given_parts[0] if given_parts else None,
                    middle_name=" ".join(given_parts[1:]) or None,
                    last_name=family,
                    role=role,
                )
            )
        elif family:
            people.append(Author(full_name=" ".join(part for part in (given, family) if part), role=role))
        elif _first(entry.get("name")):
            people.append(Author(full_name=_first(entry.get("name")), role=role))
    return people


def normalize_crossref(message: dict[str, Any]) -> LookupResult:
    """Map one CrossRef work (a DOI response or a search item) onto a lookup result."""
    title = _first(message.get("title"))
    if not title:
        raise LookupNotFound("CrossRef record has no title")
    subtitle = _first(message.get("subtitle"))
    if subtitle:
        title = f"{title}: {subtitle}"

    authors = _crossref_people(message.get("author"), "author")
    authors += _crossref_people(message.get("editor"), "editor")
    if not authors:
        logger.warning("No authors found in CrossRef metadata for %s", message.get("DOI"))

    abstract = _first(message.get("abstract"))
    if abstract:
        abstract = " ".join(MARKUP_TAG.sub(" ", abstract).split())

    return LookupResult(
        source="crossref",
        score=float(message.get("score") or 1.0),
        title=title,
        authors=authors,
        type=CROSSREF_TYPES.get(message.get("type") or "", "other"),
        year=_crossref_year(message),
        doi=_first(message.get("DOI")),
        isbn=_first(message.get("ISBN")),
        url=_first(message.get("URL")),
        publisher=_first(message.get("publisher")),
        journal_name=_first(message.get("container-title")),
        volume=_first(message.get("volume")),
        issue=_first(message.get("issue")),
        pages=_first(message.get("page")),
        edition=_first(message.get("edition-number")),
        abstract=abstract,
        language=_first(message.get("language")),
    )


def normalize_openlibrary(data: dict[str, Any], isbn: str) -> LookupResult:
    """Map an Open Library ``jscmd=data`` book record onto a lookup result."""
    title = _first(data.get("title"))
    if not title:
        raise LookupNotFound(f"Open Library record for ISBN {isbn} has no title")
    subtitle = _first(data.get("subtitle"))
    if subtitle:
        title = f"{title}: {subtitle}"

    authors = [
        Author.parse(name)
        for name in (_first(author.get("name")) for author in data.get("authors") or [] if isinstance(author, dict))
        if name
    ]
    publishers = [_first(item.get("name")) for item in data.get("publishers") or [] if isinstance(item, dict)]

    return LookupResult(
        source="openlibrary",
        score=1.0,
        title=title,
        authors=authors,
        type="book",
        year=normalize_year(_first(data.get("publish_date"))),
        isbn=isbn,
        url=_first(data.get("url")),
        publisher=next((name for name in publishers if name), None),
        notes=_first(data.get("notes")) if isinstance(data.get("notes"), str) else None,
    )


@dataclass
class LookupService:
    """Resolves DOIs, ISBNs and free-text queries into lookup results.

    HTTP 404 (and 400, 410, 422) and record-less answers are definitive and
    raise ``LookupNotFound`` immediately. Transport failures, timeouts, rate
    limits, server errors and malformed bodies are retried ``retries`` times
    before ``LookupServiceUnavailable`` is raised; any other rejection raises
    it at once.
    """

    settings: Settings
    client: Optional[httpx.AsyncClient] = None
    retries: int = 1

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(headers=HEADERS) as client:
            yield client

    def _params(self, **params: Any) -> dict[str, Any]:
        if self.settings.crossref_mailto:
            params["mailto"] = self.settings.crossref_mailto
        return params

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        failure: Optional[Exception] = None
        async with self._session() as client:
            for attempt in range(self.retries + 1):
                try:
                    response = await client.get(url, params=params, timeout=self.settings.lookup_timeout)
                except httpx.TransportError as exc:
                    logger.warning("Lookup request to %s failed (attempt %d): %s", url, attempt + 1, exc)
                    failure = exc
                    continue
                status = response.status_code
                if status in NOT_FOUND_STATUSES:
                    raise LookupNotFound(f"No record at {url} (HTTP {status})")
                if status in TRANSIENT_STATUSES or status >= 500:
                    logger.warning("Lookup service at %s answered %d (attempt %d)", url, status, attempt + 1)
                    failure = httpx.HTTPStatusError(f"HTTP {status}", request=response.request, response=response)
                    continue
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    raise LookupServiceUnavailable(f"Lookup service at {url} rejected the request") from exc
                try:
                    return response.json()
                except ValueError as exc:
                    logger.warning("Lookup service at %s returned malformed JSON (attempt %d)", url, attempt + 1)
                    failure = exc
        raise LookupServiceUnavailable(f"Lookup service at {url} is unavailable") from failure

    async def fetch_doi(self, doi: str) -> LookupResult:
        normalized_doi = strip_doi(doi)
        if not normalized_doi:
            raise MetadataRetrievalError("DOI cannot be empty.")
        payload = await self._get_json(f"{self.settings.crossref_url}/{normalized_doi}", self._params())
        message = payload.get("message") if isinstance(payload, dict) else None
        if not message:
            raise LookupNotFound(f"CrossRef response for {normalized_doi} has no record")
        result = normalize_crossref(message)
        logger.debug("Retrieved CrossRef record: %s", result)
        return result

    async def fetch_isbn(self, isbn: str) -> LookupResult:
        digits = normalize_isbn(isbn)
        if digits is None:
            raise MetadataRetrievalError(f"{isbn!r} is not a valid ISBN")
        key = f"ISBN:{digits}"
        payload = await self._get_json(
            self.settings.openlibrary_url,
            {"bibkeys": key, "format": "json", "jscmd": "data"},
        )
        record = payload.get(key) if isinstance(payload, dict) else None
        if not record:
            raise LookupNotFound(f"Open Library has no record for ISBN {digits}")
        result = normalize_openlibrary(record, digits)
        logger.debug("Retrieved Open Library record: %s", result)
        return result

    async def search(self, query: str) -> list[LookupResult]:
        payload = await self._get_json(
            self.settings.crossref_url,
            self._params(**{"query.bibliographic": query, "rows": self.settings.lookup_candidates}),
        )
        message = payload.get("message") if isinstance(payload, dict) else None
        candidates: list[LookupResult] = []
        for item in (message or {}).get("items") or []:
            try:
                candidates.append(normalize_crossref(item))
            except LookupNotFound:
                logger.debug("Skipping title-less CrossRef candidate %s", item.get("DOI"))
        if not candidates:
            raise LookupNotFound(f"No candidates found for {query!r}")
        candidates.sort(key=lambda candidate: candidate.score, reverse=True)
        return candidates[: self.settings.lookup_candidates]

    async def lookup(self, identifier: str) -> Union[LookupResult, list[LookupResult]]:
        """One result for a DOI or ISBN; ranked candidates for anything else."""
        text = identifier.strip()
        if not text:
            raise MetadataRetrievalError("Identifier cannot be empty.")
        kind = classify_identifier(text)
        logger.debug("Classified %r as %s", text, kind)
        if kind == "doi":
            return await self.fetch_doi(text)
        if kind == "isbn":
            return await self.fetch_isbn(text)
        return await self.search(text)

    def lookup_sync(self, identifier: str) -> Union[LookupResult, list[LookupResult]]:
        return asyncio.run(self.lookup(identifier))
