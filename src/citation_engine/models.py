"""Core data models used across the citation engine."""

from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from citation_engine.errors import ValidationError

AuthorRole = Literal["author", "editor", "translator", "contributor"]
ReferenceType = Literal["book", "journal", "website", "conference", "thesis", "report", "other"]

REFERENCE_TYPES: tuple[str, ...] = ("book", "journal", "website", "conference", "thesis", "report", "other")

THAI_PATTERN = re.compile(r"[\u0E00-\u0E7F]")


def is_thai(text: str) -> bool:
    return bool(THAI_PATTERN.search(text or ""))


def fold_ascii(text: str) -> str:
    normalized = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")
    return stripped.encode("ascii", "ignore").decode("ascii")


class Author(BaseModel):
    """Represents a single contributor in the bibliographic record.

    Western names are stored in parts and may be inverted by a style. Names
    that must never be rearranged (Thai personal names, institutions) are kept
    whole in ``full_name``.
    """

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    role: AuthorRole = "author"

    @model_validator(mode="after")
    def _require_name(self) -> "Author":
        if not (self.last_name or self.full_name):
            raise ValueError("an author needs a last_name or a full_name")
        return self

    @classmethod
    def parse(cls, text: str, role: AuthorRole = "author") -> "Author":
        """Build an author from ``Last, First Middle`` or ``First Middle Last``."""
        name = " ".join(text.split())
        if not name:
            raise ValueError("author name cannot be empty")
        if is_thai(name):
            return cls(full_name=name, role=role)

        if "," in name:
            last, _, given = name.partition(",")
            given_parts = given.split()
        else:
            parts = name.split()
            if len(parts) == 1:
                return cls(last_name=parts[0], role=role)
            last, given_parts = parts[-1], parts[:-1]

        last = last.strip()
        if not last:
            return cls(full_name=name, role=role)
        return cls(
            first_name=given_parts[0] if given_parts else None,
            middle_name=" ".join(given_parts[1:]) or None,
            last_name=last,
            role=role,
        )

    @property
    def is_invertible(self) -> bool:
        return bool(self.last_name) and not self.full_name

    def surname(self) -> str:
        if self.is_invertible:
            return self.last_name or ""
        return self.full_name or ""

    def given_names(self) -> list[str]:
        names: list[str] = []
        for part in (self.first_name, self.middle_name):
            if part:
                names.extend(part.split())
        return names

    def display_name(self) -> str:
        if not self.is_invertible:
            return self.surname()
        given = " ".join(self.given_names())
        if given:
            return f"{self.last_name}, {given}"
        return self.last_name or ""

    def surname_ascii(self) -> str:
        return fold_ascii(self.surname()) or self.surname()


class BibliographicFields(BaseModel):
    """Fields shared by stored references and transient lookup results."""

    title: Optional[str] = None
    authors: list[Author] = Field(default_factory=list)
    type: ReferenceType = "other"
    year: Optional[str] = None
    doi: Optional[str] = None
    isbn: Optional[str] = None
    url: Optional[str] = None
    publisher: Optional[str] = None
    journal_name: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    edition: Optional[str] = None
    abstract: Optional[str] = None
    notes: Optional[str] = None
    language: Optional[str] = None
    extras: dict[str, str] = Field(default_factory=dict)

    @field_validator("authors", mode="before")
    @classmethod
    def _parse_author_strings(cls, value):
        if value is None:
            return []
        return [Author.parse(item) if isinstance(item, str) else item for item in value]

    @field_validator("year", "volume", "issue", "pages", "edition", mode="before")
    @classmethod
    def _numbers_to_text(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    def contributors(self) -> tuple[list[Author], AuthorRole]:
        """Names shown in the author position, and the role they were taken from."""
        for role in ("author", "editor"):
            names = [author for author in self.authors if author.role == role]
            if names:
                return names, role
        return [], "author"

    def primary_surname(self) -> Optional[str]:
        names, _ = self.contributors()
        return names[0].surname() if names else None

    def collation_locale(self, default: Optional[str] = None) -> Optional[str]:
        """The language tag, else ``th`` when the title or names are in Thai script."""
        if self.language:
            return self.language
        text = " ".join([self.title or "", *(author.display_name() for author in self.authors)])
        return "th" if is_thai(text) else default


class Reference(BibliographicFields):
    """Canonical, style-independent bibliographic record."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    year_suffix: Optional[str] = None
    sort_order: int = 0

    def fingerprint(self) -> str:
        payload = self.model_dump_json(exclude={"sort_order"})
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()

    def ensure_complete(self) -> None:
        if not (self.title and self.title.strip()):
            raise ValidationError(f"reference {self.id} is missing a title")

    def citation_key(self) -> str:
        names, _ = self.contributors()
        surname = names[0].surname_ascii() if names else "unknown"
        key = re.sub(r"[^A-Za-z0-9]+", "", f"{surname}{self.year or 'nd'}{self.year_suffix or ''}")
        if not re.match(r"[A-Za-z]", key):
            key = f"unknown{key}"
        return key


class LookupResult(BibliographicFields):
    """Transient record produced by a metadata provider."""

    source: str
    score: float = 0.0

    def to_reference(self, reference_id: Optional[str] = None) -> Reference:
        data = self.model_dump(exclude={"source", "score"})
        if reference_id is not None:
            data["id"] = reference_id
        return Reference(**data)
