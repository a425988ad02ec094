"""RIS import and export built on rispy."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Union

import rispy

from citation_engine.models import Author, AuthorRole, Reference
from citation_engine.services.exchange import (
    ImportResult,
    SerializationResult,
    normalize_year,
    split_pages,
)

logger = logging.getLogger(__name__)

TAG_LINE = re.compile(r"^([A-Z][A-Z0-9])  -(?: (.*))?$")
TAG_NAME = re.compile(r"[A-Z][A-Z0-9]")

TYPE_MAP = {
    "JOUR": "journal",
    "JFULL": "journal",
    "MGZN": "journal",
    "BOOK": "book",
    "CHAP": "book",
    "EBOOK": "book",
    "CONF": "conference",
    "CPAPER": "conference",
    "THES": "thesis",
    "RPRT": "report",
    "ELEC": "website",
    "WEB": "website",
    "GEN": "other",
}

RIS_TYPES = {
    "journal": "JOUR",
    "book": "BOOK",
    "conference": "CONF",
    "thesis": "THES",
    "report": "RPRT",
    "website": "ELEC",
    "other": "GEN",
}

NAME_KEYS: dict[str, AuthorRole] = {
    "authors": "author",
    "first_authors": "author",
    "secondary_authors": "editor",
    "subsidiary_authors": "translator",
    "tertiary_authors": "contributor",
}
ROLE_TAGS = {"author": "AU", "editor": "A2", "translator": "A4", "contributor": "A3"}

# Candidate rispy keys per canonical field, first non-empty wins.
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "title": ("title", "primary_title"),
    "year": ("year", "publication_year", "date"),
    "journal_name": ("journal_name", "secondary_title", "alternate_title3", "alternate_title1", "alternate_title2"),
    "volume": ("volume",),
    "issue": ("number",),
    "doi": ("doi",),
    "isbn": ("issn",),
    "publisher": ("publisher",),
    "edition": ("edition",),
    "abstract": ("abstract", "notes_abstract"),
    "language": ("language",),
}

KEY_TAGS = {key: tag for tag, key in rispy.TAG_KEY_MAPPING.items()}

Value = Union[str, list, None]


def _text(value: Value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        value = "; ".join(str(item) for item in value if str(item).strip())
    text = " ".join(str(value).split())
    return text or None


def _split_records(text: str) -> list[tuple[int, Optional[str], Optional[str]]]:
    """Split RIS text into ``(index, record_text, error)`` triples.

    Continuation lines are folded into the preceding tag before rispy sees them.
    """
    records: list[tuple[int, Optional[str], Optional[str]]] = []
    current: Optional[list[str]] = None
    for raw_line in text.lstrip("\ufeff").splitlines():
        line = raw_line.rstrip()
        match = TAG_LINE.match(line)
        if match is None:
            if current and line.strip():
                current[-1] = f"{current[-1]} {line.strip()}"
            continue
        tag = match.group(1)
        if tag == "TY":
            if current is not None:
                records.append((len(records), None, "TY before ER: missing ER terminator"))
            current = [line]
        elif tag == "ER":
            if current is None:
                logger.warning("Ignoring ER without a preceding TY")
                continue
            current.append("ER  - ")
            records.append((len(records), "\n".join(current) + "\n", None))
            current = None
        elif current is not None:
            current.append(line)
        else:
            logger.debug("Ignoring %s line outside a record", tag)
    if current is not None:
        records.append((len(records), None, "missing ER terminator"))
    return records


def _parse_name(text: str, role: AuthorRole) -> Author:
    # A trailing comma marks a corporate or otherwise uninverted name.
    name = text.strip()
    if name.endswith(","):
        return Author(full_name=" ".join(name.rstrip(",").split()), role=role)
    return Author.parse(name, role)


def _format_name(author: Author) -> str:
    if author.is_invertible:
        return author.display_name()
    return f"{author.surname()},"


def _to_reference(entry: dict) -> Reference:
    consumed = {"type_of_reference", "id", "unknown_tag", "start_page", "end_page", "urls", "notes"}
    data: dict[str, object] = {"type": TYPE_MAP.get(str(entry.get("type_of_reference", "")).upper(), "other")}

    authors: list[Author] = []
    for key, role in NAME_KEYS.items():
        consumed.add(key)
        for name in entry.get(key) or []:
            if str(name).strip(" ,"):
                authors.append(_parse_name(str(name), role))
    data["authors"] = authors

    for field_name, keys in FIELD_KEYS.items():
        for key in keys:
            value = _text(entry.get(key))
            if value:
                data[field_name] = value
                consumed.add(key)
                break
    if "year" in data:
        data["year"] = normalize_year(str(data["year"]))

    start, end = _text(entry.get("start_page")), _text(entry.get("end_page"))
    if start:
        data["pages"] = f"{start}-{end}" if end else start

    urls = entry.get("urls") or []
    if isinstance(urls, str):
        urls = [urls]
    extras: dict[str, str] = {}
    if urls:
        data["url"] = urls[0]
        if len(urls) > 1:
            extras["UR"] = "; ".join(urls[1:])
    notes = _text(entry.get("notes"))
    if notes:
        data["notes"] = notes
    if entry.get("id"):
        data["id"] = str(entry["id"])

    for key, value in entry.items():
        if key in consumed:
            continue
        text = _text(value)
        if text:
            extras[KEY_TAGS.get(key, key)] = text
    for tag, values in (entry.get("unknown_tag") or {}).items():
        text = _text(values)
        if text:
            extras[tag] = text

    data["extras"] = extras
    return Reference(**data)


def parse_ris(text: str) -> ImportResult:
    """Parse RIS records; a malformed record never affects its neighbours."""
    result = ImportResult()
    for index, record, error in _split_records(text):
        if error:
            result.fail(index, error)
            continue
        try:
            entries = rispy.loads(record)
        # rispy raises plain IOError/ValueError variants for malformed tags.
        except Exception as exc:
            result.fail(index, f"unparseable record: {exc}")
            continue
        if not entries:
            result.fail(index, "empty record")
            continue
        reference = _to_reference(entries[0])
        logger.debug("Parsed RIS record %s", reference.id)
        result.references.append(reference)
    return result


def _line(tag: str, value: str) -> str:
    return f"{tag}  - {' '.join(value.split())}"


def serialize_ris(references: Iterable[Reference]) -> SerializationResult:
    """Write references as RIS records, ``TY`` first and ``ER`` last."""
    result = SerializationResult()
    records = []
    for reference in references:
        lines = [_line("TY", RIS_TYPES.get(reference.type, "GEN")), _line("ID", reference.id)]
        if reference.title:
            lines.append(_line("TI", reference.title))
        for role in ("author", "editor", "translator", "contributor"):
            for author in reference.authors:
                if author.role == role:
                    lines.append(_line(ROLE_TAGS[role], _format_name(author)))
        if reference.pages:
            start, end = split_pages(reference.pages)
        else:
            start = end = None
        for tag, value in (
            ("PY", reference.year),
            ("JO", reference.journal_name),
            ("VL", reference.volume),
            ("IS", reference.issue),
            ("SP", start),
            ("EP", end),
            ("ET", reference.edition),
            ("PB", reference.publisher),
            ("DO", reference.doi),
            ("SN", reference.isbn),
            ("UR", reference.url),
            ("LA", reference.language),
            ("AB", reference.abstract),
            ("N1", reference.notes),
        ):
            if value:
                lines.append(_line(tag, value))

        emitted = {line[:2] for line in lines}
        for key, value in reference.extras.items():
            if not TAG_NAME.fullmatch(key):
                result.drop(reference.id, key, "not a two-letter RIS tag")
            elif key in emitted and key != "UR":
                result.drop(reference.id, key, "conflicts with a mapped tag")
            else:
                parts = value.split("; ") if key in rispy.LIST_TYPE_TAGS else [value]
                lines.extend(_line(key, part) for part in parts if part)
        lines.append("ER  - ")
        records.append("\n".join(lines) + "\n")
    result.text = "\n".join(records)
    return result
