"""BibTeX import and export built on bibtexparser."""

from __future__ import annotations

import html
import logging
import re
import string
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional

import bibtexparser
from bibtexparser.bparser import BibTexParser
from bibtexparser.customization import InvalidName, splitname
from bibtexparser.latexenc import latex_to_unicode

from citation_engine.disambiguation import suffix_label
from citation_engine.models import Author, AuthorRole, Reference, is_thai
from citation_engine.services.exchange import (
    PAGE_SPLIT,
    ImportResult,
    SerializationResult,
    normalize_year,
)

logger = logging.getLogger(__name__)

ENTRY_START = re.compile(r"@\s*([A-Za-z]+)\s*([{(])")
FIELD_NAME = re.compile(r"[A-Za-z][A-Za-z0-9_:.+-]*")
CITATION_KEY = re.compile(r"[^\s,{}()\"'=#%\\]+")
AND_SEPARATOR = re.compile(r"\s+and\s+", re.IGNORECASE)
SKIPPED_KINDS = {"comment", "preamble"}

TYPE_MAP = {
    "article": "journal",
    "book": "book",
    "inbook": "book",
    "incollection": "book",
    "booklet": "book",
    "inproceedings": "conference",
    "conference": "conference",
    "proceedings": "conference",
    "phdthesis": "thesis",
    "mastersthesis": "thesis",
    "thesis": "thesis",
    "techreport": "report",
    "report": "report",
    "online": "website",
    "electronic": "website",
    "www": "website",
    "misc": "other",
}

ENTRY_KINDS = {
    "journal": "article",
    "book": "book",
    "conference": "inproceedings",
    "thesis": "phdthesis",
    "report": "techreport",
    "website": "online",
    "other": "misc",
}

FIELD_MAP = {
    "title": "title",
    "year": "year",
    "date": "year",
    "doi": "doi",
    "isbn": "isbn",
    "url": "url",
    "publisher": "publisher",
    "school": "publisher",
    "institution": "publisher",
    "journal": "journal_name",
    "journaltitle": "journal_name",
    "booktitle": "journal_name",
    "volume": "volume",
    "number": "issue",
    "issue": "issue",
    "pages": "pages",
    "edition": "edition",
    "abstract": "abstract",
    "note": "notes",
    "language": "language",
    "langid": "language",
}

NAME_FIELDS: dict[str, AuthorRole] = {
    "author": "author",
    "editor": "editor",
    "translator": "translator",
}

# Fields whose values are identifiers, not prose: no LaTeX decoding, no ~ spacing.
LITERAL_FIELDS = {"url", "doi", "isbn"}

ESCAPES = {
    "\\": r"\textbackslash{}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
}
ESCAPED = re.compile(r"\\(?:(textbackslash|textasciitilde|textasciicircum)(?:\{\})?|([&%$#_{}]))")
TEXT_COMMANDS = {"textbackslash": "\\", "textasciitilde": "~", "textasciicircum": "^"}
# Escaped characters that LaTeX decoding or brace stripping would otherwise consume.
SENTINELS = {"{": "\x00", "}": "\x01", "\\": "\x02", "~": "\x03", "^": "\x04"}


@dataclass
class _Chunk:
    index: int
    text: str
    body: str = ""
    error: Optional[str] = None


def _at_line_start(text: str, position: int) -> bool:
    line_start = text.rfind("\n", 0, position) + 1
    return not text[line_start:position].strip()


def _find_close(text: str, start: int, closer: str) -> tuple[Optional[int], int]:
    """Locate the delimiter closing an entry body.

    Returns ``(close_index, resume_index)``; ``close_index`` is ``None`` when
    the body is unbalanced, either at EOF or at a line that starts a new entry.
    """
    depth = 0
    position = start
    while position < len(text):
        char = text[position]
        if char == "\\":
            position += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                if closer == "}":
                    return position, position + 1
                return None, position + 1
            depth -= 1
        elif char == ")" and closer == ")" and depth == 0:
            return position, position + 1
        elif char == "@" and _at_line_start(text, position) and ENTRY_START.match(text, position):
            return None, position
        position += 1
    return None, len(text)


def _has_stray_close(text: str, position: int) -> bool:
    following = ENTRY_START.search(text, position)
    gap = text[position : following.start() if following else len(text)]
    return "}" in gap


def _split_entries(text: str) -> tuple[list[str], list[_Chunk]]:
    """Split a BibTeX document into ``@string`` macros and regular entries."""
    macros: list[str] = []
    chunks: list[_Chunk] = []
    position = 0
    index = 0
    while True:
        match = ENTRY_START.search(text, position)
        if match is None:
            break
        kind = match.group(1).lower()
        closer = "}" if match.group(2) == "{" else ")"
        end, resume = _find_close(text, match.end(), closer)
        position = resume

        if kind in SKIPPED_KINDS:
            continue
        if kind == "string":
            if end is None:
                logger.warning("Ignoring unbalanced @string definition")
            else:
                macros.append(text[match.start() : end + 1])
            continue

        chunk = _Chunk(index=index, text=text[match.start() : end + 1 if end is not None else resume])
        index += 1
        if end is None:
            chunk.error = "unbalanced braces"
        else:
            chunk.body = text[match.end() : end]
            if _has_stray_close(text, position):
                chunk.error = "stray closing brace after entry"
        chunks.append(chunk)
    return macros, chunks


def _top_level_split(body: str) -> list[str]:
    pieces: list[str] = []
    depth = 0
    quoted = False
    start = 0
    position = 0
    while position < len(body):
        char = body[position]
        if char == "\\":
            position += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == '"' and depth == 0:
            quoted = not quoted
        elif char == "," and depth == 0 and not quoted:
            pieces.append(body[start:position])
            start = position + 1
        position += 1
    pieces.append(body[start:])
    return pieces


def _check_body(body: str) -> tuple[Optional[str], Optional[str]]:
    """Structural checks bibtexparser is lenient about; returns ``(key, error)``."""
    pieces = _top_level_split(body)
    key = pieces[0].strip()
    if not key or "=" in key:
        return None, "missing citation key"
    if not CITATION_KEY.fullmatch(key):
        return None, f"invalid citation key {key!r}"

    seen: set[str] = set()
    for piece in pieces[1:]:
        if not piece.strip():
            continue
        name, separator, _ = piece.partition("=")
        name = name.strip()
        if not separator:
            return key, f"field without '=' near {piece.strip()[:30]!r}"
        if not FIELD_NAME.fullmatch(name):
            return key, f"invalid field name {name!r}"
        if name.lower() in seen:
            return key, f"duplicate field '{name.lower()}'"
        seen.add(name.lower())
    return key, None


def _clean(value: str, literal: bool = False) -> str:
    """Turn a BibTeX field value into plain Unicode text."""
    text = ESCAPED.sub(_unescape, value)
    if not literal:
        text = latex_to_unicode(text).replace("~", " ")
    text = text.replace("{", "").replace("}", "")
    for char, sentinel in SENTINELS.items():
        text = text.replace(sentinel, char)
    return " ".join(html.unescape(text).split())


def _unescape(match: re.Match) -> str:
    command, char = match.groups()
    char = TEXT_COMMANDS[command] if command else char
    return SENTINELS.get(char, char)


def _wholly_braced(name: str) -> bool:
    if not (name.startswith("{") and name.endswith("}")):
        return False
    depth = 0
    for position, char in enumerate(name):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0 and position < len(name) - 1:
                return False
    return depth == 0


def _split_names(value: str) -> list[str]:
    names: list[str] = []
    start = 0
    for match in AND_SEPARATOR.finditer(value):
        prefix = value[: match.start()]
        if prefix.count("{") - prefix.count("}") == 0:
            names.append(value[start : match.start()])
            start = match.end()
    names.append(value[start:])
    return names


def _names(value: str, role: AuthorRole) -> list[Author]:
    authors: list[Author] = []
    for raw in _split_names(value):
        raw = " ".join(raw.split())
        if not raw or raw.lower() == "others":
            continue
        if _wholly_braced(raw):
            authors.append(Author(full_name=_clean(raw[1:-1]), role=role))
            continue
        cleaned = _clean(raw)
        if not cleaned:
            continue
        if is_thai(cleaned):
            authors.append(Author(full_name=cleaned, role=role))
            continue
        try:
            parts = splitname(raw)
        except InvalidName:
            logger.debug("bibtexparser could not split %r; parsing it directly", raw)
            authors.append(Author.parse(cleaned, role))
            continue

        last = _clean(" ".join(parts["von"] + parts["last"]))
        if parts["jr"]:
            last = f"{last} {_clean(' '.join(parts['jr']))}"
        given = _clean(" ".join(parts["first"])).split()
        if not last:
            authors.append(Author.parse(cleaned, role))
            continue
        authors.append(
            Author(
                first_name=given[0] if given else None,
                middle_name=" ".join(given[1:]) or None,
                last_name=last,
                role=role,
            )
        )
    return authors


def _to_reference(entry: dict[str, str]) -> Reference:
    data: dict[str, object] = {
        "id": entry["ID"],
        "type": TYPE_MAP.get(entry["ENTRYTYPE"].lower(), "other"),
    }
    authors: list[Author] = []
    extras: dict[str, str] = {}

    for name, value in entry.items():
        if name in ("ID", "ENTRYTYPE"):
            continue
        name = name.lower()
        if name in NAME_FIELDS:
            authors.extend(_names(value, NAME_FIELDS[name]))
            continue
        cleaned = _clean(value, literal=name in LITERAL_FIELDS)
        if not cleaned:
            continue
        target = FIELD_MAP.get(name)
        if target and target not in data:
            data[target] = normalize_year(cleaned) if name == "date" else cleaned
        else:
            extras[name] = cleaned

    if "pages" in data:
        data["pages"] = PAGE_SPLIT.sub("-", str(data["pages"]))
    data["authors"] = authors
    data["extras"] = extras
    return Reference(**data)


def _parse_entry(macros: list[str], chunk: _Chunk) -> Reference:
    parser = BibTexParser(common_strings=True, ignore_nonstandard_types=False)
    source = "\n".join(macros + [chunk.text])
    database = bibtexparser.loads(source, parser=parser)
    if not database.entries:
        raise ValueError("bibtexparser found no entry")
    return _to_reference(database.entries[0])


def parse_bibtex(text: str) -> ImportResult:
    """Parse a BibTeX document, isolating failures to the offending entry."""
    result = ImportResult()
    macros, chunks = _split_entries(text)
    keys: set[str] = set()
    for chunk in chunks:
        if chunk.error:
            result.fail(chunk.index, chunk.error)
            continue
        key, error = _check_body(chunk.body)
        if error:
            result.fail(chunk.index, error)
            continue
        if key.casefold() in keys:
            result.fail(chunk.index, f"duplicate citation key '{key}'")
            continue
        keys.add(key.casefold())
        try:
            reference = _parse_entry(macros, chunk)
        # bibtexparser surfaces grammar failures and undefined macros as assorted exception types.
        except Exception as exc:
            result.fail(chunk.index, f"unparseable entry: {exc}")
            continue
        logger.debug("Parsed BibTeX entry %s", reference.id)
        result.references.append(reference)
    return result


def escape(value: str) -> str:
    return "".join(ESCAPES.get(char, char) for char in value)


def _citation_keys(references: list[Reference]) -> list[str]:
    bases = [reference.citation_key() for reference in references]
    counts = Counter(bases)
    taken = {base for base in bases if counts[base] == 1}
    keys: list[str] = []
    for base in bases:
        if counts[base] == 1:
            keys.append(base)
            continue
        position = 0
        candidate = f"{base}{suffix_label(position, string.ascii_lowercase)}"
        while candidate in taken:
            position += 1
            candidate = f"{base}{suffix_label(position, string.ascii_lowercase)}"
        taken.add(candidate)
        keys.append(candidate)
    return keys


def _format_name(author: Author) -> str:
    if not author.is_invertible:
        return f"{{{escape(author.surname())}}}"
    given = " ".join(author.given_names())
    name = f"{author.last_name}, {given}" if given else author.last_name or ""
    return escape(name)


def _entry_fields(reference: Reference, result: SerializationResult) -> list[tuple[str, str]]:
    fields: list[tuple[str, str]] = []
    for role, field_name in (("author", "author"), ("editor", "editor")):
        names = [author for author in reference.authors if author.role == role]
        if names:
            fields.append((field_name, " and ".join(_format_name(author) for author in names)))
    for author in reference.authors:
        if author.role not in ("author", "editor"):
            result.drop(reference.id, author.role, f"no BibTeX field for {author.display_name()}")

    container = "booktitle" if reference.type == "conference" else "journal"
    publisher = {"thesis": "school", "report": "institution"}.get(reference.type, "publisher")
    pages = PAGE_SPLIT.sub("--", reference.pages.strip()) if reference.pages else None

    if reference.title:
        fields.append(("title", f"{{{escape(reference.title)}}}"))
    for name, value in (
        (container, reference.journal_name),
        ("year", reference.year),
        ("volume", reference.volume),
        ("number", reference.issue),
        ("pages", pages),
        ("edition", reference.edition),
        (publisher, reference.publisher),
        ("doi", reference.doi),
        ("isbn", reference.isbn),
        ("url", reference.url),
        ("abstract", reference.abstract),
        ("note", reference.notes),
        ("language", reference.language),
    ):
        if value:
            fields.append((name, escape(value)))

    emitted = {name for name, _ in fields}
    for name, value in reference.extras.items():
        if not FIELD_NAME.fullmatch(name):
            result.drop(reference.id, name, "not a valid BibTeX field name")
        elif name.lower() in emitted:
            result.drop(reference.id, name, "conflicts with a mapped field")
        else:
            emitted.add(name.lower())
            fields.append((name.lower(), escape(value)))
    return fields


def serialize_bibtex(references: Iterable[Reference]) -> SerializationResult:
    """Write references as BibTeX, collecting every field that cannot be represented."""
    references = list(references)
    result = SerializationResult()
    entries = []
    for reference, key in zip(references, _citation_keys(references)):
        kind = ENTRY_KINDS.get(reference.type, "misc")
        fields = _entry_fields(reference, result)
        lines = ",\n".join(f"  {name} = {{{value}}}" for name, value in fields)
        entries.append(f"@{kind}{{{key},\n{lines}\n}}\n")
    result.text = "\n".join(entries)
    return result
