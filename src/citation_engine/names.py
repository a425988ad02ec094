"""Author name formatting per style and locale."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from citation_engine.models import Author, AuthorRole
from citation_engine.styles import LocaleTerms, StyleDefinition, get_locale


def parse_author(text: str, role: AuthorRole = "author") -> Author:
    return Author.parse(text, role=role)


def initials(given: Iterable[str], punct: str = ".", sep: str = " ") -> str:
    """Reduce given names to initials, keeping hyphenated names linked (``J.-P.``)."""
    result: list[str] = []
    for token in given:
        for piece in re.split(r"\.+", token):
            if not piece:
                continue
            parts = [part for part in piece.split("-") if part]
            if parts:
                result.append("-".join(f"{part[0].upper()}{punct}" for part in parts))
    return sep.join(result)


def _conjunction(token: str, terms: LocaleTerms) -> str:
    if token == "&":
        return terms.ampersand
    if token == "and":
        return terms.and_word
    return ""


def _join(names: Sequence[str], delimiter: str, conjunction: str, serial: str) -> str:
    if len(names) == 1:
        return names[0]
    if not conjunction:
        return delimiter.join(names)
    use_delimiter = serial == "always" or (serial == "three-or-more" and len(names) > 2)
    last_separator = f"{delimiter.rstrip()} {conjunction} " if use_delimiter else f" {conjunction} "
    return delimiter.join(names[:-1]) + last_separator + names[-1]


def format_name(author: Author, style: StyleDefinition, is_first_position: bool = False) -> str:
    """Render one contributor for a bibliography entry.

    Non-invertible names (Thai personal names, institutions) are returned as
    given regardless of the style.
    """
    if not author.is_invertible:
        return author.surname()

    rule = style.names
    given = author.given_names()
    if rule.initials:
        given_text = initials(given, rule.initial_punct, rule.initial_sep)
    else:
        given_text = " ".join(given)
    if not given_text:
        return author.last_name or ""

    invert = rule.order == "inverted" or (rule.order == "first-inverted" and is_first_position)
    if invert:
        return f"{author.last_name}{rule.sort_separator}{given_text}"
    return f"{given_text} {author.last_name}"


def join_authors(authors: Sequence[Author], style: StyleDefinition, locale: Optional[str] = None) -> str:
    """Join the bibliography form of ``authors``, truncating to the style's et-al limit."""
    if not authors:
        return ""
    rule = style.names
    terms = get_locale(locale)

    truncated = len(authors) > rule.max_authors
    shown = list(authors[: rule.shown_when_truncated]) if truncated else list(authors)
    names = [format_name(author, style, index == 0) for index, author in enumerate(shown)]
    if truncated:
        return rule.delimiter.join(names) + rule.et_al_delimiter + terms.et_al
    return _join(names, rule.delimiter, _conjunction(rule.and_token, terms), rule.delimiter_before_last)


def in_text_names(
    authors: Sequence[Author],
    style: StyleDefinition,
    locale: Optional[str] = None,
    narrative: bool = False,
) -> str:
    """Surname-only form used inside author-year and note citations."""
    if not authors:
        return ""
    rule = style.in_text
    terms = get_locale(locale)
    surnames = [author.surname() for author in authors]
    if len(surnames) > rule.max_authors:
        return f"{surnames[0]} {terms.et_al}"
    conjunction = _conjunction("and" if narrative else rule.and_token, terms)
    return _join(surnames, ", ", conjunction, "three-or-more")
