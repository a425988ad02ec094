"""Composition of names, titles and style templates into rendered citations."""

from __future__ import annotations

import html
import logging
import re
import warnings
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from pydantic import BaseModel, Field

from citation_engine.errors import ConfigurationError, ValidationWarning
from citation_engine.models import Reference
from citation_engine.names import in_text_names, join_authors
from citation_engine.styles import LocaleTerms, Segment, StyleDefinition, get_locale, resolve_style
from citation_engine.titles import apply_title_case, ordinal, short_title

logger = logging.getLogger(__name__)

DOI_URL = "https://doi.org/"
SUPERSCRIPT = str.maketrans("0123456789–", "⁰¹²³⁴⁵⁶⁷⁸⁹⁻")


class RenderedEntry(BaseModel):
    """One bibliography item as markup and plain text."""

    reference_id: str
    text: str
    markup: str
    number: Optional[int] = None
    warnings: list[str] = Field(default_factory=list)


class CitationContext(BaseModel):
    """Per-citation inputs that are not part of the reference itself."""

    numbers: dict[str, int] = Field(default_factory=dict)
    locators: dict[str, str] = Field(default_factory=dict)
    locale: Optional[str] = None
    narrative: bool = False


@dataclass
class _Run:
    text: str
    emphasis: str = "plain"


@dataclass
class _EntryBuilder:
    """Accumulates styled runs while keeping punctuation tidy."""

    style: StyleDefinition
    runs: list[_Run] = field(default_factory=list)

    @property
    def plain(self) -> str:
        return "".join(run.text for run in self.runs)

    def value(self, text: str, wrapper: str) -> None:
        if wrapper == "quoted":
            opening, closing = self.style.quotes
            self.runs.append(_Run(f"{opening}{text}{closing}"))
        elif wrapper in ("italic", "bold"):
            self.runs.append(_Run(text, wrapper))
        else:
            self.runs.append(_Run(text))

    def affix(self, text: str) -> None:
        if not text:
            return
        current = self.plain
        closing = self.style.quotes[1]
        mark = text[0]
        if mark in ".," and current:
            if current.endswith(closing) and self.style.punctuation_in_quote:
                inner = current[:-1]
                if not inner.endswith((".", "?", "!")):
                    last = self.runs[-1]
                    last.text = f"{last.text[:-1]}{mark}{closing}"
                text = text[1:]
            elif mark == "." and current.endswith((".", "?", "!")):
                text = text[1:]
        if text:
            self.runs.append(_Run(text))

    def trim(self) -> None:
        while self.runs:
            last = self.runs[-1]
            stripped = last.text.rstrip(" ,;:")
            closing = self.style.quotes[1]
            if stripped.endswith(f",{closing}"):
                stripped = f"{stripped[:-2]}.{closing}"
            last.text = stripped
            if stripped:
                return
            self.runs.pop()

    def markup(self) -> str:
        parts = []
        for run in self.runs:
            escaped = html.escape(run.text, quote=False)
            if run.emphasis == "italic":
                parts.append(f"<em>{escaped}</em>")
            elif run.emphasis == "bold":
                parts.append(f"<strong>{escaped}</strong>")
            else:
                parts.append(escaped)
        return "".join(parts)


def clean_doi(doi: str) -> str:
    return re.sub(r"^(?:https?://(?:dx\.)?doi\.org/|doi:\s*)", "", doi.strip(), flags=re.IGNORECASE)


def _year_text(reference: Reference, terms: LocaleTerms, with_suffix: bool = True) -> str:
    year = (reference.year or "").strip()
    suffix = (reference.year_suffix or "") if with_suffix else ""
    if year:
        return f"{year}{suffix}"
    return f"{terms.no_date}-{suffix}" if suffix else terms.no_date


def _edition_text(edition: Optional[str], terms: LocaleTerms) -> Optional[str]:
    if not edition:
        return None
    value = edition.strip()
    if value.isdigit():
        number = int(value)
        if number <= 1:
            return None
        return terms.edition.format(ordinal=ordinal(number), number=number)
    return value


def _field_values(
    reference: Reference,
    style: StyleDefinition,
    terms: LocaleTerms,
    problems: list[str],
) -> dict[str, Optional[str]]:
    contributors, role = reference.contributors()
    authors = join_authors(contributors, style, terms.tag)
    if authors and role == "editor":
        authors = f"{authors} {terms.editor if len(contributors) == 1 else terms.editors}"

    doi = clean_doi(reference.doi) if reference.doi else None
    pages = reference.pages
    if pages:
        pages = re.sub(r"\s*[-–—]+\s*", style.page_range_delimiter, pages.strip())

    title = (reference.title or "").strip()
    values: dict[str, Optional[str]] = {
        "authors": authors or None,
        "year": (
            _year_text(reference, terms, style.show_year_suffix) if reference.year or style.show_no_date else None
        ),
        "title": apply_title_case(title, style.title_case) if title else None,
        "container": reference.journal_name,
        "volume": reference.volume,
        "issue": reference.issue,
        "pages": pages,
        "publisher": reference.publisher,
        "edition": _edition_text(reference.edition, terms),
        "doi": doi,
        "url": reference.url,
        "link": f"{DOI_URL}{doi}" if doi else reference.url,
    }
    for required in style.required_fields:
        if not values.get(required):
            problems.append(f"reference {reference.id} is missing required field '{required}'")
            values[required] = terms.untitled if required == "title" else f"[{required}]"
    return values


def _applies(types: Optional[frozenset[str]], reference: Reference) -> bool:
    return types is None or reference.type in types


def render_entry(
    reference: Reference,
    style: StyleDefinition | str,
    number: Optional[int] = None,
    locale: Optional[str] = None,
) -> RenderedEntry:
    """Render one bibliography entry.

    The output depends only on the arguments: the year suffix comes from the
    reference and the number from the caller, both computed beforehand over
    the whole bibliography.
    """
    definition = resolve_style(style)
    terms = get_locale(reference.collation_locale(locale))
    problems: list[str] = []
    values = _field_values(reference, definition, terms, problems)

    builder = _EntryBuilder(definition)
    for group in definition.template:
        if not _applies(group.types, reference):
            continue
        parts: list[tuple[Segment, str]] = [
            (segment, values[segment.field])
            for segment in group.parts
            if _applies(segment.types, reference) and values.get(segment.field)
        ]
        if not parts:
            continue
        if builder.runs:
            builder.affix(group.lead)
        builder.affix(group.prefix)
        for position, (segment, value) in enumerate(parts):
            if position:
                builder.affix(segment.lead)
            builder.affix(segment.prefix)
            builder.value(value, segment.wrapper)
            builder.affix(segment.suffix)
        builder.affix(group.suffix)
    builder.trim()

    body_text = builder.plain
    body_markup = builder.markup()
    classes = "bib-entry hanging-indent" if definition.hanging_indent else "bib-entry"
    if definition.label and number is not None:
        label = definition.label.format(n=number)
        text = f"{label} {body_text}"
        markup = f'<p class="{classes}"><span class="bib-label">{html.escape(label)}</span> {body_markup}</p>'
    else:
        text = body_text
        markup = f'<p class="{classes}">{body_markup}</p>'

    for problem in problems:
        logger.warning(problem)
        warnings.warn(problem, ValidationWarning, stacklevel=2)

    return RenderedEntry(reference_id=reference.id, text=text, markup=markup, number=number, warnings=problems)


def _locator(reference: Reference, context: CitationContext) -> Optional[str]:
    locator = context.locators.get(reference.id)
    return locator.strip() if locator and locator.strip() else None


@dataclass
class _Cite:
    names: str
    years: list[str]
    locator: Optional[str]


def _cite_author_year(references: Sequence[Reference], style: StyleDefinition, context: CitationContext) -> str:
    rule = style.in_text
    cites: list[_Cite] = []
    for reference in references:
        terms = get_locale(reference.collation_locale(context.locale))
        contributors, _ = reference.contributors()
        names = in_text_names(contributors, style, terms.tag, narrative=context.narrative)
        if not names:
            names = f"{style.quotes[0]}{short_title(reference.title or terms.untitled)}{style.quotes[1]}"
        elif reference.year_suffix and not style.show_year_suffix:
            title = apply_title_case(short_title(reference.title or terms.untitled), style.title_case)
            names = f"{names}, {style.quotes[0]}{title}{style.quotes[1]}"
        year = _year_text(reference, terms, style.show_year_suffix) if rule.include_year else None
        locator = _locator(reference, context)

        # Consecutive works by the same names share one name list: (Smith, 2020a, 2020b)
        previous = cites[-1] if cites else None
        if previous and year and previous.years and previous.names == names and not (previous.locator or locator):
            previous.years.append(year)
            continue
        cites.append(_Cite(names, [year] if year else [], locator))

    if context.narrative:
        rendered = []
        for cite in cites:
            details = cite.years + ([cite.locator] if cite.locator else [])
            rendered.append(f"{cite.names} ({', '.join(details)})" if details else cite.names)
        return "; ".join(rendered)

    rendered = []
    for cite in cites:
        text = cite.names
        if cite.years:
            text = f"{text}{rule.year_delimiter}{', '.join(cite.years)}"
        if cite.locator:
            text = f"{text}{rule.locator_delimiter}{cite.locator}"
        rendered.append(text)
    return f"{rule.open}{rule.multi_delimiter.join(rendered)}{rule.close}"


def _collapse(numbers: list[int]) -> list[str]:
    spans: list[str] = []
    start = previous = numbers[0]
    for number in numbers[1:] + [None]:
        if number is not None and number == previous + 1:
            previous = number
            continue
        if previous - start >= 2:
            spans.append(f"{start}–{previous}")
        else:
            spans.extend(str(value) for value in range(start, previous + 1))
        if number is not None:
            start = previous = number
    return spans


def _cite_numeric(references: Sequence[Reference], style: StyleDefinition, context: CitationContext) -> str:
    rule = style.in_text
    numbered: dict[int, Optional[str]] = {}
    for reference in references:
        if reference.id not in context.numbers:
            raise ConfigurationError(f"reference {reference.id} has no citation number under {style.id}")
        number = context.numbers[reference.id]
        numbered.setdefault(number, _locator(reference, context))

    ordered = sorted(numbered)
    if rule.collapse_ranges and not any(numbered.values()):
        items = _collapse(ordered)
    else:
        items = [
            f"{number}{rule.locator_delimiter}{numbered[number]}" if numbered[number] else str(number)
            for number in ordered
        ]
    marker = rule.multi_delimiter.join(items)
    if rule.superscript:
        marker = marker.replace(" ", "").translate(SUPERSCRIPT)
    return f"{rule.open}{marker}{rule.close}"


def _cite_note(references: Sequence[Reference], style: StyleDefinition, context: CitationContext) -> str:
    rule = style.in_text
    notes = []
    for reference in references:
        terms = get_locale(reference.collation_locale(context.locale))
        contributors, _ = reference.contributors()
        title = apply_title_case(short_title(reference.title or terms.untitled), style.title_case)
        pieces = [in_text_names(contributors, style, terms.tag, narrative=True), title, _locator(reference, context)]
        notes.append(", ".join(piece for piece in pieces if piece))
    body = rule.multi_delimiter.join(notes)
    if rule.close and body.endswith(rule.close):
        return f"{rule.open}{body}"
    return f"{rule.open}{body}{rule.close}"


CITERS: dict[str, Callable[[Sequence[Reference], StyleDefinition, CitationContext], str]] = {
    "author-year": _cite_author_year,
    "numeric": _cite_numeric,
    "footnote": _cite_note,
}


def render_in_text(
    references: Sequence[Reference],
    style: StyleDefinition | str,
    context: Optional[CitationContext] = None,
) -> str:
    """Render the in-text marker for one citation site citing ``references``."""
    definition = resolve_style(style)
    if not references:
        return ""
    return CITERS[definition.in_text.kind](references, definition, context or CitationContext())
