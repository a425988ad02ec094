"""High-level orchestration: disambiguate, order, number and render a scoped set."""

from __future__ import annotations

import hashlib
import json
import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from citation_engine.cache import Assignment, CitationCache
from citation_engine.disambiguation import assign_year_suffixes
from citation_engine.errors import ValidationError
from citation_engine.models import Reference
from citation_engine.numbering import assign_numbers, sort_references
from citation_engine.renderer import CitationContext, RenderedEntry, render_entry, render_in_text
from citation_engine.styles import StyleDefinition, resolve_style

logger = logging.getLogger(__name__)


@dataclass
class Bibliography:
    """Ordered, rendered entries plus the numbers in-text markers refer to."""

    style: StyleDefinition
    references: list[Reference]
    entries: list[RenderedEntry]
    numbers: dict[str, int] = field(default_factory=dict)
    locale: Optional[str] = None

    def cite(
        self,
        reference_ids: Sequence[str],
        locators: Optional[Mapping[str, str]] = None,
        narrative: bool = False,
    ) -> str:
        """In-text marker for one citation site, bound to this bibliography."""
        by_id = {reference.id: reference for reference in self.references}
        missing = [reference_id for reference_id in reference_ids if reference_id not in by_id]
        if missing:
            raise KeyError(f"References not in bibliography: {', '.join(missing)}")
        context = CitationContext(
            numbers=self.numbers,
            locators=dict(locators or {}),
            locale=self.locale,
            narrative=narrative,
        )
        return render_in_text([by_id[reference_id] for reference_id in reference_ids], self.style, context)

    def text(self) -> str:
        return "\n".join(entry.text for entry in self.entries)

    def markup(self) -> str:
        return "\n".join(entry.markup for entry in self.entries)

    @property
    def warnings(self) -> list[str]:
        return [problem for entry in self.entries for problem in entry.warnings]


def reference_set_signature(
    references: Sequence[Reference],
    citation_order: Optional[Sequence[str]] = None,
    locale: Optional[str] = None,
) -> str:
    # Incoming suffixes are outputs of a previous pass, not inputs.
    versions = [reference.model_copy(update={"year_suffix": None}).fingerprint() for reference in references]
    payload = json.dumps({"references": versions, "order": list(citation_order or []), "locale": locale})
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def _assign(
    references: Sequence[Reference],
    style: StyleDefinition,
    citation_order: Optional[Sequence[str]],
    locale: Optional[str],
    signature: str,
) -> Assignment:
    suffixed = assign_year_suffixes(references, style, locale)
    ordered = sort_references(suffixed, style, citation_order, locale)
    numbers = assign_numbers(ordered, style)
    logger.debug("Assigned %d references under %s", len(ordered), style.id)
    return Assignment(
        signature=signature,
        order=tuple(reference.id for reference in ordered),
        suffixes={reference.id: reference.year_suffix for reference in suffixed},
        numbers=numbers,
    )


def build_bibliography(
    references: Iterable[Reference],
    style: StyleDefinition | str,
    *,
    scope: str = "default",
    citation_order: Optional[Sequence[str]] = None,
    locale: Optional[str] = None,
    cache: Optional[CitationCache] = None,
    executor: Optional[Executor] = None,
) -> Bibliography:
    """Run disambiguation, ordering and numbering over ``references``, then render.

    The whole-set passes always complete before any entry is rendered. When a
    ``cache`` is given, assignments are reused for the same scope and style
    until the reference set changes. Rendering is pure and may be spread over
    ``executor``.
    """
    definition = resolve_style(style)
    references = list(references)
    by_id: dict[str, Reference] = {}
    for reference in references:
        if reference.id in by_id:
            raise ValidationError(f"duplicate reference id {reference.id}")
        by_id[reference.id] = reference

    order = list(citation_order) if citation_order else None
    signature = reference_set_signature(references, order, locale)

    def compute() -> Assignment:
        return _assign(references, definition, order, locale, signature)

    assignment = cache.assignment(scope, definition.id, signature, compute) if cache else compute()

    ordered = [
        by_id[reference_id].model_copy(update={"year_suffix": assignment.suffixes.get(reference_id)})
        for reference_id in assignment.order
    ]

    def render(reference: Reference) -> RenderedEntry:
        number = assignment.numbers.get(reference.id)
        if cache is None:
            return render_entry(reference, definition, number, locale)
        key = (reference.fingerprint(), definition.id, reference.year_suffix, number, locale)
        return cache.entry(key, lambda: render_entry(reference, definition, number, locale))

    if executor is not None:
        entries = list(executor.map(render, ordered))
    else:
        entries = [render(reference) for reference in ordered]

    return Bibliography(
        style=definition,
        references=ordered,
        entries=entries,
        numbers=dict(assignment.numbers),
        locale=locale,
    )
