"""Bibliography ordering and citation numbering."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Sequence

from citation_engine.collation import collation_key
from citation_engine.models import Reference
from citation_engine.styles import StyleDefinition, get_locale, resolve_style

logger = logging.getLogger(__name__)


def alphabetical_key(reference: Reference, locale: Optional[str] = None) -> tuple:
    """``(language group, surname, year, suffix, title, id)``; ``sort_order`` never takes part.

    Thai references form the first group and everything else the second, each
    ordered under its own collation.
    """
    own_locale = reference.collation_locale()
    ref_locale = own_locale or locale
    suffix = reference.year_suffix or ""
    return (
        0 if get_locale(own_locale).tag == "th" else 1,
        collation_key(reference.primary_surname() or reference.title, ref_locale),
        (reference.year or "").strip(),
        # a..z before aa, ab: bijective labels order by length first
        (len(suffix), suffix),
        collation_key(reference.title, ref_locale),
        reference.id,
    )


def _alphabetical(
    references: Sequence[Reference],
    citation_order: Optional[Iterable[str]],
    locale: Optional[str],
) -> list[Reference]:
    return sorted(references, key=lambda reference: alphabetical_key(reference, locale))


def _appearance(
    references: Sequence[Reference],
    citation_order: Optional[Iterable[str]],
    locale: Optional[str],
) -> list[Reference]:
    by_id = {reference.id: reference for reference in references}
    cited: list[Reference] = []
    seen: set[str] = set()
    for reference_id in citation_order or ():
        if reference_id in seen:
            continue
        if reference_id not in by_id:
            logger.debug("Ignoring citation of unknown reference %s", reference_id)
            continue
        seen.add(reference_id)
        cited.append(by_id[reference_id])
    rest = [reference for reference in references if reference.id not in seen]
    return cited + _alphabetical(rest, None, locale)


Orderer = Callable[[Sequence[Reference], Optional[Iterable[str]], Optional[str]], list[Reference]]

ORDERING: dict[str, Orderer] = {
    "none": _alphabetical,
    "alphabetical": _alphabetical,
    "citation-order": _appearance,
}


def sort_references(
    references: Sequence[Reference],
    style: StyleDefinition | str,
    citation_order: Optional[Iterable[str]] = None,
    locale: Optional[str] = None,
) -> list[Reference]:
    """Order references for the bibliography of ``style``.

    Citation-order styles list references in order of first citation when the
    caller tracks it; anything never cited follows alphabetically.
    """
    definition = resolve_style(style)
    return ORDERING[definition.numbering](references, citation_order, locale)


def assign_numbers(ordered: Sequence[Reference], style: StyleDefinition | str) -> dict[str, int]:
    """Number an already ordered bibliography ``1..N``; empty for unnumbered styles."""
    definition = resolve_style(style)
    if definition.numbering == "none":
        return {}
    return {reference.id: position for position, reference in enumerate(ordered, start=1)}
