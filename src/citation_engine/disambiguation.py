"""Year-suffix assignment for same-author, same-year references."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from citation_engine.collation import collation_key, normalize_name
from citation_engine.models import Reference
from citation_engine.styles import StyleDefinition, get_locale, resolve_style

logger = logging.getLogger(__name__)


def suffix_label(position: int, alphabet: str) -> str:
    """Bijective numbering over ``alphabet``: a..z, aa, ab, ..."""
    base = len(alphabet)
    label = ""
    position += 1
    while position:
        position, remainder = divmod(position - 1, base)
        label = alphabet[remainder] + label
    return label


def assign_year_suffixes(
    references: Sequence[Reference],
    style: StyleDefinition | str,
    locale: Optional[str] = None,
) -> list[Reference]:
    """Return copies of ``references`` with ``year_suffix`` recomputed for ``style``.

    The pass needs the whole scoped set: suffixes are only meaningful relative
    to every other reference sharing a primary surname and year. Numeric and
    note styles clear all suffixes.
    """
    definition = resolve_style(style)
    if not definition.is_author_year:
        return [reference.model_copy(update={"year_suffix": None}) for reference in references]

    groups: dict[tuple[str, str], list[int]] = {}
    for index, reference in enumerate(references):
        surname = reference.primary_surname()
        if not surname:
            continue
        key = (normalize_name(surname), (reference.year or "").strip())
        groups.setdefault(key, []).append(index)

    suffixes: dict[int, str] = {}
    for key, members in groups.items():
        if len(members) < 2:
            continue
        group_locale = references[members[0]].collation_locale(locale)
        ordered = sorted(members, key=lambda i: collation_key(references[i].title, group_locale))
        alphabet = get_locale(group_locale).suffix_alphabet
        for position, index in enumerate(ordered):
            suffixes[index] = suffix_label(position, alphabet)
        logger.debug("Disambiguated %d references for %s", len(members), key)

    return [
        reference.model_copy(update={"year_suffix": suffixes.get(index)})
        for index, reference in enumerate(references)
    ]
