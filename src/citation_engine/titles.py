"""Title capitalisation helpers."""

from __future__ import annotations

import re

# Words not to capitalize in title case
LOWERCASE_WORDS = {
    "a",
    "an",
    "and",
    "as",
    "at",
    "but",
    "by",
    "for",
    "from",
    "in",
    "nor",
    "of",
    "on",
    "or",
    "so",
    "the",
    "to",
    "up",
    "via",
    "with",
    "yet",
}

_WORD = re.compile(r"\S+")


def _is_protected(word: str) -> bool:
    """Acronyms, mixed-case names and anything with digits keep their casing."""
    letters = [ch for ch in word if ch.isalpha()]
    if not letters:
        return True
    if any(ch.isdigit() for ch in word):
        return True
    if len(letters) > 1 and all(ch.isupper() for ch in letters):
        return True
    return any(ch.isupper() for ch in letters[1:])


def _capitalize(word: str) -> str:
    for index, ch in enumerate(word):
        if ch.isalpha():
            return word[:index] + ch.upper() + word[index + 1:]
    return word


def _lower(word: str) -> str:
    return word if _is_protected(word) else word.lower()


def apply_title_case(title: str, rule: str) -> str:
    """Recase ``title`` according to a style's rule."""
    if not title or rule == "preserve":
        return title

    words = _WORD.findall(title)
    if not words:
        return title

    result: list[str] = []
    starts_clause = True
    for index, word in enumerate(words):
        is_edge = index == 0 or index == len(words) - 1
        if rule == "sentence":
            cased = _capitalize(_lower(word)) if starts_clause else _lower(word)
        elif _is_protected(word):
            cased = word
        elif not (is_edge or starts_clause) and word.lower() in LOWERCASE_WORDS:
            cased = word.lower()
        else:
            cased = "-".join(_capitalize(part.lower()) for part in word.split("-"))
        result.append(cased)
        starts_clause = word.endswith((":", "?", "!", "."))
    return " ".join(result)


def short_title(title: str, max_words: int = 4) -> str:
    """Title up to its subtitle, limited to ``max_words`` words."""
    main = re.split(r"[:?!.]\s", title, maxsplit=1)[0].rstrip(":?!. ")
    words = main.split()
    return " ".join(words[:max_words])


def ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"
