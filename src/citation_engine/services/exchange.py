"""Result containers and helpers shared by the BibTeX and RIS services."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from citation_engine.errors import ParseError, SerializationError
from citation_engine.models import Reference

logger = logging.getLogger(__name__)

PAGE_SPLIT = re.compile(r"\s*[-–—]+\s*")
YEAR_PATTERN = re.compile(r"\d{4}")


@dataclass
class ImportResult:
    """Partial-success outcome of parsing a batch of exchange records."""

    references: list[Reference] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def fail(self, index: int, reason: str) -> None:
        error = ParseError(index, reason)
        logger.warning("Skipping %s", error)
        self.errors.append(error)


@dataclass
class SerializationResult:
    """Serialized text plus every field that had to be dropped."""

    text: str = ""
    errors: list[SerializationError] = field(default_factory=list)

    def drop(self, reference_id: Optional[str], field_name: str, reason: str) -> None:
        error = SerializationError(reference_id, field_name, reason)
        logger.warning("Dropping field %s", error)
        self.errors.append(error)


def split_pages(pages: str) -> tuple[str, Optional[str]]:
    parts = PAGE_SPLIT.split(pages.strip(), maxsplit=1)
    start = parts[0]
    end = parts[1] if len(parts) > 1 and parts[1] else None
    return start, end


def normalize_year(value: Optional[str]) -> Optional[str]:
    """Pull a four digit year out of date-like values such as ``2020/05/01``."""
    if not value:
        return None
    match = YEAR_PATTERN.search(value)
    return match.group(0) if match else value.strip() or None
