"""Caches for computed suffix/number assignments and rendered entries."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Hashable, Iterator, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from citation_engine.renderer import RenderedEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    """Outcome of the whole-set passes for one scope and style."""

    signature: str
    order: tuple[str, ...]
    suffixes: dict[str, Optional[str]] = field(default_factory=dict)
    numbers: dict[str, int] = field(default_factory=dict)


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class CitationCache:
    """Shared state between bibliography builds.

    Assignments are keyed by ``(scope, style_id)`` and replaced whenever the
    signature of the reference set changes. Each key has its own lock, held
    for the whole disambiguation pass, so readers never observe a half
    computed assignment.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        self._lock = threading.Lock()
        self._key_locks: dict[tuple[str, str], _KeyLock] = {}
        self._assignments: dict[tuple[str, str], Assignment] = {}
        self._entries: OrderedDict[Hashable, RenderedEntry] = OrderedDict()
        self._max_entries = max_entries

    @contextmanager
    def _key_lock(self, key: tuple[str, str]) -> Iterator[None]:
        # A key lock lives only while some thread holds or waits for it.
        with self._lock:
            slot = self._key_locks.setdefault(key, _KeyLock())
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._lock:
                slot.users -= 1
                if not slot.users:
                    del self._key_locks[key]

    def assignment(
        self,
        scope: str,
        style_id: str,
        signature: str,
        compute: Callable[[], Assignment],
    ) -> Assignment:
        key = (scope, style_id)
        with self._key_lock(key):
            cached = self._assignments.get(key)
            if cached is not None and cached.signature == signature:
                return cached
            if cached is not None:
                logger.debug("Reference set for %s changed; recomputing", key)
            result = compute()
            self._assignments[key] = result
            return result

    def invalidate(self, scope: Optional[str] = None) -> None:
        """Drop assignments for ``scope`` (every style), or everything."""
        with self._lock:
            keys = [key for key in self._assignments if scope is None or key[0] == scope]
        for key in keys:
            with self._key_lock(key):
                self._assignments.pop(key, None)

    def entry(self, key: Hashable, compute: Callable[[], RenderedEntry]) -> RenderedEntry:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key]
        rendered = compute()
        with self._lock:
            self._entries[key] = rendered
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return rendered

    def __contains__(self, key: tuple[str, str]) -> bool:
        with self._lock:
            return key in self._assignments
