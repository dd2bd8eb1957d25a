"""Readiness gate for the vegetation variants used by the scatter pass."""
from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Tuple

LOGGER = logging.getLogger(__name__)


class AuxiliaryAssetSet:
    """Group of interchangeable variant handles that may still be loading.

    The handles are opaque: the terrain pipeline only needs how many there
    are and an index-based lookup once an instance picks its variant. The
    asset loader calls :meth:`mark_ready` once the variants are available.
    Until then the set is pending, which is a normal state and not an error.

    ``revision`` is ``0`` while pending and increases every time the set
    becomes ready or its variants are replaced, so consumers can tell when a
    placement built from an older snapshot is stale.
    """

    def __init__(self, variants: Iterable[Any] = (), *, ready: bool = False) -> None:
        self._lock = threading.Lock()
        self._variants: Tuple[Any, ...] = tuple(variants)
        self._ready = bool(ready)
        self._revision = 1 if self._ready else 0

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    def mark_ready(self, variants: Iterable[Any] | None = None) -> None:
        with self._lock:
            changed = False
            if variants is not None:
                replacement = tuple(variants)
                changed = replacement != self._variants
                self._variants = replacement
            already = self._ready
            self._ready = True
            if changed or not already:
                self._revision += 1
            count = len(self._variants)
        if not already:
            LOGGER.info("Vegetation variants ready: %d", count)
        elif changed:
            LOGGER.info("Vegetation variants replaced: %d", count)

    @property
    def variant_count(self) -> int:
        with self._lock:
            return len(self._variants) if self._ready else 0

    def variants(self) -> Tuple[Any, ...]:
        with self._lock:
            return self._variants if self._ready else ()

    def snapshot(self) -> Tuple[int, Tuple[Any, ...]]:
        """Return ``(revision, variants)`` read under one lock."""

        with self._lock:
            return self._revision, (self._variants if self._ready else ())
