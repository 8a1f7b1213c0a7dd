"""Time-bounded memo of the last model that served a request successfully."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional


__all__ = ["CachedSelection", "ModelCache", "MODEL_CACHE_TTL_MS"]


logger = logging.getLogger(__name__)


MODEL_CACHE_TTL_MS = 60 * 60 * 1000


def _now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class CachedSelection:
    """Cached model name and the epoch-ms time it was recorded."""

    name: str
    fetched_at_ms: float


class ModelCache:
    """
    Single-slot cache with a TTL.

    Shared by every request of one workload without locking. Races are
    last-writer-wins on one value and only affect which model is tried
    first.
    """

    def __init__(
        self,
        ttl_ms: float = MODEL_CACHE_TTL_MS,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._selection: Optional[CachedSelection] = None

    @property
    def selection(self) -> Optional[CachedSelection]:
        """Raw slot contents, expired or not."""
        return self._selection

    def get(self) -> Optional[str]:
        """Return the cached name if it was recorded less than one TTL ago."""
        selection = self._selection
        if selection is None:
            return None
        if self._clock() - selection.fetched_at_ms < self._ttl_ms:
            return selection.name
        return None

    def set(self, name: str) -> None:
        self._selection = CachedSelection(name=name, fetched_at_ms=self._clock())
        logger.debug("Cached model selection: %s", name)

    def clear(self) -> None:
        self._selection = None
