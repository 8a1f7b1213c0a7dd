"""
Model selection: rank catalog entries into an ordered candidate list.

Ranking is a coarse lexical heuristic: ``flash`` models first, then
``pro``, then everything else, keeping catalog order within a score.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .cache import ModelCache
from .config import pin_variable_for
from .errors import NoCandidateModelsError
from .models import (
    GENERATE_CONTENT_METHOD,
    ModelDescriptor,
    Workload,
    normalize_model_name,
)
from .provider import GenerativeLanguageClient


__all__ = [
    "EXCLUDED_NAME_MARKERS",
    "PRODUCT_FAMILY_PREFIX",
    "is_excluded_model",
    "score_model_name",
    "rank_candidates",
    "resolve_candidates",
]


logger = logging.getLogger(__name__)


# Speech-synthesis-only models and the "applet" preview category.
EXCLUDED_NAME_MARKERS: tuple[str, ...] = ("tts", "applet")

PRODUCT_FAMILY_PREFIX = "gemini"


def is_excluded_model(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in EXCLUDED_NAME_MARKERS)


def score_model_name(name: str) -> int:
    """Score a model name: 100 for flash, 80 for pro, 50 otherwise."""
    lowered = name.lower()
    if "flash" in lowered:
        return 100
    if "pro" in lowered:
        return 80
    return 50


def _dedupe(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


def _pin_first(pinned: Optional[str], names: Iterable[str]) -> list[str]:
    if not pinned:
        return _dedupe(names)
    pin = normalize_model_name(pinned)
    return _dedupe([pin, *(n for n in names if n != pin)])


def rank_candidates(
    entries: Iterable[ModelDescriptor],
    workload: Workload,
    pinned: Optional[str] = None,
) -> list[str]:
    """
    Filter and rank catalog entries into a candidate list.

    Non-transcription workloads are restricted to the ``gemini`` family when
    the catalog has any; transcription keeps the broader set.

    Args:
        entries: Raw catalog entries.
        workload: The workload the candidates will serve.
        pinned: Operator-pinned model name, forced to the front.

    Returns:
        Ordered, deduplicated model names.

    Raises:
        NoCandidateModelsError: If nothing survives filtering and no model is pinned.

    Example:
        >>> rank_candidates(
        ...     [ModelDescriptor(name="models/gemini-1.5-pro", supported_methods={"generateContent"}),
        ...      ModelDescriptor(name="models/gemini-1.5-flash", supported_methods={"generateContent"})],
        ...     Workload.NEXT,
        ... )
        ['gemini-1.5-flash', 'gemini-1.5-pro']
    """
    names = _dedupe(
        entry.name
        for entry in entries
        if entry.supports(GENERATE_CONTENT_METHOD) and not is_excluded_model(entry.name)
    )

    if workload != Workload.TRANSCRIBE:
        family = [n for n in names if n.startswith(PRODUCT_FAMILY_PREFIX)]
        if family:
            names = family

    # sorted() is stable, so equal scores keep catalog order.
    ranked = sorted(names, key=score_model_name, reverse=True)
    candidates = _pin_first(pinned, ranked)

    if not candidates:
        raise NoCandidateModelsError(pin_variable_for(workload))
    return candidates


async def resolve_candidates(
    client: GenerativeLanguageClient,
    cache: ModelCache,
    workload: Workload,
    pinned: Optional[str] = None,
) -> tuple[list[str], bool]:
    """
    Build the candidate list for one request.

    A fresh cache entry skips the catalog call entirely; the pinned model,
    if any, still goes first.

    Returns:
        Tuple of (candidates, served_from_cache).

    Raises:
        CatalogFetchError: If the catalog is needed and cannot be fetched.
        NoCandidateModelsError: If the catalog yields nothing usable.
    """
    cached = cache.get()
    if cached:
        logger.debug("Using cached model %s for %s", cached, workload.value)
        return _pin_first(pinned, [cached]), True

    entries = await client.list_models()
    candidates = rank_candidates(entries, workload, pinned)
    logger.info(
        "Resolved %d candidate models for %s (first: %s)",
        len(candidates),
        workload.value,
        candidates[0],
    )
    return candidates, False
