"""
Request dispatcher: try candidate models in order until one succeeds.

Candidates are tried strictly one at a time; trying them concurrently would
spend quota on a shared-budget provider. Whether a failure moves on to the
next candidate is decided by a pluggable classifier. The default classifier
matches known substrings in the provider's error messages.
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from fastapi import status

from .cache import ModelCache
from .errors import (
    AllCandidatesExhaustedError,
    EmptyGenerationError,
    FatalProviderError,
    RetryableProviderError,
)
from .models import GenerationResult, Workload
from .provider import GenerativeLanguageClient


__all__ = [
    "FailureKind",
    "ProviderFailure",
    "FailureClassifier",
    "classify_failure",
    "classifier_for",
    "parse_retry_seconds",
    "RequestDispatcher",
]


logger = logging.getLogger(__name__)


UNSUPPORTED_MODEL_MARKERS: tuple[str, ...] = (
    "not found for api version",
    "not supported for generatecontent",
)
AUDIO_MODALITY_MARKERS: tuple[str, ...] = (
    "audio input modality is not enabled",
)

_RETRY_HINT_RE = re.compile(r"retry in\s+([0-9.]+)s", re.IGNORECASE)


class FailureKind(str, Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class ProviderFailure:
    """A non-success provider response, as seen by the classifier."""

    model: str
    status_code: int
    message: str


FailureClassifier = Callable[[ProviderFailure], FailureKind]


def classify_failure(
    failure: ProviderFailure,
    workload: Workload = Workload.NEXT,
) -> FailureKind:
    """
    Default substring-based classifier.

    Rate limits and "model does not really support this" errors are
    retryable; transcription also retries models without audio input.
    """
    if failure.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return FailureKind.RETRYABLE

    message = (failure.message or "").lower()
    markers = UNSUPPORTED_MODEL_MARKERS
    if workload == Workload.TRANSCRIBE:
        markers = markers + AUDIO_MODALITY_MARKERS
    if any(marker in message for marker in markers):
        return FailureKind.RETRYABLE
    return FailureKind.FATAL


def classifier_for(workload: Workload) -> FailureClassifier:
    return functools.partial(classify_failure, workload=workload)


def parse_retry_seconds(message: Optional[str]) -> Optional[float]:
    """
    Extract a provider "retry in N s" hint from error text.

    Example:
        >>> parse_retry_seconds("Quota exceeded. Please retry in 12.3s.")
        12.3
    """
    if not message:
        return None
    match = _RETRY_HINT_RE.search(message)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


class RequestDispatcher:
    """
    Issues one generation request against an ordered list of models.

    On success the winning model is written to the injected cache so the
    next request can skip the catalog.

    Example:
        >>> dispatcher = RequestDispatcher(client, cache, classifier_for(Workload.CLOSING))
        >>> result = await dispatcher.dispatch(["gemini-1.5-flash"], payload)
        >>> result.model_used
        'gemini-1.5-flash'
    """

    def __init__(
        self,
        client: GenerativeLanguageClient,
        cache: ModelCache,
        classifier: FailureClassifier = classify_failure,
        default_error_message: str = "Generation failed.",
        empty_result_message: str = "Generation returned empty text.",
    ) -> None:
        self._client = client
        self._cache = cache
        self._classify = classifier
        self._default_error_message = default_error_message
        self._empty_result_message = empty_result_message

    async def dispatch(
        self,
        candidates: Sequence[str],
        payload: dict[str, Any],
    ) -> GenerationResult:
        """
        Return the first successful generation across ``candidates``.

        Raises:
            EmptyGenerationError: A model succeeded but produced no text.
            FatalProviderError: A candidate failed with a non-retryable error.
            AllCandidatesExhaustedError: Every candidate failed retryably.
        """
        last_error: Optional[RetryableProviderError] = None
        retry_after: Optional[float] = None

        for attempt, model in enumerate(candidates, 1):
            logger.debug("Attempt %d/%d with model %s", attempt, len(candidates), model)
            response = await self._client.generate_content(model, payload)

            if response.ok:
                text = response.text
                if not text:
                    logger.warning("Model %s returned empty text", model)
                    raise EmptyGenerationError(model, self._empty_result_message)
                self._cache.set(model)
                logger.info("Generation succeeded with %s (attempt %d)", model, attempt)
                return GenerationResult(text=text, model_used=model)

            message = response.error_message or self._default_error_message
            hint = parse_retry_seconds(message)
            if hint is not None:
                retry_after = hint
            failure = ProviderFailure(
                model=model,
                status_code=response.status_code,
                message=message,
            )

            if self._classify(failure) == FailureKind.FATAL:
                logger.warning(
                    "Model %s failed fatally: HTTP %d %s",
                    model,
                    response.status_code,
                    message,
                )
                raise FatalProviderError(
                    message=message,
                    provider_status=response.status_code,
                    model=model,
                    retry_after_seconds=retry_after,
                )

            logger.info(
                "Model %s failed retryably (HTTP %d), trying next candidate",
                model,
                response.status_code,
            )
            last_error = RetryableProviderError(
                message=message,
                provider_status=response.status_code,
                model=model,
                retry_after_seconds=retry_after,
            )

        if last_error is None:
            raise AllCandidatesExhaustedError(
                message="No supported model accepted the request.",
                provider_status=None,
                model=None,
            )

        raise AllCandidatesExhaustedError(
            message=last_error.message,
            provider_status=last_error.provider_status,
            model=last_error.model,
            retry_after_seconds=retry_after,
        )
