"""
Error taxonomy for the Pixie interview service.

Every error carries the HTTP status it should surface with and a
machine-readable code, so the FastAPI boundary can render it without
inspecting the concrete type.
"""

from __future__ import annotations

from typing import Optional

from fastapi import status


__all__ = [
    "InterviewServiceError",
    "ConfigurationError",
    "InvalidRequestError",
    "CatalogFetchError",
    "NoCandidateModelsError",
    "RetryableProviderError",
    "FatalProviderError",
    "EmptyGenerationError",
    "AllCandidatesExhaustedError",
]


class InterviewServiceError(Exception):
    """Base exception for interview service errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str | None = None,
        *,
        model: Optional[str] = None,
        provider_status: Optional[int] = None,
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.model = model
        self.provider_status = provider_status
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)


class ConfigurationError(InterviewServiceError):
    """Raised when a required setting (the provider credential) is missing."""

    def __init__(self, message: str = "Missing GEMINI_API_KEY in environment.") -> None:
        super().__init__(message=message, error_code="CONFIGURATION_ERROR")


class InvalidRequestError(InterviewServiceError):
    """Raised when a request body is malformed or incomplete."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_REQUEST",
        )


class CatalogFetchError(InterviewServiceError):
    """Raised when the provider's model listing fails."""

    def __init__(self, provider_status: Optional[int], body: str) -> None:
        self.body = body
        detail = f"Failed to list models ({provider_status})" if provider_status else "Failed to list models"
        super().__init__(
            message=f"{detail}: {body}" if body else detail,
            error_code="CATALOG_FETCH_FAILED",
            provider_status=provider_status,
        )


class NoCandidateModelsError(InterviewServiceError):
    """Raised when model selection produces nothing and no model is pinned."""

    def __init__(self, pin_variable: str) -> None:
        self.pin_variable = pin_variable
        super().__init__(
            message=(
                "No generateContent-capable models found. "
                f"Call /api/interview/models to inspect available models, or set {pin_variable}."
            ),
            error_code="NO_CANDIDATE_MODELS",
        )


class RetryableProviderError(InterviewServiceError):
    """
    A provider failure that advances the candidate loop.

    Never surfaced on its own; the dispatcher keeps the last one to report
    if every candidate is exhausted.
    """

    def __init__(
        self,
        message: str,
        provider_status: int,
        model: str,
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=(
                status.HTTP_429_TOO_MANY_REQUESTS
                if provider_status == status.HTTP_429_TOO_MANY_REQUESTS
                else status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            error_code="PROVIDER_RETRYABLE",
            model=model,
            provider_status=provider_status,
            retry_after_seconds=retry_after_seconds,
        )


class FatalProviderError(InterviewServiceError):
    """A provider failure that stops the candidate loop immediately."""

    def __init__(
        self,
        message: str,
        provider_status: Optional[int],
        model: Optional[str],
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="PROVIDER_ERROR",
            model=model,
            provider_status=provider_status,
            retry_after_seconds=retry_after_seconds,
        )


class EmptyGenerationError(InterviewServiceError):
    """Raised when a working model returns no text."""

    def __init__(self, model: str, message: str = "Generation returned empty text.") -> None:
        super().__init__(
            message=message,
            error_code="EMPTY_GENERATION",
            model=model,
        )


class AllCandidatesExhaustedError(InterviewServiceError):
    """Raised when every candidate model failed with a retryable error."""

    def __init__(
        self,
        message: str,
        provider_status: Optional[int],
        model: Optional[str],
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=(
                status.HTTP_429_TOO_MANY_REQUESTS
                if provider_status == status.HTTP_429_TOO_MANY_REQUESTS
                else status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            error_code="ALL_CANDIDATES_EXHAUSTED",
            model=model,
            provider_status=provider_status,
            retry_after_seconds=retry_after_seconds,
        )
