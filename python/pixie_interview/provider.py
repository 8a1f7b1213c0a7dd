"""
HTTP client for the Google Generative Language REST API.

Two calls are used: the model listing (catalog) and ``generateContent``.
The client never decides what a failed generation means; it returns a
``ProviderResponse`` and leaves classification to the dispatcher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .config import DEFAULT_API_BASE_URL
from .errors import CatalogFetchError, FatalProviderError
from .models import ModelDescriptor, to_model_path


__all__ = ["GenerativeLanguageClient", "ProviderResponse", "extract_text"]


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderResponse:
    """Outcome of one ``generateContent`` call."""

    status_code: int
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return extract_text(self.body)

    @property
    def error_message(self) -> Optional[str]:
        error = self.body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        return None


def extract_text(body: dict[str, Any]) -> str:
    """Join the text parts of the first candidate and trim the result."""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    ).strip()


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class GenerativeLanguageClient:
    """
    Thin async wrapper over the provider's REST endpoints.

    The ``httpx.AsyncClient`` is owned by the caller (the service lifespan)
    so one connection pool is shared across requests.

    Example:
        >>> async with httpx.AsyncClient() as http:
        ...     client = GenerativeLanguageClient(api_key, http)
        ...     models = await client.list_models()
    """

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient,
        base_url: str = DEFAULT_API_BASE_URL,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    async def list_models(self) -> list[ModelDescriptor]:
        """
        Fetch the full model catalog.

        Raises:
            CatalogFetchError: On a non-success status or a network failure.
        """
        try:
            response = await self._http.get(
                f"{self._base_url}/models",
                params={"key": self._api_key},
            )
        except httpx.HTTPError as exc:
            raise CatalogFetchError(None, str(exc)) from exc

        if response.status_code >= 400:
            logger.warning("Model listing failed: HTTP %d", response.status_code)
            raise CatalogFetchError(response.status_code, response.text[:500])

        entries = _json_or_empty(response).get("models") or []
        models: list[ModelDescriptor] = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            models.append(
                ModelDescriptor(
                    name=str(entry["name"]),
                    supported_methods=frozenset(entry.get("supportedGenerationMethods") or ()),
                    display_name=entry.get("displayName"),
                    description=entry.get("description"),
                )
            )
        logger.debug("Catalog returned %d models", len(models))
        return models

    async def generate_content(self, model: str, payload: dict[str, Any]) -> ProviderResponse:
        """
        Call ``generateContent`` on one model.

        Raises:
            FatalProviderError: If the request never got a response.
        """
        url = f"{self._base_url}/{to_model_path(model)}:generateContent"
        try:
            response = await self._http.post(
                url,
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.HTTPError as exc:
            logger.error("generateContent transport failure for %s: %s", model, exc)
            raise FatalProviderError(
                message=f"Request to model '{model}' failed: {exc}",
                provider_status=502,
                model=model,
            ) from exc

        return ProviderResponse(
            status_code=response.status_code,
            body=_json_or_empty(response),
        )
