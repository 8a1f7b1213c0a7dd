"""
Configuration for the Pixie interview service.

Provider settings are read from the process environment each time they are
needed, so a rotated key or a new pinned model takes effect without a
restart. A ``.env`` file next to the ``python/`` directory is loaded once at
import.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import Workload, normalize_model_name


_env_path = Path(__file__).parent.parent / ".env"
load_dotenv(_env_path)


DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT_SECONDS = 60.0

# Pinned-model variables per workload, most specific first.
PIN_VARIABLES: dict[Workload, tuple[str, ...]] = {
    Workload.NEXT: ("GEMINI_MODEL",),
    Workload.FOLLOWUP: ("GEMINI_FOLLOWUP_MODEL", "GEMINI_MODEL"),
    Workload.CLOSING: ("GEMINI_CLOSING_MODEL", "GEMINI_MODEL"),
    Workload.TRANSCRIBE: ("GEMINI_TRANSCRIBE_MODEL",),
}

DEFAULT_CORS_ORIGINS: tuple[str, ...] = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


def _read_env(name: str) -> str | None:
    value = (os.environ.get(name) or "").strip()
    return value or None


def pin_variable_for(workload: Workload) -> str:
    """Return the env variable an operator should set to pin this workload's model."""
    return PIN_VARIABLES[workload][0]


@dataclass(frozen=True)
class ProviderConfig:
    """Credential and model pins for the generative-language provider."""

    api_key: str
    base_url: str = DEFAULT_API_BASE_URL
    pinned_models: dict[Workload, str] = field(default_factory=dict)

    def pinned_model(self, workload: Workload) -> str | None:
        return self.pinned_models.get(workload)


def load_provider_config() -> ProviderConfig:
    """
    Load provider settings from the environment.

    Raises:
        ConfigurationError: If GEMINI_API_KEY is not set.
    """
    api_key = _read_env("GEMINI_API_KEY")
    if not api_key:
        raise ConfigurationError()

    pinned: dict[Workload, str] = {}
    for workload, variables in PIN_VARIABLES.items():
        for variable in variables:
            value = _read_env(variable)
            if value:
                pinned[workload] = normalize_model_name(value)
                break

    base_url = (_read_env("GEMINI_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/")
    return ProviderConfig(api_key=api_key, base_url=base_url, pinned_models=pinned)


@dataclass(frozen=True)
class RuntimeConfig:
    """Runtime config for the HTTP service process."""

    host: str
    port: int
    timeout_seconds: float
    cors_origins: tuple[str, ...]


def load_runtime_config() -> RuntimeConfig:
    """Load runtime config from environment with strict validation."""
    host = (os.environ.get("SERVICE_HOST", "0.0.0.0") or "").strip()
    if not host:
        raise RuntimeError("SERVICE_HOST resolved to empty value.")

    port_raw = (os.environ.get("SERVICE_PORT", "8000") or "").strip()
    try:
        port = int(port_raw)
    except ValueError as exc:
        raise RuntimeError(f"SERVICE_PORT must be an integer. Got: {port_raw}") from exc
    if port < 1 or port > 65535:
        raise RuntimeError(f"SERVICE_PORT must be in range 1-65535. Got: {port}.")

    timeout_raw = _read_env("GEMINI_TIMEOUT_SECONDS")
    if timeout_raw is None:
        timeout_seconds = DEFAULT_TIMEOUT_SECONDS
    else:
        try:
            timeout_seconds = float(timeout_raw)
        except ValueError as exc:
            raise RuntimeError(
                f"GEMINI_TIMEOUT_SECONDS must be a number. Got: {timeout_raw}"
            ) from exc
        if timeout_seconds <= 0:
            raise RuntimeError(
                f"GEMINI_TIMEOUT_SECONDS must be positive. Got: {timeout_seconds}."
            )

    origins_raw = _read_env("CORS_ORIGINS")
    if origins_raw:
        cors_origins = tuple(o.strip() for o in origins_raw.split(",") if o.strip())
    else:
        cors_origins = DEFAULT_CORS_ORIGINS

    return RuntimeConfig(
        host=host,
        port=port,
        timeout_seconds=timeout_seconds,
        cors_origins=cors_origins,
    )
