"""
Pydantic models for the Pixie interview service.

Defines the provider catalog entry, conversation turns, generation results,
and the enums shared by model selection and the session orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


MODELS_PREFIX = "models/"
GENERATE_CONTENT_METHOD = "generateContent"


def normalize_model_name(name: str) -> str:
    """Strip the provider's ``models/`` namespace prefix from a model name."""
    name = (name or "").strip()
    return name[len(MODELS_PREFIX):] if name.startswith(MODELS_PREFIX) else name


def to_model_path(name: str) -> str:
    """Return the ``models/<name>`` resource path used in provider URLs."""
    return name if name.startswith(MODELS_PREFIX) else f"{MODELS_PREFIX}{name}"


class Workload(str, Enum):
    """Downstream workloads served by the interview API."""

    NEXT = "next"
    FOLLOWUP = "followup"
    CLOSING = "closing"
    TRANSCRIBE = "transcribe"


class SessionPhase(str, Enum):
    """Phases of the interview session state machine."""

    BASE = "base"
    FOLLOWUP = "followup"
    CLOSING = "closing"
    DONE = "done"


class ModelDescriptor(BaseModel):
    """
    One remote model from the provider catalog.

    The name is normalized on construction, so ``models/gemini-1.5-flash``
    and ``gemini-1.5-flash`` describe the same model.

    Example:
        >>> m = ModelDescriptor(name="models/gemini-1.5-flash",
        ...                     supported_methods={"generateContent"})
        >>> m.name
        'gemini-1.5-flash'
    """
    name: str = Field(..., min_length=1, description="Model name without namespace prefix")
    supported_methods: frozenset[str] = Field(
        default_factory=frozenset,
        description="Generation methods the model supports, e.g. 'generateContent'"
    )
    display_name: Optional[str] = Field(default=None, description="Human-readable name")
    description: Optional[str] = Field(default=None, description="Provider description")

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def _strip_namespace(cls, value: str) -> str:
        normalized = normalize_model_name(value)
        if not normalized:
            raise ValueError("model name is empty after normalization")
        return normalized

    def supports(self, method: str) -> bool:
        return method in self.supported_methods


class ConversationTurn(BaseModel):
    """A single turn of the interview transcript."""
    role: Literal["assistant", "user"] = Field(..., description="Who spoke this turn")
    content: str = Field(..., description="Turn text")

    model_config = {"frozen": True}


@dataclass(frozen=True)
class GenerationResult:
    """Successful downstream generation: output text and the model that produced it."""

    text: str
    model_used: str
