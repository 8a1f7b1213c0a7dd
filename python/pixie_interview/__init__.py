"""
Pixie Interview Package.

Backend pieces of the Pixie mock interview: model selection and
multi-candidate dispatch against the Google Generative Language API, and the
session orchestrator that drives the interview script.

Components:
    - GenerativeLanguageClient: Catalog listing and generateContent calls
    - rank_candidates / resolve_candidates: Model selection
    - ModelCache: Time-bounded memo of the last successful model
    - RequestDispatcher: Sequential candidate loop with pluggable failure classifier
    - InterviewSession: Phase state machine (base, follow-up, closing, done)
    - SessionRunner: Executes session effects against the HTTP service

Example:
    >>> from pixie_interview import InterviewSession, SessionStarted
    >>>
    >>> session = InterviewSession()
    >>> session.apply(SessionStarted())
    [EmitAssistantTurn(text='Tell me about yourself.')]
"""

from .models import (
    ConversationTurn,
    GenerationResult,
    ModelDescriptor,
    SessionPhase,
    Workload,
    normalize_model_name,
)

from .errors import (
    AllCandidatesExhaustedError,
    CatalogFetchError,
    ConfigurationError,
    EmptyGenerationError,
    FatalProviderError,
    InterviewServiceError,
    InvalidRequestError,
    NoCandidateModelsError,
    RetryableProviderError,
)

from .config import ProviderConfig, RuntimeConfig, load_provider_config, load_runtime_config

from .provider import GenerativeLanguageClient, ProviderResponse

from .cache import CachedSelection, ModelCache

from .selection import rank_candidates, resolve_candidates, score_model_name

from .dispatcher import (
    FailureKind,
    ProviderFailure,
    RequestDispatcher,
    classifier_for,
    classify_failure,
    parse_retry_seconds,
)

from .questions import INTERVIEW_QUESTIONS

from .session import (
    AnswerSubmitted,
    ClosingFailed,
    ClosingReceived,
    EmitAssistantTurn,
    FollowupFailed,
    FollowupReceived,
    InterviewSession,
    ReportDiagnostic,
    RequestClosing,
    RequestFollowup,
    SessionStarted,
    SessionState,
    build_transcript,
)

from .client import InterviewApiClient, InterviewApiError, SessionRunner


__all__ = [
    # Models
    "ConversationTurn",
    "GenerationResult",
    "ModelDescriptor",
    "SessionPhase",
    "Workload",
    "normalize_model_name",
    # Errors
    "AllCandidatesExhaustedError",
    "CatalogFetchError",
    "ConfigurationError",
    "EmptyGenerationError",
    "FatalProviderError",
    "InterviewServiceError",
    "InvalidRequestError",
    "NoCandidateModelsError",
    "RetryableProviderError",
    # Config
    "ProviderConfig",
    "RuntimeConfig",
    "load_provider_config",
    "load_runtime_config",
    # Provider
    "GenerativeLanguageClient",
    "ProviderResponse",
    # Selection
    "CachedSelection",
    "ModelCache",
    "rank_candidates",
    "resolve_candidates",
    "score_model_name",
    # Dispatch
    "FailureKind",
    "ProviderFailure",
    "RequestDispatcher",
    "classifier_for",
    "classify_failure",
    "parse_retry_seconds",
    # Session
    "INTERVIEW_QUESTIONS",
    "AnswerSubmitted",
    "ClosingFailed",
    "ClosingReceived",
    "EmitAssistantTurn",
    "FollowupFailed",
    "FollowupReceived",
    "InterviewSession",
    "ReportDiagnostic",
    "RequestClosing",
    "RequestFollowup",
    "SessionStarted",
    "SessionState",
    "build_transcript",
    # Client
    "InterviewApiClient",
    "InterviewApiError",
    "SessionRunner",
]

__version__ = "0.1.0"
