"""
Pixie Interview Service

HTTP surface consumed by the interview session screen. Each endpoint builds a
generateContent request, resolves candidate models from the provider catalog
(or the per-workload model cache), and dispatches across candidates until one
succeeds.

Endpoints:
    POST /api/interview/next        - Next interviewer turn from history + question index
    POST /api/interview/transcribe  - Transcribe a recorded answer (multipart 'audio')
    POST /api/interview/followup    - Generate one follow-up question
    POST /api/interview/closing     - Closing statement from the full transcript
    GET  /api/interview/models      - Provider model catalog (diagnostics)
    GET  /health                    - Health check
    GET  /stats                     - Statistics

Internal binding: configured by SERVICE_HOST/SERVICE_PORT (default 0.0.0.0:8000)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, AsyncIterator, Optional, TypedDict

import httpx
import uvicorn
from fastapi import Depends, FastAPI, File, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from pixie_interview import __version__
from pixie_interview.cache import ModelCache
from pixie_interview.config import (
    ProviderConfig,
    load_provider_config,
    load_runtime_config,
)
from pixie_interview.dispatcher import RequestDispatcher, classifier_for
from pixie_interview.errors import InterviewServiceError, InvalidRequestError
from pixie_interview.models import ConversationTurn, GenerationResult, Workload
from pixie_interview.prompts import (
    build_closing_payload,
    build_followup_payload,
    build_next_payload,
    build_transcribe_payload,
)
from pixie_interview.provider import GenerativeLanguageClient
from pixie_interview.questions import INTERVIEW_QUESTIONS
from pixie_interview.selection import resolve_candidates

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)
# httpx logs full request URLs at INFO, and the provider key is a query parameter.
logging.getLogger("httpx").setLevel(logging.WARNING)


# =============================================================================
# Configuration
# =============================================================================

SERVICE_NAME = "Pixie Interview Service"

RUNTIME_CONFIG = load_runtime_config()

DEFAULT_AUDIO_MIME_TYPE = "audio/webm"

# (generic failure message, empty-result message) per workload
WORKLOAD_MESSAGES: dict[Workload, tuple[str, str]] = {
    Workload.NEXT: ("Failed to call Gemini.", "Gemini returned an empty message."),
    Workload.FOLLOWUP: ("Gemini follow-up failed.", "Gemini returned an empty follow-up."),
    Workload.CLOSING: ("Gemini closing failed.", "Gemini returned an empty closing."),
    Workload.TRANSCRIBE: ("Transcription failed.", "Transcription returned empty text."),
}


# =============================================================================
# Request Models
# =============================================================================


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NextRequest(CamelModel):
    """Request for the next interviewer turn."""

    history: list[ConversationTurn] = Field(
        default_factory=list, description="Conversation so far, oldest first"
    )
    question_index: int = Field(default=0, description="Index of the script question to ask")

    @field_validator("history", mode="before")
    @classmethod
    def _non_list_history_is_empty(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []


class FollowupRequest(CamelModel):
    """Request for one follow-up question."""

    question: str = Field(default="", description="The scripted question that was asked")
    answer: str = Field(default="", description="The candidate's answer")


class ClosingRequest(CamelModel):
    """Request for the closing statement."""

    transcript: str = Field(default="", description="Flat 'Pixie:/Candidate:' transcript")


# =============================================================================
# Response Models
# =============================================================================


class ErrorResponse(CamelModel):
    """Standard error response."""

    ok: bool = Field(default=False)
    error: str = Field(..., description="Error description")
    error_code: Optional[str] = Field(default=None, description="Machine-readable error code")
    status: Optional[int] = Field(default=None, description="Underlying provider or HTTP status")
    model: Optional[str] = Field(default=None, description="Model involved in the failure")
    retry_after_seconds: Optional[float] = Field(
        default=None, description="Provider back-off hint in seconds"
    )


class NextResponse(CamelModel):
    message: str
    done: bool
    model: str
    asked_question_index: Optional[int] = None
    next_question_index: int


class TranscribeResponse(CamelModel):
    transcript: str
    model: str


class FollowupResponse(CamelModel):
    followup: str
    model: str


class ClosingResponse(CamelModel):
    closing: str
    model: str


class CatalogEntry(CamelModel):
    name: str
    supported_generation_methods: list[str]
    display_name: Optional[str] = None
    description: Optional[str] = None


class CatalogResponse(CamelModel):
    models: list[CatalogEntry]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="Current server timestamp")
    api_key_configured: bool = Field(..., description="Whether GEMINI_API_KEY is set")


class StatsResponse(BaseModel):
    """Statistics response."""

    stats: dict[str, Any] = Field(..., description="Service statistics")
    cached_models: dict[str, Optional[str]] = Field(
        ..., description="Fresh cached model per workload"
    )


# =============================================================================
# Application State (Type-safe Lifespan State)
# =============================================================================


class AppStats(TypedDict):
    """Application statistics tracking."""

    requests: int
    dispatches: int
    dispatch_failures: int
    cache_hits: int
    catalog_fetches: int
    started_at: str


class AppState(TypedDict):
    """Type-safe application state managed by lifespan."""

    http_client: httpx.AsyncClient
    model_caches: dict[Workload, ModelCache]
    stats: AppStats


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def get_initial_stats() -> AppStats:
    """Create initial statistics dictionary."""
    return AppStats(
        requests=0,
        dispatches=0,
        dispatch_failures=0,
        cache_hits=0,
        catalog_fetches=0,
        started_at=_utc_now(),
    )


# =============================================================================
# Dependencies
# =============================================================================


def get_app_state(request: Request) -> AppState:
    """
    Dependency to retrieve application state from request.

    Raises:
        RuntimeError: If state is not properly initialized.
    """
    state = getattr(request, "state", None)
    if state is None:
        raise RuntimeError("Application state not initialized")
    return AppState(
        http_client=state.http_client,
        model_caches=state.model_caches,
        stats=state.stats,
    )


AppStateDep = Annotated[AppState, Depends(get_app_state)]


def get_http_client(state: AppStateDep) -> httpx.AsyncClient:
    """Shared outbound HTTP client (overridden in tests)."""
    return state["http_client"]


def get_provider_config() -> ProviderConfig:
    """Provider settings, read from the environment on every request."""
    return load_provider_config()


ProviderConfigDep = Annotated[ProviderConfig, Depends(get_provider_config)]
HttpClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]


def get_provider_client(
    config: ProviderConfigDep,
    http_client: HttpClientDep,
) -> GenerativeLanguageClient:
    return GenerativeLanguageClient(
        api_key=config.api_key,
        http_client=http_client,
        base_url=config.base_url,
    )


ProviderClientDep = Annotated[GenerativeLanguageClient, Depends(get_provider_client)]


# =============================================================================
# Generation
# =============================================================================


async def run_workload(
    workload: Workload,
    payload: dict[str, Any],
    state: AppState,
    config: ProviderConfig,
    provider: GenerativeLanguageClient,
) -> GenerationResult:
    """
    Resolve candidates for a workload and dispatch the payload across them.

    Args:
        workload: Which endpoint is generating.
        payload: The generateContent request body, sent unchanged to every candidate.
        state: Application state (caches and stats).
        config: Provider settings for this request.
        provider: Provider client bound to the request's credential.

    Returns:
        The first successful generation.
    """
    stats = state["stats"]
    cache = state["model_caches"][workload]

    candidates, from_cache = await resolve_candidates(
        provider,
        cache,
        workload,
        config.pinned_model(workload),
    )
    if from_cache:
        stats["cache_hits"] += 1
    else:
        stats["catalog_fetches"] += 1

    failure_message, empty_message = WORKLOAD_MESSAGES[workload]
    dispatcher = RequestDispatcher(
        provider,
        cache,
        classifier_for(workload),
        default_error_message=failure_message,
        empty_result_message=empty_message,
    )

    stats["dispatches"] += 1
    try:
        return await dispatcher.dispatch(candidates, payload)
    except InterviewServiceError:
        stats["dispatch_failures"] += 1
        raise


# =============================================================================
# Exception Handlers
# =============================================================================


async def interview_service_error_handler(
    request: Request, exc: InterviewServiceError
) -> JSONResponse:
    """
    Handle InterviewServiceError exceptions.

    Args:
        request: The incoming request.
        exc: The exception that was raised.

    Returns:
        JSONResponse with error details.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            ok=False,
            error=exc.message,
            error_code=exc.error_code,
            status=exc.provider_status or exc.status_code,
            model=exc.model,
            retry_after_seconds=exc.retry_after_seconds,
        ).model_dump(by_alias=True),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as 400 with the standard error body."""
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        message = "Invalid JSON body."
    elif errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request body: {location or 'body'}: {first.get('msg', 'invalid')}"
    else:
        message = "Invalid request body."

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            ok=False,
            error=message,
            error_code="INVALID_REQUEST",
            status=status.HTTP_400_BAD_REQUEST,
        ).model_dump(by_alias=True),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: The incoming request.
        exc: The exception that was raised.

    Returns:
        JSONResponse with generic error message.
    """
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            ok=False,
            error="Internal server error",
            error_code="INTERNAL_ERROR",
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ).model_dump(by_alias=True),
    )


# =============================================================================
# FastAPI App Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
    """
    Manage application lifespan with type-safe state.

    Creates the shared outbound HTTP client and one model cache per
    workload on startup, and closes the client on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Dictionary of application state to be attached to requests.
    """
    logger.info("Starting %s v%s", SERVICE_NAME, __version__)
    logger.info(
        "Runtime: host=%s port=%d provider_timeout=%.1fs",
        RUNTIME_CONFIG.host,
        RUNTIME_CONFIG.port,
        RUNTIME_CONFIG.timeout_seconds,
    )

    http_client = httpx.AsyncClient(timeout=RUNTIME_CONFIG.timeout_seconds)
    model_caches = {workload: ModelCache() for workload in Workload}

    state = {
        "http_client": http_client,
        "model_caches": model_caches,
        "stats": get_initial_stats(),
    }

    try:
        yield state
    finally:
        logger.info("Shutting down...")
        await http_client.aclose()


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title=SERVICE_NAME,
    version=__version__,
    description="Interview question, follow-up, closing and transcription proxy for Pixie",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(RUNTIME_CONFIG.cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    max_age=3600,
)

app.add_exception_handler(InterviewServiceError, interview_service_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, generic_exception_handler)


# =============================================================================
# Endpoints
# =============================================================================


@app.post("/api/interview/next", response_model=NextResponse)
async def next_turn(
    request: NextRequest,
    state: AppStateDep,
    config: ProviderConfigDep,
    provider: ProviderClientDep,
) -> NextResponse:
    """
    Generate the next interviewer turn.

    When ``questionIndex`` is past the end of the script the reply is a
    closing statement and ``done`` is true.
    """
    state["stats"]["requests"] += 1

    question_index = max(0, request.question_index)
    is_done = question_index >= len(INTERVIEW_QUESTIONS)
    next_question = None if is_done else INTERVIEW_QUESTIONS[question_index]

    payload = build_next_payload(request.history, next_question)
    result = await run_workload(Workload.NEXT, payload, state, config, provider)

    return NextResponse(
        message=result.text,
        done=is_done,
        model=result.model_used,
        asked_question_index=None if is_done else question_index,
        next_question_index=question_index if is_done else question_index + 1,
    )


@app.post("/api/interview/transcribe", response_model=TranscribeResponse)
async def transcribe(
    state: AppStateDep,
    config: ProviderConfigDep,
    provider: ProviderClientDep,
    audio: Optional[UploadFile] = File(default=None),
) -> TranscribeResponse:
    """
    Transcribe a recorded answer.

    Expects multipart/form-data with an ``audio`` file. Models without audio
    input are skipped in favor of the next candidate.
    """
    state["stats"]["requests"] += 1

    if audio is None:
        raise InvalidRequestError("Missing 'audio' file in form-data.")

    data = await audio.read()
    if not data:
        raise InvalidRequestError("Uploaded 'audio' file is empty.")
    mime_type = audio.content_type or DEFAULT_AUDIO_MIME_TYPE

    logger.info("Transcribing %d bytes of %s", len(data), mime_type)
    payload = build_transcribe_payload(data, mime_type)
    result = await run_workload(Workload.TRANSCRIBE, payload, state, config, provider)

    return TranscribeResponse(transcript=result.text, model=result.model_used)


@app.post("/api/interview/followup", response_model=FollowupResponse)
async def followup(
    request: FollowupRequest,
    state: AppStateDep,
    config: ProviderConfigDep,
    provider: ProviderClientDep,
) -> FollowupResponse:
    """Generate one follow-up question for a question/answer pair."""
    state["stats"]["requests"] += 1

    question = request.question.strip()
    answer = request.answer.strip()
    if not question or not answer:
        raise InvalidRequestError("Missing question or answer.")

    payload = build_followup_payload(question, answer)
    result = await run_workload(Workload.FOLLOWUP, payload, state, config, provider)

    return FollowupResponse(followup=result.text, model=result.model_used)


@app.post("/api/interview/closing", response_model=ClosingResponse)
async def closing(
    request: ClosingRequest,
    state: AppStateDep,
    config: ProviderConfigDep,
    provider: ProviderClientDep,
) -> ClosingResponse:
    """Generate the closing statement and feedback from the full transcript."""
    state["stats"]["requests"] += 1

    transcript = request.transcript.strip()
    if not transcript:
        raise InvalidRequestError("Missing transcript.")

    payload = build_closing_payload(transcript)
    result = await run_workload(Workload.CLOSING, payload, state, config, provider)

    return ClosingResponse(closing=result.text, model=result.model_used)


@app.get("/api/interview/models", response_model=CatalogResponse)
async def list_models(provider: ProviderClientDep) -> CatalogResponse:
    """List the provider's models and their supported generation methods."""
    models = await provider.list_models()
    return CatalogResponse(
        models=[
            CatalogEntry(
                name=m.name,
                supported_generation_methods=sorted(m.supported_methods),
                display_name=m.display_name,
                description=m.description,
            )
            for m in models
        ]
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    try:
        load_provider_config()
        api_key_configured = True
    except InterviewServiceError:
        api_key_configured = False

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        version=__version__,
        timestamp=_utc_now(),
        api_key_configured=api_key_configured,
    )


@app.get("/stats", response_model=StatsResponse)
async def stats(state: AppStateDep) -> StatsResponse:
    """Service statistics and the fresh cached model per workload."""
    return StatsResponse(
        stats=dict(state["stats"]),
        cached_models={
            workload.value: cache.get()
            for workload, cache in state["model_caches"].items()
        },
    )


# =============================================================================
# Main Entry Point
# =============================================================================


if __name__ == "__main__":
    uvicorn.run(
        "interview_service:app",
        host=RUNTIME_CONFIG.host,
        port=RUNTIME_CONFIG.port,
        log_level="info",
    )
