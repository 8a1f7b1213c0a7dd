"""
Client side of the interview: API calls and the session runner.

``SessionRunner`` drives an ``InterviewSession`` by executing its effects
against the interview service and feeding the replies back as events.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional

import httpx

from .models import ConversationTurn
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
    SessionEffect,
    SessionEvent,
    SessionStarted,
)


__all__ = ["InterviewApiClient", "InterviewApiError", "SessionRunner"]


logger = logging.getLogger(__name__)


API_PREFIX = "/api/interview"


class InterviewApiError(Exception):
    """Error reply (or transport failure) from the interview service."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)

    def __str__(self) -> str:
        if self.retry_after_seconds and self.retry_after_seconds > 0:
            return f"{self.message} Try again in ~{math.ceil(self.retry_after_seconds)}s."
        return self.message


class InterviewApiClient:
    """Typed calls to the interview service endpoints."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = "") -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self._base_url}{API_PREFIX}/{path}"

    async def _post(self, path: str, fallback_error: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http.post(self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            raise InterviewApiError(f"{fallback_error} {exc}".strip()) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400 or data.get("error"):
            raise InterviewApiError(
                str(data.get("error") or fallback_error),
                status_code=response.status_code,
                retry_after_seconds=data.get("retryAfterSeconds"),
            )
        return data

    @staticmethod
    def _require_text(data: dict[str, Any], key: str, empty_error: str) -> str:
        text = str(data.get(key) or "").strip()
        if not text:
            raise InterviewApiError(empty_error)
        return text

    async def followup(self, question: str, answer: str) -> str:
        data = await self._post(
            "followup",
            "Follow-up service failed.",
            json={"question": question, "answer": answer},
        )
        return self._require_text(data, "followup", "Follow-up service returned an empty follow-up.")

    async def closing(self, transcript: str) -> str:
        data = await self._post(
            "closing",
            "Closing service failed.",
            json={"transcript": transcript},
        )
        return self._require_text(data, "closing", "Closing service returned an empty closing.")

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str = "audio/webm",
        filename: str = "answer.webm",
    ) -> str:
        data = await self._post(
            "transcribe",
            "Transcription failed.",
            files={"audio": (filename, audio, mime_type)},
        )
        return self._require_text(data, "transcript", "Transcription returned empty text.")


class SessionRunner:
    """
    Runs one interview against the service.

    Effects are executed sequentially until the session is waiting for the
    next answer. Follow-up and closing failures become ``*Failed`` events, so
    a run never raises because of the service.

    Example:
        >>> async with httpx.AsyncClient() as http:
        ...     runner = SessionRunner(InterviewApiClient(http, "http://127.0.0.1:8000"))
        ...     await runner.start()
        ...     await runner.submit_answer("I build data pipelines in Python ...")
    """

    def __init__(
        self,
        api: InterviewApiClient,
        session: Optional[InterviewSession] = None,
        on_assistant_turn: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._api = api
        self._session = session or InterviewSession()
        self._on_assistant_turn = on_assistant_turn
        self.diagnostics: list[str] = []

    @property
    def session(self) -> InterviewSession:
        return self._session

    @property
    def done(self) -> bool:
        return self._session.done

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return self._session.turns

    async def start(self) -> None:
        await self._run(SessionStarted())

    async def submit_answer(self, text: str) -> None:
        await self._run(AnswerSubmitted(text))

    async def transcribe_and_submit(self, audio: bytes, mime_type: str = "audio/webm") -> None:
        """Transcribe a recorded answer and submit it; transcription errors propagate."""
        transcript = await self._api.transcribe(audio, mime_type)
        await self.submit_answer(transcript)

    async def _run(self, event: SessionEvent) -> None:
        queue: list[SessionEffect] = self._session.apply(event)
        while queue:
            effect = queue.pop(0)
            follow_on = await self._perform(effect)
            if follow_on is not None:
                queue.extend(self._session.apply(follow_on))

    async def _perform(self, effect: SessionEffect) -> Optional[SessionEvent]:
        if isinstance(effect, EmitAssistantTurn):
            if self._on_assistant_turn:
                self._on_assistant_turn(effect.text)
            return None

        if isinstance(effect, ReportDiagnostic):
            logger.warning("Session diagnostic: %s", effect.message)
            self.diagnostics.append(effect.message)
            return None

        if isinstance(effect, RequestFollowup):
            try:
                return FollowupReceived(await self._api.followup(effect.question, effect.answer))
            except InterviewApiError as exc:
                return FollowupFailed(str(exc))

        if isinstance(effect, RequestClosing):
            try:
                return ClosingReceived(await self._api.closing(effect.transcript))
            except InterviewApiError as exc:
                return ClosingFailed(str(exc))

        raise TypeError(f"Unknown session effect: {effect!r}")
