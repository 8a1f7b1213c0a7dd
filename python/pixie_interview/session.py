"""
Interview Session Orchestrator.

A finite-state machine that walks the scripted questions, optionally asks a
generated follow-up after a substantive answer, and finishes with a
generated closing statement. The machine performs no I/O: ``apply`` takes
the current state and an event and returns the new state plus the side
effects the caller must perform (show a turn, call the follow-up or closing
endpoint). Results of those calls are fed back in as events.

Downstream failures never stop the interview. A failed follow-up falls back
to the next scripted question and a failed closing falls back to a fixed
closing line; both are reported as diagnostics.

Thread Safety:
    ``SessionState`` is immutable. ``InterviewSession`` is NOT thread-safe;
    use one instance per interview.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Literal, Optional, Union

from .models import ConversationTurn, SessionPhase
from .questions import INTERVIEW_QUESTIONS


__all__ = [
    "FOLLOWUP_BUDGET",
    "FALLBACK_CLOSING",
    "SessionStarted",
    "AnswerSubmitted",
    "FollowupReceived",
    "FollowupFailed",
    "ClosingReceived",
    "ClosingFailed",
    "SessionEvent",
    "EmitAssistantTurn",
    "RequestFollowup",
    "RequestClosing",
    "ReportDiagnostic",
    "SessionEffect",
    "SessionState",
    "apply",
    "build_transcript",
    "should_request_followup",
    "word_count",
    "InterviewSession",
]


logger = logging.getLogger(__name__)


FOLLOWUP_BUDGET = 2
MIN_FOLLOWUP_WORDS = 10
# No follow-ups on the last N scripted questions.
FOLLOWUP_TAIL_EXCLUSION = 2
UNCERTAIN_ANSWER_PHRASES: tuple[str, ...] = ("i don't know", "not sure")
FALLBACK_CLOSING = "Thanks for your time. That concludes the interview."


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted:
    pass


@dataclass(frozen=True)
class AnswerSubmitted:
    text: str


@dataclass(frozen=True)
class FollowupReceived:
    text: str


@dataclass(frozen=True)
class FollowupFailed:
    error: str


@dataclass(frozen=True)
class ClosingReceived:
    text: str


@dataclass(frozen=True)
class ClosingFailed:
    error: str


SessionEvent = Union[
    SessionStarted,
    AnswerSubmitted,
    FollowupReceived,
    FollowupFailed,
    ClosingReceived,
    ClosingFailed,
]


# =============================================================================
# Effects
# =============================================================================

@dataclass(frozen=True)
class EmitAssistantTurn:
    """Show (or speak) a new interviewer turn."""

    text: str


@dataclass(frozen=True)
class RequestFollowup:
    """Call the follow-up endpoint; answer with FollowupReceived/FollowupFailed."""

    question: str
    answer: str


@dataclass(frozen=True)
class RequestClosing:
    """Call the closing endpoint; answer with ClosingReceived/ClosingFailed."""

    transcript: str


@dataclass(frozen=True)
class ReportDiagnostic:
    """Non-fatal error text for the end user."""

    message: str


SessionEffect = Union[EmitAssistantTurn, RequestFollowup, RequestClosing, ReportDiagnostic]


# =============================================================================
# State
# =============================================================================

@dataclass(frozen=True)
class SessionState:
    """
    Immutable snapshot of one interview.

    ``pending`` names the downstream reply the machine is waiting for;
    answers submitted while waiting are ignored.
    """

    questions: tuple[str, ...] = INTERVIEW_QUESTIONS
    phase: SessionPhase = SessionPhase.BASE
    question_index: int = 0
    followups_used: int = 0
    turns: tuple[ConversationTurn, ...] = ()
    pending: Optional[Literal["followup", "closing"]] = None
    started: bool = False

    @property
    def done(self) -> bool:
        return self.phase == SessionPhase.DONE

    @property
    def current_question(self) -> Optional[str]:
        if 0 <= self.question_index < len(self.questions):
            return self.questions[self.question_index]
        return None


def word_count(text: str) -> int:
    return len(text.split())


def should_request_followup(state: SessionState, answer: str) -> bool:
    """
    Decide whether an answer to the current base question earns a follow-up.

    Requires an unspent budget, a question outside the last two, an answer
    of at least ten words, and no "I don't know" / "not sure".
    """
    if state.followups_used >= FOLLOWUP_BUDGET:
        return False
    if state.question_index >= max(0, len(state.questions) - FOLLOWUP_TAIL_EXCLUSION):
        return False
    if word_count(answer) < MIN_FOLLOWUP_WORDS:
        return False
    lowered = answer.lower()
    return not any(phrase in lowered for phrase in UNCERTAIN_ANSWER_PHRASES)


def build_transcript(turns: tuple[ConversationTurn, ...] | list[ConversationTurn]) -> str:
    """
    Flatten turns into the plain-text transcript sent with the closing request.

    Example:
        >>> build_transcript([ConversationTurn(role="assistant", content="Hi"),
        ...                   ConversationTurn(role="user", content="Hello")])
        'Pixie: Hi\\nCandidate: Hello'
    """
    return "\n".join(
        f"Pixie: {t.content}" if t.role == "assistant" else f"Candidate: {t.content}"
        for t in turns
    )


# =============================================================================
# Transitions
# =============================================================================

Transition = tuple[SessionState, list[SessionEffect]]


def _with_turn(state: SessionState, role: Literal["assistant", "user"], text: str) -> SessionState:
    return replace(state, turns=state.turns + (ConversationTurn(role=role, content=text),))


def _say(state: SessionState, text: str) -> Transition:
    return _with_turn(state, "assistant", text), [EmitAssistantTurn(text)]


def _enter_closing(state: SessionState) -> Transition:
    state = replace(state, phase=SessionPhase.CLOSING, pending="closing")
    return state, [RequestClosing(build_transcript(state.turns))]


def _advance(state: SessionState) -> Transition:
    next_index = state.question_index + 1
    if next_index >= len(state.questions):
        return _enter_closing(state)
    state = replace(state, phase=SessionPhase.BASE, question_index=next_index)
    return _say(state, state.questions[next_index])


def _finish(state: SessionState, closing: str) -> Transition:
    state, effects = _say(state, closing)
    return replace(state, phase=SessionPhase.DONE, pending=None), effects


def _on_answer(state: SessionState, text: str) -> Transition:
    if not state.started or state.pending or state.phase in (SessionPhase.CLOSING, SessionPhase.DONE):
        return state, []
    answer = text.strip()
    if not answer:
        return state, []

    state = _with_turn(state, "user", answer)

    if state.phase == SessionPhase.FOLLOWUP:
        return _advance(state)

    question = state.current_question
    if question and should_request_followup(state, answer):
        return replace(state, pending="followup"), [RequestFollowup(question, answer)]
    return _advance(state)


def _on_followup_failed(state: SessionState, error: str) -> Transition:
    state, effects = _advance(replace(state, pending=None))
    return state, [ReportDiagnostic(error), *effects]


def _on_closing_failed(state: SessionState, error: str) -> Transition:
    state, effects = _finish(state, FALLBACK_CLOSING)
    return state, [ReportDiagnostic(error), *effects]


def apply(state: SessionState, event: SessionEvent) -> Transition:
    """
    Apply one event to the session state.

    Args:
        state: Current state.
        event: The event to apply.

    Returns:
        Tuple of (new_state, effects). Events that do not apply in the
        current state return the state unchanged with no effects.
    """
    if isinstance(event, SessionStarted):
        if state.started:
            return state, []
        state = replace(
            state,
            started=True,
            phase=SessionPhase.BASE,
            question_index=0,
            followups_used=0,
            turns=(),
            pending=None,
        )
        if not state.questions:
            return _enter_closing(state)
        return _say(state, state.questions[0])

    if isinstance(event, AnswerSubmitted):
        return _on_answer(state, event.text)

    if isinstance(event, (FollowupReceived, FollowupFailed)):
        if state.pending != "followup":
            return state, []
        if isinstance(event, FollowupFailed):
            return _on_followup_failed(state, event.error)
        followup = event.text.strip()
        if not followup:
            return _on_followup_failed(state, "Follow-up service returned an empty follow-up.")
        state = replace(
            state,
            pending=None,
            phase=SessionPhase.FOLLOWUP,
            followups_used=state.followups_used + 1,
        )
        return _say(state, followup)

    if isinstance(event, (ClosingReceived, ClosingFailed)):
        if state.pending != "closing":
            return state, []
        if isinstance(event, ClosingFailed):
            return _on_closing_failed(state, event.error)
        closing = event.text.strip()
        if not closing:
            return _on_closing_failed(state, "Closing service returned an empty closing.")
        return _finish(state, closing)

    raise TypeError(f"Unknown session event: {event!r}")


# =============================================================================
# Imperative Wrapper
# =============================================================================

class InterviewSession:
    """
    Holds the current ``SessionState`` and applies events to it.

    Example:
        >>> session = InterviewSession()
        >>> session.apply(SessionStarted())
        [EmitAssistantTurn(text='Tell me about yourself.')]
        >>> session.apply(AnswerSubmitted("Not sure."))
        [EmitAssistantTurn(text='Why are you interested in this role?')]
    """

    def __init__(self, questions: tuple[str, ...] = INTERVIEW_QUESTIONS) -> None:
        self._state = SessionState(questions=tuple(questions))

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return self._state.turns

    @property
    def done(self) -> bool:
        return self._state.done

    @property
    def transcript(self) -> str:
        return build_transcript(self._state.turns)

    def apply(self, event: SessionEvent) -> list[SessionEffect]:
        previous = self._state.phase
        self._state, effects = apply(self._state, event)
        if self._state.phase != previous:
            logger.debug(
                "Session phase %s -> %s (question %d)",
                previous.value,
                self._state.phase.value,
                self._state.question_index,
            )
        return effects
