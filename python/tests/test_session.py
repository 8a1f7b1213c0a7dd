"""
Tests for the interview session state machine.

The machine is pure, so every test drives ``apply`` (or the
``InterviewSession`` wrapper) with events and checks the returned effects.
"""

from __future__ import annotations

import pytest

from pixie_interview.models import ConversationTurn, SessionPhase
from pixie_interview.questions import INTERVIEW_QUESTIONS
from pixie_interview.session import (
    FALLBACK_CLOSING,
    FOLLOWUP_BUDGET,
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
    apply,
    build_transcript,
    should_request_followup,
)
from tests.mock_data import LONG_ANSWER, SHORT_ANSWER, UNSURE_ANSWER


def emitted(effects):
    return [effect.text for effect in effects if isinstance(effect, EmitAssistantTurn)]


def started_session() -> InterviewSession:
    session = InterviewSession()
    session.apply(SessionStarted())
    return session


# =============================================================================
# Follow-up Eligibility
# =============================================================================

class TestShouldRequestFollowup:
    """Follow-up rule: budget, tail exclusion, length, uncertainty."""

    def test_long_answer_on_first_question(self):
        assert should_request_followup(SessionState(), LONG_ANSWER) is True

    def test_short_answer(self):
        assert should_request_followup(SessionState(), SHORT_ANSWER) is False

    def test_exactly_ten_words(self):
        answer = "one two three four five six seven eight nine ten"
        assert should_request_followup(SessionState(), answer) is True
        assert should_request_followup(SessionState(), answer.rsplit(" ", 1)[0]) is False

    @pytest.mark.parametrize(
        "answer",
        [
            UNSURE_ANSWER,
            "I don't know, I have never really thought about that particular thing before.",
            "NOT SURE really, but I would probably try a few different approaches first.",
        ],
    )
    def test_uncertain_answers(self, answer):
        assert should_request_followup(SessionState(), answer) is False

    @pytest.mark.parametrize("index", [len(INTERVIEW_QUESTIONS) - 2, len(INTERVIEW_QUESTIONS) - 1])
    def test_last_two_questions_excluded(self, index):
        state = SessionState(question_index=index)
        assert should_request_followup(state, LONG_ANSWER) is False

    def test_budget_exhausted(self):
        state = SessionState(followups_used=FOLLOWUP_BUDGET)
        assert should_request_followup(state, LONG_ANSWER) is False


# =============================================================================
# Transitions
# =============================================================================

class TestSessionFlow:
    """End-to-end walks through the state machine."""

    def test_start_asks_first_question(self):
        session = InterviewSession()
        effects = session.apply(SessionStarted())

        assert emitted(effects) == [INTERVIEW_QUESTIONS[0]]
        assert session.phase == SessionPhase.BASE
        assert session.turns == (ConversationTurn(role="assistant", content=INTERVIEW_QUESTIONS[0]),)

    def test_second_start_is_ignored(self):
        session = started_session()
        assert session.apply(SessionStarted()) == []
        assert len(session.turns) == 1

    def test_answer_before_start_is_ignored(self):
        state, effects = apply(SessionState(), AnswerSubmitted(LONG_ANSWER))
        assert effects == []
        assert state.turns == ()

    def test_blank_answer_is_ignored(self):
        session = started_session()
        assert session.apply(AnswerSubmitted("   ")) == []
        assert len(session.turns) == 1

    def test_unsure_answers_walk_all_questions_then_close(self):
        """Six scripted questions, no follow-ups, one closing request."""
        session = InterviewSession()
        asked = emitted(session.apply(SessionStarted()))
        closing_requests = []

        for _ in INTERVIEW_QUESTIONS:
            effects = session.apply(AnswerSubmitted("Not sure."))
            asked.extend(emitted(effects))
            closing_requests.extend(e for e in effects if isinstance(e, RequestClosing))
            assert not any(isinstance(e, RequestFollowup) for e in effects)

        assert asked == list(INTERVIEW_QUESTIONS)
        assert len(closing_requests) == 1
        assert session.phase == SessionPhase.CLOSING

        effects = session.apply(ClosingReceived("Thanks, that was great."))
        assert emitted(effects) == ["Thanks, that was great."]
        assert session.done

    def test_closing_request_carries_transcript(self):
        session = started_session()
        effects = []
        for _ in INTERVIEW_QUESTIONS:
            effects = session.apply(AnswerSubmitted(SHORT_ANSWER))

        [request] = effects
        assert isinstance(request, RequestClosing)
        assert request.transcript.startswith(f"Pixie: {INTERVIEW_QUESTIONS[0]}\nCandidate: {SHORT_ANSWER}")
        assert request.transcript == session.transcript

    def test_long_first_answer_requests_exactly_one_followup(self):
        session = started_session()

        effects = session.apply(AnswerSubmitted(LONG_ANSWER))

        assert effects == [RequestFollowup(INTERVIEW_QUESTIONS[0], LONG_ANSWER)]
        assert session.state.pending == "followup"
        assert session.phase == SessionPhase.BASE

    def test_followup_then_answer_advances(self):
        session = started_session()
        session.apply(AnswerSubmitted(LONG_ANSWER))

        effects = session.apply(FollowupReceived("Which pipeline are you proudest of?"))
        assert emitted(effects) == ["Which pipeline are you proudest of?"]
        assert session.phase == SessionPhase.FOLLOWUP
        assert session.state.followups_used == 1

        # A long answer to a follow-up never chains another follow-up.
        effects = session.apply(AnswerSubmitted(LONG_ANSWER))
        assert emitted(effects) == [INTERVIEW_QUESTIONS[1]]
        assert session.phase == SessionPhase.BASE
        assert session.state.question_index == 1

    def test_answers_ignored_while_followup_pending(self):
        session = started_session()
        session.apply(AnswerSubmitted(LONG_ANSWER))
        turns = session.turns

        assert session.apply(AnswerSubmitted(SHORT_ANSWER)) == []
        assert session.turns == turns

    def test_followup_budget_caps_at_two(self):
        session = started_session()
        followup_requests = 0

        for _ in INTERVIEW_QUESTIONS:
            effects = session.apply(AnswerSubmitted(LONG_ANSWER))
            if any(isinstance(e, RequestFollowup) for e in effects):
                followup_requests += 1
                session.apply(FollowupReceived("Tell me more?"))
                session.apply(AnswerSubmitted(SHORT_ANSWER))

        assert followup_requests == FOLLOWUP_BUDGET
        assert session.state.followups_used == FOLLOWUP_BUDGET
        assert session.phase == SessionPhase.CLOSING

    def test_no_followup_on_last_two_questions(self):
        session = started_session()
        # Short answers up to the fifth question.
        for _ in range(len(INTERVIEW_QUESTIONS) - 2):
            session.apply(AnswerSubmitted(SHORT_ANSWER))
        assert session.state.question_index == len(INTERVIEW_QUESTIONS) - 2

        effects = session.apply(AnswerSubmitted(LONG_ANSWER))
        assert emitted(effects) == [INTERVIEW_QUESTIONS[-1]]

        effects = session.apply(AnswerSubmitted(LONG_ANSWER))
        assert [type(e) for e in effects] == [RequestClosing]

    def test_empty_question_list_goes_straight_to_closing(self):
        session = InterviewSession(questions=())
        effects = session.apply(SessionStarted())
        assert effects == [RequestClosing("")]
        assert session.phase == SessionPhase.CLOSING


class TestSessionFailures:
    """Downstream failures fall back without stopping the interview."""

    def test_followup_failure_advances_with_diagnostic(self):
        session = started_session()
        session.apply(AnswerSubmitted(LONG_ANSWER))

        effects = session.apply(FollowupFailed("Follow-up service failed."))

        assert effects[0] == ReportDiagnostic("Follow-up service failed.")
        assert emitted(effects) == [INTERVIEW_QUESTIONS[1]]
        assert session.state.followups_used == 0
        assert session.state.pending is None

    def test_followup_failure_on_last_question_requests_closing(self):
        """Short script: a failed follow-up past the end asks for a generated closing."""
        turns = (
            ConversationTurn(role="assistant", content="Only question."),
            ConversationTurn(role="user", content=LONG_ANSWER),
        )
        state = SessionState(
            questions=("Only question.",),
            started=True,
            turns=turns,
            pending="followup",
        )

        state, effects = apply(state, FollowupFailed("Follow-up service failed."))

        assert effects == [
            ReportDiagnostic("Follow-up service failed."),
            RequestClosing(build_transcript(turns)),
        ]
        assert state.phase == SessionPhase.CLOSING
        assert state.pending == "closing"
        assert FALLBACK_CLOSING not in emitted(effects)

        state, effects = apply(state, ClosingReceived("Thanks, goodbye."))
        assert emitted(effects) == ["Thanks, goodbye."]
        assert state.done

    def test_empty_followup_counts_as_failure(self):
        session = started_session()
        session.apply(AnswerSubmitted(LONG_ANSWER))

        effects = session.apply(FollowupReceived("  "))

        assert any(isinstance(e, ReportDiagnostic) for e in effects)
        assert emitted(effects) == [INTERVIEW_QUESTIONS[1]]

    def test_closing_failure_emits_fallback_and_finishes(self):
        session = started_session()
        for _ in INTERVIEW_QUESTIONS:
            session.apply(AnswerSubmitted(SHORT_ANSWER))

        effects = session.apply(ClosingFailed("Closing service failed. Try again in ~13s."))

        assert effects[0] == ReportDiagnostic("Closing service failed. Try again in ~13s.")
        assert emitted(effects) == [FALLBACK_CLOSING]
        assert session.done
        assert session.turns[-1].content == FALLBACK_CLOSING

    def test_empty_closing_uses_fallback(self):
        session = started_session()
        for _ in INTERVIEW_QUESTIONS:
            session.apply(AnswerSubmitted(SHORT_ANSWER))

        effects = session.apply(ClosingReceived(""))

        assert emitted(effects) == [FALLBACK_CLOSING]
        assert session.done

    def test_done_session_ignores_everything(self):
        session = started_session()
        for _ in INTERVIEW_QUESTIONS:
            session.apply(AnswerSubmitted(SHORT_ANSWER))
        session.apply(ClosingReceived("Bye."))
        turns = session.turns

        assert session.apply(AnswerSubmitted(LONG_ANSWER)) == []
        assert session.apply(ClosingReceived("Again?")) == []
        assert session.apply(FollowupReceived("Late follow-up")) == []
        assert session.turns == turns

    def test_stray_replies_are_ignored(self):
        session = started_session()
        assert session.apply(FollowupReceived("Unrequested")) == []
        assert session.apply(ClosingReceived("Unrequested")) == []
        assert len(session.turns) == 1

    def test_unknown_event_raises(self):
        with pytest.raises(TypeError):
            apply(SessionState(), object())


class TestBuildTranscript:

    def test_labels_speakers(self):
        turns = [
            ConversationTurn(role="assistant", content="Tell me about yourself."),
            ConversationTurn(role="user", content="I write Python."),
        ]
        assert build_transcript(turns) == "Pixie: Tell me about yourself.\nCandidate: I write Python."

    def test_empty(self):
        assert build_transcript([]) == ""
