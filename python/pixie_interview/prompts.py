"""
Prompt text and ``generateContent`` request bodies for each workload.
"""

from __future__ import annotations

import base64
from typing import Any, Iterable, Optional

from .models import ConversationTurn


# =============================================================================
# Instructions
# =============================================================================

NEXT_SYSTEM_INSTRUCTION = (
    "You are Pixie, an AI interviewer. Keep a professional, friendly tone. "
    "Ask exactly one question at a time. Do not mention any hidden question list. "
    "Do not include markdown. Keep it concise."
)

NEXT_DONE_PROMPT = (
    "The interview questions are complete. "
    "Give a short closing statement and thank the candidate."
)

FOLLOWUP_INSTRUCTION = (
    "You are Pixie, an AI interviewer. Based on the candidate's answer, ask exactly one "
    "short, specific follow-up question that digs deeper into what they said. "
    "Do not repeat the original question. No markdown, plain text only."
)

CLOSING_INSTRUCTION = (
    "You are Pixie, an AI interviewer. Provide a short friendly closing statement "
    "and 2-3 bullet-less feedback points. No markdown, no headings, plain text only."
)

TRANSCRIBE_PROMPT = (
    "Transcribe the following audio into plain text. "
    "Return only the transcript, no extra commentary."
)


def _user_text(text: str) -> dict[str, Any]:
    return {"role": "user", "parts": [{"text": text}]}


# =============================================================================
# Request Bodies
# =============================================================================

def build_next_payload(
    history: Iterable[ConversationTurn],
    next_question: Optional[str],
) -> dict[str, Any]:
    """
    Build the request for the next interviewer turn.

    The transcript is replayed with assistant turns mapped to the provider's
    ``model`` role, and the instruction is appended as a final user turn.
    ``next_question=None`` asks for a closing statement instead.
    """
    contents: list[dict[str, Any]] = [
        {
            "role": "model" if turn.role == "assistant" else "user",
            "parts": [{"text": turn.content}],
        }
        for turn in history
    ]

    if next_question is None:
        prompt = NEXT_DONE_PROMPT
    else:
        prompt = (
            f'Ask the candidate the next interview question: "{next_question}". '
            "If the candidate just answered something, briefly acknowledge it in one short sentence, "
            "then ask the next question. Do not ask multiple questions."
        )
    contents.append(_user_text(prompt))

    return {
        "systemInstruction": {"parts": [{"text": NEXT_SYSTEM_INSTRUCTION}]},
        "contents": contents,
    }


def build_followup_payload(question: str, answer: str) -> dict[str, Any]:
    prompt = (
        f"{FOLLOWUP_INSTRUCTION}\n\n"
        f"Interview question: {question}\n"
        f"Candidate answer: {answer}"
    )
    return {"contents": [_user_text(prompt)]}


def build_closing_payload(transcript: str) -> dict[str, Any]:
    prompt = (
        "Here is the interview transcript (Pixie and candidate). "
        "Provide a short closing statement and 2-3 feedback points:\n\n"
        f"{transcript}"
    )
    return {"contents": [_user_text(f"{CLOSING_INSTRUCTION}\n\n{prompt}")]}


def build_transcribe_payload(audio: bytes, mime_type: str) -> dict[str, Any]:
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": TRANSCRIBE_PROMPT},
                    {
                        "inlineData": {
                            "mimeType": mime_type,
                            "data": base64.b64encode(audio).decode("ascii"),
                        }
                    },
                ],
            }
        ]
    }
