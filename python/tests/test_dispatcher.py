"""
Tests for the request dispatcher and failure classification.

The provider is an ``httpx.MockTransport`` that records every call, so the
tests can assert exactly which models were tried and with what payload.
"""

from __future__ import annotations

import httpx
import pytest

from pixie_interview.cache import ModelCache
from pixie_interview.dispatcher import (
    FailureKind,
    ProviderFailure,
    RequestDispatcher,
    classifier_for,
    classify_failure,
    parse_retry_seconds,
)
from pixie_interview.errors import (
    AllCandidatesExhaustedError,
    EmptyGenerationError,
    FatalProviderError,
)
from pixie_interview.models import Workload
from pixie_interview.provider import GenerativeLanguageClient, extract_text
from tests.mock_data import (
    AUDIO_NOT_ENABLED,
    INVALID_ARGUMENT,
    QUOTA_EXCEEDED,
    UNSUPPORTED_MODEL,
    FakeProvider,
    text_response,
)


PAYLOAD = {"contents": [{"role": "user", "parts": [{"text": "Hello"}]}]}


async def dispatch(provider, candidates, workload=Workload.NEXT, cache=None, payload=PAYLOAD):
    cache = cache if cache is not None else ModelCache()
    async with provider.http_client() as http:
        client = GenerativeLanguageClient("test-key", http)
        dispatcher = RequestDispatcher(client, cache, classifier_for(workload))
        return await dispatcher.dispatch(candidates, payload)


# =============================================================================
# Classification
# =============================================================================

class TestClassifyFailure:
    """Default substring classifier."""

    def test_rate_limit_is_retryable(self):
        failure = ProviderFailure(model="a", status_code=429, message="Quota exceeded")
        assert classify_failure(failure) == FailureKind.RETRYABLE

    @pytest.mark.parametrize(
        "message",
        [
            "models/x is NOT FOUND for API version v1beta",
            "Model foo is not supported for generateContent.",
        ],
    )
    def test_unsupported_model_is_retryable(self, message):
        failure = ProviderFailure(model="a", status_code=404, message=message)
        assert classify_failure(failure) == FailureKind.RETRYABLE

    def test_other_errors_are_fatal(self):
        failure = ProviderFailure(model="a", status_code=400, message="Invalid argument")
        assert classify_failure(failure) == FailureKind.FATAL

    def test_audio_modality_retryable_only_for_transcription(self):
        failure = ProviderFailure(
            model="a",
            status_code=400,
            message="Audio input modality is not enabled for this model.",
        )
        assert classifier_for(Workload.TRANSCRIBE)(failure) == FailureKind.RETRYABLE
        assert classifier_for(Workload.FOLLOWUP)(failure) == FailureKind.FATAL


class TestParseRetrySeconds:

    def test_parses_hint(self):
        assert parse_retry_seconds("Please retry in 12.5s.") == 12.5

    def test_case_insensitive(self):
        assert parse_retry_seconds("RETRY IN 3s") == 3.0

    @pytest.mark.parametrize("message", [None, "", "try again later", "retry in s"])
    def test_no_hint(self, message):
        assert parse_retry_seconds(message) is None


class TestExtractText:

    def test_joins_parts_and_trims(self):
        body = {"candidates": [{"content": {"parts": [{"text": "  Hello "}, {"text": "there  "}]}}]}
        assert extract_text(body) == "Hello there"

    def test_missing_candidates(self):
        assert extract_text({}) == ""
        assert extract_text({"candidates": []}) == ""

    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": {"content": "not a list"}},
            {"candidates": [{"content": "plain string"}]},
            {"candidates": [{"content": {"parts": "plain string"}}]},
            {"candidates": [{"content": {"parts": [{"text": 42}, {"text": None}, "raw"]}}]},
        ],
    )
    def test_malformed_bodies_yield_empty_text(self, body):
        assert extract_text(body) == ""

    def test_non_string_parts_skipped(self):
        body = {"candidates": [{"content": {"parts": [{"text": 7}, {"text": "kept"}]}}]}
        assert extract_text(body) == "kept"


# =============================================================================
# Dispatch
# =============================================================================

class TestRequestDispatcher:
    """Sequential fallback across candidate models."""

    @pytest.mark.asyncio
    async def test_rate_limited_first_candidate_falls_through(self):
        """First model 429s, second answers: result names the second."""
        provider = FakeProvider(
            replies={
                "a": [QUOTA_EXCEEDED],
                "b": [(200, text_response("hello"))],
            }
        )
        cache = ModelCache()

        result = await dispatch(provider, ["a", "b"], cache=cache)

        assert result.text == "hello"
        assert result.model_used == "b"
        assert cache.get() == "b"
        assert provider.models_tried == ["a", "b"]

    @pytest.mark.asyncio
    async def test_same_payload_sent_to_every_candidate(self):
        provider = FakeProvider(
            replies={
                "a": [QUOTA_EXCEEDED],
                "b": [UNSUPPORTED_MODEL],
                "c": [(200, text_response("ok"))],
            }
        )

        await dispatch(provider, ["a", "b", "c"])

        payloads = [body for _, body in provider.generate_calls]
        assert len(payloads) == 3
        assert all(body == PAYLOAD for body in payloads)

    @pytest.mark.asyncio
    async def test_first_success_stops_the_loop(self):
        provider = FakeProvider(
            replies={
                "a": [(200, text_response("first"))],
                "b": [(200, text_response("second"))],
            }
        )

        result = await dispatch(provider, ["a", "b"])

        assert result.model_used == "a"
        assert provider.models_tried == ["a"]

    @pytest.mark.asyncio
    async def test_fatal_error_stops_without_trying_later_candidates(self):
        provider = FakeProvider(
            replies={
                "a": [INVALID_ARGUMENT],
                "b": [(200, text_response("never"))],
            }
        )
        cache = ModelCache()

        with pytest.raises(FatalProviderError) as exc_info:
            await dispatch(provider, ["a", "b"], cache=cache)

        assert provider.models_tried == ["a"]
        assert exc_info.value.provider_status == 400
        assert exc_info.value.model == "a"
        assert "invalid argument" in exc_info.value.message
        assert cache.get() is None

    @pytest.mark.asyncio
    async def test_empty_text_is_fatal(self):
        provider = FakeProvider(
            replies={
                "a": [(200, text_response("   "))],
                "b": [(200, text_response("never"))],
            }
        )
        cache = ModelCache()

        with pytest.raises(EmptyGenerationError):
            await dispatch(provider, ["a", "b"], cache=cache)

        assert provider.models_tried == ["a"]
        assert cache.get() is None

    @pytest.mark.asyncio
    async def test_malformed_success_body_is_empty_generation(self):
        provider = FakeProvider(
            replies={
                "a": [(200, {"candidates": [{"content": "plain string"}]})],
                "b": [(200, text_response("never"))],
            }
        )

        with pytest.raises(EmptyGenerationError):
            await dispatch(provider, ["a", "b"])

        assert provider.models_tried == ["a"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [httpx.ConnectError, httpx.ReadTimeout])
    async def test_transport_error_is_fatal_with_502(self, error):
        provider = FakeProvider(
            replies={"b": [(200, text_response("never"))]},
            transport_errors={"a": error},
        )
        cache = ModelCache()

        with pytest.raises(FatalProviderError) as exc_info:
            await dispatch(provider, ["a", "b"], cache=cache)

        assert exc_info.value.provider_status == 502
        assert exc_info.value.status_code == 500
        assert exc_info.value.model == "a"
        assert exc_info.value.error_code == "PROVIDER_ERROR"
        assert provider.models_tried == ["a"]
        assert cache.get() is None

    @pytest.mark.asyncio
    async def test_exhausted_by_rate_limits_reports_429(self):
        provider = FakeProvider(replies={"a": [QUOTA_EXCEEDED], "b": [QUOTA_EXCEEDED]})

        with pytest.raises(AllCandidatesExhaustedError) as exc_info:
            await dispatch(provider, ["a", "b"])

        error = exc_info.value
        assert error.status_code == 429
        assert error.provider_status == 429
        assert error.model == "b"
        assert error.retry_after_seconds == 12.5

    @pytest.mark.asyncio
    async def test_exhausted_by_unsupported_models_reports_500(self):
        provider = FakeProvider(replies={"a": [UNSUPPORTED_MODEL]})

        with pytest.raises(AllCandidatesExhaustedError) as exc_info:
            await dispatch(provider, ["a"])

        assert exc_info.value.status_code == 500
        assert exc_info.value.provider_status == 404

    @pytest.mark.asyncio
    async def test_retry_hint_survives_later_failure_without_hint(self):
        provider = FakeProvider(replies={"a": [QUOTA_EXCEEDED], "b": [UNSUPPORTED_MODEL]})

        with pytest.raises(AllCandidatesExhaustedError) as exc_info:
            await dispatch(provider, ["a", "b"])

        assert exc_info.value.retry_after_seconds == 12.5
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_empty_candidate_list(self):
        provider = FakeProvider()

        with pytest.raises(AllCandidatesExhaustedError) as exc_info:
            await dispatch(provider, [])

        assert exc_info.value.status_code == 500
        assert provider.generate_calls == []

    @pytest.mark.asyncio
    async def test_transcription_skips_models_without_audio_input(self):
        provider = FakeProvider(
            replies={
                "text-only": [AUDIO_NOT_ENABLED],
                "audio-model": [(200, text_response("transcribed words"))],
            }
        )

        result = await dispatch(provider, ["text-only", "audio-model"], workload=Workload.TRANSCRIBE)

        assert result.model_used == "audio-model"
        assert provider.models_tried == ["text-only", "audio-model"]

    @pytest.mark.asyncio
    async def test_audio_error_is_fatal_for_text_workloads(self):
        provider = FakeProvider(
            replies={
                "text-only": [AUDIO_NOT_ENABLED],
                "other": [(200, text_response("never"))],
            }
        )

        with pytest.raises(FatalProviderError):
            await dispatch(provider, ["text-only", "other"], workload=Workload.CLOSING)

        assert provider.models_tried == ["text-only"]

    @pytest.mark.asyncio
    async def test_custom_classifier(self):
        """A classifier that retries everything walks the whole list."""
        provider = FakeProvider(
            replies={
                "a": [INVALID_ARGUMENT],
                "b": [(200, text_response("ok"))],
            }
        )
        async with provider.http_client() as http:
            client = GenerativeLanguageClient("test-key", http)
            dispatcher = RequestDispatcher(client, ModelCache(), lambda failure: FailureKind.RETRYABLE)
            result = await dispatcher.dispatch(["a", "b"], PAYLOAD)

        assert result.model_used == "b"

    @pytest.mark.asyncio
    async def test_requests_carry_api_key_and_model_path(self):
        provider = FakeProvider(replies={"gemini-1.5-flash": [(200, text_response("ok"))]})

        await dispatch(provider, ["gemini-1.5-flash"])

        request = provider.requests[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/models/gemini-1.5-flash:generateContent")
        assert request.url.params["key"] == "test-key"
