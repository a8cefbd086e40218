"""
Tests for provider error classification.
"""

import json

import httpx
import openai
import pytest

from voicescribe.postprocess.errors import (
    ErrorKind,
    ProviderError,
    classify_exception,
    kind_from_message,
    kind_from_status,
    to_provider_error,
)

REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def status_response(code):
    return httpx.Response(code, request=REQUEST)


class TestStatusCodes:

    @pytest.mark.parametrize("code,kind", [
        (401, ErrorKind.UNAUTHORIZED),
        (403, ErrorKind.UNAUTHORIZED),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
        (400, ErrorKind.MALFORMED),
    ])
    def test_kind_from_status(self, code, kind):
        assert kind_from_status(code) == kind


class TestMessageSignatures:

    @pytest.mark.parametrize("message", [
        "429 Too Many Requests",
        "You exceeded your current quota",
        "RESOURCE_EXHAUSTED: try again later",
    ])
    def test_quota_messages(self, message):
        assert kind_from_message(message) == ErrorKind.RATE_LIMITED

    def test_unauthorized_message(self):
        assert kind_from_message("401 Unauthorized") == ErrorKind.UNAUTHORIZED

    def test_server_message(self):
        assert kind_from_message("upstream returned 502") == ErrorKind.SERVER_ERROR

    def test_timeout_message(self):
        assert kind_from_message("Request timed out") == ErrorKind.NETWORK_UNAVAILABLE

    def test_unknown_message(self):
        assert kind_from_message("something odd") == ErrorKind.MALFORMED


class TestClassifyException:

    def test_openai_rate_limit(self):
        error = openai.RateLimitError("slow down", response=status_response(429), body=None)
        assert classify_exception(error) == ErrorKind.RATE_LIMITED

    def test_openai_authentication(self):
        error = openai.AuthenticationError("bad key", response=status_response(401), body=None)
        assert classify_exception(error) == ErrorKind.UNAUTHORIZED

    def test_openai_server_error(self):
        error = openai.InternalServerError("oops", response=status_response(500), body=None)
        assert classify_exception(error) == ErrorKind.SERVER_ERROR

    def test_openai_connection_error(self):
        error = openai.APIConnectionError(request=REQUEST)
        assert classify_exception(error) == ErrorKind.NETWORK_UNAVAILABLE

    def test_openai_timeout(self):
        error = openai.APITimeoutError(request=REQUEST)
        assert classify_exception(error) == ErrorKind.NETWORK_UNAVAILABLE

    def test_httpx_status_error(self):
        response = status_response(429)
        error = httpx.HTTPStatusError("429", request=REQUEST, response=response)
        assert classify_exception(error) == ErrorKind.RATE_LIMITED

    def test_httpx_transport_error(self):
        assert classify_exception(httpx.ConnectError("refused")) == ErrorKind.NETWORK_UNAVAILABLE

    def test_json_error(self):
        with pytest.raises(json.JSONDecodeError) as exc_info:
            json.loads("<html>")
        assert classify_exception(exc_info.value) == ErrorKind.MALFORMED

    def test_builtin_connection_error(self):
        assert classify_exception(ConnectionError("reset")) == ErrorKind.NETWORK_UNAVAILABLE

    def test_generic_exception_uses_message(self):
        assert classify_exception(RuntimeError("RESOURCE_EXHAUSTED")) == ErrorKind.RATE_LIMITED

    def test_provider_error_keeps_kind(self):
        error = ProviderError("x", kind=ErrorKind.UNAUTHORIZED)
        assert classify_exception(error) == ErrorKind.UNAUTHORIZED


class TestProviderError:

    def test_to_provider_error_carries_status(self):
        error = openai.RateLimitError("slow down", response=status_response(429), body=None)

        wrapped = to_provider_error(error, "Groq")

        assert wrapped.kind == ErrorKind.RATE_LIMITED
        assert wrapped.status_code == 429
        assert wrapped.provider == "Groq"
        assert wrapped.is_rate_limited

    def test_to_provider_error_is_idempotent(self):
        error = ProviderError("x", kind=ErrorKind.MALFORMED)
        assert to_provider_error(error, "Other") is error

    def test_str_includes_provider_and_kind(self):
        error = ProviderError("invalid key", kind=ErrorKind.UNAUTHORIZED, provider="Gemini")
        assert str(error) == "Gemini: invalid key [unauthorized]"

    def test_empty_message_uses_class_name(self):
        wrapped = to_provider_error(TimeoutError(), "Gemini")
        assert str(wrapped) == "Gemini: TimeoutError [network_unavailable]"
