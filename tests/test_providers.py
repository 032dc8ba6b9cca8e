"""
Tests for the LLM provider clients.

Tests cover:
- Request shape per vendor (endpoint, auth, body)
- Text extraction from successful responses
- Mapping of HTTP failures onto the error taxonomy
- Credential validation
"""

import json

import httpx
import pytest

from postpilot.ai.llm_providers import (
    ClaudeProvider,
    GeminiProvider,
    GrokProvider,
    OpenAIProvider,
    ProviderConfig,
)
from postpilot.ai.llm_providers.base import extract_path, parse_retry_delay
from postpilot.exceptions import (
    BadRequest,
    InvalidCredentials,
    MalformedResponse,
    MissingCredentials,
    QuotaExceeded,
    RateLimited,
    TransientNetworkError,
)

from conftest import RecordingHandler, make_client, openai_reply


def claude_reply(text):
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


def gemini_reply(text):
    return httpx.Response(200, json={
        "candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]
    })


SUCCESS = {
    OpenAIProvider: openai_reply,
    GrokProvider: openai_reply,
    ClaudeProvider: claude_reply,
    GeminiProvider: gemini_reply,
}

ALL_PROVIDERS = [OpenAIProvider, ClaudeProvider, GeminiProvider, GrokProvider]


def build(provider_class, handler, api_key="key-123", **kwargs):
    name = provider_class.__name__.replace("Provider", "").lower()
    config = ProviderConfig(provider_id=name, api_key=api_key, **kwargs)
    return provider_class(config, client=make_client(handler))


class TestRequestShape:
    """Each vendor gets its own endpoint, auth scheme and body."""

    def test_openai_request(self):
        """OpenAI uses a bearer token and a chat completions body."""
        handler = RecordingHandler(openai_reply("ok"))
        build(OpenAIProvider, handler).generate("Say hi")

        request = handler.requests[0]
        body = json.loads(request.content)
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer key-123"
        assert body["model"] == "gpt-4o"
        assert body["messages"] == [{"role": "user", "content": "Say hi"}]
        assert body["max_tokens"] == 500

    def test_claude_request(self):
        """Claude sends the key in x-api-key with a pinned API version."""
        handler = RecordingHandler(claude_reply("ok"))
        build(ClaudeProvider, handler).generate("Say hi")

        request = handler.requests[0]
        body = json.loads(request.content)
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "key-123"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert "authorization" not in request.headers
        assert body["model"] == "claude-3-5-sonnet-20241022"
        assert body["max_tokens"] == 1024

    def test_gemini_request(self):
        """Gemini puts the model in the path and the key in the query string."""
        handler = RecordingHandler(gemini_reply("ok"))
        build(GeminiProvider, handler, model="gemini-pro").generate("Say hi")

        request = handler.requests[0]
        body = json.loads(request.content)
        assert request.url.host == "generativelanguage.googleapis.com"
        assert request.url.path == "/v1/models/gemini-pro:generateContent"
        assert request.url.params["key"] == "key-123"
        assert "authorization" not in request.headers
        assert body["contents"][0]["parts"][0]["text"] == "Say hi"
        assert body["generationConfig"]["maxOutputTokens"] == 2048

    def test_grok_request(self):
        """Grok speaks the OpenAI format on the xAI endpoint."""
        handler = RecordingHandler(openai_reply("ok"))
        provider = build(GrokProvider, handler)
        provider.generate("Say hi")

        request = handler.requests[0]
        body = json.loads(request.content)
        assert str(request.url) == "https://api.x.ai/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer key-123"
        assert body["model"] == "grok-beta"
        assert provider.timeout == 60.0

    def test_model_override(self):
        """A configured model replaces the vendor default."""
        handler = RecordingHandler(openai_reply("ok"))
        build(OpenAIProvider, handler, model="gpt-4o-mini").generate("x")
        assert json.loads(handler.requests[0].content)["model"] == "gpt-4o-mini"


class TestExtraction:
    """Generated text is pulled from each vendor's response layout."""

    @pytest.mark.parametrize("provider_class", ALL_PROVIDERS)
    def test_text_is_extracted_and_trimmed(self, provider_class):
        """The generated text comes back without surrounding whitespace."""
        handler = RecordingHandler(SUCCESS[provider_class]("  Generated text \n"))
        assert build(provider_class, handler).generate("x") == "Generated text"

    def test_missing_text_field_is_malformed(self):
        """A 200 without the expected field raises MalformedResponse."""
        handler = RecordingHandler(httpx.Response(200, json={"choices": []}))
        with pytest.raises(MalformedResponse):
            build(OpenAIProvider, handler).generate("x")

    def test_non_json_body_is_malformed(self):
        """A 200 that is not JSON raises MalformedResponse."""
        handler = RecordingHandler(httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(MalformedResponse):
            build(ClaudeProvider, handler).generate("x")


class TestErrorMapping:
    """Non-200 responses and transport failures map onto typed errors."""

    @pytest.mark.parametrize("provider_class", ALL_PROVIDERS)
    def test_401_is_invalid_credentials(self, provider_class):
        """A 401 is a credential problem for every vendor, never a network error."""
        handler = RecordingHandler(httpx.Response(401, json={"error": {"message": "bad key"}}))
        with pytest.raises(InvalidCredentials) as exc_info:
            build(provider_class, handler).generate("x")

        assert not isinstance(exc_info.value, TransientNetworkError)
        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "invalid_api_key"

    def test_403_is_invalid_credentials(self):
        """A 403 is treated like a 401."""
        handler = RecordingHandler(httpx.Response(403, json={"error": {"message": "forbidden"}}))
        with pytest.raises(InvalidCredentials):
            build(GeminiProvider, handler).generate("x")

    def test_429_with_quota_message(self):
        """A 429 mentioning quota is QuotaExceeded."""
        handler = RecordingHandler(httpx.Response(
            429, json={"error": {"message": "You exceeded your current quota"}}
        ))
        with pytest.raises(QuotaExceeded) as exc_info:
            build(OpenAIProvider, handler).generate("x")
        assert exc_info.value.to_dict()["quota_exceeded"] is True

    def test_429_without_quota_message(self):
        """A plain 429 is RateLimited with the Retry-After delay."""
        handler = RecordingHandler(httpx.Response(
            429,
            headers={"Retry-After": "20"},
            json={"error": {"message": "Rate limit reached"}},
        ))
        with pytest.raises(RateLimited) as exc_info:
            build(OpenAIProvider, handler).generate("x")

        assert exc_info.value.retry_after == 20
        assert exc_info.value.retryable
        assert exc_info.value.to_dict()["wait_time"] == 20

    def test_gemini_resource_exhausted_is_quota(self):
        """Gemini's RESOURCE_EXHAUSTED status counts as quota."""
        handler = RecordingHandler(httpx.Response(429, json={
            "error": {"code": 429, "message": "Slow down", "status": "RESOURCE_EXHAUSTED"}
        }))
        with pytest.raises(QuotaExceeded):
            build(GeminiProvider, handler).generate("x")

    def test_gemini_retry_info(self):
        """Gemini's RetryInfo detail supplies the wait time."""
        handler = RecordingHandler(httpx.Response(429, json={
            "error": {
                "message": "Too many requests",
                "details": [
                    {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "37s"},
                ],
            }
        }))
        with pytest.raises(RateLimited) as exc_info:
            build(GeminiProvider, handler).generate("x")
        assert exc_info.value.retry_after == 37

    def test_400_is_bad_request(self):
        """A 400 passes the vendor message through."""
        handler = RecordingHandler(httpx.Response(
            400, json={"error": {"message": "max_tokens is too large"}}
        ))
        with pytest.raises(BadRequest) as exc_info:
            build(ClaudeProvider, handler).generate("x")
        assert "max_tokens is too large" in exc_info.value.message

    def test_quota_message_on_other_status(self):
        """A quota message on a non-429 status is still QuotaExceeded."""
        handler = RecordingHandler(httpx.Response(
            402, json={"error": {"message": "insufficient quota"}}
        ))
        with pytest.raises(QuotaExceeded):
            build(OpenAIProvider, handler).generate("x")

    def test_500_is_transient(self):
        """Server errors are retryable and carry the status code."""
        handler = RecordingHandler(httpx.Response(500, text="oops"))
        with pytest.raises(TransientNetworkError) as exc_info:
            build(GrokProvider, handler).generate("x")

        assert exc_info.value.retryable
        assert exc_info.value.status_code == 500
        assert "(Code: 500)" in exc_info.value.message

    def test_timeout_is_transient(self):
        """A timeout becomes TransientNetworkError."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransientNetworkError):
            build(OpenAIProvider, handler).generate("x")

    def test_connection_error_is_transient(self):
        """A connection failure becomes TransientNetworkError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransientNetworkError):
            build(ClaudeProvider, handler).generate("x")

    def test_missing_key_makes_no_request(self):
        """Without a key the vendor is never contacted."""
        handler = RecordingHandler(openai_reply("ok"))
        with pytest.raises(MissingCredentials):
            build(OpenAIProvider, handler, api_key=None).generate("x")
        assert handler.calls == 0


class TestValidation:
    """validate_credentials() sends a minimal prompt."""

    def test_valid_key(self):
        """An accepted key returns True."""
        handler = RecordingHandler(claude_reply("Hi"))
        assert build(ClaudeProvider, handler).validate_credentials() is True
        assert handler.prompt() == "Hello"

    def test_explicit_key_is_used(self):
        """A key passed in replaces the configured one."""
        handler = RecordingHandler(openai_reply("Hi"))
        build(OpenAIProvider, handler).validate_credentials("sk-other")
        assert handler.requests[0].headers["authorization"] == "Bearer sk-other"

    def test_rejected_key(self):
        """A rejected key raises InvalidCredentials."""
        handler = RecordingHandler(httpx.Response(401, json={"error": "unauthorized"}))
        with pytest.raises(InvalidCredentials):
            build(GeminiProvider, handler).validate_credentials()


class TestLifecycle:
    """Providers own their HTTP client only when they created it."""

    def test_shared_client_not_closed(self):
        """A client passed in stays open after the context exits."""
        client = make_client(RecordingHandler(openai_reply("ok")))
        provider = OpenAIProvider(ProviderConfig(provider_id="openai", api_key="k"), client=client)
        with provider:
            provider.generate("x")
        assert not client.is_closed

    def test_own_client_closed(self):
        """A client created by initialize() is closed by cleanup()."""
        provider = OpenAIProvider(ProviderConfig(provider_id="openai", api_key="k"))
        provider.initialize()
        client = provider._client
        provider.cleanup()
        assert client.is_closed
        assert provider._client is None


class TestHelpers:
    """Small parsing helpers."""

    def test_extract_path(self):
        """Paths walk dicts and lists and stop at the first gap."""
        data = {"a": [{"b": "x"}]}
        assert extract_path(data, ("a", 0, "b")) == "x"
        assert extract_path(data, ("a", 1, "b")) is None
        assert extract_path(data, ("a", "b")) is None
        assert extract_path(None, ("a",)) is None

    def test_parse_retry_delay(self):
        """Delays round up to whole seconds."""
        assert parse_retry_delay("30s") == 30
        assert parse_retry_delay("1.5s") == 2
        assert parse_retry_delay("12") == 12
        assert parse_retry_delay("soon") is None
        assert parse_retry_delay(None) is None
