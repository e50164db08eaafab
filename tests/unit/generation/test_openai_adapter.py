"""
Unit tests for the OpenAI adapter.

Coverage:
- Request shape and response normalization through a scripted SDK client.
- Native error code/type, HTTP status, and transport failure mapping.
- Per-model client caching and config updates.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field

import pytest

from pr_describer.generation.providers.base import (
    GenerationOptions,
    ProviderConfig,
    ProviderProtocol,
)
from pr_describer.generation.providers.errors import ProviderError, ProviderErrorCode
from pr_describer.generation.providers.openai_adapter import OpenAIAdapter, OpenAIProvider

pytestmark = pytest.mark.unit


@dataclass(slots=True)
class _ScriptedCompletions:
    outcomes: deque[object | Exception]
    calls: list[dict[str, object]] = field(default_factory=list)
    delay: float = 0.0

    async def create(self, **kwargs: object) -> object:
        self.calls.append(dict(kwargs))
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.outcomes:
            raise RuntimeError("scripted openai outcomes exhausted")
        outcome = self.outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@dataclass(slots=True)
class _FakeChat:
    completions: _ScriptedCompletions


@dataclass(slots=True)
class _FakeOpenAIClient:
    chat: _FakeChat
    closed: bool = False

    async def close(self) -> None:
        self.closed = True


@dataclass(slots=True)
class _ClientFactory:
    completions: _ScriptedCompletions
    built: list[tuple[str, _FakeOpenAIClient]] = field(default_factory=list)

    def __call__(self, config: ProviderConfig, model: str) -> _FakeOpenAIClient:
        client = _FakeOpenAIClient(chat=_FakeChat(completions=self.completions))
        self.built.append((model, client))
        return client


class AuthenticationError(Exception):
    status_code = 401

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.body = {"code": "invalid_api_key", "type": "invalid_request_error"}


class APIStatusError(Exception):
    def __init__(self, status_code: int, body: object = None) -> None:
        super().__init__(f"status {status_code}")
        self.status_code = status_code
        self.body = body


class APIConnectionError(Exception):
    pass


def _completion(
    text: str | None, *, finish_reason: str = "stop", usage: object = None
) -> dict[str, object]:
    return {
        "id": "chatcmpl-42",
        "model": "gpt-4o-2024-05-13",
        "choices": [{"message": {"content": text}, "finish_reason": finish_reason}],
        "usage": usage if usage is not None else {"total_tokens": 120},
    }


def _provider(
    *outcomes: object, timeout_seconds: float | None = None
) -> tuple[OpenAIProvider, _ClientFactory]:
    factory = _ClientFactory(completions=_ScriptedCompletions(outcomes=deque(outcomes)))
    provider = OpenAIProvider(
        ProviderConfig(api_key="sk-test", timeout_seconds=timeout_seconds),
        client_factory=factory,
    )
    return provider, factory


async def test_generate_sends_chat_request_and_normalizes_response() -> None:
    provider, factory = _provider(_completion("  ## Summary\nAdds caching.  "))

    result = await provider.generate(
        GenerationOptions(
            model="gpt-4o",
            max_tokens=300,
            temperature=0.2,
            template_data={"DIFF_CONTENT": "+cache = {}"},
        )
    )

    call = factory.completions.calls[0]
    assert call["model"] == "gpt-4o"
    assert call["max_tokens"] == 300
    assert call["temperature"] == 0.2
    messages = call["messages"]
    assert isinstance(messages, list)
    assert messages[0]["role"] == "user"
    assert "+cache = {}" in messages[0]["content"]
    assert result.description == "## Summary\nAdds caching."
    assert result.model == "gpt-4o-2024-05-13"
    assert result.tokens_used == 120
    assert result.metadata == {"finish_reason": "stop", "response_id": "chatcmpl-42"}


async def test_defaults_apply_when_options_are_omitted() -> None:
    provider, factory = _provider(_completion("ok"))

    await provider.generate()

    call = factory.completions.calls[0]
    assert call["model"] == "gpt-3.5-turbo"
    assert call["max_tokens"] == 1000
    assert call["temperature"] == 0.7


def test_missing_api_key_is_rejected_at_construction() -> None:
    with pytest.raises(ProviderError) as exc_info:
        OpenAIProvider(ProviderConfig(api_key="  "))

    assert exc_info.value.code is ProviderErrorCode.INVALID_API_KEY


def test_adapter_satisfies_provider_protocol() -> None:
    provider, _ = _provider()

    assert isinstance(provider, ProviderProtocol)
    assert OpenAIAdapter is OpenAIProvider
    assert provider.get_config().model == "gpt-3.5-turbo"
    assert provider.get_config().max_retries == 3


async def test_empty_content_is_invalid_request() -> None:
    provider, _ = _provider(_completion(""))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate()

    assert exc_info.value.code is ProviderErrorCode.INVALID_REQUEST


async def test_content_filter_finish_reason_maps_to_content_filter() -> None:
    provider, _ = _provider(_completion(None, finish_reason="content_filter"))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate()

    assert exc_info.value.code is ProviderErrorCode.CONTENT_FILTER
    assert not exc_info.value.retryable


async def test_auth_error_maps_to_invalid_api_key_and_keeps_cause() -> None:
    native = AuthenticationError("Incorrect API key provided: sk-abcdefghijklmnopqrstuvwx")
    provider, _ = _provider(native)

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate()

    error = exc_info.value
    assert error.code is ProviderErrorCode.INVALID_API_KEY
    assert error.http_status == 401
    assert error.original_error is native
    assert error.__cause__ is native
    assert "sk-abcdefghijklmnop" not in str(error)


@pytest.mark.parametrize(
    ("native", "code"),
    [
        (
            APIStatusError(429, {"error": {"code": "insufficient_quota"}}),
            ProviderErrorCode.QUOTA_EXCEEDED,
        ),
        (
            APIStatusError(400, {"error": {"code": "context_length_exceeded"}}),
            ProviderErrorCode.TOKEN_LIMIT_EXCEEDED,
        ),
        (
            APIStatusError(404, {"error": {"code": "model_not_found"}}),
            ProviderErrorCode.MODEL_NOT_FOUND,
        ),
        (APIStatusError(429), ProviderErrorCode.RATE_LIMITED),
        (APIStatusError(403), ProviderErrorCode.INVALID_API_KEY),
        (APIStatusError(422), ProviderErrorCode.INVALID_REQUEST),
        (APIStatusError(503), ProviderErrorCode.PROVIDER_UNAVAILABLE),
        (APIConnectionError("connection reset"), ProviderErrorCode.NETWORK_ERROR),
        (ValueError("something odd"), ProviderErrorCode.UNKNOWN_ERROR),
    ],
)
async def test_native_errors_map_to_canonical_codes(
    native: Exception, code: ProviderErrorCode
) -> None:
    provider, _ = _provider(native)

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate()

    assert exc_info.value.code is code


async def test_slow_backend_times_out() -> None:
    provider, factory = _provider(_completion("late"), timeout_seconds=0.01)
    factory.completions.delay = 1.0

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate()

    assert exc_info.value.code is ProviderErrorCode.TIMEOUT
    assert exc_info.value.retryable


async def test_test_connection_sends_minimal_request() -> None:
    provider, factory = _provider(_completion("pong"))

    assert await provider.test_connection() is True

    call = factory.completions.calls[0]
    assert call["max_tokens"] == 5
    assert call["messages"] == [{"role": "user", "content": "Test connection"}]


async def test_test_connection_raises_mapped_error() -> None:
    provider, _ = _provider(AuthenticationError("bad key"))

    with pytest.raises(ProviderError) as exc_info:
        await provider.test_connection()

    assert exc_info.value.code is ProviderErrorCode.INVALID_API_KEY


async def test_clients_are_cached_per_model() -> None:
    provider, factory = _provider(_completion("a"), _completion("b"), _completion("c"))

    await provider.generate(GenerationOptions(model="gpt-4o"))
    await provider.generate(GenerationOptions(model="gpt-4o"))
    await provider.generate(GenerationOptions(model="gpt-4"))

    assert [model for model, _ in factory.built] == ["gpt-4o", "gpt-4"]


async def test_update_config_retires_clients_and_aclose_closes_them() -> None:
    provider, factory = _provider(_completion("a"), _completion("b"))
    await provider.generate()

    updated = provider.update_config(model="gpt-4o")
    await provider.generate()
    await provider.aclose()

    assert updated.model == "gpt-4o"
    assert [model for model, _ in factory.built] == ["gpt-3.5-turbo", "gpt-4o"]
    assert all(client.closed for _, client in factory.built)


def test_update_config_rejects_blank_key() -> None:
    provider, _ = _provider()

    with pytest.raises(ProviderError):
        provider.update_config(api_key="")


async def test_capabilities_and_models_are_static() -> None:
    provider, _ = _provider()

    capabilities = provider.get_capabilities()

    assert capabilities.supports_streaming is True
    assert "gpt-4o" in await provider.get_available_models()
    assert capabilities.to_dict()["rate_limit"] == {
        "requests_per_minute": 3500,
        "tokens_per_minute": 90000,
    }
