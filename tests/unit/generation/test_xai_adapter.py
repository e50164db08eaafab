"""
Unit tests for the xAI adapter.

Coverage:
- OpenAI-compatible request body and bearer auth over httpx (mocked with respx).
- HTTP status and transport failure mapping, with JSON error details.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from pr_describer.generation.providers.base import GenerationOptions, ProviderConfig
from pr_describer.generation.providers.errors import ProviderError, ProviderErrorCode
from pr_describer.generation.providers.xai_adapter import XAIAdapter, XAIProvider

pytestmark = pytest.mark.unit

BASE_URL = "https://api.x.ai/v1"


def _completion(text: str) -> dict[str, object]:
    return {
        "id": "xai-resp-1",
        "model": "grok-beta",
        "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 80, "completion_tokens": 20, "total_tokens": 100},
    }


def _provider() -> XAIProvider:
    return XAIProvider(ProviderConfig(api_key="xai-test-key"))


async def test_generate_posts_chat_completion_with_bearer_auth() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        route = router.post("/chat/completions").mock(
            return_value=httpx.Response(200, json=_completion("## Summary\nBumps deps."))
        )

        result = await provider.generate(
            GenerationOptions(temperature=0.3, template_data={"DIFF_CONTENT": "+httpx"})
        )

    request = route.calls.last.request
    body = json.loads(request.content)
    assert request.headers["Authorization"] == "Bearer xai-test-key"
    assert body["model"] == "grok-beta"
    assert body["stream"] is False
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 1000
    assert "+httpx" in body["messages"][0]["content"]
    assert result.description == "## Summary\nBumps deps."
    assert result.tokens_used == 100
    assert result.metadata == {"finish_reason": "stop", "response_id": "xai-resp-1"}
    await provider.aclose()


@pytest.mark.parametrize(
    ("status", "code"),
    [
        (400, ProviderErrorCode.INVALID_REQUEST),
        (401, ProviderErrorCode.INVALID_API_KEY),
        (402, ProviderErrorCode.QUOTA_EXCEEDED),
        (403, ProviderErrorCode.INVALID_API_KEY),
        (404, ProviderErrorCode.MODEL_NOT_FOUND),
        (413, ProviderErrorCode.TOKEN_LIMIT_EXCEEDED),
        (429, ProviderErrorCode.RATE_LIMITED),
        (502, ProviderErrorCode.PROVIDER_UNAVAILABLE),
        (418, ProviderErrorCode.UNKNOWN_ERROR),
    ],
)
async def test_http_status_maps_to_canonical_code(status: int, code: ProviderErrorCode) -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/chat/completions").mock(
            return_value=httpx.Response(status, json={"error": f"failure {status}"})
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate()

    assert exc_info.value.code is code
    assert exc_info.value.http_status == status
    assert exc_info.value.detail == f"failure {status}"
    assert isinstance(exc_info.value.original_error, httpx.HTTPStatusError)


async def test_nested_error_message_and_plain_text_bodies_become_detail() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/chat/completions").mock(
            side_effect=[
                httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}}),
                httpx.Response(503, text="upstream down"),
            ]
        )

        with pytest.raises(ProviderError) as first:
            await provider.generate()
        with pytest.raises(ProviderError) as second:
            await provider.generate()

    assert first.value.detail == "Incorrect API key provided"
    assert second.value.detail == "HTTP 503: upstream down"
    assert second.value.retryable


@pytest.mark.parametrize(
    ("side_effect", "code"),
    [
        (httpx.ConnectError("connection refused"), ProviderErrorCode.NETWORK_ERROR),
        (httpx.ReadTimeout("read timed out"), ProviderErrorCode.TIMEOUT),
    ],
)
async def test_transport_failures_are_retryable(
    side_effect: Exception, code: ProviderErrorCode
) -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/chat/completions").mock(side_effect=side_effect)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate()

    assert exc_info.value.code is code
    assert exc_info.value.retryable


async def test_empty_choices_is_invalid_request() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/chat/completions").mock(
            return_value=httpx.Response(200, json={"choices": []})
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate()

    assert exc_info.value.code is ProviderErrorCode.INVALID_REQUEST


async def test_custom_base_url_is_honoured() -> None:
    provider = XAIProvider(
        ProviderConfig(api_key="xai-test-key", base_url="https://proxy.example/xai")
    )
    with respx.mock(base_url="https://proxy.example/xai") as router:
        route = router.post("/chat/completions").mock(
            return_value=httpx.Response(200, json=_completion("ok"))
        )

        assert await provider.test_connection() is True

    assert route.called
    assert json.loads(route.calls.last.request.content)["max_tokens"] == 5


def test_missing_key_and_alias() -> None:
    assert XAIAdapter is XAIProvider
    with pytest.raises(ProviderError) as exc_info:
        XAIProvider()

    assert exc_info.value.code is ProviderErrorCode.INVALID_API_KEY
