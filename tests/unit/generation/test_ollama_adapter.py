"""
Unit tests for the Ollama adapter.

Coverage:
- /api/generate request body and response normalization (mocked with respx).
- Exact vs. estimated token accounting.
- Model-not-found guidance, in-body errors, and server error mapping.
- Installed-model discovery with static fallback for failures and bodies without a model list.
"""

from __future__ import annotations

import json
import math

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from pr_describer.generation.providers.base import GenerationOptions, ProviderConfig
from pr_describer.generation.providers.errors import ProviderError, ProviderErrorCode
from pr_describer.generation.providers.ollama_adapter import OllamaAdapter, OllamaProvider

pytestmark = pytest.mark.unit

BASE_URL = "http://localhost:11434"


def _provider(**overrides: object) -> OllamaProvider:
    return OllamaProvider(ProviderConfig(**overrides))  # type: ignore[arg-type]


async def test_generate_posts_prompt_with_options() -> None:
    provider = _provider(model="codellama")
    with respx.mock(base_url=BASE_URL) as router:
        route = router.post("/api/generate").mock(
            return_value=httpx.Response(
                200,
                json={
                    "model": "codellama",
                    "response": "## Summary\nLocal run.",
                    "done": True,
                    "prompt_eval_count": 50,
                    "eval_count": 12,
                },
            )
        )

        result = await provider.generate(
            GenerationOptions(
                max_tokens=256, temperature=0.1, template_data={"DIFF_CONTENT": "+x"}
            )
        )

    body = json.loads(route.calls.last.request.content)
    assert body["model"] == "codellama"
    assert body["stream"] is False
    assert body["options"] == {"temperature": 0.1, "num_predict": 256}
    assert "+x" in body["prompt"]
    assert result.description == "## Summary\nLocal run."
    assert result.tokens_used == 62
    assert result.metadata == {"endpoint": BASE_URL, "estimated_tokens": False}
    await provider.aclose()


async def test_tokens_are_estimated_without_eval_counts() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        route = router.post("/api/generate").mock(
            return_value=httpx.Response(200, json={"response": "abcd" * 10})
        )

        result = await provider.generate(GenerationOptions(template="fixed prompt"))

    prompt = json.loads(route.calls.last.request.content)["prompt"]
    assert prompt == "fixed prompt"
    assert result.tokens_used == math.ceil((len(prompt) + 40) / 4)
    assert result.metadata["estimated_tokens"] is True
    assert result.model == "llama2"


async def test_missing_model_gives_pull_guidance() -> None:
    provider = _provider(model="mistral")
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/generate").mock(
            return_value=httpx.Response(404, json={"error": "model 'mistral' not found"})
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate()

    error = exc_info.value
    assert error.code is ProviderErrorCode.MODEL_NOT_FOUND
    assert error.http_status == 404
    assert error.detail == (
        "Ollama model 'mistral' not found. Please pull the model first: ollama pull mistral"
    )


async def test_error_field_in_success_body_is_unknown_error() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/generate").mock(
            return_value=httpx.Response(200, json={"error": "out of memory"})
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate()

    assert exc_info.value.code is ProviderErrorCode.UNKNOWN_ERROR
    assert exc_info.value.user_message == "Ollama error: out of memory"


async def test_server_error_points_at_ollama_logs() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/generate").mock(
            return_value=httpx.Response(500, json={"error": "llama runner crashed"})
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate()

    error = exc_info.value
    assert error.code is ProviderErrorCode.PROVIDER_UNAVAILABLE
    assert error.detail.startswith("Ollama server error. Please check the Ollama logs.")
    assert "llama runner crashed" in error.detail
    assert error.retryable


async def test_unreachable_server_is_network_error() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.post("/api/generate").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ProviderError) as exc_info:
            await provider.test_connection()

    assert exc_info.value.code is ProviderErrorCode.NETWORK_ERROR
    assert exc_info.value.user_message == (
        "Network error connecting to OLLAMA. Please check your internet connection."
    )


async def test_available_models_come_from_the_server() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.get("/api/tags").mock(
            return_value=httpx.Response(
                200, json={"models": [{"name": "llama2:latest"}, {"name": "phi"}, {"size": 1}]}
            )
        )

        with capture_logs() as captured:
            models = await provider.get_available_models()

    assert models == ("llama2:latest", "phi")
    assert any(item["event"] == "provider_model_list_fetched" for item in captured)


async def test_available_models_fall_back_to_static_list() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.get("/api/tags").mock(side_effect=httpx.ConnectError("refused"))

        with capture_logs() as captured:
            models = await provider.get_available_models()

    assert models == provider.get_capabilities().supported_models
    (event,) = [item for item in captured if item["event"] == "provider_model_list_unavailable"]
    assert event["error"] == "ConnectError"


@pytest.mark.parametrize("body", [{}, {"models": None}, {"models": "llama2"}])
async def test_tags_body_without_model_list_falls_back_to_static_list(
    body: dict[str, object],
) -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.get("/api/tags").mock(return_value=httpx.Response(200, json=body))

        with capture_logs() as captured:
            models = await provider.get_available_models()

    assert models == provider.get_capabilities().supported_models
    assert any(item["event"] == "provider_model_list_unavailable" for item in captured)


async def test_empty_model_list_is_reported_as_is() -> None:
    provider = _provider()
    with respx.mock(base_url=BASE_URL) as router:
        router.get("/api/tags").mock(return_value=httpx.Response(200, json={"models": []}))

        models = await provider.get_available_models()

    assert models == ()


def test_config_requires_base_url_and_model_but_no_key() -> None:
    assert OllamaAdapter is OllamaProvider
    provider = _provider()
    assert provider.get_config().api_key is None
    assert provider.get_config().timeout_seconds == 120.0

    with pytest.raises(ProviderError) as exc_info:
        OllamaProvider().update_config(base_url=" ")

    assert exc_info.value.code is ProviderErrorCode.INVALID_REQUEST
