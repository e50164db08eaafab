"""
pr-describer — Ollama provider adapter

File: src/pr_describer/generation/providers/ollama_adapter.py
Last updated: 2026-10-19

Purpose
- Bind the generation pipeline to a self-hosted Ollama server (``/api/generate``).

What should be included in this file
- httpx client construction per model; no credentials.
- Token accounting from eval counts, with a character-based estimate as fallback.
- Live model discovery via ``/api/tags`` with a static fallback.

Functional requirements
- Construction fails fast when the endpoint URL or model name is missing.
"""

from __future__ import annotations

import math
from typing import Any, Final

import httpx

from pr_describer.generation.providers.base import (
    BaseProvider,
    GenerationOptions,
    GenerationOutput,
    ProviderCapabilities,
    ProviderConfig,
    ProviderType,
    RateLimitHint,
    TokenCost,
    code_for_status,
    http_error_detail,
    map_transport_exception,
    read_int,
    read_sequence,
    read_status_code,
    read_str,
    read_value,
)
from pr_describer.generation.providers.errors import ProviderError, ProviderErrorCode

_STATUS_ERRORS: Final[dict[int, ProviderErrorCode]] = {
    400: ProviderErrorCode.INVALID_REQUEST,
    404: ProviderErrorCode.MODEL_NOT_FOUND,
    500: ProviderErrorCode.PROVIDER_UNAVAILABLE,
}

# Rough characters-per-token ratio used when the server omits eval counts.
_CHARS_PER_TOKEN: Final[int] = 4


class OllamaProvider(BaseProvider[httpx.AsyncClient]):
    """Local Ollama adapter over a plain httpx client."""

    provider_type = ProviderType.OLLAMA
    DEFAULT_CONFIG = ProviderConfig(
        model="llama2",
        base_url="http://localhost:11434",
        timeout_seconds=120.0,
        max_retries=2,
    )
    DEFAULT_INPUT_SIZE_LIMIT = 3000
    CAPABILITIES = ProviderCapabilities(
        max_tokens=4096,
        supported_models=(
            "llama2",
            "llama2:13b",
            "llama2:7b",
            "codellama",
            "codellama:13b",
            "codellama:7b",
            "mistral",
            "mistral:7b",
            "mixtral",
            "neural-chat",
            "starling-lm",
            "openchat",
            "dolphin-mistral",
            "phi",
            "orca-mini",
            "vicuna",
            "nous-hermes",
            "wizard-coder",
        ),
        supports_streaming=True,
        cost_per_token=TokenCost(input=0.0, output=0.0),
        rate_limit=RateLimitHint(requests_per_minute=60, tokens_per_minute=1000),
    )

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Any | None = None,
    ) -> None:
        self._transport = transport
        super().__init__(config, logger=logger)

    def _check_required_config(self, config: ProviderConfig) -> None:
        if config.base_url is None or not config.base_url.strip():
            raise ProviderError(
                provider=self.provider_name,
                code=ProviderErrorCode.INVALID_REQUEST,
                detail="Ollama base URL is required",
            )
        if config.model is None or not config.model.strip():
            raise ProviderError(
                provider=self.provider_name,
                code=ProviderErrorCode.INVALID_REQUEST,
                detail="Ollama model name is required",
            )

    def _build_client(self, model: str) -> httpx.AsyncClient:
        transport = self._transport
        if transport is None:
            transport = httpx.AsyncHTTPTransport(retries=self._config.max_retries or 0)
        return httpx.AsyncClient(
            base_url=self._config.base_url or "",
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=transport,
        )

    async def _execute(self, prompt: str, options: GenerationOptions) -> GenerationOutput:
        model = self._resolve_model(options)
        client = self._client_for(model)
        response = await client.post(
            "/api/generate",
            json={
                "model": model,
                "prompt": prompt,
                "stream": False,
                "options": {
                    "temperature": self._resolve_temperature(options),
                    "num_predict": self._resolve_max_tokens(options),
                },
            },
        )
        if response.status_code == 404:
            raise self._error(
                ProviderErrorCode.MODEL_NOT_FOUND,
                f"Ollama model '{model}' not found. Please pull the model first: "
                f"ollama pull {model}",
                http_status=404,
            )
        response.raise_for_status()
        payload = response.json()

        error = read_str(payload, "error")
        if error is not None:
            raise self._error(ProviderErrorCode.UNKNOWN_ERROR, f"Ollama error: {error}")

        text = read_str(payload, "response") or ""
        if not text.strip():
            raise self._empty_response_error()

        metadata: dict[str, object] = {"endpoint": self._config.base_url}
        prompt_tokens = read_int(payload, "prompt_eval_count")
        completion_tokens = read_int(payload, "eval_count")
        if prompt_tokens is not None or completion_tokens is not None:
            tokens_used = (prompt_tokens or 0) + (completion_tokens or 0)
            metadata["estimated_tokens"] = False
        else:
            tokens_used = math.ceil((len(prompt) + len(text)) / _CHARS_PER_TOKEN)
            metadata["estimated_tokens"] = True

        return GenerationOutput(
            description=text.strip(),
            model=read_str(payload, "model") or model,
            tokens_used=tokens_used,
            metadata=metadata,
        )

    async def get_available_models(self) -> tuple[str, ...]:
        """Return models installed on the server, or the static list when none can be read."""

        model = self._config.model or self.CAPABILITIES.supported_models[0]
        client = self._client_for(model)
        try:
            response = await client.get("/api/tags")
            response.raise_for_status()
            payload = response.json()
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "provider_model_list_unavailable",
                provider=self.provider_name,
                error=type(exc).__name__,
                detail=http_error_detail(exc),
            )
            return self.CAPABILITIES.supported_models

        if not isinstance(read_value(payload, "models"), list):
            self._logger.warning(
                "provider_model_list_unavailable",
                provider=self.provider_name,
                error="MissingModels",
                detail="response has no models list",
            )
            return self.CAPABILITIES.supported_models

        names = tuple(
            name
            for name in (read_str(item, "name") for item in read_sequence(payload, "models"))
            if name is not None
        )
        self._logger.info(
            "provider_model_list_fetched", provider=self.provider_name, count=len(names)
        )
        return names

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc

        transport = map_transport_exception(exc, provider=self.provider_name)
        if transport is not None:
            return transport

        status_code = read_status_code(exc)
        detail = http_error_detail(exc)
        if status_code == 500:
            detail = f"Ollama server error. Please check the Ollama logs. ({detail})"
        code = code_for_status(status_code, _STATUS_ERRORS) or ProviderErrorCode.UNKNOWN_ERROR
        return self._error(code, detail, http_status=status_code, original_error=exc)


OllamaAdapter = OllamaProvider

__all__ = ["OllamaAdapter", "OllamaProvider"]
