"""
pr-describer — xAI provider adapter

File: src/pr_describer/generation/providers/xai_adapter.py
Last updated: 2026-10-19

Purpose
- Bind the generation pipeline to xAI's OpenAI-compatible ``/chat/completions`` endpoint.

What should be included in this file
- httpx client construction per model with bearer auth and transport-level retries.
- HTTP status mapping into the canonical taxonomy.
"""

from __future__ import annotations

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
    401: ProviderErrorCode.INVALID_API_KEY,
    402: ProviderErrorCode.QUOTA_EXCEEDED,
    403: ProviderErrorCode.INVALID_API_KEY,
    404: ProviderErrorCode.MODEL_NOT_FOUND,
    413: ProviderErrorCode.TOKEN_LIMIT_EXCEEDED,
    429: ProviderErrorCode.RATE_LIMITED,
    500: ProviderErrorCode.PROVIDER_UNAVAILABLE,
    502: ProviderErrorCode.PROVIDER_UNAVAILABLE,
    503: ProviderErrorCode.PROVIDER_UNAVAILABLE,
    504: ProviderErrorCode.PROVIDER_UNAVAILABLE,
}


class XAIProvider(BaseProvider[httpx.AsyncClient]):
    """xAI (Grok) adapter over a plain httpx client."""

    provider_type = ProviderType.XAI
    DEFAULT_CONFIG = ProviderConfig(
        model="grok-beta",
        base_url="https://api.x.ai/v1",
        timeout_seconds=60.0,
        max_retries=3,
    )
    DEFAULT_INPUT_SIZE_LIMIT = 6000
    CAPABILITIES = ProviderCapabilities(
        max_tokens=131072,
        supported_models=("grok-beta", "grok-vision-beta"),
        supports_streaming=True,
        cost_per_token=TokenCost(input=0.000005, output=0.000015),
        rate_limit=RateLimitHint(requests_per_minute=100, tokens_per_minute=10000),
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

    def _build_client(self, model: str) -> httpx.AsyncClient:
        transport = self._transport
        if transport is None:
            transport = httpx.AsyncHTTPTransport(retries=self._config.max_retries or 0)
        return httpx.AsyncClient(
            base_url=self._config.base_url or "",
            headers={
                "Authorization": f"Bearer {self._config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=transport,
        )

    async def _execute(self, prompt: str, options: GenerationOptions) -> GenerationOutput:
        model = self._resolve_model(options)
        client = self._client_for(model)
        response = await client.post(
            "/chat/completions",
            json={
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": self._resolve_max_tokens(options),
                "temperature": self._resolve_temperature(options),
                "stream": False,
            },
        )
        response.raise_for_status()
        payload = response.json()

        text = ""
        finish_reason: str | None = None
        choices = read_sequence(payload, "choices")
        if choices:
            text = read_str(read_value(choices[0], "message"), "content") or ""
            finish_reason = read_str(choices[0], "finish_reason")
        if not text.strip():
            raise self._empty_response_error()

        usage = read_value(payload, "usage")
        metadata: dict[str, object] = {}
        if finish_reason is not None:
            metadata["finish_reason"] = finish_reason
        response_id = read_str(payload, "id")
        if response_id is not None:
            metadata["response_id"] = response_id

        return GenerationOutput(
            description=text.strip(),
            model=read_str(payload, "model") or model,
            tokens_used=read_int(usage, "total_tokens") if usage is not None else None,
            metadata=metadata,
        )

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc

        transport = map_transport_exception(exc, provider=self.provider_name)
        if transport is not None:
            return transport

        status_code = read_status_code(exc)
        detail = http_error_detail(exc)
        code = code_for_status(status_code, _STATUS_ERRORS) or ProviderErrorCode.UNKNOWN_ERROR
        return self._error(code, detail, http_status=status_code, original_error=exc)


XAIAdapter = XAIProvider

__all__ = ["XAIAdapter", "XAIProvider"]
