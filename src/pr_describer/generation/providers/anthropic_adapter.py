"""
pr-describer — Anthropic provider adapter

File: src/pr_describer/generation/providers/anthropic_adapter.py
Last updated: 2026-10-19

Purpose
- Bind the generation pipeline to the Anthropic messages API.

What should be included in this file
- SDK client construction per model (injectable for tests).
- Text block extraction and usage accounting.
- Native ``error.type`` mapping with message-sensitive ``invalid_request_error`` handling.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from typing import Any, Final, Protocol, cast

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
    exception_detail,
    map_transport_exception,
    read_int,
    read_native_error_keys,
    read_sequence,
    read_status_code,
    read_str,
    read_value,
)
from pr_describer.generation.providers.errors import ProviderError, ProviderErrorCode


class _MessagesAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _AnthropicClient(Protocol):
    messages: _MessagesAPI


AnthropicClientFactory = Callable[[ProviderConfig, str], _AnthropicClient]

_NATIVE_ERRORS: Final[dict[str, ProviderErrorCode]] = {
    "authentication_error": ProviderErrorCode.INVALID_API_KEY,
    "permission_error": ProviderErrorCode.INVALID_API_KEY,
    "not_found_error": ProviderErrorCode.MODEL_NOT_FOUND,
    "rate_limit_error": ProviderErrorCode.RATE_LIMITED,
    "overloaded_error": ProviderErrorCode.PROVIDER_UNAVAILABLE,
    "api_error": ProviderErrorCode.PROVIDER_UNAVAILABLE,
}

_STATUS_ERRORS: Final[dict[int, ProviderErrorCode]] = {
    400: ProviderErrorCode.INVALID_REQUEST,
    401: ProviderErrorCode.INVALID_API_KEY,
    403: ProviderErrorCode.INVALID_API_KEY,
    404: ProviderErrorCode.MODEL_NOT_FOUND,
    422: ProviderErrorCode.INVALID_REQUEST,
    429: ProviderErrorCode.RATE_LIMITED,
    529: ProviderErrorCode.PROVIDER_UNAVAILABLE,
}

_INVALID_REQUEST_TYPE: Final[str] = "invalid_request_error"


class AnthropicProvider(BaseProvider[_AnthropicClient]):
    """Anthropic messages adapter with injectable client construction."""

    provider_type = ProviderType.ANTHROPIC
    DEFAULT_CONFIG = ProviderConfig(
        model="claude-3-sonnet-20240229",
        base_url="https://api.anthropic.com",
        timeout_seconds=60.0,
        max_retries=3,
    )
    DEFAULT_INPUT_SIZE_LIMIT = 8000
    CAPABILITIES = ProviderCapabilities(
        max_tokens=200000,
        supported_models=(
            "claude-3-haiku-20240307",
            "claude-3-sonnet-20240229",
            "claude-3-opus-20240229",
            "claude-3-5-sonnet-20241022",
        ),
        supports_streaming=True,
        cost_per_token=TokenCost(input=0.00025 / 1000, output=0.00125 / 1000),
        rate_limit=RateLimitHint(requests_per_minute=1000, tokens_per_minute=40000),
    )

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        client_factory: AnthropicClientFactory | None = None,
        logger: Any | None = None,
    ) -> None:
        self._client_factory = client_factory
        super().__init__(config, logger=logger)

    def _build_client(self, model: str) -> _AnthropicClient:
        if self._client_factory is not None:
            return self._client_factory(self._config, model)

        try:
            anthropic_module = importlib.import_module("anthropic")
        except ImportError as exc:
            raise self._error(
                ProviderErrorCode.PROVIDER_UNAVAILABLE, "anthropic SDK is not installed"
            ) from exc

        init_kwargs: dict[str, object] = {"api_key": self._config.api_key}
        if self._config.base_url is not None:
            init_kwargs["base_url"] = self._config.base_url
        if self._config.timeout_seconds is not None:
            init_kwargs["timeout"] = self._config.timeout_seconds
        if self._config.max_retries is not None:
            init_kwargs["max_retries"] = self._config.max_retries
        return cast("_AnthropicClient", anthropic_module.AsyncAnthropic(**init_kwargs))

    async def _execute(self, prompt: str, options: GenerationOptions) -> GenerationOutput:
        model = self._resolve_model(options)
        client = self._client_for(model)
        response = await client.messages.create(
            model=model,
            max_tokens=self._resolve_max_tokens(options),
            temperature=self._resolve_temperature(options),
            messages=[{"role": "user", "content": prompt}],
        )

        text = "".join(
            read_str(block, "text") or ""
            for block in read_sequence(response, "content")
            if read_str(block, "type") in (None, "text")
        )
        if not text.strip():
            raise self._empty_response_error()

        tokens_used: int | None = None
        usage = read_value(response, "usage")
        if usage is not None:
            input_tokens = read_int(usage, "input_tokens")
            output_tokens = read_int(usage, "output_tokens")
            if input_tokens is not None or output_tokens is not None:
                tokens_used = (input_tokens or 0) + (output_tokens or 0)

        metadata: dict[str, object] = {}
        stop_reason = read_str(response, "stop_reason")
        if stop_reason is not None:
            metadata["stop_reason"] = stop_reason
        response_id = read_str(response, "id")
        if response_id is not None:
            metadata["response_id"] = response_id

        return GenerationOutput(
            description=text.strip(),
            model=read_str(response, "model") or model,
            tokens_used=tokens_used,
            metadata=metadata,
        )

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc

        status_code = read_status_code(exc)
        detail = exception_detail(exc)

        for key in read_native_error_keys(exc):
            if key == _INVALID_REQUEST_TYPE:
                return self._error(
                    _classify_invalid_request(detail),
                    detail,
                    http_status=status_code,
                    original_error=exc,
                )
            native = _NATIVE_ERRORS.get(key)
            if native is not None:
                return self._error(native, detail, http_status=status_code, original_error=exc)

        transport = map_transport_exception(exc, provider=self.provider_name)
        if transport is not None:
            return transport

        by_status = code_for_status(status_code, _STATUS_ERRORS)
        if by_status is not None:
            return self._error(by_status, detail, http_status=status_code, original_error=exc)

        class_name = type(exc).__name__.lower()
        code = ProviderErrorCode.UNKNOWN_ERROR
        if "auth" in class_name or "permission" in class_name:
            code = ProviderErrorCode.INVALID_API_KEY
        elif "ratelimit" in class_name:
            code = ProviderErrorCode.RATE_LIMITED
        elif "overloaded" in class_name:
            code = ProviderErrorCode.PROVIDER_UNAVAILABLE
        return self._error(code, detail, http_status=status_code, original_error=exc)


def _classify_invalid_request(message: str) -> ProviderErrorCode:
    lowered = message.lower()
    if "api_key" in lowered or "api key" in lowered:
        return ProviderErrorCode.INVALID_API_KEY
    if "prompt is too long" in lowered or "too many tokens" in lowered:
        return ProviderErrorCode.TOKEN_LIMIT_EXCEEDED
    return ProviderErrorCode.INVALID_REQUEST


AnthropicAdapter = AnthropicProvider

__all__ = ["AnthropicAdapter", "AnthropicClientFactory", "AnthropicProvider"]
