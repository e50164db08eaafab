"""
pr-describer — OpenAI provider adapter

File: src/pr_describer/generation/providers/openai_adapter.py
Last updated: 2026-10-19

Purpose
- Bind the generation pipeline to OpenAI chat completions.

What should be included in this file
- SDK client construction per model (injectable for tests).
- Response extraction (text, model, usage).
- Native error code/type and HTTP status mapping into the canonical taxonomy.

Non-functional requirements
- Must be configurable and safe; do not hardcode keys.
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


class _ChatCompletionsAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _ChatAPI(Protocol):
    completions: _ChatCompletionsAPI


class _OpenAIClient(Protocol):
    chat: _ChatAPI


OpenAIClientFactory = Callable[[ProviderConfig, str], _OpenAIClient]

_NATIVE_ERRORS: Final[dict[str, ProviderErrorCode]] = {
    "invalid_api_key": ProviderErrorCode.INVALID_API_KEY,
    "authentication_error": ProviderErrorCode.INVALID_API_KEY,
    "quota_exceeded": ProviderErrorCode.QUOTA_EXCEEDED,
    "insufficient_quota": ProviderErrorCode.QUOTA_EXCEEDED,
    "rate_limit_exceeded": ProviderErrorCode.RATE_LIMITED,
    "model_not_found": ProviderErrorCode.MODEL_NOT_FOUND,
    "content_filter": ProviderErrorCode.CONTENT_FILTER,
    "context_length_exceeded": ProviderErrorCode.TOKEN_LIMIT_EXCEEDED,
    "token_limit_exceeded": ProviderErrorCode.TOKEN_LIMIT_EXCEEDED,
    "invalid_request_error": ProviderErrorCode.INVALID_REQUEST,
}

_STATUS_ERRORS: Final[dict[int, ProviderErrorCode]] = {
    400: ProviderErrorCode.INVALID_REQUEST,
    401: ProviderErrorCode.INVALID_API_KEY,
    403: ProviderErrorCode.INVALID_API_KEY,
    404: ProviderErrorCode.MODEL_NOT_FOUND,
    422: ProviderErrorCode.INVALID_REQUEST,
    429: ProviderErrorCode.RATE_LIMITED,
}


class OpenAIProvider(BaseProvider[_OpenAIClient]):
    """OpenAI chat-completions adapter with injectable client construction."""

    provider_type = ProviderType.OPENAI
    DEFAULT_CONFIG = ProviderConfig(model="gpt-3.5-turbo", timeout_seconds=60.0, max_retries=3)
    DEFAULT_INPUT_SIZE_LIMIT = 4000
    CAPABILITIES = ProviderCapabilities(
        max_tokens=4096,
        supported_models=(
            "gpt-3.5-turbo",
            "gpt-3.5-turbo-16k",
            "gpt-4",
            "gpt-4-turbo-preview",
            "gpt-4o",
            "gpt-4o-mini",
        ),
        supports_streaming=True,
        cost_per_token=TokenCost(input=0.0015 / 1000, output=0.002 / 1000),
        rate_limit=RateLimitHint(requests_per_minute=3500, tokens_per_minute=90000),
    )

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        client_factory: OpenAIClientFactory | None = None,
        logger: Any | None = None,
    ) -> None:
        self._client_factory = client_factory
        super().__init__(config, logger=logger)

    def _build_client(self, model: str) -> _OpenAIClient:
        if self._client_factory is not None:
            return self._client_factory(self._config, model)

        try:
            openai_module = importlib.import_module("openai")
        except ImportError as exc:
            raise self._error(
                ProviderErrorCode.PROVIDER_UNAVAILABLE, "openai SDK is not installed"
            ) from exc

        init_kwargs: dict[str, object] = {"api_key": self._config.api_key}
        if self._config.base_url is not None:
            init_kwargs["base_url"] = self._config.base_url
        if self._config.organization is not None:
            init_kwargs["organization"] = self._config.organization
        if self._config.timeout_seconds is not None:
            init_kwargs["timeout"] = self._config.timeout_seconds
        if self._config.max_retries is not None:
            init_kwargs["max_retries"] = self._config.max_retries
        return cast("_OpenAIClient", openai_module.AsyncOpenAI(**init_kwargs))

    async def _execute(self, prompt: str, options: GenerationOptions) -> GenerationOutput:
        model = self._resolve_model(options)
        client = self._client_for(model)
        response = await client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self._resolve_max_tokens(options),
            temperature=self._resolve_temperature(options),
        )

        text = ""
        finish_reason: str | None = None
        choices = read_sequence(response, "choices")
        if choices:
            text = read_str(read_value(choices[0], "message"), "content") or ""
            finish_reason = read_str(choices[0], "finish_reason")

        if not text.strip():
            if finish_reason == "content_filter":
                raise self._error(
                    ProviderErrorCode.CONTENT_FILTER,
                    "response was withheld by the content filter",
                )
            raise self._empty_response_error()

        usage = read_value(response, "usage")
        metadata: dict[str, object] = {}
        if finish_reason is not None:
            metadata["finish_reason"] = finish_reason
        response_id = read_str(response, "id")
        if response_id is not None:
            metadata["response_id"] = response_id

        return GenerationOutput(
            description=text.strip(),
            model=read_str(response, "model") or model,
            tokens_used=read_int(usage, "total_tokens") if usage is not None else None,
            metadata=metadata,
        )

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc

        status_code = read_status_code(exc)
        detail = exception_detail(exc)

        for key in read_native_error_keys(exc):
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
        return self._error(code, detail, http_status=status_code, original_error=exc)


OpenAIAdapter = OpenAIProvider

__all__ = ["OpenAIAdapter", "OpenAIClientFactory", "OpenAIProvider"]
