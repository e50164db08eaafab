"""
pr-describer — provider capability contract and generation pipeline

File: src/pr_describer/generation/providers/base.py
Last updated: 2026-10-19

Purpose
- Abstract adapter API plus the shared request/response models for description generation.

What should be included in this file
- Provider identity, config, options, result, and capability records.
- The fixed validate -> truncate -> substitute -> execute pipeline.
- A model-keyed client cache and shared exception-inspection helpers.

Functional requirements
- Template validation failures never reach the backend.
- Every backend failure surfaces as exactly one ``ProviderError``.

Non-functional requirements
- Must make it easy to add new providers without touching the pipeline.
"""

from __future__ import annotations

import abc
import asyncio
import dataclasses
import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar, Generic, Protocol, TypeAlias, TypeVar, runtime_checkable

import httpx
import structlog

from pr_describer.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, DIFF_CONTENT_KEY
from pr_describer.generation.providers.errors import (
    ProviderError,
    ProviderErrorCode,
    TemplateValidationError,
)
from pr_describer.generation.templates import (
    extract_placeholders,
    substitute_placeholders,
    validate_template,
)
from pr_describer.generation.truncation import truncate_text
from pr_describer.security.redaction import REDACTED_VALUE

ClientT = TypeVar("ClientT")

DEFAULT_PROMPT_TEMPLATE = """Please write a pull request description for the following code changes.

Use these sections:

## Summary
A short overview of what this pull request does and why.

## Changes
A bullet list of the main changes.

## Impact
Which parts of the system are affected, and any risks or follow-up work.

## Testing
How the changes were tested or should be tested.

Code changes:
```diff
{DIFF_CONTENT}
```
"""


class ProviderType(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    XAI = "xai"
    OLLAMA = "ollama"


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Connection settings for one adapter; ``None`` fields fall back to adapter defaults."""

    api_key: str | None = field(default=None, repr=False)
    base_url: str | None = None
    timeout_seconds: float | None = None
    max_retries: int | None = None
    model: str | None = None
    organization: str | None = None

    def __post_init__(self) -> None:
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("ProviderConfig.timeout_seconds must be > 0")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("ProviderConfig.max_retries must be >= 0")

    def merged_over(self, defaults: ProviderConfig) -> ProviderConfig:
        """Return ``defaults`` with every non-``None`` field of ``self`` applied on top."""

        changes = {
            item.name: getattr(self, item.name)
            for item in dataclasses.fields(self)
            if getattr(self, item.name) is not None
        }
        return dataclasses.replace(defaults, **changes)

    def to_dict(self) -> dict[str, object]:
        return {
            "api_key": REDACTED_VALUE if self.api_key else None,
            "base_url": self.base_url,
            "timeout_seconds": self.timeout_seconds,
            "max_retries": self.max_retries,
            "model": self.model,
            "organization": self.organization,
        }


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    """Per-call overrides plus the template and its data."""

    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    input_size_limit: int | None = None
    template: str | None = None
    template_data: Mapping[str, str | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("GenerationOptions.max_tokens must be > 0")
        if self.temperature is not None and not (0.0 <= self.temperature <= 2.0):
            raise ValueError("GenerationOptions.temperature must be between 0.0 and 2.0")
        if self.input_size_limit is not None and self.input_size_limit < 0:
            raise ValueError("GenerationOptions.input_size_limit must be >= 0")
        for key, value in self.template_data.items():
            if not isinstance(key, str):
                raise TypeError("GenerationOptions.template_data keys must be strings")
            if value is not None and not isinstance(value, str):
                raise TypeError(f"GenerationOptions.template_data[{key!r}] must be a string")
        object.__setattr__(self, "template_data", dict(self.template_data))


@dataclass(frozen=True, slots=True)
class GenerationOutput:
    """What a backend hook returns before truncation bookkeeping is merged in."""

    description: str
    model: str
    tokens_used: int | None = None
    metadata: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GeneratedResult:
    """Final generation result returned to callers."""

    description: str
    model: str
    provider: ProviderType
    tokens_used: int | None
    diff_size_truncated: bool
    original_diff_size: int
    truncated_diff_size: int
    metadata: Mapping[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "description": self.description,
            "model": self.model,
            "provider": self.provider.value,
            "diff_size_truncated": self.diff_size_truncated,
            "original_diff_size": self.original_diff_size,
            "truncated_diff_size": self.truncated_diff_size,
            "metadata": dict(self.metadata),
        }
        if self.tokens_used is not None:
            payload["tokens_used"] = self.tokens_used
        return payload


@dataclass(frozen=True, slots=True)
class TokenCost:
    input: float
    output: float


@dataclass(frozen=True, slots=True)
class RateLimitHint:
    requests_per_minute: int
    tokens_per_minute: int


@dataclass(frozen=True, slots=True)
class ProviderCapabilities:
    """Static, descriptive adapter metadata; nothing here is enforced at runtime."""

    max_tokens: int
    supported_models: tuple[str, ...]
    supports_streaming: bool
    cost_per_token: TokenCost | None = None
    rate_limit: RateLimitHint | None = None

    def __post_init__(self) -> None:
        if self.max_tokens <= 0:
            raise ValueError("ProviderCapabilities.max_tokens must be > 0")
        object.__setattr__(self, "supported_models", tuple(self.supported_models))

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "max_tokens": self.max_tokens,
            "supported_models": list(self.supported_models),
            "supports_streaming": self.supports_streaming,
        }
        if self.cost_per_token is not None:
            payload["cost_per_token"] = {
                "input": self.cost_per_token.input,
                "output": self.cost_per_token.output,
            }
        if self.rate_limit is not None:
            payload["rate_limit"] = {
                "requests_per_minute": self.rate_limit.requests_per_minute,
                "tokens_per_minute": self.rate_limit.tokens_per_minute,
            }
        return payload


ExecuteFn: TypeAlias = Callable[[str, GenerationOptions], Awaitable[GenerationOutput]]


async def run_generation_pipeline(
    options: GenerationOptions,
    *,
    provider_type: ProviderType,
    default_template: str,
    default_input_size_limit: int,
    execute: ExecuteFn,
    logger: Any | None = None,
) -> GeneratedResult:
    """Validate, truncate, substitute, then hand the final prompt to ``execute``."""

    log = logger if logger is not None else structlog.get_logger(__name__)

    template = options.template or default_template
    validation = validate_template(template)
    if not validation.is_valid:
        raise TemplateValidationError(validation.errors, provider=provider_type.value)

    limit = (
        options.input_size_limit
        if options.input_size_limit is not None
        else default_input_size_limit
    )
    diff_content = options.template_data.get(DIFF_CONTENT_KEY) or ""
    truncation = truncate_text(diff_content, limit)
    if truncation.was_truncated:
        log.info(
            "provider_diff_truncated",
            provider=provider_type.value,
            original_size=truncation.original_size,
            truncated_size=truncation.truncated_size,
            limit=limit,
        )

    data = dict(options.template_data)
    data[DIFF_CONTENT_KEY] = truncation.text
    prompt = substitute_placeholders(template, data)
    log.debug(
        "provider_prompt_rendered",
        provider=provider_type.value,
        placeholders=list(extract_placeholders(template)),
        prompt_size=len(prompt),
    )

    output = await execute(prompt, options)
    return GeneratedResult(
        description=output.description,
        model=output.model,
        provider=provider_type,
        tokens_used=output.tokens_used,
        diff_size_truncated=truncation.was_truncated,
        original_diff_size=truncation.original_size,
        truncated_diff_size=truncation.truncated_size,
        metadata=dict(output.metadata),
    )


class ModelClientCache(Generic[ClientT]):
    """Model name -> client. Entries are inserted once and never replaced."""

    def __init__(self, build: Callable[[str], ClientT]) -> None:
        self._build = build
        self._clients: dict[str, ClientT] = {}

    def get(self, model: str) -> ClientT:
        client = self._clients.get(model)
        if client is None:
            client = self._clients.setdefault(model, self._build(model))
        return client

    def models(self) -> tuple[str, ...]:
        return tuple(self._clients)

    def __len__(self) -> int:
        return len(self._clients)

    def drain(self) -> list[ClientT]:
        clients = list(self._clients.values())
        self._clients = {}
        return clients

    async def aclose(self) -> None:
        for client in self.drain():
            await close_client(client)


async def close_client(client: object) -> None:
    """Close an SDK or httpx client, awaiting the result when it is awaitable."""

    closer = getattr(client, "aclose", None) or getattr(client, "close", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result


@runtime_checkable
class ProviderProtocol(Protocol):
    """Duck-typed surface the registry and factory rely on."""

    @property
    def provider_type(self) -> ProviderType: ...

    async def generate(self, options: GenerationOptions | None = None) -> GeneratedResult: ...

    async def test_connection(self) -> bool: ...

    def get_capabilities(self) -> ProviderCapabilities: ...

    async def validate_config(self) -> bool: ...

    async def get_available_models(self) -> tuple[str, ...]: ...


class BaseProvider(abc.ABC, Generic[ClientT]):
    """Provider-agnostic abstract adapter API."""

    provider_type: ClassVar[ProviderType]
    DEFAULT_CONFIG: ClassVar[ProviderConfig]
    CAPABILITIES: ClassVar[ProviderCapabilities]
    DEFAULT_INPUT_SIZE_LIMIT: ClassVar[int]

    def __init__(self, config: ProviderConfig | None = None, *, logger: Any | None = None) -> None:
        resolved = (config if config is not None else ProviderConfig()).merged_over(
            self.DEFAULT_CONFIG
        )
        self._check_required_config(resolved)
        self._config = resolved
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._clients: ModelClientCache[ClientT] = ModelClientCache(self._build_client)
        self._retired_clients: list[ClientT] = []

    @property
    def provider_name(self) -> str:
        return self.provider_type.value

    @abc.abstractmethod
    def _build_client(self, model: str) -> ClientT:
        """Construct a backend client bound to ``model``."""

    @abc.abstractmethod
    async def _execute(self, prompt: str, options: GenerationOptions) -> GenerationOutput:
        """Send ``prompt`` to the backend and extract text, model, and usage."""

    @abc.abstractmethod
    def _map_exception(self, exc: Exception) -> ProviderError:
        """Translate a native backend failure into one canonical error."""

    def _check_required_config(self, config: ProviderConfig) -> None:
        if config.api_key is None or not config.api_key.strip():
            raise ProviderError(
                provider=self.provider_name,
                code=ProviderErrorCode.INVALID_API_KEY,
                detail=f"{self.provider_name} API key is required",
            )

    async def generate(self, options: GenerationOptions | None = None) -> GeneratedResult:
        resolved = options if options is not None else GenerationOptions()
        model = self._resolve_model(resolved)
        self._logger.info(
            "provider_generation_started",
            provider=self.provider_name,
            model=model,
            template_keys=sorted(resolved.template_data),
        )
        try:
            result = await run_generation_pipeline(
                resolved,
                provider_type=self.provider_type,
                default_template=self.default_prompt_template(),
                default_input_size_limit=self.DEFAULT_INPUT_SIZE_LIMIT,
                execute=self._execute_with_timeout,
                logger=self._logger,
            )
        except ProviderError as exc:
            self._logger.warning(
                "provider_generation_failed",
                provider=self.provider_name,
                model=model,
                code=exc.code.value,
                retryable=exc.retryable,
                http_status=exc.http_status,
            )
            raise

        self._logger.info(
            "provider_generation_completed",
            provider=self.provider_name,
            model=result.model,
            tokens_used=result.tokens_used,
            diff_size_truncated=result.diff_size_truncated,
            description_size=len(result.description),
        )
        return result

    async def test_connection(self) -> bool:
        """Send a minimal request; return ``True`` or raise the mapped ``ProviderError``."""

        options = GenerationOptions(model=self._config.model, max_tokens=5)
        await self._execute_with_timeout("Test connection", options)
        self._logger.info("provider_connection_tested", provider=self.provider_name)
        return True

    async def validate_config(self) -> bool:
        return await self.test_connection()

    def get_capabilities(self) -> ProviderCapabilities:
        return self.CAPABILITIES

    async def get_available_models(self) -> tuple[str, ...]:
        return self.CAPABILITIES.supported_models

    def get_config(self) -> ProviderConfig:
        return self._config

    def update_config(self, **changes: Any) -> ProviderConfig:
        """Merge ``changes`` into the config and drop clients built from the old one."""

        updated = dataclasses.replace(self._config, **changes)
        self._check_required_config(updated)
        self._retired_clients.extend(self._clients.drain())
        self._config = updated
        return updated

    def default_prompt_template(self) -> str:
        return DEFAULT_PROMPT_TEMPLATE

    async def aclose(self) -> None:
        retired, self._retired_clients = self._retired_clients, []
        for client in retired:
            await close_client(client)
        await self._clients.aclose()

    def _client_for(self, model: str) -> ClientT:
        return self._clients.get(model)

    def _resolve_model(self, options: GenerationOptions) -> str:
        model = options.model or self._config.model
        if not model:
            raise ProviderError(
                provider=self.provider_name,
                code=ProviderErrorCode.INVALID_REQUEST,
                detail="model is required",
            )
        return model

    @staticmethod
    def _resolve_max_tokens(options: GenerationOptions) -> int:
        return options.max_tokens if options.max_tokens is not None else DEFAULT_MAX_TOKENS

    @staticmethod
    def _resolve_temperature(options: GenerationOptions) -> float:
        return options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE

    async def _execute_with_timeout(
        self, prompt: str, options: GenerationOptions
    ) -> GenerationOutput:
        timeout = self._config.timeout_seconds
        try:
            return await asyncio.wait_for(self._execute(prompt, options), timeout=timeout)
        except ProviderError:
            raise
        except Exception as exc:  # noqa: BLE001
            mapped = self._map_exception(exc)
            raise mapped from exc

    def _error(
        self,
        code: ProviderErrorCode,
        detail: str,
        *,
        http_status: int | None = None,
        original_error: BaseException | None = None,
    ) -> ProviderError:
        return ProviderError(
            provider=self.provider_name,
            code=code,
            detail=detail,
            http_status=http_status,
            original_error=original_error,
        )

    def _empty_response_error(self) -> ProviderError:
        return self._error(
            ProviderErrorCode.INVALID_REQUEST,
            f"empty response from {self.provider_name}",
        )


def code_for_status(
    status: int | None, table: Mapping[int, ProviderErrorCode]
) -> ProviderErrorCode | None:
    """Look ``status`` up in ``table``; unlisted 5xx means the backend is unavailable."""

    if status is None:
        return None
    code = table.get(status)
    if code is not None:
        return code
    if status >= 500:
        return ProviderErrorCode.PROVIDER_UNAVAILABLE
    return None


def map_transport_exception(exc: BaseException, *, provider: str) -> ProviderError | None:
    """Map timeouts and connection failures shared by every backend; ``None`` otherwise."""

    class_name = type(exc).__name__.lower()
    if isinstance(exc, (TimeoutError, httpx.TimeoutException)) or "timeout" in class_name:
        return ProviderError(
            provider=provider,
            code=ProviderErrorCode.TIMEOUT,
            detail=exception_detail(exc) or f"{provider} request timed out",
            original_error=exc,
        )
    if (
        isinstance(exc, (ConnectionError, httpx.NetworkError))
        or "connection" in class_name
        or "network" in class_name
    ):
        return ProviderError(
            provider=provider,
            code=ProviderErrorCode.NETWORK_ERROR,
            detail=exception_detail(exc) or f"could not connect to {provider}",
            original_error=exc,
        )
    return None


def read_status_code(exc: BaseException) -> int | None:
    for attr in ("status_code", "status", "http_status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def read_native_error_keys(exc: BaseException) -> tuple[str, ...]:
    """Return native error identifiers, ``code`` before ``type``, body before attributes."""

    keys: list[str] = []
    body = getattr(exc, "body", None)
    if isinstance(body, Mapping):
        nested = body.get("error")
        sources: tuple[Mapping[str, object], ...] = (
            (nested, body) if isinstance(nested, Mapping) else (body,)
        )
        for source in sources:
            for attr in ("code", "type"):
                value = source.get(attr)
                if isinstance(value, str) and value.strip():
                    keys.append(value.strip().lower())
    for attr in ("code", "type"):
        value = getattr(exc, attr, None)
        if isinstance(value, str) and value.strip():
            keys.append(value.strip().lower())
    return tuple(dict.fromkeys(keys))


def exception_detail(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()
    text = str(exc).strip()
    if text:
        return text
    return type(exc).__name__


def http_error_detail(exc: BaseException) -> str:
    """Prefer the JSON ``error`` message of a failed httpx response over the generic text."""

    response = getattr(exc, "response", None)
    if isinstance(response, httpx.Response):
        try:
            body = response.json()
        except ValueError:
            body = None
        error = read_value(body, "error") if isinstance(body, Mapping) else None
        if isinstance(error, str) and error.strip():
            return error
        message = read_str(error, "message") if isinstance(error, Mapping) else None
        if message is not None:
            return message
        if response.text.strip():
            return f"HTTP {response.status_code}: {response.text.strip()}"
    return exception_detail(exc)


def read_value(payload: object, key: str) -> object | None:
    if isinstance(payload, Mapping):
        return payload.get(key)
    return getattr(payload, key, None)


def read_sequence(payload: object, key: str) -> tuple[object, ...]:
    value = read_value(payload, key)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return tuple(value)
    return ()


def read_str(payload: object, key: str) -> str | None:
    value = read_value(payload, key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def read_int(payload: object, key: str) -> int | None:
    value = read_value(payload, key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


__all__ = [
    "DEFAULT_PROMPT_TEMPLATE",
    "BaseProvider",
    "ExecuteFn",
    "GeneratedResult",
    "GenerationOptions",
    "GenerationOutput",
    "ModelClientCache",
    "ProviderCapabilities",
    "ProviderConfig",
    "ProviderProtocol",
    "ProviderType",
    "RateLimitHint",
    "TokenCost",
    "close_client",
    "code_for_status",
    "exception_detail",
    "http_error_detail",
    "map_transport_exception",
    "read_int",
    "read_native_error_keys",
    "read_sequence",
    "read_status_code",
    "read_str",
    "read_value",
    "run_generation_pipeline",
]
