"""
pr-describer — canonical provider error taxonomy

File: src/pr_describer/generation/providers/errors.py
Last updated: 2026-10-19

Purpose
- One error type every adapter normalizes backend failures into.

What should be included in this file
- The closed set of error codes and their retryability.
- Stable user-facing messages per code.
- The template-validation subtype carrying the aggregated error list.

Functional requirements
- ``str(error)`` is a deterministic machine-readable line.
- Error details never leak credentials.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Final

from pr_describer.security.redaction import redact_text


class ProviderErrorCode(StrEnum):
    INVALID_API_KEY = "INVALID_API_KEY"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    RATE_LIMITED = "RATE_LIMITED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    CONTENT_FILTER = "CONTENT_FILTER"
    TOKEN_LIMIT_EXCEEDED = "TOKEN_LIMIT_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_REQUEST = "INVALID_REQUEST"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_CODES: Final[frozenset[ProviderErrorCode]] = frozenset(
    {
        ProviderErrorCode.RATE_LIMITED,
        ProviderErrorCode.TIMEOUT,
        ProviderErrorCode.NETWORK_ERROR,
        ProviderErrorCode.PROVIDER_UNAVAILABLE,
    }
)

_USER_MESSAGES: Final[dict[ProviderErrorCode, str]] = {
    ProviderErrorCode.INVALID_API_KEY: (
        "Invalid {provider} API key. Please check your configuration."
    ),
    ProviderErrorCode.QUOTA_EXCEEDED: (
        "{provider} quota exceeded. Please check your account usage and billing."
    ),
    ProviderErrorCode.RATE_LIMITED: (
        "Too many requests to {provider}. Please wait a moment before trying again."
    ),
    ProviderErrorCode.MODEL_NOT_FOUND: (
        "The specified {provider} model is not available. Please try again later."
    ),
    ProviderErrorCode.CONTENT_FILTER: (
        "Content was filtered by {provider} safety systems. Please try with different content."
    ),
    ProviderErrorCode.TOKEN_LIMIT_EXCEEDED: (
        "The diff content is too large for {provider} processing. Please try with a smaller PR."
    ),
    ProviderErrorCode.NETWORK_ERROR: (
        "Network error connecting to {provider}. Please check your internet connection."
    ),
    ProviderErrorCode.TIMEOUT: "{provider} request timed out. Please try again.",
    ProviderErrorCode.INVALID_REQUEST: "Invalid request format for {provider}. Please try again.",
    ProviderErrorCode.PROVIDER_UNAVAILABLE: (
        "{provider} is currently unavailable. Please try again later."
    ),
}

_UNKNOWN_FALLBACK: Final[str] = "An unexpected error occurred with {provider}."


class ProviderError(RuntimeError):
    """Normalized provider error with deterministic machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        code: ProviderErrorCode | str,
        detail: str,
        http_status: int | None = None,
        original_error: BaseException | None = None,
        retryable: bool | None = None,
    ) -> None:
        if not isinstance(provider, str) or not provider.strip():
            raise ValueError("provider cannot be empty")
        self.provider = provider.strip()
        self.code = ProviderErrorCode(code)
        self.detail = _normalize_detail(detail)
        self.http_status = http_status
        self.original_error = original_error
        self.retryable = self.code in RETRYABLE_CODES if retryable is None else bool(retryable)

        parts = [
            f"provider={self.provider}",
            f"code={self.code.value}",
            f"retryable={str(self.retryable).lower()}",
        ]
        if self.http_status is not None:
            parts.append(f"http_status={self.http_status}")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))

    @property
    def user_message(self) -> str:
        return format_provider_error(self)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "provider": self.provider,
            "code": self.code.value,
            "detail": self.detail,
            "retryable": self.retryable,
            "user_message": self.user_message,
        }
        if self.http_status is not None:
            payload["http_status"] = self.http_status
        return payload


class TemplateValidationError(ProviderError):
    """Raised before any backend call when the prompt template is invalid."""

    def __init__(self, errors: Sequence[str], *, provider: str) -> None:
        self.errors: tuple[str, ...] = tuple(errors)
        super().__init__(
            provider=provider,
            code=ProviderErrorCode.INVALID_REQUEST,
            detail="Invalid template: " + "; ".join(self.errors),
        )


def format_provider_error(error: ProviderError) -> str:
    """Return the stable user-facing message for ``error.code``."""

    provider = error.provider.upper()
    template = _USER_MESSAGES.get(error.code)
    if template is not None:
        return template.format(provider=provider)
    if error.detail and error.detail != "unknown error":
        return error.detail
    return _UNKNOWN_FALLBACK.format(provider=provider)


def is_retryable_error(error: BaseException) -> bool:
    """Return retryability classification for normalized provider errors."""

    return isinstance(error, ProviderError) and error.retryable


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return redact_text(" ".join(text.split()))


__all__ = [
    "RETRYABLE_CODES",
    "ProviderError",
    "ProviderErrorCode",
    "TemplateValidationError",
    "format_provider_error",
    "is_retryable_error",
]
