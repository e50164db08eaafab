"""
pr-describer — provider registry

File: src/pr_describer/generation/providers/registry.py
Last updated: 2026-10-19

Purpose
- Keyed store of constructed adapters with at most one default.

What should be included in this file
- Register/unregister/lookup by key, by provider type, and the default.
- Batch connection tests, health checks, and capability discovery.

Functional requirements
- Batch operations capture failures per key; one adapter can never abort a batch.

Non-functional requirements
- One instance per process (or per test), passed explicitly; no module-level singleton.
- Not safe for concurrent mutation; callers serialize register/unregister.
"""

from __future__ import annotations

from typing import Any

import structlog

from pr_describer.generation.providers.base import ProviderProtocol, ProviderType
from pr_describer.generation.providers.errors import ProviderError
from pr_describer.security.redaction import redact_text


class ProviderRegistry:
    """In-memory key -> adapter map. One adapter may sit under several keys."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._providers: dict[str, ProviderProtocol] = {}
        self._default_key: str | None = None
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def register(self, key: str, provider: ProviderProtocol, *, make_default: bool = False) -> None:
        normalized = _validate_key(key)
        if not isinstance(provider, ProviderProtocol):
            raise TypeError(f"provider under {normalized!r} does not implement the contract")
        self._providers[normalized] = provider
        if make_default:
            self._default_key = normalized
        self._logger.info(
            "provider_registered",
            key=normalized,
            provider=provider.provider_type.value,
            default=self._default_key == normalized,
        )

    def unregister(self, key: str) -> bool:
        normalized = _validate_key(key)
        removed = self._providers.pop(normalized, None)
        if removed is None:
            return False
        if self._default_key == normalized:
            self._default_key = None
        self._logger.info("provider_unregistered", key=normalized)
        return True

    def get(self, key: str) -> ProviderProtocol | None:
        return self._providers.get(_validate_key(key))

    def get_by_type(self, provider_type: ProviderType | str) -> ProviderProtocol | None:
        wanted = ProviderType(provider_type)
        for provider in self._providers.values():
            if provider.provider_type == wanted:
                return provider
        return None

    def get_default(self) -> ProviderProtocol | None:
        if self._default_key is None:
            return None
        return self._providers.get(self._default_key)

    @property
    def default_key(self) -> str | None:
        return self._default_key

    def keys(self) -> tuple[str, ...]:
        return tuple(self._providers)

    def items(self) -> tuple[tuple[str, ProviderProtocol], ...]:
        return tuple(self._providers.items())

    def clear(self) -> None:
        self._providers.clear()
        self._default_key = None
        self._logger.info("provider_registry_cleared")

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.strip() in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    async def test_all(self) -> dict[str, bool]:
        """Run ``test_connection`` on every entry; a failure becomes ``False`` for that key."""

        results: dict[str, bool] = {}
        for key, provider in self.items():
            try:
                results[key] = bool(await provider.test_connection())
            except Exception as exc:  # noqa: BLE001
                self._log_check_failure("provider_connection_test_failed", key, exc)
                results[key] = False
        return results

    async def health_check(self) -> dict[str, dict[str, object]]:
        """Like ``test_all`` but reports ``{"healthy", "error"}`` per key."""

        results: dict[str, dict[str, object]] = {}
        for key, provider in self.items():
            try:
                healthy = bool(await provider.test_connection())
            except Exception as exc:  # noqa: BLE001
                self._log_check_failure("provider_health_check_failed", key, exc)
                results[key] = {"healthy": False, "error": _error_summary(exc)}
                continue
            results[key] = {"healthy": healthy, "error": None}
            self._logger.info("provider_health_checked", key=key, healthy=healthy)
        return results

    def discover_capabilities(self) -> dict[str, dict[str, object]]:
        return {
            key: {
                "type": provider.provider_type.value,
                "capabilities": provider.get_capabilities().to_dict(),
            }
            for key, provider in self.items()
        }

    def _log_check_failure(self, event: str, key: str, exc: Exception) -> None:
        fields: dict[str, object] = {"key": key, "error": type(exc).__name__}
        if isinstance(exc, ProviderError):
            fields["code"] = exc.code.value
            fields["retryable"] = exc.retryable
        self._logger.warning(event, **fields)


def _error_summary(exc: Exception) -> str:
    if isinstance(exc, ProviderError):
        message = exc.user_message
        # ProviderError.detail is already redacted.
        if exc.detail not in message and exc.detail != "unknown error":
            return f"{message} ({exc.detail})"
        return message
    text = str(exc).strip()
    return redact_text(text) if text else type(exc).__name__


def _validate_key(key: str) -> str:
    if not isinstance(key, str):
        raise TypeError("registry key must be a string")
    normalized = key.strip()
    if not normalized:
        raise ValueError("registry key cannot be empty")
    return normalized


__all__ = ["ProviderRegistry"]
