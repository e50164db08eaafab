"""
pr-describer — provider factory

File: src/pr_describer/generation/providers/factory.py
Last updated: 2026-10-19

Purpose
- Construct adapters from configuration and resolve a provider with fallback ordering.

What should be included in this file
- A builder table keyed by provider type.
- All-or-nothing batch initialization.
- Translation of the loaded ``[providers]`` config into provider specs and of
  ``[generation]`` into default generation options.

Functional requirements
- Fallback order: preferred key, first adapter of the fallback type, registry default.
- Nothing from a failed batch is registered.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

import structlog

from pr_describer.generation.providers.anthropic_adapter import AnthropicProvider
from pr_describer.generation.providers.base import (
    BaseProvider,
    GenerationOptions,
    ProviderConfig,
    ProviderProtocol,
    ProviderType,
)
from pr_describer.generation.providers.errors import ProviderError, ProviderErrorCode
from pr_describer.generation.providers.ollama_adapter import OllamaProvider
from pr_describer.generation.providers.openai_adapter import OpenAIProvider
from pr_describer.generation.providers.registry import ProviderRegistry
from pr_describer.generation.providers.xai_adapter import XAIProvider

ProviderBuilder = Callable[[ProviderConfig, Any], ProviderProtocol]

_FACTORY_PROVIDER_NAME: Final[str] = "factory"


def _default_builders() -> dict[ProviderType, ProviderBuilder]:
    adapters: dict[ProviderType, type[BaseProvider[Any]]] = {
        ProviderType.OPENAI: OpenAIProvider,
        ProviderType.ANTHROPIC: AnthropicProvider,
        ProviderType.XAI: XAIProvider,
        ProviderType.OLLAMA: OllamaProvider,
    }
    return {
        provider_type: (lambda config, logger, cls=adapter_cls: cls(config, logger=logger))
        for provider_type, adapter_cls in adapters.items()
    }


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """One entry of a batch initialization request."""

    key: str
    provider_type: ProviderType
    config: ProviderConfig
    make_default: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise ValueError("ProviderSpec.key cannot be empty")
        object.__setattr__(self, "key", self.key.strip())
        object.__setattr__(self, "provider_type", ProviderType(self.provider_type))


class ProviderFactory:
    """Creates adapters and resolves them through an explicit registry instance."""

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        *,
        builders: Mapping[ProviderType, ProviderBuilder] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._registry = registry if registry is not None else ProviderRegistry(logger=logger)
        self._builders: dict[ProviderType, ProviderBuilder] = _default_builders()
        if builders is not None:
            self._builders.update(builders)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def create_provider(
        self, provider_type: ProviderType | str, config: ProviderConfig | None = None
    ) -> ProviderProtocol:
        try:
            resolved_type = ProviderType(provider_type)
        except ValueError as exc:
            raise ProviderError(
                provider=_FACTORY_PROVIDER_NAME,
                code=ProviderErrorCode.PROVIDER_UNAVAILABLE,
                detail=f"unsupported provider type: {provider_type}",
                original_error=exc,
            ) from exc

        builder = self._builders.get(resolved_type)
        if builder is None:
            raise ProviderError(
                provider=resolved_type.value,
                code=ProviderErrorCode.PROVIDER_UNAVAILABLE,
                detail=f"no builder registered for provider type: {resolved_type.value}",
            )

        provider = builder(config if config is not None else ProviderConfig(), self._logger)
        self._logger.info("provider_created", provider=resolved_type.value)
        return provider

    def create_and_register(
        self,
        key: str,
        provider_type: ProviderType | str,
        config: ProviderConfig | None = None,
        *,
        make_default: bool = False,
    ) -> ProviderProtocol:
        provider = self.create_provider(provider_type, config)
        self._registry.register(key, provider, make_default=make_default)
        return provider

    async def initialize_providers(self, specs: Sequence[ProviderSpec]) -> list[ProviderProtocol]:
        """Construct and validate every spec, then register them all; any failure aborts.

        On failure every adapter built for the batch is closed before the error propagates.
        """

        staged: list[tuple[ProviderSpec, ProviderProtocol]] = []
        try:
            for spec in specs:
                staged.append((spec, self.create_provider(spec.provider_type, spec.config)))
            for spec, provider in staged:
                try:
                    await provider.validate_config()
                except ProviderError as exc:
                    self._logger.warning(
                        "provider_initialization_failed",
                        key=spec.key,
                        provider=spec.provider_type.value,
                        code=exc.code.value,
                    )
                    raise
        except Exception:
            await _close_all(provider for _, provider in staged)
            raise

        for spec, provider in staged:
            self._registry.register(spec.key, provider, make_default=spec.make_default)
        self._logger.info("providers_initialized", keys=[spec.key for spec, _ in staged])
        return [provider for _, provider in staged]

    def get_provider_with_fallback(
        self,
        preferred_key: str | None = None,
        fallback_type: ProviderType | str | None = None,
    ) -> ProviderProtocol:
        if preferred_key is not None:
            provider = self._registry.get(preferred_key)
            if provider is not None:
                return provider

        if fallback_type is not None:
            try:
                provider = self._registry.get_by_type(fallback_type)
            except ValueError:
                self._logger.warning("provider_fallback_type_unknown", fallback_type=fallback_type)
                provider = None
            if provider is not None:
                self._logger.info(
                    "provider_fallback_used",
                    preferred_key=preferred_key,
                    resolved_by="type",
                    provider=provider.provider_type.value,
                )
                return provider

        provider = self._registry.get_default()
        if provider is not None:
            if preferred_key is not None or fallback_type is not None:
                self._logger.info(
                    "provider_fallback_used",
                    preferred_key=preferred_key,
                    resolved_by="default",
                    provider=provider.provider_type.value,
                )
            return provider

        raise ProviderError(
            provider=_FACTORY_PROVIDER_NAME,
            code=ProviderErrorCode.PROVIDER_UNAVAILABLE,
            detail="no provider available: preferred key, fallback type, and default all missing",
        )

    def discover_capabilities(self) -> dict[str, dict[str, object]]:
        return self._registry.discover_capabilities()

    async def health_check(self) -> dict[str, dict[str, object]]:
        return await self._registry.health_check()

    async def aclose(self) -> None:
        """Close clients held by every distinct registered adapter."""

        await _close_all(provider for _, provider in self._registry.items())


async def _close_all(providers: Iterable[ProviderProtocol]) -> None:
    seen: set[int] = set()
    for provider in providers:
        if id(provider) in seen:
            continue
        seen.add(id(provider))
        closer = getattr(provider, "aclose", None)
        if closer is not None:
            await closer()


def provider_specs_from_config(
    config: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> list[ProviderSpec]:
    """Build specs for every enabled provider in a loaded config mapping.

    Cloud providers are enabled when their ``api_key_env`` variable holds a value; Ollama
    is enabled by ``providers.ollama.enabled``. ``providers.default`` marks the default.
    """

    env = environ if environ is not None else os.environ
    providers = config.get("providers", {})
    default_type = providers.get("default")
    specs: list[ProviderSpec] = []

    for provider_type in ProviderType:
        section = providers.get(provider_type.value)
        if not isinstance(section, Mapping):
            continue

        api_key: str | None = None
        if provider_type is ProviderType.OLLAMA:
            if not section.get("enabled", False):
                continue
        else:
            env_name = section.get("api_key_env")
            api_key = env.get(env_name, "").strip() if isinstance(env_name, str) else ""
            if not api_key:
                continue

        specs.append(
            ProviderSpec(
                key=provider_type.value,
                provider_type=provider_type,
                config=ProviderConfig(
                    api_key=api_key,
                    base_url=section.get("base_url") or None,
                    timeout_seconds=section.get("timeout_seconds"),
                    max_retries=section.get("max_retries"),
                    model=section.get("model") or None,
                    organization=section.get("organization") or None,
                ),
                make_default=provider_type.value == default_type,
            )
        )
    return specs


def generation_options_from_config(
    config: Mapping[str, Any],
    *,
    template: str | None = None,
    template_data: Mapping[str, str | None] | None = None,
) -> GenerationOptions:
    """Build per-call options from the ``[generation]`` section of a loaded config."""

    section = config.get("generation", {})
    if not isinstance(section, Mapping):
        section = {}
    return GenerationOptions(
        max_tokens=section.get("max_tokens"),
        temperature=section.get("temperature"),
        input_size_limit=section.get("input_size_limit"),
        template=template,
        template_data=dict(template_data or {}),
    )


__all__ = [
    "ProviderBuilder",
    "ProviderFactory",
    "ProviderSpec",
    "generation_options_from_config",
    "provider_specs_from_config",
]
