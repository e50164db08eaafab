"""
pr-describer — provider adapters

File: src/pr_describer/generation/providers/__init__.py
Last updated: 2026-10-19

Purpose
- Public import surface for the provider contract, adapters, registry, and factory.
"""

from pr_describer.generation.providers.anthropic_adapter import AnthropicAdapter, AnthropicProvider
from pr_describer.generation.providers.base import (
    DEFAULT_PROMPT_TEMPLATE,
    BaseProvider,
    GeneratedResult,
    GenerationOptions,
    GenerationOutput,
    ModelClientCache,
    ProviderCapabilities,
    ProviderConfig,
    ProviderProtocol,
    ProviderType,
    RateLimitHint,
    TokenCost,
    run_generation_pipeline,
)
from pr_describer.generation.providers.errors import (
    RETRYABLE_CODES,
    ProviderError,
    ProviderErrorCode,
    TemplateValidationError,
    format_provider_error,
    is_retryable_error,
)
from pr_describer.generation.providers.factory import (
    ProviderBuilder,
    ProviderFactory,
    ProviderSpec,
    generation_options_from_config,
    provider_specs_from_config,
)
from pr_describer.generation.providers.ollama_adapter import OllamaAdapter, OllamaProvider
from pr_describer.generation.providers.openai_adapter import OpenAIAdapter, OpenAIProvider
from pr_describer.generation.providers.registry import ProviderRegistry
from pr_describer.generation.providers.xai_adapter import XAIAdapter, XAIProvider

__all__ = [
    "DEFAULT_PROMPT_TEMPLATE",
    "RETRYABLE_CODES",
    "AnthropicAdapter",
    "AnthropicProvider",
    "BaseProvider",
    "GeneratedResult",
    "GenerationOptions",
    "GenerationOutput",
    "ModelClientCache",
    "OllamaAdapter",
    "OllamaProvider",
    "OpenAIAdapter",
    "OpenAIProvider",
    "ProviderBuilder",
    "ProviderCapabilities",
    "ProviderConfig",
    "ProviderError",
    "ProviderErrorCode",
    "ProviderFactory",
    "ProviderProtocol",
    "ProviderRegistry",
    "ProviderSpec",
    "ProviderType",
    "RateLimitHint",
    "TemplateValidationError",
    "TokenCost",
    "XAIAdapter",
    "XAIProvider",
    "format_provider_error",
    "generation_options_from_config",
    "is_retryable_error",
    "provider_specs_from_config",
    "run_generation_pipeline",
]
