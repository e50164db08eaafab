"""Stable constants shared across pr-describer packages."""

from __future__ import annotations

from typing import Final

# Schema version for ``pr_describer.toml``.
CONFIG_SCHEMA_VERSION: Final[int] = 1

DEFAULT_CONFIG_FILE: Final[str] = "pr_describer.toml"
ENV_PREFIX: Final[str] = "PR_DESCRIBER_"

# Generation defaults applied when neither options nor config override them.
DEFAULT_MAX_TOKENS: Final[int] = 1000
DEFAULT_TEMPERATURE: Final[float] = 0.7

# Template data key whose value is governed by the input-size limit.
DIFF_CONTENT_KEY: Final[str] = "DIFF_CONTENT"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "DIFF_CONTENT_KEY",
    "ENV_PREFIX",
]
