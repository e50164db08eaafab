"""
pr-describer — observability

File: src/pr_describer/observability/__init__.py
Last updated: 2026-10-19

Purpose
- Public logging entry points for the CLI layer and tests.
"""

from pr_describer.observability.logging import (
    LoggingConfig,
    configure_logging,
    correlation_scope,
    reset_logging,
    setup_logging,
)

__all__ = [
    "LoggingConfig",
    "configure_logging",
    "correlation_scope",
    "reset_logging",
    "setup_logging",
]
