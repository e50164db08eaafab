"""
pr-describer — public security utilities

File: src/pr_describer/security/__init__.py
Last updated: 2026-10-19

Purpose
- Redaction helpers shared by logging, provider errors, and config dumps.
"""

from pr_describer.security.redaction import (
    DEFAULT_REDACTION_CONFIG,
    DEFAULT_SENSITIVE_KEY_DENYLIST,
    REDACTED_VALUE,
    RedactionConfig,
    is_sensitive_key,
    redact_structure,
    redact_text,
)

__all__ = [
    "DEFAULT_REDACTION_CONFIG",
    "DEFAULT_SENSITIVE_KEY_DENYLIST",
    "REDACTED_VALUE",
    "RedactionConfig",
    "is_sensitive_key",
    "redact_structure",
    "redact_text",
]
