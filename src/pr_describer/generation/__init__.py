"""
pr-describer — generation

File: src/pr_describer/generation/__init__.py
Last updated: 2026-10-19

Purpose
- Template engine, truncation policy, and the provider layer built on them.
"""

from pr_describer.generation.templates import (
    KNOWN_PLACEHOLDERS,
    TemplateValidationResult,
    substitute_placeholders,
    validate_template,
)
from pr_describer.generation.truncation import TRUNCATION_MARKER, TruncationResult, truncate_text

__all__ = [
    "KNOWN_PLACEHOLDERS",
    "TRUNCATION_MARKER",
    "TemplateValidationResult",
    "TruncationResult",
    "substitute_placeholders",
    "truncate_text",
    "validate_template",
]
