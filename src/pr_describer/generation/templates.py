"""
pr-describer — prompt template validation and substitution

File: src/pr_describer/generation/templates.py
Last updated: 2026-10-19

Purpose
- Validate user-supplied prompt templates before they are sent to a paid backend.
- Substitute ``{NAME}`` placeholders with template data.

What should be included in this file
- The whitelist of recognized placeholder names.
- A collecting (not fail-fast) validator returning every problem at once.
- A single-pass substitution that leaves unresolved placeholders visible.

Functional requirements
- Empty templates are valid.
- Each offending span is reported once, in order of first appearance.

Non-functional requirements
- Pure functions; no I/O and no logging.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

KNOWN_PLACEHOLDERS: Final[frozenset[str]] = frozenset(
    {
        "DIFF_CONTENT",
        "BRANCH_NAME",
        "COMMIT_MESSAGES",
        "DIFF_SUMMARY",
        "PULL_REQUEST_TITLE",
        "PULL_REQUEST_BODY",
    }
)

MISMATCHED_BRACES_MESSAGE: Final[str] = "Mismatched curly braces in template."
SCRIPT_TAG_MESSAGE: Final[str] = "Template contains script tags, which are not allowed."

_BRACE_SPAN = re.compile(r"\{+[^{}]*\}+")
_VALID_PLACEHOLDER = re.compile(r"^\{(\w+)\}$", re.ASCII)
_PLACEHOLDER = re.compile(r"\{(\w+)\}", re.ASCII)
_SCRIPT_TAG = re.compile(r"<script", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class TemplateValidationResult:
    """Outcome of ``validate_template``; ``errors`` keeps discovery order."""

    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, object]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


def validate_template(template: str) -> TemplateValidationResult:
    """Collect every structural, whitelist, and safety problem in ``template``."""

    if not isinstance(template, str):
        raise TypeError(f"template must be a string, got {type(template).__name__}")
    if not template:
        return TemplateValidationResult()

    errors: list[str] = []

    if template.count("{") != template.count("}"):
        errors.append(MISMATCHED_BRACES_MESSAGE)

    invalid_spans: list[str] = []
    unknown_names: list[str] = []
    for match in _BRACE_SPAN.finditer(template):
        span = match.group(0)
        placeholder = _VALID_PLACEHOLDER.match(span)
        if placeholder is None:
            if span not in invalid_spans:
                invalid_spans.append(span)
            continue
        name = placeholder.group(1)
        if name not in KNOWN_PLACEHOLDERS and name not in unknown_names:
            unknown_names.append(name)

    errors.extend(invalid_placeholder_message(span) for span in invalid_spans)
    errors.extend(unknown_placeholder_message(name) for name in unknown_names)

    if _SCRIPT_TAG.search(template) is not None:
        errors.append(SCRIPT_TAG_MESSAGE)

    return TemplateValidationResult(errors=tuple(errors))


def substitute_placeholders(template: str, data: Mapping[str, str | None]) -> str:
    """Replace ``{NAME}`` with ``data[NAME]``; missing or ``None`` values stay as written.

    Substituted text is never rescanned, so values containing ``{...}`` are inserted verbatim.
    """

    if not isinstance(template, str):
        raise TypeError(f"template must be a string, got {type(template).__name__}")

    def _replace(match: re.Match[str]) -> str:
        value = data.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER.sub(_replace, template)


def extract_placeholders(template: str) -> tuple[str, ...]:
    """Return well-formed placeholder names in order of first appearance."""

    seen: list[str] = []
    for match in _PLACEHOLDER.finditer(template):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return tuple(seen)


def invalid_placeholder_message(span: str) -> str:
    return (
        f"Invalid placeholder format: {span}. Placeholders should be e.g. "
        "{PLACEHOLDER_NAME} (no spaces, no nesting)."
    )


def unknown_placeholder_message(name: str) -> str:
    return f"Unknown placeholder: {{{name}}}."


__all__ = [
    "KNOWN_PLACEHOLDERS",
    "MISMATCHED_BRACES_MESSAGE",
    "SCRIPT_TAG_MESSAGE",
    "TemplateValidationResult",
    "extract_placeholders",
    "invalid_placeholder_message",
    "substitute_placeholders",
    "unknown_placeholder_message",
    "validate_template",
]
