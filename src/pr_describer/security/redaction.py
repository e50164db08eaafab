"""
pr-describer — secret redaction utilities

File: src/pr_describer/security/redaction.py
Last updated: 2026-10-19

Purpose
- Redaction rules for log events, provider error details, and config dumps.

What should be included in this file
- Secret patterns for the provider credentials this project handles.
- Key-based redaction for nested structures.

Functional requirements
- Must ensure API keys never reach logs or error messages by default.

Non-functional requirements
- Deterministic and idempotent: redacting twice equals redacting once.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

REDACTED_VALUE: Final[str] = "***REDACTED***"

DEFAULT_SENSITIVE_KEY_DENYLIST: Final[frozenset[str]] = frozenset(
    {
        "access_token",
        "api_key",
        "apikey",
        "auth_token",
        "authorization",
        "bearer_token",
        "client_secret",
        "credential",
        "credentials",
        "password",
        "private_key",
        "refresh_token",
        "secret",
        "secret_key",
        "token",
        "x_api_key",
    }
)

_SENSITIVE_KEY_SUFFIXES: Final[tuple[str, ...]] = (
    "_api_key",
    "_access_token",
    "_refresh_token",
    "_auth_token",
    "_client_secret",
    "_private_key",
    "_password",
    "_secret",
    "_token",
)

_SENSITIVE_KEY_PREFIXES: Final[tuple[str, ...]] = (
    "api_key_",
    "access_token_",
    "password_",
    "secret_",
)

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class _TextRule:
    name: str
    pattern: re.Pattern[str]
    sensitive_group: int | None = None


# Anthropic keys also start with ``sk-`` so their rule runs first.
_TEXT_RULES: Final[tuple[_TextRule, ...]] = (
    _TextRule(
        name="authorization_bearer",
        pattern=re.compile(r"(?i)(\bbearer\s+)([A-Za-z0-9\-._~+/=]{8,})"),
        sensitive_group=2,
    ),
    _TextRule(
        name="explicit_secret_assignment",
        pattern=re.compile(
            r"(?i)(\b(?:password|secret|api[_-]?key|x-api-key|client[_-]?secret|"
            r"access[_-]?token)\b[\"']?\s*[:=]\s*[\"']?)"
            r"([A-Za-z0-9._~+/=-]{6,})"
        ),
        sensitive_group=2,
    ),
    _TextRule(name="anthropic_api_key", pattern=re.compile(r"\bsk-ant-[A-Za-z0-9_-]{20,255}")),
    _TextRule(name="openai_api_key", pattern=re.compile(r"\bsk-[A-Za-z0-9_-]{20,255}")),
    _TextRule(name="xai_api_key", pattern=re.compile(r"\bxai-[A-Za-z0-9_-]{20,255}")),
)


@dataclass(frozen=True, slots=True)
class RedactionConfig:
    """Policy that controls key-based redaction."""

    replacement: str = REDACTED_VALUE
    key_denylist: frozenset[str] = DEFAULT_SENSITIVE_KEY_DENYLIST
    key_allowlist: frozenset[str] = frozenset()


DEFAULT_REDACTION_CONFIG: Final[RedactionConfig] = RedactionConfig()


def is_sensitive_key(key: str, *, config: RedactionConfig | None = None) -> bool:
    """Return whether values stored under ``key`` must never be emitted."""

    resolved = config if config is not None else DEFAULT_REDACTION_CONFIG
    normalized = _normalize_key(key)
    if normalized in resolved.key_allowlist:
        return False
    if normalized in resolved.key_denylist:
        return True
    if normalized.endswith(_SENSITIVE_KEY_SUFFIXES):
        return True
    return normalized.startswith(_SENSITIVE_KEY_PREFIXES)


def redact_text(text: str, *, config: RedactionConfig | None = None) -> str:
    """Redact secret-like substrings. Deterministic and idempotent for stable inputs."""

    if not isinstance(text, str):
        raise TypeError(f"text must be a string, got {type(text).__name__}")

    replacement = (config if config is not None else DEFAULT_REDACTION_CONFIG).replacement
    redacted = text
    for rule in _TEXT_RULES:
        redacted = _apply_text_rule(redacted, rule=rule, replacement=replacement)
    return redacted


def redact_structure(value: object, *, config: RedactionConfig | None = None) -> object:
    """Return a deep-redacted copy of nested mappings, lists, and tuples."""

    resolved = config if config is not None else DEFAULT_REDACTION_CONFIG
    return _redact_structure(value, resolved=resolved, seen=set())


def _apply_text_rule(text: str, *, rule: _TextRule, replacement: str) -> str:
    if rule.sensitive_group is None:
        return rule.pattern.sub(replacement, text)

    group = rule.sensitive_group

    def _replace(match: re.Match[str]) -> str:
        prefix = "".join(match.group(index) or "" for index in range(1, group))
        return f"{prefix}{replacement}"

    return rule.pattern.sub(_replace, text)


def _redact_structure(value: object, *, resolved: RedactionConfig, seen: set[int]) -> object:
    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        return redact_text(value, config=resolved)

    if isinstance(value, Mapping):
        value_id = id(value)
        if value_id in seen:
            return resolved.replacement
        seen.add(value_id)
        try:
            out: dict[object, object] = {}
            for key, item in value.items():
                if isinstance(key, str) and is_sensitive_key(key, config=resolved):
                    out[key] = resolved.replacement
                else:
                    out[key] = _redact_structure(item, resolved=resolved, seen=seen)
            return out
        finally:
            seen.discard(value_id)

    if isinstance(value, (list, tuple)):
        value_id = id(value)
        if value_id in seen:
            return resolved.replacement
        seen.add(value_id)
        try:
            items = [_redact_structure(item, resolved=resolved, seen=seen) for item in value]
        finally:
            seen.discard(value_id)
        return items if isinstance(value, list) else tuple(items)

    return value


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


__all__ = [
    "DEFAULT_REDACTION_CONFIG",
    "DEFAULT_SENSITIVE_KEY_DENYLIST",
    "REDACTED_VALUE",
    "RedactionConfig",
    "is_sensitive_key",
    "redact_structure",
    "redact_text",
]
