"""
pr-describer — unit tests for config schema validation

File: tests/unit/config/test_schema.py
Last updated: 2026-10-19

Purpose
- Validate strict config schema behavior, structured errors, and redaction.

What this test file should cover
- Validates the repository's pr_describer.toml successfully.
- Rejects unknown keys and invalid types with actionable paths.
- Rejects embedded secrets while accepting env-var references.
- Ensures redaction is recursive and non-destructive.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path

import pytest

from pr_describer.config.schema import (
    ConfigSchemaVersion,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    dump_redacted,
    merge_config,
    migration_guidance,
    validate_config,
)

pytestmark = pytest.mark.unit

REPO_ROOT = Path(__file__).resolve().parents[3]


def _load_toml(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    assert isinstance(data, dict)
    return data


def _issue_map(config: Mapping[str, object]) -> dict[str, str]:
    result = validate_config(config)
    assert not result.is_valid
    return {issue.path: issue.message for issue in result.issues}


def test_repository_toml_validates_successfully() -> None:
    config = _load_toml(REPO_ROOT / "pr_describer.toml")

    result = validate_config(config)

    assert result.is_valid, result.issues
    assert result.config is not None
    assert result.config["providers"]["default"] == "openai"
    assert result.config["generation"]["input_size_limit"] is None


def test_defaults_validate_and_are_deep_copies() -> None:
    first = default_config()
    first["providers"]["openai"]["model"] = "changed"

    second = default_config()

    assert second["providers"]["openai"]["model"] == "gpt-3.5-turbo"
    assert validate_config(second).is_valid


def test_unknown_key_rejection_is_explicit() -> None:
    config = merge_config(default_config(), {"generation": {"max_tokns": 10}})

    issues = _issue_map(config)

    assert issues == {"generation.max_tokns": "unknown field"}


def test_type_validation_reports_structured_paths() -> None:
    config = merge_config(
        default_config(),
        {
            "providers": {"xai": {"max_retries": "three"}},
            "observability": {"redact_secrets": "yes"},
        },
    )

    issues = _issue_map(config)

    assert issues["providers.xai.max_retries"] == "expected integer, got str"
    assert issues["observability.redact_secrets"] == "expected boolean, got str"


@pytest.mark.parametrize(
    ("overlay", "path", "message"),
    [
        ({"generation": {"temperature": 2.5}}, "generation.temperature", "must be <= 2.0"),
        ({"generation": {"max_tokens": 0}}, "generation.max_tokens", "must be >= 1"),
        (
            {"generation": {"input_size_limit": -1}},
            "generation.input_size_limit",
            "must be >= 0",
        ),
        (
            {"providers": {"anthropic": {"timeout_seconds": 0}}},
            "providers.anthropic.timeout_seconds",
            "must be > 0.0",
        ),
        (
            {"providers": {"ollama": {"base_url": "localhost:11434"}}},
            "providers.ollama.base_url",
            "must be an http(s) URL (example: http://localhost:11434)",
        ),
        (
            {"providers": {"openai": {"api_key_env": "openai key"}}},
            "providers.openai.api_key_env",
            "must be an env var name (example: OPENAI_API_KEY)",
        ),
    ],
)
def test_range_violation_reports_exact_path(
    overlay: dict[str, object], path: str, message: str
) -> None:
    issues = _issue_map(merge_config(default_config(), overlay))

    assert issues[path] == message


def test_invalid_enum_lists_allowed_values() -> None:
    issues = _issue_map(merge_config(default_config(), {"providers": {"default": "mistral"}}))

    assert issues["providers.default"] == (
        "invalid value 'mistral'; expected one of: anthropic, ollama, openai, xai"
    )


def test_embedded_secret_is_rejected_but_api_key_env_is_allowed() -> None:
    embedded = merge_config(default_config(), {"providers": {"openai": {"api_key": "sk-x"}}})
    referenced = merge_config(
        default_config(), {"providers": {"openai": {"api_key_env": "TEAM_OPENAI_KEY"}}}
    )

    issues = _issue_map(embedded)

    assert "embedded secret values are forbidden" in issues["providers.openai.api_key"]
    assert validate_config(referenced).is_valid


def test_provider_specific_fields_are_scoped() -> None:
    config = merge_config(
        default_config(),
        {"providers": {"anthropic": {"organization": "acme"}, "xai": {"enabled": True}}},
    )

    issues = _issue_map(config)

    assert issues["providers.anthropic.organization"] == "unknown field"
    assert issues["providers.xai.enabled"] == "unknown field"


def test_openai_accepts_optional_base_url_and_organization() -> None:
    config = merge_config(
        default_config(),
        {"providers": {"openai": {"base_url": "https://proxy.example/v1/", "organization": "o"}}},
    )

    normalized = assert_valid_config(config)

    assert normalized["providers"]["openai"]["base_url"] == "https://proxy.example/v1"
    assert normalized["providers"]["openai"]["organization"] == "o"


def test_ollama_default_requires_enabled_flag() -> None:
    disabled = merge_config(default_config(), {"providers": {"default": "ollama"}})
    enabled = merge_config(
        default_config(), {"providers": {"default": "ollama", "ollama": {"enabled": True}}}
    )

    issues = _issue_map(disabled)

    assert "providers.ollama.enabled = true" in issues["providers.default"]
    assert validate_config(enabled).is_valid


def test_schema_version_mismatch_reports_migration_guidance() -> None:
    newer = ConfigSchemaVersion + 1
    config = merge_config(default_config(), {"meta": {"schema_version": newer}})

    issues = _issue_map(config)

    assert issues["meta.schema_version"] == migration_guidance(newer)
    assert "upgrade the pr-describer package" in migration_guidance(newer)
    assert migration_guidance(ConfigSchemaVersion) == "schema version is current"


def test_missing_sections_are_reported() -> None:
    issues = _issue_map({"meta": {"schema_version": ConfigSchemaVersion}})

    assert issues["providers"] == "missing required field"
    assert issues["generation"] == "missing required field"
    assert issues["observability"] == "missing required field"


def test_assert_valid_config_raises_with_rendered_issues() -> None:
    config = merge_config(default_config(), {"observability": {"log_format": "xml"}})

    with pytest.raises(ConfigValidationError) as exc_info:
        assert_valid_config(config)

    assert str(exc_info.value).startswith("invalid config:\n- observability.log_format:")
    assert [issue.path for issue in exc_info.value.issues] == ["observability.log_format"]


def test_non_mapping_root_is_rejected() -> None:
    result = validate_config(["not", "a", "mapping"])

    assert result.config is None
    assert result.issues[0].path == "<root>"


def test_merge_config_is_deep_and_non_destructive() -> None:
    base = default_config()

    merged = merge_config(base, {"providers": {"xai": {"model": "grok-2"}}})

    assert merged["providers"]["xai"]["model"] == "grok-2"
    assert merged["providers"]["xai"]["api_key_env"] == "XAI_API_KEY"
    assert base["providers"]["xai"]["model"] == "grok-beta"


def test_dump_redacted_is_recursive_and_preserves_shape() -> None:
    config = default_config()

    redacted = dump_redacted(config)

    assert redacted["providers"]["openai"]["api_key_env"] == "<redacted>"
    assert redacted["providers"]["openai"]["model"] == "gpt-3.5-turbo"
    assert redacted["providers"]["ollama"]["base_url"] == "http://localhost:11434"
    assert config["providers"]["openai"]["api_key_env"] == "OPENAI_API_KEY"
    assert set(redacted) == set(config)
    assert redacted["observability"]["redact_secrets"] is True
