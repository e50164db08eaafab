"""Structured logging: structlog events rendered through stdlib handlers with redaction."""

from __future__ import annotations

import logging
import math
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal, TextIO, cast

import structlog

from pr_describer.security.redaction import redact_structure

_DEFAULT_LOGGER_NAME: Final[str] = "pr_describer"
_HANDLER_MARKER: Final[str] = "_pr_describer_handler"

LogFormat = Literal["json", "console"]


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for structlog-backed event logging."""

    level: int | str = "INFO"
    log_format: LogFormat = "json"
    redact_secrets: bool = True
    logger_name: str = _DEFAULT_LOGGER_NAME
    stream: TextIO | None = None


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    stream: TextIO | None = None,
) -> structlog.stdlib.BoundLogger:
    """Configure logging from an ``[observability]`` config section and return the root logger.

    Parameters
    ----------
    observability_config:
        Mapping compatible with the ``[observability]`` table of ``pr_describer.toml``.
    stream:
        Optional text stream; defaults to ``sys.stderr``.
    """

    cfg = dict(observability_config or {})
    raw_level = cfg.get("log_level", "INFO")
    level: int | str = raw_level if isinstance(raw_level, (int, str)) else "INFO"
    raw_format = cfg.get("log_format", "json")
    log_format: LogFormat = "console" if raw_format == "console" else "json"

    return configure_logging(
        LoggingConfig(
            level=level,
            log_format=log_format,
            redact_secrets=bool(cfg.get("redact_secrets", True)),
            stream=stream,
        )
    )


def configure_logging(config: LoggingConfig) -> structlog.stdlib.BoundLogger:
    """Install the processor chain and a single stream handler on the package logger."""

    level = _parse_log_level(config.level)
    logger_name = _validate_logger_name(config.logger_name)

    handler = logging.StreamHandler(config.stream if config.stream is not None else sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_MARKER, True)

    stdlib_logger = logging.getLogger(logger_name)
    _remove_installed_handlers(stdlib_logger)
    stdlib_logger.addHandler(handler)
    stdlib_logger.setLevel(level)
    stdlib_logger.propagate = False

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        normalize_event_values,
    ]
    if config.redact_secrets:
        processors.append(redact_event)
    if config.log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return cast("structlog.stdlib.BoundLogger", structlog.get_logger(logger_name))


def reset_logging(logger_name: str = _DEFAULT_LOGGER_NAME) -> None:
    """Undo ``configure_logging``: drop installed handlers and restore structlog defaults."""

    _remove_installed_handlers(logging.getLogger(logger_name))
    structlog.reset_defaults()


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Temporarily bind correlation fields (request id, PR id, ...) for events in scope."""

    bound = {key: value.strip() for key, value in fields.items() if value and value.strip()}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def redact_event(
    logger: object, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that deep-redacts secrets by key and by pattern."""

    _ = (logger, method_name)
    return cast("MutableMapping[str, Any]", redact_structure(dict(event_dict)))


def normalize_event_values(
    logger: object, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that coerces event values into JSON-safe shapes."""

    _ = (logger, method_name)
    return {str(key): _normalize_json_value(value) for key, value in event_dict.items()}


def _remove_installed_handlers(logger: logging.Logger) -> None:
    for existing in list(logger.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            logger.removeHandler(existing)
            existing.close()


def _validate_logger_name(logger_name: str) -> str:
    if not isinstance(logger_name, str):
        raise ValueError(f"logger_name must be a string, got {type(logger_name).__name__}")
    normalized = logger_name.strip()
    if not normalized:
        raise ValueError("logger_name must not be empty")
    return normalized


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def _normalize_json_value(value: object) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return str(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_normalize_json_value(item) for item in value), key=repr)
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return repr(value)


__all__ = [
    "LogFormat",
    "LoggingConfig",
    "configure_logging",
    "correlation_scope",
    "normalize_event_values",
    "redact_event",
    "reset_logging",
    "setup_logging",
]
