"""
Project configuration loaded from ``flowmachine.toml``.

Every section is optional::

    [validation]
    strict_mode = false
    validate_naming = false

    [parser]
    final_keywords = ["end", "final", "close", "exit", "goodbye"]

    [errors]
    max_errors = 50
    max_retries = 3
    min_severity = "warning"
    generate_reports = false
    report_dir = ".error-reports"
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .diagnostics import ErrorHandlingConfig, Severity
from .errors import ConfigError
from .rules import DEFAULT_FINAL_KEYWORDS

CONFIG_FILENAME = "flowmachine.toml"


@dataclass
class ValidationConfig:
    """Strict and business-rule validator options."""

    strict_mode: bool = False
    validate_naming: bool = False


@dataclass
class ParserConfig:
    """Parser heuristics."""

    final_keywords: tuple[str, ...] = DEFAULT_FINAL_KEYWORDS


@dataclass
class FlowMachineConfig:
    """Complete configuration for one run."""

    validation: ValidationConfig = field(default_factory=ValidationConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    errors: ErrorHandlingConfig = field(
        default_factory=lambda: ErrorHandlingConfig(generate_reports=False)
    )


def _expect(section: str, key: str, value: Any, kind: type | tuple[type, ...]) -> Any:
    # bool is an int subclass; reject it where a number is expected
    if isinstance(value, kind) and not (kind is int and isinstance(value, bool)):
        return value
    raise ConfigError(
        f"Invalid value for [{section}] {key}: expected "
        f"{getattr(kind, '__name__', kind)}, got {value!r}"
    )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def parse_config(data: dict[str, Any]) -> FlowMachineConfig:
    """Build a config from already-decoded TOML data."""
    validation_data = _section(data, "validation")
    parser_data = _section(data, "parser")
    errors_data = _section(data, "errors")

    validation = ValidationConfig(
        strict_mode=_expect(
            "validation", "strict_mode", validation_data.get("strict_mode", False), bool
        ),
        validate_naming=_expect(
            "validation", "validate_naming", validation_data.get("validate_naming", False), bool
        ),
    )

    keywords = parser_data.get("final_keywords", list(DEFAULT_FINAL_KEYWORDS))
    _expect("parser", "final_keywords", keywords, list)
    for keyword in keywords:
        _expect("parser", "final_keywords", keyword, str)
    parser = ParserConfig(final_keywords=tuple(k.lower() for k in keywords))

    max_errors = _expect("errors", "max_errors", errors_data.get("max_errors", 50), int)
    max_retries = _expect("errors", "max_retries", errors_data.get("max_retries", 3), int)
    if max_errors < 1:
        raise ConfigError(f"[errors] max_errors must be at least 1, got {max_errors}")
    if max_retries < 0:
        raise ConfigError(f"[errors] max_retries must not be negative, got {max_retries}")

    severity_name = _expect(
        "errors", "min_severity", errors_data.get("min_severity", "warning"), str
    )
    try:
        min_severity = Severity(severity_name.lower())
    except ValueError:
        choices = ", ".join(s.value for s in Severity)
        raise ConfigError(
            f"[errors] min_severity must be one of {choices}, got {severity_name!r}"
        ) from None

    errors = ErrorHandlingConfig(
        max_errors=max_errors,
        max_retries=max_retries,
        min_severity=min_severity,
        generate_reports=_expect(
            "errors", "generate_reports", errors_data.get("generate_reports", False), bool
        ),
        report_dir=Path(
            _expect("errors", "report_dir", errors_data.get("report_dir", ".error-reports"), str)
        ),
    )

    return FlowMachineConfig(validation=validation, parser=parser, errors=errors)


def load_config(path: Path) -> FlowMachineConfig:
    """
    Load configuration from a TOML file.

    Raises:
        ConfigError: If the file is not valid TOML or holds invalid values
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    return parse_config(data)


def find_config(start: Path) -> Path | None:
    """Look for flowmachine.toml in ``start`` and its parents."""
    start = start.resolve()
    directory = start if start.is_dir() else start.parent
    for candidate in (directory, *directory.parents):
        config_path = candidate / CONFIG_FILENAME
        if config_path.is_file():
            return config_path
    return None
