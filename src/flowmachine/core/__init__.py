"""Core FLOWMACHINE functionality: IR, parser, strict and business-rule validators, diagnostics."""

from . import ir
from .config import FlowMachineConfig, load_config
from .diagnostics import (
    Category,
    Diagnostic,
    ErrorHandler,
    ErrorHandlingConfig,
    Severity,
    ValidationResult,
)
from .errors import (
    ConfigError,
    ErrorContext,
    FlowMachineError,
    ParseError,
    TooManyErrorsError,
    ValidationError,
)
from .lint import LintReport, lint_source
from .parser import MermaidParser, ParseResult, parse_file, parse_text
from .syntax import validate_content, validate_file
from .validator import validate_machine_specs

__all__ = [
    "ir",
    "FlowMachineError",
    "ParseError",
    "ValidationError",
    "ConfigError",
    "TooManyErrorsError",
    "ErrorContext",
    "Severity",
    "Category",
    "Diagnostic",
    "ValidationResult",
    "ErrorHandler",
    "ErrorHandlingConfig",
    "FlowMachineConfig",
    "load_config",
    "MermaidParser",
    "ParseResult",
    "parse_text",
    "parse_file",
    "validate_content",
    "validate_file",
    "validate_machine_specs",
    "LintReport",
    "lint_source",
]
