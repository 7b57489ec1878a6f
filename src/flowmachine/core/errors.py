"""
Error types for FLOWMACHINE parsing, validation, and configuration.

Most diagram problems never raise: they are collected as diagnostics (see
:mod:`flowmachine.core.diagnostics`). The exceptions below are reserved for
conditions that must halt a run.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class FlowMachineError(Exception):
    """Base exception for all FLOWMACHINE errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class ParseError(FlowMachineError):
    """
    Raised when a diagram source cannot be parsed at all.

    The parser itself recovers from malformed lines; this is only used by
    callers that want to turn a failed parse into an exception.
    """

    pass


class ValidationError(FlowMachineError):
    """
    Raised when a caller escalates validation diagnostics into a failure.

    Examples:
    - Strict pre-flight check failed in CI
    - Machine has no initial state
    """

    pass


class ConfigError(FlowMachineError):
    """
    Raised when a flowmachine.toml file holds invalid values.

    Examples:
    - Unknown severity name
    - Negative error limit
    - Wrong value type
    """

    pass


class TooManyErrorsError(FlowMachineError):
    """Raised by the ErrorHandler once the error limit is reached."""

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f"Too many errors encountered ({count}, limit {limit}). Stopping execution."
        )


@dataclass
class ErrorContext:
    """
    Source location of an error.

    Attributes:
        file: Path to the source file where error occurred
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    file: Path
    line: int
    column: int = 1

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "flows.md:10:5"
        """
        return f"{self.file}:{self.line}:{self.column}"


def make_parse_error(
    message: str,
    file: Path,
    line: int,
    column: int = 1,
) -> ParseError:
    """
    Helper to create a ParseError with context.

    Args:
        message: Error description
        file: Source file path
        line: Line number (1-indexed)
        column: Column number (1-indexed)

    Returns:
        ParseError with context attached
    """
    context = ErrorContext(file=file, line=line, column=column)
    return ParseError(message, context)


def make_validation_error(
    message: str,
    file: Path | None = None,
    line: int | None = None,
    column: int | None = None,
) -> ValidationError:
    """
    Helper to create a ValidationError with optional context.

    Context is only attached when both file and line are known.
    """
    if file and line:
        context = ErrorContext(file=file, line=line, column=column or 1)
        return ValidationError(message, context)
    return ValidationError(message)
