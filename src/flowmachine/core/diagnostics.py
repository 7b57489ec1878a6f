"""
Diagnostic model and accumulation for FLOWMACHINE.

Every component reports problems with the same record shape: a
:class:`Diagnostic` carrying a severity, a category, a message and an
optional source location and suggestion. The parser and validators return
lists of diagnostics; the :class:`ErrorHandler` is the single place they are
accumulated for one run, filtered by severity, counted, retried and
reported.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import sys
import time
import traceback
import uuid
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from .errors import TooManyErrorsError

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    """Diagnostic severity levels, lowest first."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @property
    def is_blocking(self) -> bool:
        """ERROR and CRITICAL diagnostics count toward the error limit."""
        return self in (Severity.ERROR, Severity.CRITICAL)


_SEVERITY_ORDER = [
    Severity.DEBUG,
    Severity.INFO,
    Severity.WARNING,
    Severity.ERROR,
    Severity.CRITICAL,
]

_LOG_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


class Category(StrEnum):
    """Where a diagnostic came from."""

    PARSING = "parsing"  # Malformed diagram syntax
    VALIDATION = "validation"  # Semantic failure of a parsed machine
    BUSINESS_RULE = "business_rule"  # Soft domain conventions
    GENERATION = "generation"
    FILE_SYSTEM = "file_system"
    COMPILATION = "compilation"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    UNKNOWN = "unknown"


def _new_id() -> str:
    return f"diag_{uuid.uuid4().hex[:12]}"


@dataclass
class Diagnostic:
    """A single error, warning or note about a diagram or machine."""

    severity: Severity
    category: Category
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    suggestion: str | None = None
    details: str | None = None
    context: dict[str, Any] = field(default_factory=dict)
    recoverable: bool = False
    retry_count: int = 0
    stack: str | None = None
    id: str = field(default_factory=_new_id, compare=False)
    timestamp: float = field(default_factory=time.time, compare=False)

    @property
    def is_error(self) -> bool:
        return self.severity.is_blocking

    def format(self) -> str:
        """Format as ``file:line:col: severity: message``."""
        location = ""
        if self.file:
            location = self.file
            if self.line is not None:
                location += f":{self.line}"
                if self.column is not None:
                    location += f":{self.column}"
            location += ": "
        elif self.line is not None:
            location = f"line {self.line}: "

        text = f"{location}{self.severity.value}: {self.message}"
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "severity": self.severity.value,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
            "suggestion": self.suggestion,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "context": self.context,
            "recoverable": self.recoverable,
            "retry_count": self.retry_count,
            "stack": self.stack,
        }


def make_error(category: Category, message: str, **kwargs: Any) -> Diagnostic:
    """Shorthand for an ERROR-severity diagnostic."""
    return Diagnostic(Severity.ERROR, category, message, **kwargs)


def make_warning(category: Category, message: str, **kwargs: Any) -> Diagnostic:
    """Shorthand for a WARNING-severity diagnostic."""
    return Diagnostic(Severity.WARNING, category, message, **kwargs)


@dataclass
class ValidationResult:
    """Outcome of a validation pass: errors block, warnings never do."""

    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [*self.errors, *self.warnings]

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total_issues": len(self.errors) + len(self.warnings),
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
        }

    def extend(self, errors: list[Diagnostic], warnings: list[Diagnostic]) -> None:
        self.errors.extend(errors)
        self.warnings.extend(warnings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [d.to_dict() for d in self.errors],
            "warnings": [d.to_dict() for d in self.warnings],
            "summary": self.summary,
        }


# =============================================================================
# Error Handler
# =============================================================================


@dataclass
class ErrorHandlingConfig:
    """Limits and reporting options for an :class:`ErrorHandler`."""

    max_errors: int = 50
    max_retries: int = 3
    min_severity: Severity = Severity.WARNING
    generate_reports: bool = True
    report_dir: Path = Path(".error-reports")
    include_stack_traces: bool = True
    include_system_context: bool = True


@dataclass
class HandlerStatistics:
    """Counts over the diagnostics held by a handler."""

    total: int
    by_severity: dict[Severity, int]
    by_category: dict[Category, int]
    recoverable: int
    retried: int


def _peak_memory_kb() -> int | None:
    """Peak resident set size of this process; None where getrusage is unavailable."""
    if sys.platform == "win32":
        return None
    import resource

    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes
    return peak // 1024 if sys.platform == "darwin" else peak


class ErrorHandler:
    """
    Accumulates diagnostics for one run.

    Diagnostics below ``min_severity`` are dropped. Once the number of held
    ERROR and CRITICAL diagnostics reaches ``max_errors`` the handler raises
    :class:`TooManyErrorsError` to halt the run. Handlers are not shared
    between unrelated runs: construct one per run, or call :meth:`clear`.
    """

    def __init__(self, config: ErrorHandlingConfig | None = None, **overrides: Any):
        # replace() rejects unknown option names with a TypeError
        self.config = replace(config or ErrorHandlingConfig(), **overrides)
        self.config.min_severity = Severity(self.config.min_severity)
        self._diagnostics: list[Diagnostic] = []
        self._category_counts: Counter[Category] = Counter()
        self._started = time.monotonic()

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)

    def add(
        self,
        severity: Severity,
        category: Category,
        message: str,
        *,
        details: str | None = None,
        suggestion: str | None = None,
        file: str | None = None,
        line: int | None = None,
        column: int | None = None,
        context: dict[str, Any] | None = None,
        recoverable: bool = False,
        error: BaseException | None = None,
    ) -> str:
        """
        Record a diagnostic.

        Returns:
            The diagnostic id. Filtered diagnostics still get an id.

        Raises:
            TooManyErrorsError: If the error limit has been reached.
        """
        diagnostic = Diagnostic(
            severity=Severity(severity),
            category=Category(category),
            message=message,
            details=details,
            suggestion=suggestion,
            file=file,
            line=line,
            column=column,
            context=context or {},
            recoverable=recoverable,
        )
        if error is not None and self.config.include_stack_traces:
            diagnostic.stack = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        self._record(diagnostic)
        return diagnostic.id

    def critical(self, category: Category, message: str, **kwargs: Any) -> str:
        return self.add(Severity.CRITICAL, category, message, **kwargs)

    def error(self, category: Category, message: str, **kwargs: Any) -> str:
        return self.add(Severity.ERROR, category, message, **kwargs)

    def warning(self, category: Category, message: str, **kwargs: Any) -> str:
        return self.add(Severity.WARNING, category, message, **kwargs)

    def info(self, category: Category, message: str, **kwargs: Any) -> str:
        return self.add(Severity.INFO, category, message, **kwargs)

    def debug(self, category: Category, message: str, **kwargs: Any) -> str:
        return self.add(Severity.DEBUG, category, message, **kwargs)

    def extend(self, diagnostics: list[Diagnostic]) -> None:
        """Ingest diagnostics produced elsewhere (parser, validators)."""
        for diagnostic in diagnostics:
            self._record(diagnostic)

    def _record(self, diagnostic: Diagnostic) -> None:
        if diagnostic.severity.rank < self.config.min_severity.rank:
            return

        self._diagnostics.append(diagnostic)
        self._category_counts[diagnostic.category] += 1
        logger.log(
            _LOG_LEVELS[diagnostic.severity],
            "[%s] %s",
            diagnostic.category.value,
            diagnostic.format(),
        )

        blocking = sum(1 for d in self._diagnostics if d.severity.is_blocking)
        if blocking >= self.config.max_errors:
            raise TooManyErrorsError(blocking, self.config.max_errors)

    def get(self, diagnostic_id: str) -> Diagnostic | None:
        for diagnostic in self._diagnostics:
            if diagnostic.id == diagnostic_id:
                return diagnostic
        return None

    def retry(self, diagnostic_id: str) -> bool:
        """
        Count another attempt at the operation behind a recoverable diagnostic.

        Returns:
            True if another attempt is allowed, False if the diagnostic is
            unknown, not recoverable, or has exhausted its retries.
        """
        diagnostic = self.get(diagnostic_id)
        if diagnostic is None or not diagnostic.recoverable:
            return False

        diagnostic.retry_count += 1
        if diagnostic.retry_count > self.config.max_retries:
            diagnostic.recoverable = False
            self.error(
                Category.UNKNOWN,
                f"Max retries exceeded for error: {diagnostic.message}",
                context={"original_id": diagnostic_id},
            )
            return False

        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_errors(self) -> bool:
        return any(d.severity.is_blocking for d in self._diagnostics)

    def has_critical_errors(self) -> bool:
        return any(d.severity == Severity.CRITICAL for d in self._diagnostics)

    def by_severity(self, severity: Severity) -> list[Diagnostic]:
        return [d for d in self._diagnostics if d.severity == severity]

    def by_category(self, category: Category) -> list[Diagnostic]:
        return [d for d in self._diagnostics if d.category == category]

    def statistics(self) -> HandlerStatistics:
        severity_counts = Counter(d.severity for d in self._diagnostics)
        return HandlerStatistics(
            total=len(self._diagnostics),
            by_severity={s: severity_counts.get(s, 0) for s in Severity},
            by_category={c: self._category_counts.get(c, 0) for c in Category},
            recoverable=sum(1 for d in self._diagnostics if d.recoverable),
            retried=sum(1 for d in self._diagnostics if d.retry_count > 0),
        )

    def clear(self) -> None:
        """Reset all state so the handler can be reused for a new run."""
        self._diagnostics.clear()
        self._category_counts.clear()
        self._started = time.monotonic()

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def generate_report(self) -> dict[str, Any]:
        """Build the structured report for the current run."""
        stats = self.statistics()
        return {
            "summary": {
                "total": stats.total,
                "critical": stats.by_severity[Severity.CRITICAL],
                "errors": stats.by_severity[Severity.ERROR],
                "warnings": stats.by_severity[Severity.WARNING],
                "infos": stats.by_severity[Severity.INFO],
                "debugs": stats.by_severity[Severity.DEBUG],
            },
            "diagnostics": [d.to_dict() for d in self._diagnostics],
            "generated_at": datetime.now(UTC).isoformat(),
            "duration_ms": int((time.monotonic() - self._started) * 1000),
            "system": self._system_info(),
        }

    def _system_info(self) -> dict[str, Any]:
        if not self.config.include_system_context:
            return {"python": "hidden", "platform": "hidden", "pid": 0, "peak_memory_kb": None}
        return {
            "python": platform.python_version(),
            "platform": sys.platform,
            "pid": os.getpid(),
            "peak_memory_kb": _peak_memory_kb(),
        }

    def save_report(self, filename: str | None = None) -> Path | None:
        """
        Write the report as JSON under ``report_dir``.

        Returns:
            Path of the written report, or None when reports are disabled.
        """
        if not self.config.generate_reports:
            return None

        if filename is None:
            stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S-%f")
            filename = f"error-report-{stamp}.json"

        path = Path(self.config.report_dir) / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.generate_report(), indent=2), encoding="utf-8")
        logger.info("Wrote diagnostic report to %s", path)
        return path

    def summary(self) -> str:
        """Short human-readable digest of the run."""
        stats = self.statistics()
        lines = ["Error Summary:", f"  Total: {stats.total}"]

        labels = [
            (Severity.CRITICAL, "Critical"),
            (Severity.ERROR, "Errors"),
            (Severity.WARNING, "Warnings"),
            (Severity.INFO, "Info"),
            (Severity.DEBUG, "Debug"),
        ]
        for severity, label in labels:
            count = stats.by_severity[severity]
            if count:
                lines.append(f"  {label}: {count}")

        if stats.recoverable:
            lines.append(f"  Recoverable: {stats.recoverable}")
        if stats.retried:
            lines.append(f"  Retried: {stats.retried}")

        top = [(c, n) for c, n in self._category_counts.most_common(3) if n > 0]
        if top:
            lines.append("Top Categories:")
            for category, count in top:
                lines.append(f"  {category.value}: {count}")

        return "\n".join(lines)
