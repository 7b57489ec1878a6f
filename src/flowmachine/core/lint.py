"""
Lint pipeline: strict syntax check, parse, business rules.

This is the only place that constructs an ErrorHandler on the caller's
behalf. The parser and validators return diagnostics; every one of them is
forwarded into the handler here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .config import FlowMachineConfig
from .diagnostics import ErrorHandler, ValidationResult
from .errors import make_validation_error
from .ir import MachineSpec
from .parser import MermaidParser, ParseResult
from .syntax import validate_file
from .validator import validate_machine_specs

logger = logging.getLogger(__name__)


@dataclass
class LintReport:
    """Everything one lint run produced."""

    path: Path
    handler: ErrorHandler
    syntax: ValidationResult
    parse: ParseResult | None = None
    business: ValidationResult | None = None
    machines: list[MachineSpec] = field(default_factory=list)

    @property
    def gated(self) -> bool:
        """True when parsing was skipped because the syntax check failed."""
        return self.parse is None

    @property
    def ok(self) -> bool:
        return not self.handler.has_errors()

    def raise_for_errors(self) -> None:
        """Raise ValidationError for the first error held by the handler."""
        for diagnostic in self.handler.diagnostics:
            if diagnostic.is_error:
                raise make_validation_error(
                    diagnostic.message, file=self.path, line=diagnostic.line
                )


def lint_source(
    path: Path,
    config: FlowMachineConfig | None = None,
    handler: ErrorHandler | None = None,
    gate: bool = True,
) -> LintReport:
    """
    Validate a diagram file end to end.

    Steps:
    1. Strict syntax check. With ``gate`` on, a failure stops here.
    2. Lenient parse into MachineSpecs.
    3. Business-rule validation of every machine.

    Args:
        path: Markdown or diagram file
        config: Run configuration (defaults when None)
        handler: Diagnostic accumulator; one is built from ``config`` when None
        gate: Skip parsing when the strict check reports errors

    Returns:
        LintReport holding the handler and each stage's result

    Raises:
        TooManyErrorsError: If the handler's error limit is reached
    """
    config = config or FlowMachineConfig()
    if handler is None:
        handler = ErrorHandler(config.errors)

    syntax = validate_file(
        path,
        strict_mode=config.validation.strict_mode,
        validate_naming=config.validation.validate_naming,
    )
    handler.extend(syntax.diagnostics)
    report = LintReport(path=path, handler=handler, syntax=syntax)

    if gate and not syntax.is_valid:
        logger.info("Syntax check failed for %s; skipping parse", path)
        return report

    parser = MermaidParser(final_keywords=config.parser.final_keywords)
    report.parse = parser.parse_file(path)
    handler.extend(report.parse.diagnostics)
    report.machines = report.parse.machines

    if report.machines or report.parse.ok:
        report.business = validate_machine_specs(
            report.machines, validate_naming=config.validation.validate_naming
        )
        handler.extend(report.business.diagnostics)

    logger.debug(
        "Lint of %s: %d machine(s), %d diagnostic(s)",
        path,
        len(report.machines),
        len(handler),
    )
    return report
