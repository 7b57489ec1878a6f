"""
FLOWMACHINE CLI.

Commands:
- validate: strict syntax gate, parse and business rules for one file
- parse: print the machines extracted from a file (table or JSON)
"""

from __future__ import annotations

import json
import logging
import os
import platform
import sys
from pathlib import Path

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from flowmachine._version import get_version
from flowmachine.core.config import FlowMachineConfig, find_config, load_config
from flowmachine.core.diagnostics import Diagnostic, Severity
from flowmachine.core.errors import ConfigError, TooManyErrorsError
from flowmachine.core.lint import lint_source
from flowmachine.core.parser import MermaidParser

console = Console()

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.ERROR: "red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
    Severity.DEBUG: "bright_black",
}

app = typer.Typer(
    help="FLOWMACHINE - state machine specifications from flowchart diagrams",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"flowmachine {get_version()}")
        typer.echo(f"Python {platform.python_version()} ({platform.python_implementation()})")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    log_level = "DEBUG" if verbose else os.getenv("FLOWMACHINE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if not verbose:
        # Diagnostics are printed as a table; don't echo each one as a log record
        logging.getLogger("flowmachine.core.diagnostics").setLevel(logging.CRITICAL + 1)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """FLOWMACHINE CLI main callback for global options."""
    _configure_logging(verbose)


def _load_run_config(path: Path, config_path: Path | None) -> FlowMachineConfig:
    """Explicit --config, else the nearest flowmachine.toml, else defaults."""
    config_path = config_path or find_config(path)
    if config_path is None:
        return FlowMachineConfig()
    try:
        return load_config(config_path)
    except ConfigError as e:
        typer.echo(f"Config error: {e}", err=True)
        raise typer.Exit(code=1)


def _location(diagnostic: Diagnostic) -> str:
    if diagnostic.line is None:
        return "-"
    return f"{diagnostic.line}:{diagnostic.column}" if diagnostic.column else str(diagnostic.line)


def _print_diagnostic_table(diagnostics: list[Diagnostic]) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Line", justify="right")
    table.add_column("Category")
    table.add_column("Message")
    table.add_column("Suggestion", style="bright_black")

    for diagnostic in diagnostics:
        table.add_row(
            f"[{SEVERITY_STYLES[diagnostic.severity]}]{diagnostic.severity.value}[/]",
            _location(diagnostic),
            diagnostic.category.value,
            diagnostic.message,
            diagnostic.suggestion or "",
        )
    console.print(table)


def _print_vscode_diagnostics(diagnostics: list[Diagnostic], path: Path) -> None:
    """
    Print diagnostics in VS Code format: file:line:col: severity: message
    """
    for diagnostic in diagnostics:
        line = diagnostic.line or 1
        column = diagnostic.column or 1
        typer.echo(
            f"{diagnostic.file or path}:{line}:{column}: "
            f"{diagnostic.severity.value}: {diagnostic.message}",
            err=diagnostic.is_error,
        )
    if not diagnostics:
        typer.echo("::notice: Validation successful")


@app.command(name="validate")
def validate_command(
    path: Path = typer.Argument(..., help="Markdown or diagram file to validate"),  # noqa: B008
    strict: bool = typer.Option(
        False, "--strict", help="Report unrecognized lines and empty blocks as errors"
    ),
    naming: bool = typer.Option(False, "--naming", help="Check PascalCase naming conventions"),
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Path to flowmachine.toml"
    ),
    report: bool | None = typer.Option(
        None, "--report/--no-report", help="Write a JSON diagnostic report"
    ),
    report_dir: Path | None = typer.Option(  # noqa: B008
        None, "--report-dir", help="Directory for diagnostic reports"
    ),
    gate: bool = typer.Option(
        True, "--gate/--no-gate", help="Skip parsing when the strict syntax check fails"
    ),
    format: str = typer.Option(
        "human", "--format", "-f", help="Output format: 'human' or 'vscode'"
    ),
) -> None:
    """
    Validate a diagram file: strict syntax, parse, business rules.

    Exits with code 1 when any error is found.

    Examples:
        flowmachine validate docs/menu.md
        flowmachine validate docs/menu.md --strict --naming
        flowmachine validate docs/menu.md --report --report-dir build/reports
    """
    config = _load_run_config(path, config_path)
    if strict:
        config.validation.strict_mode = True
    if naming:
        config.validation.validate_naming = True
    if report is not None:
        config.errors.generate_reports = report
    if report_dir is not None:
        config.errors.report_dir = report_dir

    try:
        result = lint_source(path, config=config, gate=gate)
    except TooManyErrorsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    diagnostics = result.handler.diagnostics
    if format == "vscode":
        _print_vscode_diagnostics(diagnostics, path)
    else:
        if diagnostics:
            _print_diagnostic_table(diagnostics)
        if result.gated:
            typer.echo("Syntax check failed; parsing skipped.", err=True)
        typer.echo(result.handler.summary())
        if result.ok:
            typer.echo(f"OK: {len(result.machines)} machine(s) valid.")

    report_path = result.handler.save_report()
    if report_path is not None:
        typer.echo(f"Report written to {report_path}")

    if not result.ok:
        raise typer.Exit(code=1)


@app.command(name="parse")
def parse_command(
    path: Path = typer.Argument(..., help="Markdown or diagram file to parse"),  # noqa: B008
    as_json: bool = typer.Option(False, "--json", help="Print machines as JSON"),
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Path to flowmachine.toml"
    ),
) -> None:
    """
    Parse a diagram file and print the extracted machines.

    Examples:
        flowmachine parse docs/menu.md
        flowmachine parse docs/menu.md --json > machines.json
    """
    config = _load_run_config(path, config_path)
    result = MermaidParser(final_keywords=config.parser.final_keywords).parse_file(path)

    for diagnostic in result.diagnostics:
        typer.echo(diagnostic.format(), err=True)

    if as_json:
        typer.echo(
            json.dumps([m.model_dump(mode="json") for m in result.machines], indent=2)
        )
    else:
        table = Table(title=str(path), box=box.ROUNDED)
        table.add_column("Machine", style="cyan")
        table.add_column("Category")
        table.add_column("Initial")
        table.add_column("States", justify="right")
        table.add_column("Transitions", justify="right")
        table.add_column("Final")
        for machine in result.machines:
            table.add_row(
                machine.id,
                machine.category.value,
                machine.initial_state or "-",
                str(len(machine.states)),
                str(len(machine.transitions)),
                ", ".join(machine.final_states) or "-",
            )
        console.print(table)

    if not result.ok:
        raise typer.Exit(code=1)


def main(argv: list[str] | None = None) -> None:
    app(args=argv, standalone_mode=True)


if __name__ == "__main__":
    main(sys.argv[1:])
