"""
Strict syntax validation for flowchart diagrams.

A read-only pre-flight check meant for CI gates. It is deliberately stricter
than the parser: only the canonical arrow forms ``A --> B`` and
``A -->|label| B`` are accepted, and the declaration must name an explicit
direction. The parser keeps accepting the looser dialects so that
extraction stays best-effort.

``strict_mode`` only moves issues between warnings and errors; validation
never raises.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from . import rules
from .diagnostics import Category, Diagnostic, ValidationResult, make_error, make_warning
from .lexer import DiagramBlock, LineKind, SourceLine, classify_line, scan_blocks
from .parser import CLASS_ASSIGN_RE, CLASS_DEF_RE, LINE_END, STATE_RE, node_pattern

logger = logging.getLogger(__name__)

# =============================================================================
# Validation Constants
# =============================================================================

DECLARATION_RE = re.compile(r"^flowchart\s+(TD|TB|BT|RL|LR)\s*;?$")
EXPECTED_DECLARATION = "flowchart TD|TB|BT|RL|LR"

CANONICAL_TRANSITION_RE = re.compile(
    rf"^{node_pattern('src')}\s*-->\s*(?:\|[^|]*\|\s*)?{node_pattern('dst')}{LINE_END}"
)

_NESTED_FENCE_RE = re.compile(r"^(?:`{3,}|~{3,})\s*mermaid\b", re.IGNORECASE)

# Keywords that break rendering when used as node ids
RESERVED_WORDS = frozenset(
    {
        "end",
        "graph",
        "flowchart",
        "subgraph",
        "class",
        "classDef",
        "click",
        "style",
        "linkStyle",
        "direction",
    }
)


def _issue(strict_mode: bool, message: str, **kwargs) -> Diagnostic:
    """Error in strict mode, warning otherwise."""
    factory = make_error if strict_mode else make_warning
    return factory(Category.PARSING, message, **kwargs)


def _check_ids(
    ids: list[str],
    line: SourceLine,
    seen: set[str],
    strict_mode: bool,
    validate_naming: bool,
) -> tuple[list[Diagnostic], list[Diagnostic]]:
    errors: list[Diagnostic] = []
    warnings: list[Diagnostic] = []

    for state_id in ids:
        if state_id in seen:
            continue
        seen.add(state_id)

        if rules.starts_with_digit(state_id):
            errors.append(
                make_error(
                    Category.PARSING,
                    f"Invalid state id '{state_id}': ids must not start with a digit",
                    line=line.number,
                    suggestion=f"Rename to '{rules.to_pascal_case(state_id)}'",
                )
            )
            continue

        if validate_naming and not rules.is_pascal_case(state_id):
            warnings.append(
                make_warning(
                    Category.PARSING,
                    f"State id '{state_id}' should be PascalCase",
                    line=line.number,
                    suggestion=f"Use '{rules.to_pascal_case(state_id)}'",
                )
            )

        if strict_mode and state_id in RESERVED_WORDS:
            warnings.append(
                make_warning(
                    Category.PARSING,
                    f"State id '{state_id}' is a reserved word",
                    line=line.number,
                    suggestion="Pick an id that is not a diagram keyword",
                )
            )

    return errors, warnings


def _validate_block(
    block: DiagramBlock, strict_mode: bool, validate_naming: bool
) -> tuple[list[Diagnostic], list[Diagnostic]]:
    errors: list[Diagnostic] = []
    warnings: list[Diagnostic] = []

    if block.fenced and not block.closed:
        errors.append(
            make_error(
                Category.PARSING,
                f"Mermaid block starting at line {block.start_line} is not properly closed",
                line=block.start_line,
                suggestion="Add a closing ``` fence",
            )
        )

    declaration = block.declaration
    if declaration is None:
        issue = _issue(
            strict_mode,
            f"Empty Mermaid block at line {block.start_line}",
            line=block.start_line,
            suggestion=f"Start the block with '{EXPECTED_DECLARATION}'",
        )
        (errors if issue.is_error else warnings).append(issue)
        return errors, warnings

    if not DECLARATION_RE.match(declaration.text):
        errors.append(
            make_error(
                Category.PARSING,
                f"Invalid flowchart declaration: '{declaration.text}'",
                line=declaration.number,
                suggestion=f"Expected '{EXPECTED_DECLARATION}'",
            )
        )

    seen: set[str] = set()
    content_lines = 0

    for line in block.body:
        kind = classify_line(line.text)
        if kind in (LineKind.BLANK, LineKind.COMMENT):
            continue
        content_lines += 1

        if kind == LineKind.FENCE:
            if _NESTED_FENCE_RE.match(line.text):
                errors.append(
                    make_error(
                        Category.PARSING,
                        f"Nested Mermaid block at line {line.number}",
                        line=line.number,
                        suggestion="Close the current block before opening another",
                    )
                )
                continue

        elif kind == LineKind.DIRECTIVE:
            if line.text.startswith("subgraph"):
                warnings.append(
                    make_warning(
                        Category.PARSING,
                        f"Subgraphs are ignored by the parser (line {line.number})",
                        line=line.number,
                    )
                )
            continue

        elif kind == LineKind.CLASS_DEF and CLASS_DEF_RE.match(line.text):
            continue

        elif kind == LineKind.CLASS_ASSIGN:
            match = CLASS_ASSIGN_RE.match(line.text)
            if match:
                ids = [s.strip() for s in match.group("ids").split(",") if s.strip()]
                e, w = _check_ids(ids, line, seen, strict_mode, validate_naming)
                errors.extend(e)
                warnings.extend(w)
                continue

        elif kind == LineKind.TRANSITION:
            match = CANONICAL_TRANSITION_RE.match(line.text)
            if match is None:
                errors.append(
                    make_error(
                        Category.PARSING,
                        f"Invalid transition syntax at line {line.number}: {line.text}",
                        line=line.number,
                        suggestion="Use 'A --> B' or 'A -->|label| B'",
                    )
                )
                continue
            e, w = _check_ids(
                [match.group("src"), match.group("dst")],
                line,
                seen,
                strict_mode,
                validate_naming,
            )
            errors.extend(e)
            warnings.extend(w)
            continue

        elif kind == LineKind.STATE:
            match = STATE_RE.match(line.text)
            if match:
                e, w = _check_ids([match.group("id")], line, seen, strict_mode, validate_naming)
                errors.extend(e)
                warnings.extend(w)
                continue

        issue = _issue(
            strict_mode,
            f"Unrecognized line {line.number}: {line.text}",
            line=line.number,
        )
        (errors if issue.is_error else warnings).append(issue)

    if content_lines == 0:
        issue = _issue(
            strict_mode,
            f"Mermaid block at line {block.start_line} has no states or transitions",
            line=block.start_line,
        )
        (errors if issue.is_error else warnings).append(issue)

    return errors, warnings


def validate_content(
    text: str,
    *,
    strict_mode: bool = False,
    validate_naming: bool = False,
    path: Path | None = None,
) -> ValidationResult:
    """
    Validate diagram syntax in a markdown document or raw diagram string.

    Args:
        text: Document text
        strict_mode: Report unrecognized lines and empty blocks as errors
        validate_naming: Warn on state ids that are not PascalCase
        path: Originating file, attached to every diagnostic

    Returns:
        ValidationResult; ``is_valid`` is False iff any error was found
    """
    result = ValidationResult()
    blocks = scan_blocks(text)

    if not blocks:
        result.warnings.append(
            make_warning(
                Category.PARSING,
                "No Mermaid content found",
                suggestion="Wrap the diagram in a ```mermaid fence",
            )
        )

    for block in blocks:
        errors, warnings = _validate_block(block, strict_mode, validate_naming)
        result.extend(errors, warnings)

    if path is not None:
        for diagnostic in result.diagnostics:
            diagnostic.file = str(path)

    logger.debug(
        "Syntax check of %s: %d errors, %d warnings",
        path or "<text>",
        len(result.errors),
        len(result.warnings),
    )
    return result


def validate_file(
    path: str | Path,
    *,
    strict_mode: bool = False,
    validate_naming: bool = False,
) -> ValidationResult:
    """Validate a file; a missing or unreadable file is a FILE_SYSTEM error."""
    path = Path(path)
    if not path.is_file():
        return ValidationResult(
            errors=[make_error(Category.FILE_SYSTEM, f"File not found: {path}", file=str(path))]
        )

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ValidationResult(
            errors=[
                make_error(
                    Category.FILE_SYSTEM,
                    f"Failed to read file {path}: {e}",
                    file=str(path),
                    recoverable=True,
                )
            ]
        )

    return validate_content(
        text, strict_mode=strict_mode, validate_naming=validate_naming, path=path
    )
