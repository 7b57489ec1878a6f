"""
Flowchart parser: diagram text to MachineSpec.

The parser is lenient. Each diagram block is read line by line; every line
is turned into a list of outcomes, either graph updates (declare a state,
add a transition, attach a class) or diagnostics. Outcomes are folded into
a machine builder, so a malformed line costs one diagnostic and never the
rest of the document. The only hard failure is an unreadable source file,
which is reported as a single FILE_SYSTEM diagnostic.

Accepted line forms inside a block::

    classDef user-machine fill:#f3e5f5        style-class definition
    class Start,Menu user-machine             class assignment
    A --> B                                   plain arrow
    A -->|label| B                            pipe-labeled arrow
    A -- label --> B                          double-dash-labeled arrow
    A -> B                                    single-dash alias
    A["Label"]  A("Label")  A{"Label"}  A(("Label"))   state declarations

Usage:
    from flowmachine.core.parser import parse_file

    result = parse_file(Path("docs/menu.md"))
    for machine in result.machines:
        ...
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from . import rules
from .diagnostics import Category, Diagnostic, make_error, make_warning
from .errors import ParseError, make_parse_error
from .ir import (
    MachineCategory,
    MachineSpec,
    NodeShape,
    SourceMetadata,
    StateSpec,
    StateType,
    TransitionSpec,
)
from .lexer import DiagramBlock, LineKind, SourceLine, classify_line, scan_blocks

logger = logging.getLogger(__name__)

# =============================================================================
# Line grammar
# =============================================================================

# Quoted forms first so labels may contain the closing delimiter
SHAPE_PATTERN = (
    r'\(\(\s*"[^"]*"\s*\)\)|\(\([^()]*\)\)'
    r'|\(\s*"[^"]*"\s*\)|\([^()]*\)'
    r'|\[\s*"[^"]*"\s*\]|\[[^\[\]]*\]'
    r'|\{\s*"[^"]*"\s*\}|\{[^{}]*\}'
)
LINE_END = r"\s*;?\s*$"


def node_pattern(name: str) -> str:
    return rf"(?P<{name}>\w+)\s*(?P<{name}_shape>{SHAPE_PATTERN})?"


_SRC = node_pattern("src")
_DST = node_pattern("dst")

# First match wins; the bare "->" alias is accepted here but rejected by
# the strict validator.
TRANSITION_DIALECTS: list[tuple[str, re.Pattern[str]]] = [
    ("pipe", re.compile(rf"^{_SRC}\s*-->\s*\|(?P<label>[^|]*)\|\s*{_DST}{LINE_END}")),
    ("dash_label", re.compile(rf"^{_SRC}\s*--\s+(?P<label>[^\s>-].*?)\s+-->\s*{_DST}{LINE_END}")),
    ("plain", re.compile(rf"^{_SRC}\s*-->\s*{_DST}{LINE_END}")),
    ("single_dash", re.compile(rf"^{_SRC}\s*->\s*{_DST}{LINE_END}")),
]

STATE_RE = re.compile(rf"^{node_pattern('id')}{LINE_END}")
_STATE_LIKE_RE = re.compile(r"\w+\s*[\[({]")
CLASS_DEF_RE = re.compile(r"^classDef\s+(?P<name>[\w-]+)\s+(?P<styles>.+?);?$")
CLASS_ASSIGN_RE = re.compile(r"^class\s+(?P<ids>[\w\s,]+?)\s+(?P<name>[A-Za-z][\w-]*)\s*;?$")

MAX_LABEL_LENGTH = 50


def _shape_and_label(shape_text: str) -> tuple[NodeShape, str]:
    if shape_text.startswith("(("):
        shape, inner = NodeShape.CIRCLE, shape_text[2:-2]
    elif shape_text.startswith("("):
        shape, inner = NodeShape.ROUND, shape_text[1:-1]
    elif shape_text.startswith("{"):
        shape, inner = NodeShape.DIAMOND, shape_text[1:-1]
    else:
        shape, inner = NodeShape.RECT, shape_text[1:-1]
    return shape, inner.replace('"', "").strip()


# =============================================================================
# Line outcomes
# =============================================================================


@dataclass(frozen=True)
class DeclareState:
    """Declare a state, or update its shape and label if already known."""

    state_id: str
    line: int
    shape: NodeShape | None = None
    label: str | None = None


@dataclass(frozen=True)
class AddTransition:
    from_state: str
    to_state: str
    line: int
    label: str | None = None


@dataclass(frozen=True)
class AssignClass:
    state_ids: tuple[str, ...]
    class_name: str
    line: int


@dataclass(frozen=True)
class DefineClass:
    name: str
    styles: tuple[str, ...]


LineOutcome = DeclareState | AddTransition | AssignClass | DefineClass | Diagnostic


def _declare(state_id: str, shape_text: str | None, line: int) -> list[LineOutcome]:
    """Outcomes for one node reference, with label checks."""
    if shape_text is None:
        return [DeclareState(state_id, line)]

    shape, label = _shape_and_label(shape_text)
    outcomes: list[LineOutcome] = []
    if not label:
        outcomes.append(
            make_warning(
                Category.PARSING,
                f"State '{state_id}' has empty label",
                line=line,
                suggestion="Add a descriptive label; the id is used instead",
            )
        )
        label = state_id
    elif len(label) > MAX_LABEL_LENGTH:
        outcomes.append(
            make_warning(
                Category.PARSING,
                f"State '{state_id}' has very long label ({len(label)} chars)",
                line=line,
                suggestion="Shorten the label for readability",
            )
        )
    if rules.has_unsafe_chars(label):
        outcomes.append(
            make_warning(
                Category.PARSING,
                f"State '{state_id}' label contains special characters",
                line=line,
                suggestion="Avoid < > { } [ ] and backslashes in labels",
            )
        )
    outcomes.append(DeclareState(state_id, line, shape=shape, label=label))
    return outcomes


def _read_transition(line: SourceLine) -> list[LineOutcome]:
    for dialect, pattern in TRANSITION_DIALECTS:
        match = pattern.match(line.text)
        if match is None:
            continue

        src, dst = match.group("src"), match.group("dst")
        label = match.groupdict().get("label")
        label = label.strip() if label else None
        logger.debug("Line %d: %s transition %s -> %s", line.number, dialect, src, dst)

        outcomes: list[LineOutcome] = []
        outcomes.extend(_declare(src, match.group("src_shape"), line.number))
        outcomes.extend(_declare(dst, match.group("dst_shape"), line.number))

        if src == dst:
            outcomes.append(
                make_warning(
                    Category.PARSING,
                    f"Self-transition detected: {src} -> {dst}",
                    line=line.number,
                    suggestion="Check that the loop is intentional",
                )
            )
        if label and rules.label_has_unsafe_chars(label):
            outcomes.append(
                make_warning(
                    Category.PARSING,
                    f"Transition label '{label}' contains special characters",
                    line=line.number,
                )
            )

        outcomes.append(AddTransition(src, dst, line.number, label=label or None))
        return outcomes

    return [
        make_warning(
            Category.PARSING,
            f"Could not parse transition syntax: {line.text}",
            line=line.number,
            suggestion="Use format: StateA --> StateB or StateA -->|label| StateB",
        )
    ]


def read_line(line: SourceLine) -> list[LineOutcome]:
    """
    Turn one diagram line into graph updates and diagnostics.

    Pure: the result depends only on the line itself.
    """
    kind = classify_line(line.text)

    if kind in (LineKind.BLANK, LineKind.COMMENT):
        return []

    if kind == LineKind.DIRECTIVE:
        logger.debug("Line %d: ignoring directive %r", line.number, line.text)
        return []

    if kind == LineKind.FENCE:
        return [
            make_warning(
                Category.PARSING,
                "Unexpected fence marker inside diagram block",
                line=line.number,
                suggestion="Close the current block before opening another",
            )
        ]

    if kind == LineKind.CLASS_DEF:
        match = CLASS_DEF_RE.match(line.text)
        if match is None:
            return [
                make_warning(
                    Category.PARSING,
                    f"Could not parse class definition: {line.text}",
                    line=line.number,
                    suggestion="Use format: classDef name fill:#fff,stroke:#000",
                )
            ]
        styles = tuple(s.strip() for s in match.group("styles").split(",") if s.strip())
        return [DefineClass(match.group("name"), styles)]

    if kind == LineKind.CLASS_ASSIGN:
        match = CLASS_ASSIGN_RE.match(line.text)
        if match is None:
            return [
                make_warning(
                    Category.PARSING,
                    f"Could not parse class assignment: {line.text}",
                    line=line.number,
                    suggestion="Use format: class StateA,StateB className",
                )
            ]
        ids = tuple(s.strip() for s in match.group("ids").split(",") if s.strip())
        return [AssignClass(ids, match.group("name"), line.number)]

    if kind == LineKind.TRANSITION:
        return _read_transition(line)

    match = STATE_RE.match(line.text)
    if match:
        return _declare(match.group("id"), match.group("id_shape"), line.number)

    if _STATE_LIKE_RE.search(line.text):
        return [
            make_warning(
                Category.PARSING,
                f"Could not parse state definition: {line.text}",
                line=line.number,
                suggestion='Use format: StateA["Label"] or StateA(("Label"))',
            )
        ]

    logger.debug("Line %d: ignoring unrecognised text %r", line.number, line.text)
    return []


# =============================================================================
# Machine builder
# =============================================================================


@dataclass
class _StateDraft:
    id: str
    shape: NodeShape
    label: str
    line: int
    classes: list[str] = field(default_factory=list)
    declared: bool = False  # seen with explicit shape delimiters


@dataclass
class MachineBuilder:
    """Mutable graph under construction for one diagram block."""

    final_keywords: tuple[str, ...] = rules.DEFAULT_FINAL_KEYWORDS
    states: dict[str, _StateDraft] = field(default_factory=dict)
    transitions: list[TransitionSpec] = field(default_factory=list)
    class_defs: dict[str, tuple[str, ...]] = field(default_factory=dict)
    category: MachineCategory | None = None

    def apply(self, outcome: LineOutcome) -> list[Diagnostic]:
        """Apply a graph update; returns diagnostics it raised."""
        if isinstance(outcome, DeclareState):
            return self._declare(outcome)
        if isinstance(outcome, AddTransition):
            return self._connect(outcome)
        if isinstance(outcome, AssignClass):
            return self._assign(outcome)
        if isinstance(outcome, DefineClass):
            self.class_defs[outcome.name] = outcome.styles
            return []
        raise TypeError(f"Not a graph update: {outcome!r}")

    def is_final(self, state_id: str) -> bool:
        draft = self.states.get(state_id)
        if draft is None:
            return False
        return rules.is_final_state(draft.id, draft.label, draft.shape, self.final_keywords)

    def _declare(self, outcome: DeclareState) -> list[Diagnostic]:
        draft = self.states.get(outcome.state_id)

        if draft is None:
            self.states[outcome.state_id] = _StateDraft(
                id=outcome.state_id,
                shape=outcome.shape or NodeShape.RECT,
                label=outcome.label or outcome.state_id,
                line=outcome.line,
                declared=outcome.shape is not None,
            )
            if rules.starts_with_digit(outcome.state_id):
                return [
                    make_error(
                        Category.PARSING,
                        f"Invalid state id '{outcome.state_id}': ids must not start with a digit",
                        line=outcome.line,
                        suggestion=f"Rename to '{rules.to_pascal_case(outcome.state_id)}'",
                    )
                ]
            return []

        if outcome.shape is not None:
            if draft.declared and (draft.shape, draft.label) != (outcome.shape, outcome.label):
                logger.debug(
                    "Line %d: redeclaring state %s as %s %r",
                    outcome.line,
                    draft.id,
                    outcome.shape.value,
                    outcome.label,
                )
            draft.shape = outcome.shape
            draft.label = outcome.label or draft.id
            draft.declared = True
        return []

    def _connect(self, outcome: AddTransition) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        if self.is_final(outcome.from_state):
            diagnostics.append(
                make_warning(
                    Category.PARSING,
                    f"Transition from final state: {outcome.from_state}",
                    line=outcome.line,
                    suggestion="Final states should not have outgoing transitions",
                )
            )

        info = rules.parse_label(outcome.label)
        self.transitions.append(
            TransitionSpec(
                from_state=outcome.from_state,
                to_state=outcome.to_state,
                label=outcome.label,
                guard=info.guard,
                action=info.action,
                type=info.type,
                line=outcome.line,
            )
        )
        return diagnostics

    def _assign(self, outcome: AssignClass) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for state_id in outcome.state_ids:
            diagnostics.extend(self._declare(DeclareState(state_id, outcome.line)))
            classes = self.states[state_id].classes
            if outcome.class_name not in classes:
                classes.append(outcome.class_name)

        category = MachineCategory.from_class_name(outcome.class_name)
        if category is not None:
            if self.category is None:
                self.category = category
            elif category != self.category:
                diagnostics.append(
                    make_warning(
                        Category.PARSING,
                        f"Conflicting category '{category.value}' ignored; "
                        f"machine already tagged '{self.category.value}'",
                        line=outcome.line,
                        suggestion="Use a single category class per diagram",
                    )
                )
        return diagnostics

    def build(self, machine_id: str, name: str, source: SourceMetadata) -> MachineSpec:
        states = [
            StateSpec(
                id=draft.id,
                shape=draft.shape,
                label=draft.label,
                classes=tuple(draft.classes),
                type=StateType.FINAL if self.is_final(draft.id) else StateType.NORMAL,
                line=draft.line,
            )
            for draft in self.states.values()
        ]

        if self.transitions:
            initial_state = self.transitions[0].from_state
        elif states:
            initial_state = states[0].id
        else:
            initial_state = ""

        return MachineSpec(
            id=machine_id,
            name=name,
            category=self.category or MachineCategory.USER,
            initial_state=initial_state,
            states=states,
            transitions=list(self.transitions),
            source=source,
        )


# =============================================================================
# Parser
# =============================================================================


@dataclass
class ParseResult:
    """Machines extracted from one source, with everything noticed on the way."""

    machines: list[MachineSpec] = field(default_factory=list)
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)
    source: SourceMetadata = field(default_factory=SourceMetadata)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [*self.errors, *self.warnings]

    def raise_for_errors(self) -> None:
        """Raise ParseError for the first error, if any."""
        if not self.errors:
            return
        first = self.errors[0]
        if first.file and first.line:
            raise make_parse_error(first.message, Path(first.file), first.line)
        raise ParseError(first.message)


def _machine_identity(path: Path | None) -> tuple[str, str]:
    """Derive a camelCase machine id and a display name from a file name."""
    words = rules.split_words(path.stem) if path is not None else []
    if not words:
        words = ["flow"]
    if words[-1] != "machine":
        words.append("machine")
    machine_id = words[0] + "".join(w.capitalize() for w in words[1:])
    name = " ".join(w.capitalize() for w in words)
    return machine_id, name


class MermaidParser:
    """
    Extracts machine specifications from flowchart diagrams.

    Instances hold configuration only; every parse call starts from a clean
    state, so parsing the same text twice gives equal machines.
    """

    def __init__(self, final_keywords: Iterable[str] = rules.DEFAULT_FINAL_KEYWORDS):
        self.final_keywords = tuple(final_keywords)

    def parse(self, source: str | Path) -> ParseResult:
        """Parse a Path as a file, or a str as diagram text."""
        if isinstance(source, Path):
            return self.parse_file(source)
        return self.parse_text(source)

    def parse_file(self, path: str | Path) -> ParseResult:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read %s: %s", path, e)
            return ParseResult(
                errors=[
                    make_error(
                        Category.FILE_SYSTEM,
                        f"Failed to read file {path}: {e}",
                        file=str(path),
                        recoverable=True,
                    )
                ],
                source=SourceMetadata(path=str(path)),
            )
        return self.parse_text(text, path=path)

    def parse_text(self, text: str, path: Path | None = None) -> ParseResult:
        line_count = len(text.splitlines())
        result = ParseResult(
            source=SourceMetadata(path=str(path) if path else None, line_count=line_count)
        )

        blocks = [block for block in scan_blocks(text) if block.is_flowchart]
        base_id, base_name = _machine_identity(path)

        for index, block in enumerate(blocks, start=1):
            if len(blocks) > 1:
                machine_id, name = f"{base_id}{index}", f"{base_name} {index}"
            else:
                machine_id, name = base_id, base_name

            machine, diagnostics = self._parse_block(block, machine_id, name, path, line_count)
            result.machines.append(machine)
            for diagnostic in diagnostics:
                if path is not None and diagnostic.file is None:
                    diagnostic.file = str(path)
                if diagnostic.is_error:
                    result.errors.append(diagnostic)
                else:
                    result.warnings.append(diagnostic)

        logger.debug(
            "Parsed %d machine(s) from %s (%d errors, %d warnings)",
            len(result.machines),
            path or "<text>",
            len(result.errors),
            len(result.warnings),
        )
        return result

    def _parse_block(
        self,
        block: DiagramBlock,
        machine_id: str,
        name: str,
        path: Path | None,
        line_count: int,
    ) -> tuple[MachineSpec, list[Diagnostic]]:
        builder = MachineBuilder(final_keywords=self.final_keywords)
        diagnostics: list[Diagnostic] = []

        if not block.closed:
            diagnostics.append(
                make_warning(
                    Category.PARSING,
                    f"Diagram block starting at line {block.start_line} is not closed",
                    line=block.start_line,
                    suggestion="Add a closing ``` fence",
                )
            )

        for line in block.body:
            for outcome in read_line(line):
                if isinstance(outcome, Diagnostic):
                    diagnostics.append(outcome)
                else:
                    diagnostics.extend(builder.apply(outcome))

        if not builder.states:
            diagnostics.append(
                make_warning(
                    Category.PARSING,
                    f"Diagram block starting at line {block.start_line} has no states",
                    line=block.start_line,
                )
            )

        machine = builder.build(
            machine_id,
            name,
            SourceMetadata(
                path=str(path) if path else None,
                line_count=line_count,
                block_start_line=block.start_line,
                direction=block.direction,
            ),
        )
        logger.debug(
            "Machine %s: %d states, %d transitions, initial %r",
            machine.id,
            len(machine.states),
            len(machine.transitions),
            machine.initial_state,
        )
        return machine, diagnostics


def parse_text(text: str, path: Path | None = None) -> ParseResult:
    """Parse diagram text with default settings."""
    return MermaidParser().parse_text(text, path=path)


def parse_file(path: str | Path) -> ParseResult:
    """Parse a markdown or diagram file with default settings."""
    return MermaidParser().parse_file(path)
