"""
Block scanner for flowchart diagrams embedded in markdown.

Splits a document into diagram blocks (```` ```mermaid ```` fences, or bare
``flowchart`` declarations in a raw string) and classifies each content
line by the construct it looks like. The scanner never reports problems;
the parser and the strict validator decide what a line means.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class LineKind(Enum):
    """What a single diagram line looks like."""

    BLANK = "blank"
    COMMENT = "comment"
    FENCE = "fence"  # A stray fence marker inside a block
    DIRECTIVE = "directive"  # style, linkStyle, click, subgraph, end, direction
    CLASS_DEF = "class_def"
    CLASS_ASSIGN = "class_assign"
    TRANSITION = "transition"
    STATE = "state"


# Opens an unfenced block: the keyword plus at most one direction word, valid
# or not, so a bad direction still reaches the declaration check
DECLARATION_RE = re.compile(r"^(?P<keyword>flowchart|graph)(?:\s+(?P<direction>\w+))?\s*;?$")
# Looser form accepted as the first line of a mermaid fence
_LOOSE_DECLARATION_RE = re.compile(r"^(?:flowchart|graph)\b\s*(?P<direction>\w*)")

_FENCE_OPEN_RE = re.compile(r"^(?P<fence>`{3,}|~{3,})\s*(?P<info>[\w-]*)")
_COMMENT_PREFIXES = ("%%", "//", "#")
_DIRECTIVE_RE = re.compile(r"^(?:style|linkStyle|click|subgraph|direction)\b|^end$")
_ARROW_RE = re.compile(r"<?[-=.]{1,3}>|--")


@dataclass(frozen=True)
class SourceLine:
    """A stripped line with its 1-based number in the source document."""

    number: int
    text: str


@dataclass
class DiagramBlock:
    """
    A section of a document holding one diagram.

    Attributes:
        start_line: Line of the opening fence, or of the declaration for
            unfenced blocks
        lines: Every line captured after the fence (declaration included)
        fenced: Whether the block was opened by a fence
        closed: Whether a matching closing fence was seen
    """

    start_line: int
    lines: list[SourceLine] = field(default_factory=list)
    fenced: bool = True
    closed: bool = False

    @property
    def declaration(self) -> SourceLine | None:
        """The first non-blank, non-comment line."""
        for line in self.lines:
            if classify_line(line.text) not in (LineKind.BLANK, LineKind.COMMENT):
                return line
        return None

    @property
    def is_flowchart(self) -> bool:
        declaration = self.declaration
        return (
            declaration is not None
            and _LOOSE_DECLARATION_RE.match(declaration.text) is not None
        )

    @property
    def direction(self) -> str | None:
        declaration = self.declaration
        if declaration is None:
            return None
        match = _LOOSE_DECLARATION_RE.match(declaration.text)
        if match is None:
            return None
        return match.group("direction") or "TB"

    @property
    def body(self) -> list[SourceLine]:
        """Lines after the declaration."""
        declaration = self.declaration
        if declaration is None:
            return []
        return [line for line in self.lines if line.number > declaration.number]


def _is_closing_fence(text: str, fence: str) -> bool:
    return text.startswith(fence[0] * 3) and text.strip(fence[0]) == ""


def scan_blocks(text: str) -> list[DiagramBlock]:
    """
    Find every diagram block in a document.

    - ```` ```mermaid ```` (or ``~~~mermaid``) fences open a block that runs
      to the matching closing fence, or to the end of the document when
      unclosed.
    - Outside fences, a line starting with ``flowchart``/``graph`` opens an
      unfenced block that runs until the next fence or declaration.
    - Other fenced code (```` ```python ```` etc.) is skipped.
    """
    blocks: list[DiagramBlock] = []
    current: DiagramBlock | None = None
    fence: str | None = None
    skipping_fence: str | None = None

    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()

        if skipping_fence is not None:
            if _is_closing_fence(line, skipping_fence):
                skipping_fence = None
            continue

        if current is not None and current.fenced:
            assert fence is not None
            if _is_closing_fence(line, fence):
                current.closed = True
                blocks.append(current)
                current = None
                fence = None
            else:
                current.lines.append(SourceLine(number, line))
            continue

        fence_match = _FENCE_OPEN_RE.match(line)
        if fence_match:
            if current is not None:
                blocks.append(current)
                current = None
            if fence_match.group("info").lower() == "mermaid":
                current = DiagramBlock(start_line=number, fenced=True)
                fence = fence_match.group("fence")
            else:
                skipping_fence = fence_match.group("fence")
            continue

        if DECLARATION_RE.match(line):
            if current is not None:
                blocks.append(current)
            current = DiagramBlock(start_line=number, fenced=False, closed=True)
            current.lines.append(SourceLine(number, line))
            continue

        if current is not None:
            current.lines.append(SourceLine(number, line))

    if current is not None:
        blocks.append(current)

    return blocks


def classify_line(text: str) -> LineKind:
    """
    Classify a stripped diagram line by the construct it resembles.

    Order matters: class lines are recognised before arrows so that
    ``class A,B user-machine`` is never read as an edge.
    """
    if not text:
        return LineKind.BLANK
    if text.startswith(_COMMENT_PREFIXES):
        return LineKind.COMMENT
    if text.startswith(("```", "~~~")):
        return LineKind.FENCE
    if text.startswith("classDef ") or text == "classDef":
        return LineKind.CLASS_DEF
    if text.startswith("class "):
        return LineKind.CLASS_ASSIGN
    if _DIRECTIVE_RE.match(text):
        return LineKind.DIRECTIVE
    if _ARROW_RE.search(_strip_quoted(text)):
        return LineKind.TRANSITION
    return LineKind.STATE


_QUOTED_RE = re.compile(r'"[^"]*"')


def _strip_quoted(text: str) -> str:
    """Blank out quoted label text so arrows inside labels are ignored."""
    return _QUOTED_RE.sub('""', text)
