"""Tests for diagram block scanning and line classification."""

import pytest

from flowmachine.core.lexer import LineKind, classify_line, scan_blocks


class TestScanBlocks:
    """Tests for finding diagram blocks in documents."""

    def test_no_blocks(self) -> None:
        assert scan_blocks("Just prose.\n\nMore prose.") == []

    def test_fenced_block(self) -> None:
        text = "Intro\n```mermaid\nflowchart LR\nA --> B\n```\nOutro"
        blocks = scan_blocks(text)

        assert len(blocks) == 1
        block = blocks[0]
        assert block.start_line == 2
        assert block.fenced
        assert block.closed
        assert block.is_flowchart
        assert block.direction == "LR"
        assert [line.text for line in block.body] == ["A --> B"]

    def test_tilde_fence(self) -> None:
        blocks = scan_blocks("~~~mermaid\nflowchart TD\nA --> B\n~~~\n")
        assert len(blocks) == 1
        assert blocks[0].closed

    def test_unclosed_fence(self) -> None:
        blocks = scan_blocks("```mermaid\nflowchart LR\nA --> B\n")
        assert len(blocks) == 1
        assert not blocks[0].closed
        assert len(blocks[0].body) == 1

    def test_other_fences_are_skipped(self) -> None:
        text = "```python\nflowchart LR\n```\n```mermaid\nflowchart TD\n```"
        blocks = scan_blocks(text)
        assert len(blocks) == 1
        assert blocks[0].direction == "TD"

    def test_unfenced_declaration(self) -> None:
        blocks = scan_blocks("flowchart LR\n  A --> B\n  B --> C\n")
        assert len(blocks) == 1
        block = blocks[0]
        assert not block.fenced
        assert block.closed
        assert len(block.body) == 2

    def test_unfenced_declaration_with_unknown_direction(self) -> None:
        blocks = scan_blocks("flowchart XY\nA --> B")
        assert len(blocks) == 1
        assert blocks[0].direction == "XY"
        assert len(blocks[0].body) == 1

    def test_prose_mentioning_flowcharts_is_not_a_block(self) -> None:
        assert scan_blocks("flowchart diagrams follow below.\nA --> B") == []

    def test_unfenced_declarations_split_blocks(self) -> None:
        blocks = scan_blocks("flowchart LR\nA --> B\nflowchart TD\nC --> D")
        assert [b.start_line for b in blocks] == [1, 3]

    def test_declaration_without_direction_defaults_to_tb(self) -> None:
        blocks = scan_blocks("```mermaid\nflowchart\nA --> B\n```")
        assert blocks[0].direction == "TB"

    def test_declaration_after_comment(self) -> None:
        blocks = scan_blocks("```mermaid\n%% states\n\ngraph RL\nA --> B\n```")
        block = blocks[0]
        assert block.declaration.number == 4
        assert block.is_flowchart
        assert block.direction == "RL"

    def test_non_flowchart_block(self) -> None:
        blocks = scan_blocks("```mermaid\nstateDiagram-v2\n[*] --> A\n```")
        assert len(blocks) == 1
        assert not blocks[0].is_flowchart

    def test_empty_block(self) -> None:
        block = scan_blocks("```mermaid\n```")[0]
        assert block.declaration is None
        assert block.body == []
        assert block.direction is None


class TestClassifyLine:
    @pytest.mark.parametrize(
        "text,kind",
        [
            ("", LineKind.BLANK),
            ("%% comment", LineKind.COMMENT),
            ("// comment", LineKind.COMMENT),
            ("```", LineKind.FENCE),
            ("classDef user-machine fill:#f3e5f5", LineKind.CLASS_DEF),
            ("class A,B user-machine", LineKind.CLASS_ASSIGN),
            ("style A fill:#fff", LineKind.DIRECTIVE),
            ("subgraph Payments", LineKind.DIRECTIVE),
            ("end", LineKind.DIRECTIVE),
            ("A --> B", LineKind.TRANSITION),
            ("A -> B", LineKind.TRANSITION),
            ("A ==> B", LineKind.TRANSITION),
            ("A -- yes --> B", LineKind.TRANSITION),
            ('A["Start"]', LineKind.STATE),
            ("Idle", LineKind.STATE),
        ],
    )
    def test_kinds(self, text: str, kind: LineKind) -> None:
        assert classify_line(text) == kind

    def test_arrow_inside_quoted_label_is_not_a_transition(self) -> None:
        assert classify_line('A["go --> back"]') == LineKind.STATE

    def test_end_prefixed_id_is_not_a_directive(self) -> None:
        assert classify_line("EndSession --> Start") == LineKind.TRANSITION
