"""
Unit tests for the strict syntax validator.

The validator is stricter than the parser on purpose; several tests pin
that divergence.
"""

from pathlib import Path

import pytest

from flowmachine.core.diagnostics import Category
from flowmachine.core.parser import parse_text
from flowmachine.core.syntax import validate_content, validate_file


def fenced(body: str, declaration: str = "flowchart TD") -> str:
    return f"```mermaid\n{declaration}\n{body}\n```\n"


def messages(diagnostics) -> list[str]:
    return [d.message for d in diagnostics]


class TestValidDocuments:
    def test_fixture_is_valid(self, ussd_menu: str) -> None:
        result = validate_content(ussd_menu)
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_bare_declaration_string(self) -> None:
        result = validate_content("flowchart LR\nA --> B\nB -->|next| C")
        assert result.is_valid
        assert result.warnings == []

    def test_summary(self) -> None:
        result = validate_content(fenced("A -> B\nB --> 1C"))
        assert result.summary == {"total_issues": 2, "error_count": 2, "warning_count": 0}

    def test_no_mermaid_content(self) -> None:
        result = validate_content("# Title\n\nNo diagrams.")
        assert result.is_valid
        assert len(result.warnings) == 1
        assert "No Mermaid content" in result.warnings[0].message


class TestDeclaration:
    @pytest.mark.parametrize("direction", ["TD", "TB", "BT", "RL", "LR"])
    def test_directions(self, direction: str) -> None:
        assert validate_content(fenced("A --> B", f"flowchart {direction}")).is_valid

    @pytest.mark.parametrize("declaration", ["graph TD", "flowchart", "flowchart XY"])
    def test_rejected_declarations(self, declaration: str) -> None:
        result = validate_content(fenced("A --> B", declaration))
        assert not result.is_valid
        assert "Invalid flowchart declaration" in result.errors[0].message
        assert "flowchart TD" in result.errors[0].suggestion

    @pytest.mark.parametrize("declaration", ["flowchart XY", "graph LR", "flowchart"])
    def test_rejected_unfenced_declarations(self, declaration: str) -> None:
        result = validate_content(f"{declaration}\nA --> B")
        assert not result.is_valid
        assert "Invalid flowchart declaration" in result.errors[0].message
        assert "No Mermaid content" not in " ".join(w.message for w in result.warnings)

    def test_non_flowchart_block(self) -> None:
        result = validate_content(fenced("Alice->>Bob: Hi", "sequenceDiagram"))
        assert not result.is_valid


class TestClosure:
    def test_unclosed_block(self) -> None:
        result = validate_content("```mermaid\nflowchart TD\nA --> B\n")
        assert not result.is_valid
        assert any("not properly closed" in m for m in messages(result.errors))

    def test_nested_block(self) -> None:
        text = "```mermaid\nflowchart TD\nA --> B\n```mermaid\n```\n"
        result = validate_content(text)
        assert any("Nested Mermaid block" in m for m in messages(result.errors))


class TestTransitions:
    @pytest.mark.parametrize("line", ["A --> B", "A -->|go| B", 'A["x"] --> B(("y"))', "A-->B;"])
    def test_canonical_forms(self, line: str) -> None:
        assert validate_content(fenced(line)).is_valid

    @pytest.mark.parametrize("line", ["A -> B", "A -- yes --> B", "A ==> B", "A -.-> B"])
    def test_other_arrows_are_errors(self, line: str) -> None:
        result = validate_content(fenced(line))
        assert not result.is_valid
        assert "Invalid transition syntax" in result.errors[0].message
        assert result.errors[0].line == 3

    def test_single_dash_divergence_from_parser(self) -> None:
        """The parser accepts the single-dash alias that the gate rejects."""
        text = "flowchart LR\nA -> B"
        assert not validate_content(text).is_valid
        assert parse_text(text).machines[0].transitions[0].to_state == "B"

    def test_digit_id(self) -> None:
        result = validate_content(fenced("Start --> 2Fa"))
        assert len(result.errors) == 1
        assert "Invalid state id '2Fa'" in result.errors[0].message


class TestNaming:
    def test_naming_off_by_default(self) -> None:
        assert validate_content(fenced("start_state --> Menu")).warnings == []

    def test_non_pascal_case_warns(self) -> None:
        result = validate_content(fenced("start_state --> Menu"), validate_naming=True)
        assert result.is_valid
        assert len(result.warnings) == 1
        assert "PascalCase" in result.warnings[0].message
        assert "StartState" in result.warnings[0].suggestion

    def test_each_id_checked_once(self) -> None:
        result = validate_content(fenced("idle --> Busy\nBusy --> idle"), validate_naming=True)
        assert len(result.warnings) == 1


class TestStrictMode:
    def test_unrecognized_line_is_warning(self) -> None:
        result = validate_content(fenced("A --> B\nthis is prose"))
        assert result.is_valid
        assert any("Unrecognized line" in m for m in messages(result.warnings))

    def test_unrecognized_line_is_error_in_strict_mode(self) -> None:
        result = validate_content(fenced("A --> B\nthis is prose"), strict_mode=True)
        assert not result.is_valid
        assert any("Unrecognized line" in m for m in messages(result.errors))

    def test_empty_block(self) -> None:
        text = "```mermaid\nflowchart TD\n```"
        assert validate_content(text).is_valid
        assert not validate_content(text, strict_mode=True).is_valid

    def test_reserved_word_only_in_strict_mode(self) -> None:
        text = fenced("A --> end")
        assert validate_content(text).warnings == []
        strict = validate_content(text, strict_mode=True)
        assert strict.is_valid
        assert any("reserved word" in m for m in messages(strict.warnings))

    def test_subgraph_warns(self) -> None:
        result = validate_content(fenced("subgraph Pay\nA --> B\nend"))
        assert result.is_valid
        assert any("Subgraphs" in m for m in messages(result.warnings))


class TestValidateFile:
    def test_missing_file(self, tmp_path: Path) -> None:
        result = validate_file(tmp_path / "nope.md")
        assert not result.is_valid
        assert result.errors[0].category == Category.FILE_SYSTEM
        assert "File not found" in result.errors[0].message

    def test_diagnostics_carry_the_file(self, write_doc) -> None:
        path = write_doc(fenced("A -> B"))
        result = validate_file(path)
        assert result.errors[0].file == str(path)

    def test_valid_file(self, write_doc, ussd_menu: str) -> None:
        assert validate_file(write_doc(ussd_menu)).is_valid
