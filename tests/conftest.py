"""Shared pytest fixtures for FLOWMACHINE tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

USSD_MENU = """\
# USSD menu

Welcome flow for dial-in users.

```mermaid
flowchart TD
    Start["Welcome"] --> Login{"Enter PIN"}
    Login -->|user input| MainMenu["Main Menu"]
    Login -->|cancel on auth error| Start
    MainMenu -->|guard:hasBalance| Balance["Check Balance"]
    Balance -->|back| MainMenu
    MainMenu -->|cancel| End(("Goodbye"))
    class Start,Login,MainMenu user-machine
```
"""


@pytest.fixture
def ussd_menu() -> str:
    """A well-formed single-block document."""
    return USSD_MENU


@pytest.fixture
def write_doc(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a markdown document under tmp_path and return its path."""

    def _write(text: str, name: str = "flow.md") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
