"""
FLOWMACHINE - state machine specifications from flowchart diagrams.

Parses mermaid flowcharts embedded in markdown into structured machine
specifications, with a strict syntax gate, business-rule validation and a
shared diagnostic model.
"""

from __future__ import annotations

from ._version import get_version

# Re-export commonly used types for convenience
from .core import ir
from .core.diagnostics import Diagnostic, ErrorHandler, Severity
from .core.errors import FlowMachineError, ParseError, ValidationError
from .core.parser import MermaidParser, parse_file, parse_text

__version__ = get_version()

__all__ = [
    "__version__",
    "ir",
    "FlowMachineError",
    "ParseError",
    "ValidationError",
    "Diagnostic",
    "ErrorHandler",
    "Severity",
    "MermaidParser",
    "parse_file",
    "parse_text",
]
