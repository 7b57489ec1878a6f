"""
Keyword heuristics used to infer meaning from diagram text.

Each heuristic is an ordered list of small rules evaluated first-match-wins,
so the order and the fallback stay visible and each rule can be tested on
its own:

- transition type from an edge label
- guard/action extraction from an edge label
- final-state inference from a state id, label and shape
- category conventions checked by the business-rule validator
- structure limits and user-flow conventions (error paths, back navigation)
- naming conventions (PascalCase)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .ir import MachineCategory, NodeShape, TransitionSpec, TransitionType

# =============================================================================
# Text helpers
# =============================================================================

_WORD_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def split_words(text: str) -> list[str]:
    """
    Split an identifier or label into lowercase words.

    Handles camelCase, PascalCase, snake_case and free text:
    ``"EndSession"`` -> ``["end", "session"]``.
    """
    return [w.lower() for w in _WORD_RE.findall(text)]


# =============================================================================
# Transition labels
# =============================================================================


@dataclass(frozen=True)
class KeywordRule:
    """Maps a label to ``result`` if it contains any of ``keywords``."""

    keywords: tuple[str, ...]
    result: TransitionType

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.keywords)


TRANSITION_TYPE_RULES: list[KeywordRule] = [
    KeywordRule(("input",), TransitionType.USER_INPUT),
    KeywordRule(("error",), TransitionType.ERROR),
    KeywordRule(("timeout",), TransitionType.TIMEOUT),
]


def infer_transition_type(label: str | None) -> TransitionType:
    """Classify an edge label; any other non-empty label is external."""
    if not label or not label.strip():
        return TransitionType.PLAIN
    for rule in TRANSITION_TYPE_RULES:
        if rule.matches(label):
            return rule.result
    return TransitionType.EXTERNAL


_GUARD_PREFIX = re.compile(r"\bguard\s*:\s*(\w+)", re.IGNORECASE)
_ACTION_PREFIX = re.compile(r"\baction\s*:\s*(\w+)", re.IGNORECASE)
_BRACKET_GUARD = re.compile(r"^\s*\[\s*([^\[\]]+?)\s*\]\s*$")


@dataclass(frozen=True)
class LabelInfo:
    """What an edge label says about its transition."""

    guard: str | None
    action: str | None
    type: TransitionType


def extract_guard(label: str) -> str | None:
    """``guard:name`` or a bracket-wrapped ``[name]``."""
    for pattern in (_GUARD_PREFIX, _BRACKET_GUARD):
        match = pattern.search(label)
        if match:
            return match.group(1).strip()
    return None


def extract_action(label: str) -> str | None:
    match = _ACTION_PREFIX.search(label)
    return match.group(1) if match else None


def parse_label(label: str | None) -> LabelInfo:
    """Extract guard, action and type from an edge label."""
    if not label:
        return LabelInfo(guard=None, action=None, type=TransitionType.PLAIN)
    return LabelInfo(
        guard=extract_guard(label),
        action=extract_action(label),
        type=infer_transition_type(label),
    )


UNSAFE_LABEL_CHARS = frozenset("<>{}[]\\")


def has_unsafe_chars(text: str) -> bool:
    """Characters that break rendering or generated string literals."""
    return any(ch in UNSAFE_LABEL_CHARS for ch in text)


def label_has_unsafe_chars(label: str) -> bool:
    """Like :func:`has_unsafe_chars`, but a ``[guard]`` wrapper is not itself unsafe."""
    match = _BRACKET_GUARD.match(label)
    return has_unsafe_chars(match.group(1) if match else label)


# =============================================================================
# Final states
# =============================================================================

DEFAULT_FINAL_KEYWORDS: tuple[str, ...] = ("end", "final", "close", "exit", "goodbye")


def is_final_state(
    state_id: str,
    label: str,
    shape: NodeShape,
    keywords: tuple[str, ...] = DEFAULT_FINAL_KEYWORDS,
) -> bool:
    """
    Infer whether a state terminates the machine.

    A state is final when it is drawn as a circle, or when any word of its
    id or label is one of ``keywords``. Words are whole camel-case or
    whitespace-separated segments, so ``EndSession`` is final but
    ``Backend`` is not.
    """
    if shape == NodeShape.CIRCLE:
        return True
    wanted = {k.lower() for k in keywords}
    words = set(split_words(state_id)) | set(split_words(label))
    return bool(words & wanted)


# =============================================================================
# Category conventions
# =============================================================================


@dataclass(frozen=True)
class CategoryConvention:
    """A soft rule: machines of ``category`` should mention one of ``keywords``."""

    category: MachineCategory
    concern: str
    keywords: tuple[str, ...]
    message: str

    def satisfied_by(self, texts: list[str]) -> bool:
        lowered = [t.lower() for t in texts]
        return any(keyword in text for text in lowered for keyword in self.keywords)


CATEGORY_CONVENTIONS: list[CategoryConvention] = [
    CategoryConvention(
        MachineCategory.USER,
        "authentication",
        ("auth", "login", "session", "password", "verify"),
        "User machines should include an authentication or session state",
    ),
    CategoryConvention(
        MachineCategory.USER,
        "menu",
        ("menu", "main"),
        "User machines should include a menu or main navigation state",
    ),
    CategoryConvention(
        MachineCategory.AGENT,
        "permission",
        ("permission", "authorize"),
        "Agent machines should include a permission check",
    ),
    CategoryConvention(
        MachineCategory.ACCOUNT,
        "account validation",
        ("balance", "account", "validate"),
        "Account machines should include balance or account validation",
    ),
    CategoryConvention(
        MachineCategory.CORE,
        "routing",
        ("route", "dispatch", "select"),
        "Core machines should include routing or dispatch logic",
    ),
]

INFO_MACHINE_MAX_STATES = 10


# =============================================================================
# Structure limits and user-flow conventions
# =============================================================================

MAX_FINAL_STATES = 5
MAX_TRANSITIONS_PER_STATE = 20

INPUT_STATE_KEYWORDS: tuple[str, ...] = ("input",)
ERROR_KEYWORDS: tuple[str, ...] = ("error",)
BACK_NAVIGATION_KEYWORDS: tuple[str, ...] = ("back", "cancel")


def _mentions(text: str | None, keywords: tuple[str, ...]) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def is_input_state(state_id: str) -> bool:
    """States named for collecting input, e.g. ``PinInput``."""
    return _mentions(state_id, INPUT_STATE_KEYWORDS)


def handles_errors(transitions: list[TransitionSpec]) -> bool:
    """Any transition labelled as an error or leading to an error state."""
    return any(
        _mentions(t.label, ERROR_KEYWORDS) or _mentions(t.to_state, ERROR_KEYWORDS)
        for t in transitions
    )


def offers_back_navigation(transitions: list[TransitionSpec]) -> bool:
    return any(_mentions(t.label, BACK_NAVIGATION_KEYWORDS) for t in transitions)



# =============================================================================
# Naming
# =============================================================================

_PASCAL_CASE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_MACHINE_NAME = re.compile(r"^[A-Z][a-zA-Z0-9]*Machine$")


def is_pascal_case(name: str) -> bool:
    return bool(_PASCAL_CASE.match(name))


def to_pascal_case(name: str) -> str:
    """Suggest a PascalCase form: ``main_menu`` -> ``MainMenu``."""
    words = split_words(name)
    if not words:
        return name
    result = "".join(w.capitalize() for w in words)
    if result[0].isdigit():
        result = "State" + result
    return result


def is_machine_name(name: str) -> bool:
    """PascalCase ending in ``Machine``, ignoring spaces."""
    return bool(_MACHINE_NAME.match(name.replace(" ", "")))


def starts_with_digit(identifier: str) -> bool:
    return bool(identifier) and identifier[0].isdigit()
