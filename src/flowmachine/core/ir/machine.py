"""
Machine specification types for FLOWMACHINE IR.

A MachineSpec is the structured form of one flowchart block: its states,
its transitions and the metadata needed by code generators.

Example diagram:
    flowchart LR
      Start["Welcome"] --> Menu{"Main Menu"}
      Menu -->|input| Balance["Check Balance"]
      Menu -->|guard:isAgent| Agent["Agent Tools"]
      Balance --> End(("Goodbye"))
      class Start,Menu user-machine
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MachineCategory(str, Enum):
    """Domain tags assigned to a machine through class assignments."""

    INFO = "info-machine"  # Read-only information flows
    USER = "user-machine"  # Authenticated user services
    AGENT = "agent-machine"  # Agent workflows
    ACCOUNT = "account-machine"  # Account management
    CORE = "core-machine"  # Routing and welcome

    @classmethod
    def from_class_name(cls, name: str) -> MachineCategory | None:
        """Return the category tag matching a style-class name, if any."""
        for category in cls:
            if category.value == name:
                return category
        return None


DEFAULT_CATEGORY = MachineCategory.USER


class NodeShape(str, Enum):
    """Node shapes, from the delimiters around a state label."""

    RECT = "rect"  # Id["label"]
    ROUND = "round"  # Id("label")
    DIAMOND = "diamond"  # Id{"label"}
    CIRCLE = "circle"  # Id(("label"))


class StateType(str, Enum):
    NORMAL = "normal"
    FINAL = "final"


class TransitionType(str, Enum):
    """How a transition is triggered, inferred from its label."""

    USER_INPUT = "user_input"
    ERROR = "error"
    TIMEOUT = "timeout"
    EXTERNAL = "external"
    PLAIN = "plain"


class StateSpec(BaseModel):
    """
    A single state (diagram node).

    Attributes:
        id: Identifier token from the diagram
        shape: Node shape
        label: Display text (defaults to the id)
        classes: Style-class names attached, in assignment order
        type: Inferred state type
        line: Source line of the first declaration
    """

    id: str
    shape: NodeShape = NodeShape.RECT
    label: str
    classes: tuple[str, ...] = ()
    type: StateType = StateType.NORMAL
    line: int | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_final(self) -> bool:
        return self.type == StateType.FINAL


class TransitionSpec(BaseModel):
    """
    A directed edge between two states.

    Attributes:
        from_state: Source state id
        to_state: Target state id
        label: Raw edge label, if any
        guard: Guard name extracted from the label
        action: Action name extracted from the label
        type: Inferred transition type
        line: Source line
    """

    from_state: str
    to_state: str
    label: str | None = None
    guard: str | None = None
    action: str | None = None
    type: TransitionType = TransitionType.PLAIN
    line: int | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_self_transition(self) -> bool:
        return self.from_state == self.to_state


class SourceMetadata(BaseModel):
    """Where a machine came from."""

    path: str | None = None
    line_count: int = 0
    block_start_line: int | None = None
    direction: str | None = None

    model_config = ConfigDict(frozen=True)


class MachineSpec(BaseModel):
    """
    A parsed state machine.

    States and transitions keep source order so generated output is
    deterministic.
    """

    id: str
    name: str
    category: MachineCategory = DEFAULT_CATEGORY
    initial_state: str = ""
    states: list[StateSpec] = Field(default_factory=list)
    transitions: list[TransitionSpec] = Field(default_factory=list)
    source: SourceMetadata = Field(default_factory=SourceMetadata)

    model_config = ConfigDict(frozen=True)

    @property
    def state_ids(self) -> list[str]:
        return [state.id for state in self.states]

    @property
    def final_states(self) -> list[str]:
        return [state.id for state in self.states if state.is_final]

    def get_state(self, state_id: str) -> StateSpec | None:
        for state in self.states:
            if state.id == state_id:
                return state
        return None

    def outgoing(self, state_id: str) -> list[TransitionSpec]:
        return [t for t in self.transitions if t.from_state == state_id]
