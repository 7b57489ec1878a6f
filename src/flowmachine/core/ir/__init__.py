"""
FLOWMACHINE Intermediate Representation (IR) types.

All IR types are re-exported from this package.
"""

from .machine import (
    DEFAULT_CATEGORY,
    MachineCategory,
    MachineSpec,
    NodeShape,
    SourceMetadata,
    StateSpec,
    StateType,
    TransitionSpec,
    TransitionType,
)

__all__ = [
    "DEFAULT_CATEGORY",
    "MachineCategory",
    "MachineSpec",
    "NodeShape",
    "SourceMetadata",
    "StateSpec",
    "StateType",
    "TransitionSpec",
    "TransitionType",
]
