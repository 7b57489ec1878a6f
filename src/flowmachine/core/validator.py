"""
Business-rule validation for parsed machine specifications.

Checks whether a machine is coherent, not whether its text was well formed:
initial state, reachability, dangling references, terminal states, structure
limits, user-flow navigation, category conventions and naming. Each check is
a module-level function returning ``(errors, warnings)``;
:func:`validate_machine_specs` runs them all.
Validation never raises and never modifies the machines.
"""

from __future__ import annotations

from collections import Counter, deque

from . import rules
from .diagnostics import Category, Diagnostic, ValidationResult, make_error, make_warning
from .ir import MachineCategory, MachineSpec

Issues = tuple[list[Diagnostic], list[Diagnostic]]


def _location(spec: MachineSpec) -> dict:
    return {"file": spec.source.path, "context": {"machine": spec.id}}


def validate_initial_state(spec: MachineSpec) -> Issues:
    """The initial state must be one of the declared states."""
    errors: list[Diagnostic] = []
    if spec.initial_state not in spec.state_ids:
        errors.append(
            make_error(
                Category.VALIDATION,
                f"Initial state '{spec.initial_state}' is not defined in machine '{spec.id}'",
                line=spec.source.block_start_line,
                suggestion="Start the diagram with a transition out of the entry state",
                **_location(spec),
            )
        )
    return errors, []


def reachable_states(spec: MachineSpec) -> set[str]:
    """Every state id reachable from the initial state, itself included."""
    reachable: set[str] = set()
    to_visit = deque([spec.initial_state])

    while to_visit:
        state_id = to_visit.popleft()
        if state_id in reachable:
            continue
        reachable.add(state_id)
        for transition in spec.outgoing(state_id):
            to_visit.append(transition.to_state)

    return reachable


def validate_reachability(spec: MachineSpec) -> Issues:
    """
    Warn about states that cannot be reached from the initial state.

    Unreachable states are scaffolding smells rather than invalid input, so
    they are never errors.
    """
    warnings: list[Diagnostic] = []
    reachable = reachable_states(spec)

    for state in spec.states:
        if state.id not in reachable:
            warnings.append(
                make_warning(
                    Category.VALIDATION,
                    f"State '{state.id}' is not reachable from the initial state",
                    line=state.line,
                    suggestion=f"Add a transition into '{state.id}' or remove it",
                    **_location(spec),
                )
            )
    return [], warnings


def validate_endpoints(spec: MachineSpec) -> Issues:
    """Transitions should only reference declared states."""
    warnings: list[Diagnostic] = []
    declared = set(spec.state_ids)

    for transition in spec.transitions:
        for endpoint in (transition.from_state, transition.to_state):
            if endpoint not in declared:
                warnings.append(
                    make_warning(
                        Category.VALIDATION,
                        f"Transition {transition.from_state} -> {transition.to_state} "
                        f"references undeclared state '{endpoint}'",
                        line=transition.line,
                        **_location(spec),
                    )
                )
    return [], warnings


def validate_terminal_states(spec: MachineSpec) -> Issues:
    """Non-final states need a way out; final states should not have one."""
    warnings: list[Diagnostic] = []

    for state in spec.states:
        outgoing = spec.outgoing(state.id)
        if state.is_final and outgoing:
            warnings.append(
                make_warning(
                    Category.VALIDATION,
                    f"Final state '{state.id}' has {len(outgoing)} outgoing transition(s)",
                    line=state.line,
                    suggestion="Remove the transitions or rename the state",
                    **_location(spec),
                )
            )
        elif not state.is_final and not outgoing:
            warnings.append(
                make_warning(
                    Category.VALIDATION,
                    f"Dead-end state '{state.id}' has no outgoing transitions",
                    line=state.line,
                    suggestion="Add a transition or mark it final (e.g. End((\"Goodbye\")))",
                    **_location(spec),
                )
            )
    return [], warnings


def validate_final_state_count(spec: MachineSpec) -> Issues:
    """User machines need a way to finish; many exits suggest tangled termination."""
    warnings: list[Diagnostic] = []
    finals = spec.final_states

    if spec.category == MachineCategory.USER and not finals:
        warnings.append(
            make_warning(
                Category.BUSINESS_RULE,
                f"User machine '{spec.id}' has no final state",
                suggestion='Add a terminal state, e.g. End(("Goodbye"))',
                **_location(spec),
            )
        )
    if len(finals) > rules.MAX_FINAL_STATES:
        warnings.append(
            make_warning(
                Category.BUSINESS_RULE,
                f"Machine '{spec.id}' has {len(finals)} final states "
                f"(more than {rules.MAX_FINAL_STATES})",
                suggestion="Route exits through fewer terminal states",
                **_location(spec),
            )
        )
    return [], warnings


def validate_transition_limits(spec: MachineSpec) -> Issues:
    warnings: list[Diagnostic] = []
    for state in spec.states:
        count = len(spec.outgoing(state.id))
        if count > rules.MAX_TRANSITIONS_PER_STATE:
            warnings.append(
                make_warning(
                    Category.BUSINESS_RULE,
                    f"State '{state.id}' has {count} outgoing transitions "
                    f"(more than {rules.MAX_TRANSITIONS_PER_STATE})",
                    line=state.line,
                    suggestion="Split the choice into a submenu",
                    **_location(spec),
                )
            )
    return [], warnings


def validate_user_flows(spec: MachineSpec) -> Issues:
    """
    Navigation conventions for user machines.

    Only states with outgoing transitions are checked; dead ends are
    reported by :func:`validate_terminal_states`.
    """
    warnings: list[Diagnostic] = []
    if spec.category != MachineCategory.USER:
        return [], warnings

    for state in spec.states:
        outgoing = spec.outgoing(state.id)
        if not outgoing:
            continue
        if rules.is_input_state(state.id) and not rules.handles_errors(outgoing):
            warnings.append(
                make_warning(
                    Category.BUSINESS_RULE,
                    f"Input state '{state.id}' has no error transition",
                    line=state.line,
                    suggestion=f"Add e.g. {state.id} -->|input error| {state.id}Error",
                    **_location(spec),
                )
            )
        if state.id != spec.initial_state and not rules.offers_back_navigation(outgoing):
            warnings.append(
                make_warning(
                    Category.BUSINESS_RULE,
                    f"State '{state.id}' has no back or cancel navigation",
                    line=state.line,
                    suggestion="Add a transition labelled 'back' or 'cancel'",
                    **_location(spec),
                )
            )
    return [], warnings


def validate_category_conventions(spec: MachineSpec) -> Issues:
    """Soft domain conventions for each machine category."""
    warnings: list[Diagnostic] = []
    texts = [state.id for state in spec.states] + [state.label for state in spec.states]

    for convention in rules.CATEGORY_CONVENTIONS:
        if convention.category != spec.category:
            continue
        if not convention.satisfied_by(texts):
            warnings.append(
                make_warning(
                    Category.BUSINESS_RULE,
                    f"{convention.message} (machine '{spec.id}')",
                    suggestion=f"Add a state mentioning one of: {', '.join(convention.keywords)}",
                    **_location(spec),
                )
            )

    if spec.category == MachineCategory.INFO and len(spec.states) > rules.INFO_MACHINE_MAX_STATES:
        warnings.append(
            make_warning(
                Category.BUSINESS_RULE,
                f"Info machine '{spec.id}' has {len(spec.states)} states "
                f"(more than {rules.INFO_MACHINE_MAX_STATES})",
                suggestion="Split it or re-tag it as a user machine",
                **_location(spec),
            )
        )

    return [], warnings


def validate_naming_conventions(spec: MachineSpec) -> Issues:
    """PascalCase state ids and a ``...Machine`` machine name."""
    warnings: list[Diagnostic] = []

    if not rules.is_machine_name(spec.name):
        warnings.append(
            make_warning(
                Category.BUSINESS_RULE,
                f"Machine name '{spec.name}' should be PascalCase and end with 'Machine'",
                **_location(spec),
            )
        )

    for state in spec.states:
        if not rules.is_pascal_case(state.id):
            warnings.append(
                make_warning(
                    Category.BUSINESS_RULE,
                    f"State '{state.id}' should use PascalCase naming",
                    line=state.line,
                    suggestion=f"Use '{rules.to_pascal_case(state.id)}'",
                    **_location(spec),
                )
            )

    return [], warnings


STRUCTURE_CHECKS = [
    validate_initial_state,
    validate_reachability,
    validate_endpoints,
    validate_terminal_states,
    validate_final_state_count,
    validate_transition_limits,
    validate_user_flows,
    validate_category_conventions,
]


def validate_machine_specs(
    specs: list[MachineSpec], *, validate_naming: bool = False
) -> ValidationResult:
    """
    Validate machines independently and merge the results.

    Args:
        specs: Parsed machines
        validate_naming: Also run naming convention checks

    Returns:
        ValidationResult; ``is_valid`` is False iff any check found an error
    """
    result = ValidationResult()

    if not specs:
        result.warnings.append(
            make_warning(Category.VALIDATION, "No machine specifications to validate")
        )
        return result

    checks = list(STRUCTURE_CHECKS)
    if validate_naming:
        checks.append(validate_naming_conventions)

    for spec in specs:
        for check in checks:
            errors, warnings = check(spec)
            result.extend(errors, warnings)

    duplicates = [mid for mid, count in Counter(spec.id for spec in specs).items() if count > 1]
    for machine_id in duplicates:
        result.warnings.append(
            make_warning(
                Category.VALIDATION,
                f"Duplicate machine id '{machine_id}'",
                suggestion="Give each diagram its own file or rename the machines",
            )
        )

    return result
