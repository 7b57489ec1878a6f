"""
Unit tests for the business-rule validator.

Machines are built directly from IR types so each rule can be exercised
without going through the parser.
"""

from flowmachine.core.diagnostics import Category
from flowmachine.core.ir import (
    MachineCategory,
    MachineSpec,
    NodeShape,
    StateSpec,
    StateType,
    TransitionSpec,
)
from flowmachine.core.parser import parse_text
from flowmachine.core.validator import (
    reachable_states,
    validate_category_conventions,
    validate_endpoints,
    validate_final_state_count,
    validate_initial_state,
    validate_machine_specs,
    validate_naming_conventions,
    validate_reachability,
    validate_terminal_states,
    validate_transition_limits,
    validate_user_flows,
)

# =============================================================================
# Helper Functions
# =============================================================================


def make_state(state_id: str, label: str | None = None, final: bool = False) -> StateSpec:
    return StateSpec(
        id=state_id,
        label=label or state_id,
        shape=NodeShape.CIRCLE if final else NodeShape.RECT,
        type=StateType.FINAL if final else StateType.NORMAL,
    )


def make_machine(
    states: list[str],
    transitions: list[tuple[str, str]],
    initial: str | None = None,
    finals: set[str] | None = None,
    category: MachineCategory = MachineCategory.CORE,
    machine_id: str = "testMachine",
    name: str = "Test Machine",
) -> MachineSpec:
    """Create a machine; CORE by default with a routing state to keep it quiet."""
    finals = finals or set()
    return MachineSpec(
        id=machine_id,
        name=name,
        category=category,
        initial_state=initial if initial is not None else (states[0] if states else ""),
        states=[make_state(s, final=s in finals) for s in states],
        transitions=[TransitionSpec(from_state=a, to_state=b) for a, b in transitions],
    )


def quiet_machine(**kwargs) -> MachineSpec:
    """Route -> Done: satisfies every structural and CORE rule."""
    return make_machine(["Route", "Done"], [("Route", "Done")], finals={"Done"}, **kwargs)


class TestInitialState:
    def test_defined(self) -> None:
        errors, warnings = validate_initial_state(quiet_machine())
        assert errors == []
        assert warnings == []

    def test_missing(self) -> None:
        machine = make_machine(["A", "B"], [("A", "B")], initial="Nowhere")
        errors, _ = validate_initial_state(machine)

        assert len(errors) == 1
        assert "Initial state" in errors[0].message
        assert "Nowhere" in errors[0].message
        assert errors[0].category == Category.VALIDATION

    def test_empty_machine(self) -> None:
        errors, _ = validate_initial_state(make_machine([], []))
        assert len(errors) == 1


class TestReachability:
    def test_all_reachable(self) -> None:
        machine = make_machine(["A", "B", "C"], [("A", "B"), ("B", "C"), ("C", "A")])
        assert reachable_states(machine) == {"A", "B", "C"}
        _, warnings = validate_reachability(machine)
        assert warnings == []

    def test_unreachable_state(self) -> None:
        machine = make_machine(["Start", "Next", "Orphan"], [("Start", "Next")])
        _, warnings = validate_reachability(machine)

        assert len(warnings) == 1
        assert "Orphan" in warnings[0].message
        assert "not reachable" in warnings[0].message

    def test_state_reachable_only_from_orphan(self) -> None:
        machine = make_machine(["Start", "Orphan", "Child"], [("Orphan", "Child")], initial="Start")
        _, warnings = validate_reachability(machine)
        assert sorted(w.context["machine"] for w in warnings) == ["testMachine", "testMachine"]
        assert len(warnings) == 2

    def test_unreachable_is_never_an_error(self) -> None:
        machine = make_machine(["Start", "Orphan"], [])
        assert validate_machine_specs([machine]).is_valid


class TestEndpoints:
    def test_undeclared_endpoint(self) -> None:
        machine = make_machine(["A"], [("A", "Ghost")])
        _, warnings = validate_endpoints(machine)
        assert len(warnings) == 1
        assert "Ghost" in warnings[0].message


class TestTerminalStates:
    def test_dead_end(self) -> None:
        machine = make_machine(["A", "Stuck"], [("A", "Stuck")])
        _, warnings = validate_terminal_states(machine)
        assert [w.message for w in warnings] == [
            "Dead-end state 'Stuck' has no outgoing transitions"
        ]

    def test_final_with_outgoing(self) -> None:
        machine = make_machine(["A", "Done"], [("A", "Done"), ("Done", "A")], finals={"Done"})
        _, warnings = validate_terminal_states(machine)
        assert len(warnings) == 1
        assert "Final state 'Done'" in warnings[0].message

    def test_clean_machine(self) -> None:
        _, warnings = validate_terminal_states(quiet_machine())
        assert warnings == []


def user_machine(edges: list[tuple[str, str, str | None]]) -> MachineSpec:
    """A USER machine whose states appear in edge order."""
    state_ids = list(dict.fromkeys(s for a, b, _ in edges for s in (a, b)))
    return MachineSpec(
        id="userMachine",
        name="User Machine",
        category=MachineCategory.USER,
        initial_state=state_ids[0],
        states=[make_state(s) for s in state_ids],
        transitions=[
            TransitionSpec(from_state=a, to_state=b, label=label) for a, b, label in edges
        ],
    )


class TestFinalStateCount:
    def test_user_machine_without_final_state(self) -> None:
        machine = make_machine(
            ["Login", "Menu"], [("Login", "Menu")], category=MachineCategory.USER
        )
        _, warnings = validate_final_state_count(machine)
        assert [w.message for w in warnings] == ["User machine 'testMachine' has no final state"]
        assert warnings[0].category == Category.BUSINESS_RULE

    def test_other_categories_may_omit_final_states(self) -> None:
        machine = make_machine(["Route", "Next"], [("Route", "Next")])
        assert validate_final_state_count(machine) == ([], [])

    def test_many_final_states(self) -> None:
        exits = [f"Exit{i}" for i in range(6)]
        machine = make_machine(
            ["Route", *exits], [("Route", e) for e in exits], finals=set(exits)
        )
        _, warnings = validate_final_state_count(machine)
        assert len(warnings) == 1
        assert "6 final states" in warnings[0].message

    def test_five_final_states_are_fine(self) -> None:
        exits = [f"Exit{i}" for i in range(5)]
        machine = make_machine(
            ["Route", *exits], [("Route", e) for e in exits], finals=set(exits)
        )
        assert validate_final_state_count(machine) == ([], [])


class TestTransitionLimits:
    def test_too_many_transitions(self) -> None:
        targets = [f"Option{i}" for i in range(21)]
        machine = make_machine(["Hub", *targets], [("Hub", t) for t in targets])
        _, warnings = validate_transition_limits(machine)

        assert len(warnings) == 1
        assert "State 'Hub' has 21 outgoing transitions" in warnings[0].message

    def test_at_limit(self) -> None:
        targets = [f"Option{i}" for i in range(20)]
        machine = make_machine(["Hub", *targets], [("Hub", t) for t in targets])
        assert validate_transition_limits(machine) == ([], [])


class TestUserFlows:
    def test_input_state_without_error_transition(self) -> None:
        machine = user_machine(
            [("Start", "PinInput", None), ("PinInput", "Menu", "back to menu")]
        )
        _, warnings = validate_user_flows(machine)
        assert [w.message for w in warnings] == ["Input state 'PinInput' has no error transition"]

    def test_error_transition_by_label_or_target(self) -> None:
        by_label = user_machine(
            [("Start", "PinInput", None), ("PinInput", "Start", "cancel on input error")]
        )
        by_target = user_machine(
            [("Start", "PinInput", None), ("PinInput", "PinError", "cancel")]
        )
        assert validate_user_flows(by_label) == ([], [])
        assert validate_user_flows(by_target) == ([], [])

    def test_missing_back_navigation(self) -> None:
        machine = user_machine([("Start", "Menu", None), ("Menu", "Balance", "show")])
        _, warnings = validate_user_flows(machine)
        assert [w.message for w in warnings] == ["State 'Menu' has no back or cancel navigation"]

    def test_initial_and_dead_end_states_are_skipped(self) -> None:
        machine = user_machine([("Start", "Menu", None), ("Menu", "Start", "Back")])
        assert validate_user_flows(machine) == ([], [])

    def test_only_user_machines(self) -> None:
        machine = make_machine(
            ["Route", "PinInput", "Done"], [("Route", "PinInput"), ("PinInput", "Done")]
        )
        assert validate_user_flows(machine) == ([], [])


class TestCategoryConventions:
    def test_user_machine_missing_auth_and_menu(self) -> None:
        machine = make_machine(
            ["Start", "Done"], [("Start", "Done")], category=MachineCategory.USER
        )
        _, warnings = validate_category_conventions(machine)

        assert len(warnings) == 2
        assert "authentication" in warnings[0].message
        assert "menu" in warnings[1].message
        assert all(w.category == Category.BUSINESS_RULE for w in warnings)

    def test_user_machine_with_login_and_menu(self) -> None:
        machine = make_machine(
            ["Login", "MainMenu"], [("Login", "MainMenu")], category=MachineCategory.USER
        )
        _, warnings = validate_category_conventions(machine)
        assert warnings == []

    def test_keywords_match_labels(self) -> None:
        machine = MachineSpec(
            id="m",
            name="M Machine",
            category=MachineCategory.ACCOUNT,
            initial_state="A",
            states=[StateSpec(id="A", label="Show balance")],
        )
        _, warnings = validate_category_conventions(machine)
        assert warnings == []

    def test_agent_machine_needs_permission(self) -> None:
        machine = make_machine(["Start"], [], category=MachineCategory.AGENT)
        _, warnings = validate_category_conventions(machine)
        assert len(warnings) == 1
        assert "permission" in warnings[0].message

    def test_large_info_machine(self) -> None:
        states = [f"Page{i}" for i in range(11)]
        machine = make_machine(states, [], category=MachineCategory.INFO)
        _, warnings = validate_category_conventions(machine)
        assert len(warnings) == 1
        assert "11 states" in warnings[0].message

    def test_small_info_machine(self) -> None:
        machine = make_machine(["A", "B"], [], category=MachineCategory.INFO)
        assert validate_category_conventions(machine) == ([], [])


class TestNamingConventions:
    def test_good_names(self) -> None:
        assert validate_naming_conventions(quiet_machine()) == ([], [])

    def test_bad_state_and_machine_names(self) -> None:
        machine = make_machine(["main_menu", "Done"], [], name="menu flow")
        _, warnings = validate_naming_conventions(machine)

        assert len(warnings) == 2
        assert "Machine name" in warnings[0].message
        assert "MainMenu" in warnings[1].suggestion

    def test_naming_only_when_enabled(self) -> None:
        machine = make_machine(["Route", "lower"], [("Route", "lower")], finals={"lower"})
        assert validate_machine_specs([machine]).warnings == []
        assert len(validate_machine_specs([machine], validate_naming=True).warnings) == 1


class TestValidateMachineSpecs:
    def test_empty_list(self) -> None:
        result = validate_machine_specs([])
        assert result.is_valid
        assert "No machine specifications" in result.warnings[0].message

    def test_quiet_machine(self) -> None:
        result = validate_machine_specs([quiet_machine()])
        assert result.is_valid
        assert result.warnings == []

    def test_specs_validate_independently(self) -> None:
        broken = make_machine(["A"], [], initial="Missing", machine_id="brokenMachine")
        good = quiet_machine(machine_id="goodMachine")
        result = validate_machine_specs([broken, good])

        assert not result.is_valid
        assert len(result.errors) == 1
        assert all(d.context["machine"] == "brokenMachine" for d in result.errors)

    def test_duplicate_machine_ids(self) -> None:
        result = validate_machine_specs([quiet_machine(), quiet_machine()])
        assert any("Duplicate machine id" in w.message for w in result.warnings)

    def test_parsed_machine(self, ussd_menu: str) -> None:
        machines = parse_text(ussd_menu).machines
        result = validate_machine_specs(machines, validate_naming=True)
        assert result.is_valid
        assert result.warnings == []

    def test_parsed_unreachable_state(self) -> None:
        text = "flowchart LR\nStart --> Menu\nMenu --> End\nOrphan --> End"
        result = validate_machine_specs(parse_text(text).machines)
        unreachable = [w for w in result.warnings if "not reachable" in w.message]
        assert [w.message for w in unreachable] == [
            "State 'Orphan' is not reachable from the initial state"
        ]
