"""Tests for graph validation passes."""

import pytest

from twc.ir.graph_schema import WorkflowGraph
from twc.ir.validators import (
    GraphValidationError,
    ValidationErrorKind as E,
    ValidationWarningKind as W,
    iter_references,
    validate_workflow_graph,
)


class TestStructure:
    """Structural integrity and cardinality checks."""

    def test_simple_graph_is_valid(self, simple_graph):
        result = validate_workflow_graph(simple_graph)

        assert result.valid is True
        assert result.errors == []

    def test_empty_workflow(self):
        result = validate_workflow_graph(WorkflowGraph(id="empty"))

        assert result.valid is False
        assert E.EMPTY_WORKFLOW in result.error_kinds()
        assert E.NO_START_NODE in result.error_kinds()
        assert E.NO_END_NODE in result.error_kinds()

    def test_duplicate_node_and_edge_ids(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("a", "activity", activityName="x"), node("a", "end")],
            [("t", "a"), ("t", "a")],
        )

        result = validate_workflow_graph(graph)

        assert [error.node_id for error in result.errors_of(E.DUPLICATE_NODE_ID)] == ["a"]
        assert len(result.errors_of(E.DUPLICATE_EDGE_ID)) == 1

    def test_invalid_edge_endpoints_reported_per_edge(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("e", "end")],
            [("t", "e"), ("t", "ghost"), ("phantom", "e"), ("t", "ghost2")],
        )

        result = validate_workflow_graph(graph)

        targets = result.errors_of(E.INVALID_EDGE_TARGET)
        sources = result.errors_of(E.INVALID_EDGE_SOURCE)
        assert sorted(error.node_id for error in targets) == ["ghost", "ghost2"]
        assert [error.node_id for error in sources] == ["phantom"]
        assert all(error.edge_id for error in targets + sources)

    def test_no_start_node(self, graph_factory, node):
        graph = graph_factory(
            [node("a", "activity", activityName="x"), node("e", "end")], [("a", "e")]
        )

        assert E.NO_START_NODE in validate_workflow_graph(graph).error_kinds()

    def test_multiple_start_nodes_lists_exact_ids(self, graph_factory, node):
        graph = graph_factory(
            [node("t2", "trigger"), node("t1", "trigger"), node("e", "end")],
            [("t1", "e"), ("t2", "e")],
        )

        result = validate_workflow_graph(graph)

        errors = result.errors_of(E.MULTIPLE_START_NODES)
        assert len(errors) == 1
        assert set(errors[0].node_ids) == {"t1", "t2"}

    def test_no_end_node(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("a", "activity", activityName="x")], [("t", "a")]
        )

        assert E.NO_END_NODE in validate_workflow_graph(graph).error_kinds()

    def test_trigger_with_incoming_edge(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("a", "activity", activityName="x"), node("e", "end")],
            [("t", "a"), ("a", "e"), ("a", "t")],
        )

        result = validate_workflow_graph(graph)

        assert [error.node_id for error in result.errors_of(E.TRIGGER_HAS_INCOMING_EDGES)] == ["t"]


class TestGraphShape:
    """Orphans, reachability and cycles."""

    def test_orphan_node(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("x", "activity", activityName="x"), node("e", "end")],
            [("t", "e")],
        )

        result = validate_workflow_graph(graph)

        assert [error.node_id for error in result.errors_of(E.ORPHAN_NODE)] == ["x"]

    def test_single_node_graph_is_never_orphaned(self, graph_factory, node):
        result = validate_workflow_graph(graph_factory([node("t", "trigger")]))

        assert result.errors_of(E.ORPHAN_NODE) == []

    def test_unreachable_island(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("e", "end"),
                node("y", "activity", activityName="y"),
                node("z", "activity", activityName="z"),
            ],
            [("t", "e"), ("y", "z"), ("z", "e")],
        )

        result = validate_workflow_graph(graph)

        unreachable = {error.node_id for error in result.errors_of(E.UNREACHABLE_NODE)}
        assert unreachable == {"y", "z"}
        assert result.errors_of(E.ORPHAN_NODE) == []

    def test_reachability_skipped_without_unique_trigger(self, graph_factory, node):
        graph = graph_factory(
            [node("t1", "trigger"), node("t2", "trigger"), node("e", "end")],
            [("t1", "e")],
        )

        assert validate_workflow_graph(graph).errors_of(E.UNREACHABLE_NODE) == []

    def test_cycle_reports_exact_members(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("A", "activity", activityName="a", timeout="1m", retryPolicy={}),
                node("B", "activity", activityName="b", timeout="1m", retryPolicy={}),
                node("C", "activity", activityName="c", timeout="1m", retryPolicy={}),
                node("e", "end"),
            ],
            [("t", "A"), ("A", "B"), ("B", "C"), ("C", "A"), ("C", "e")],
        )

        result = validate_workflow_graph(graph)

        assert result.valid is False
        cycles = result.errors_of(E.CYCLE_DETECTED)
        assert len(cycles) == 1
        assert set(cycles[0].node_ids) == {"A", "B", "C"}
        assert result.error_kinds() == [E.CYCLE_DETECTED]

    def test_only_first_cycle_reported(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("a", "phase"),
                node("b", "phase"),
                node("c", "phase"),
                node("d", "phase"),
                node("e", "end"),
            ],
            [("t", "a"), ("a", "b"), ("b", "a"), ("a", "c"), ("c", "d"), ("d", "c"), ("d", "e")],
        )

        cycles = validate_workflow_graph(graph).errors_of(E.CYCLE_DETECTED)

        assert len(cycles) == 1
        assert cycles[0].node_ids == ["a", "b"]

    def test_self_loop_is_a_cycle(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("p", "phase"), node("e", "end")],
            [("t", "p"), ("p", "p"), ("p", "e")],
        )

        cycles = validate_workflow_graph(graph).errors_of(E.CYCLE_DETECTED)

        assert cycles[0].node_ids == ["p"]

    def test_loop_node_cycle_is_still_flagged(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("l", "loop"), node("p", "phase"), node("e", "end")],
            [("t", "l"), ("l", "p"), ("p", "l"), ("l", "e")],
        )

        result = validate_workflow_graph(graph)

        assert set(result.errors_of(E.CYCLE_DETECTED)[0].node_ids) == {"l", "p"}
        assert W.UNSUPPORTED_NODE in result.warning_kinds()

    def test_deep_chain_does_not_hit_recursion_limit(self, graph_factory, node):
        count = 3000
        nodes = [node("t", "trigger")]
        nodes += [node(f"p{i}", "phase") for i in range(count)]
        nodes.append(node("e", "end"))
        pairs = [("t", "p0")]
        pairs += [(f"p{i}", f"p{i + 1}") for i in range(count - 1)]
        pairs.append((f"p{count - 1}", "e"))

        result = validate_workflow_graph(graph_factory(nodes, pairs))

        assert result.valid is True


class TestNodeConfiguration:
    """Per-node-type configuration checks."""

    def test_activity_without_name(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("a", "agent"), node("e", "end")],
            [("t", "a"), ("a", "e")],
        )

        errors = validate_workflow_graph(graph).errors_of(E.MISSING_ACTIVITY_NAME)

        assert [error.node_id for error in errors] == ["a"]

    def test_component_name_resolves_activity(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("a", "activity", componentName="SendEmail"), node("e", "end")],
            [("t", "a"), ("a", "e")],
        )

        assert validate_workflow_graph(graph).valid is True

    def test_missing_timeout_and_retry_are_warnings(self, simple_graph):
        result = validate_workflow_graph(simple_graph)

        assert W.NO_TIMEOUT in result.warning_kinds()
        assert W.NO_RETRY_POLICY in result.warning_kinds()
        assert result.valid is True

    def test_signal_requires_name(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("s", "signal"), node("e", "end")],
            [("t", "s"), ("s", "e")],
        )

        errors = validate_workflow_graph(graph).errors_of(E.MISSING_REQUIRED_FIELD)

        assert [(error.node_id, error.field) for error in errors] == [("s", "signalName")]

    def test_child_workflow_requires_workflow_id(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("c", "child-workflow"), node("e", "end")],
            [("t", "c"), ("c", "e")],
        )

        errors = validate_workflow_graph(graph).errors_of(E.MISSING_REQUIRED_FIELD)

        assert [(error.node_id, error.field) for error in errors] == [("c", "workflowId")]

    def test_state_variable_needs_label_or_config(self, graph_factory, node):
        bare = {"id": "v", "type": "state-variable", "data": {"label": ""}}
        graph = graph_factory([node("t", "trigger"), bare, node("e", "end")], [("t", "v"), ("v", "e")])

        errors = validate_workflow_graph(graph).errors_of(E.INVALID_CONFIG)

        assert [error.node_id for error in errors] == ["v"]

    def test_condition_without_expression_warns(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("c", "condition"), node("e", "end")],
            [("t", "c"), ("c", "e")],
        )

        result = validate_workflow_graph(graph)

        assert result.valid is True
        assert W.MISSING_OPTIONAL_FIELD in result.warning_kinds()

    def test_retry_policy_checks(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("a", "activity", activityName="a", retryPolicy={"strategy": "fail-after-x"}),
                node("b", "activity", activityName="b", retryPolicy={"maxAttempts": 0, "backoffCoefficient": 0.5}),
                node("e", "end"),
            ],
            [("t", "a"), ("a", "b"), ("b", "e")],
        )

        errors = validate_workflow_graph(graph).errors_of(E.INVALID_RETRY_POLICY)

        assert sorted((error.node_id, error.field) for error in errors) == [
            ("a", "maxAttempts"),
            ("b", "backoffCoefficient"),
            ("b", "maxAttempts"),
        ]

    def test_invalid_timeouts(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("a", "activity", activityName="a", timeout="soon"), node("e", "end")],
            [("t", "a"), ("a", "e")],
            settings={"defaultTimeout": "forever"},
        )

        errors = validate_workflow_graph(graph).errors_of(E.INVALID_TIMEOUT)

        assert sorted(error.field for error in errors) == ["defaultTimeout", "timeout"]

    def test_dead_end_warning(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("a", "activity", activityName="a"), node("e", "end")],
            [("t", "a"), ("t", "e")],
        )

        warnings = validate_workflow_graph(graph).warnings_of(W.DEAD_END)

        assert [warning.node_id for warning in warnings] == ["a"]


class TestVariableUsage:
    """Variable reference analysis."""

    def test_iter_references_walks_nested_values(self):
        config = {"a": "{{ first }}", "b": [{"c": "prefix ${second} suffix"}], "d": 3}

        assert sorted(iter_references(config)) == ["first", "second"]

    def test_iter_references_keeps_whole_name(self):
        config = {"a": "{{ api-key }}", "b": "${order.total} and {{a.b}}"}

        assert sorted(iter_references(config)) == ["a.b", "api-key", "order.total"]

    def test_unused_variable_warning(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("a", "activity", activityName="a", config={"to": "{{email}}"}),
                node("e", "end"),
            ],
            [("t", "a"), ("a", "e")],
            variables=[{"name": "email", "type": "string"}, {"name": "unused", "type": "number"}],
        )

        result = validate_workflow_graph(graph)

        assert [warning.variable_name for warning in result.warnings_of(W.UNUSED_VARIABLE)] == ["unused"]
        assert result.valid is True

    def test_unknown_reference_is_a_suggestion(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("a", "activity", activityName="a", input={"x": "${typo}", "y": "{{t}}"}),
                node("e", "end"),
            ],
            [("t", "a"), ("a", "e")],
        )

        result = validate_workflow_graph(graph)

        unknown = result.warnings_of(W.UNKNOWN_REFERENCE)
        assert [warning.variable_name for warning in unknown] == ["typo"]
        assert result.valid is True

    def test_state_variable_counts_as_use(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("v", "state-variable", componentName="GetVariable", variableName="counter"),
                node("e", "end"),
            ],
            [("t", "v"), ("v", "e")],
            variables=[{"name": "counter", "type": "number"}],
        )

        assert validate_workflow_graph(graph).warnings_of(W.UNUSED_VARIABLE) == []

    def test_duplicate_variable_is_a_warning(self, graph_factory, node):
        graph = graph_factory(
            [node("t", "trigger"), node("e", "end")],
            [("t", "e")],
            variables=[{"name": "x"}, {"name": "x"}],
        )

        result = validate_workflow_graph(graph)

        assert result.valid is True
        assert [warning.variable_name for warning in result.warnings_of(W.DUPLICATE_VARIABLE)] == ["x"]

    def test_hyphenated_reference_counts_as_use(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("a", "activity", activityName="a", config={"key": "{{api-key}}"}),
                node("e", "end"),
            ],
            [("t", "a"), ("a", "e")],
            variables=[{"name": "api-key", "type": "string"}],
        )

        result = validate_workflow_graph(graph)

        assert result.warnings_of(W.UNUSED_VARIABLE) == []
        assert result.warnings_of(W.UNKNOWN_REFERENCE) == []

    def test_unknown_hyphenated_reference_warns(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("a", "activity", activityName="a", config={"key": "{{missing-thing}}"}),
                node("e", "end"),
            ],
            [("t", "a"), ("a", "e")],
        )

        unknown = validate_workflow_graph(graph).warnings_of(W.UNKNOWN_REFERENCE)

        assert [warning.variable_name for warning in unknown] == ["missing-thing"]

    def test_dotted_reference_resolves_to_root(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node(
                    "fetch-user",
                    "activity",
                    activityName="fetchUser",
                    config={"to": "{{ customer.email }}", "id": "${fetch-user.id}"},
                ),
                node("e", "end"),
            ],
            [("t", "fetch-user"), ("fetch-user", "e")],
            variables=[{"name": "customer", "type": "object"}],
        )

        result = validate_workflow_graph(graph)

        assert result.warnings_of(W.UNUSED_VARIABLE) == []
        assert result.warnings_of(W.UNKNOWN_REFERENCE) == []

    def test_workflow_input_is_always_in_scope(self, graph_factory, node):
        graph = graph_factory(
            [
                node("t", "trigger"),
                node("a", "activity", activityName="a", input={"id": "${input.orderId}", "s": "{{state}}"}),
                node("e", "end"),
            ],
            [("t", "a"), ("a", "e")],
        )

        assert validate_workflow_graph(graph).warnings_of(W.UNKNOWN_REFERENCE) == []


class TestResult:
    """ValidationResult behaviour."""

    def test_raise_for_errors(self):
        result = validate_workflow_graph(WorkflowGraph(id="empty"))

        with pytest.raises(GraphValidationError) as excinfo:
            result.raise_for_errors()

        assert excinfo.value.result is result

    def test_serialized_shape(self, graph_factory, node):
        graph = graph_factory(
            [node("t1", "trigger"), node("t2", "trigger"), node("e", "end")],
            [("t1", "e"), ("t2", "e")],
        )

        payload = validate_workflow_graph(graph).to_dict()

        assert payload["valid"] is False
        error = payload["errors"][0]
        assert error["kind"] == "multiple_start_nodes"
        assert sorted(error["nodeIds"]) == ["t1", "t2"]
        assert "edgeId" not in error
