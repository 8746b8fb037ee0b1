"""
Structural and semantic validation for WorkflowGraph.

``validate_workflow_graph`` never raises: every pass runs and accumulates into
a single ``ValidationResult`` so one call surfaces every problem.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from twc.compiler.graph_analysis import GraphAnalyzer
from twc.ir.durations import is_duration
from twc.ir.graph_schema import (
    NodeType,
    RetryPolicy,
    RetryStrategy,
    WorkflowGraph,
    WorkflowNode,
)
from twc.ir.node_configs import (
    ActivityConfig,
    ConfigExtractionError,
    extract_node_config,
    require_exhaustive,
    resolve_variable_name,
)

LOGGER = logging.getLogger(__name__)

_BRACE_REFERENCE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_TEMPLATE_REFERENCE = re.compile(r"\$\{([^{}]+)\}")
# Names every generated workflow body has in scope.
_WORKFLOW_SCOPE_NAMES = frozenset({"input", "state"})


class ValidationErrorKind(str, Enum):
    EMPTY_WORKFLOW = "empty_workflow"
    DUPLICATE_NODE_ID = "duplicate_node_id"
    DUPLICATE_EDGE_ID = "duplicate_edge_id"
    INVALID_EDGE_SOURCE = "invalid_edge_source"
    INVALID_EDGE_TARGET = "invalid_edge_target"
    NO_START_NODE = "no_start_node"
    MULTIPLE_START_NODES = "multiple_start_nodes"
    NO_END_NODE = "no_end_node"
    TRIGGER_HAS_INCOMING_EDGES = "trigger_has_incoming_edges"
    ORPHAN_NODE = "orphan_node"
    UNREACHABLE_NODE = "unreachable_node"
    CYCLE_DETECTED = "cycle_detected"
    MISSING_ACTIVITY_NAME = "missing_activity_name"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_CONFIG = "invalid_config"
    INVALID_RETRY_POLICY = "invalid_retry_policy"
    INVALID_TIMEOUT = "invalid_timeout"


class ValidationWarningKind(str, Enum):
    NO_TIMEOUT = "no_timeout"
    NO_RETRY_POLICY = "no_retry_policy"
    UNUSED_VARIABLE = "unused_variable"
    UNKNOWN_REFERENCE = "unknown_reference"
    MISSING_OPTIONAL_FIELD = "missing_optional_field"
    UNSUPPORTED_NODE = "unsupported_node"
    DEAD_END = "dead_end"
    DUPLICATE_VARIABLE = "duplicate_variable"


class _IssueModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class GraphError(_IssueModel):
    kind: ValidationErrorKind
    message: str
    node_id: Optional[str] = None
    node_ids: Optional[List[str]] = None
    edge_id: Optional[str] = None
    field: Optional[str] = None


class GraphWarning(_IssueModel):
    kind: ValidationWarningKind
    message: str
    node_id: Optional[str] = None
    field: Optional[str] = None
    variable_name: Optional[str] = None


class ValidationResult(_IssueModel):
    valid: bool
    errors: List[GraphError] = Field(default_factory=list)
    warnings: List[GraphWarning] = Field(default_factory=list)

    def error_kinds(self) -> List[ValidationErrorKind]:
        return [error.kind for error in self.errors]

    def warning_kinds(self) -> List[ValidationWarningKind]:
        return [warning.kind for warning in self.warnings]

    def errors_of(self, kind: ValidationErrorKind) -> List[GraphError]:
        return [error for error in self.errors if error.kind == kind]

    def warnings_of(self, kind: ValidationWarningKind) -> List[GraphWarning]:
        return [warning for warning in self.warnings if warning.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def raise_for_errors(self) -> "ValidationResult":
        if not self.valid:
            raise GraphValidationError(self)
        return self


class GraphValidationError(ValueError):
    """Raised when a caller requires a graph to be valid and it is not."""

    def __init__(self, result: ValidationResult) -> None:
        summary = "; ".join(error.message for error in result.errors[:5])
        super().__init__(f"Workflow graph is invalid ({len(result.errors)} errors): {summary}")
        self.result = result


class _Collector:
    def __init__(self) -> None:
        self.errors: List[GraphError] = []
        self.warnings: List[GraphWarning] = []

    def error(self, kind: ValidationErrorKind, message: str, **fields: Any) -> None:
        self.errors.append(GraphError(kind=kind, message=message, **fields))

    def warning(self, kind: ValidationWarningKind, message: str, **fields: Any) -> None:
        self.warnings.append(GraphWarning(kind=kind, message=message, **fields))


_ANALYZER = GraphAnalyzer()


def _check_structure(graph: WorkflowGraph, issues: _Collector) -> None:
    if not graph.nodes:
        issues.error(ValidationErrorKind.EMPTY_WORKFLOW, "Workflow must include at least one node.")

    for node_id, count in Counter(graph.node_ids()).items():
        if count > 1:
            issues.error(
                ValidationErrorKind.DUPLICATE_NODE_ID,
                f"Node id '{node_id}' is declared {count} times.",
                node_id=node_id,
            )
    for edge_id, count in Counter(edge.id for edge in graph.edges).items():
        if count > 1:
            issues.error(
                ValidationErrorKind.DUPLICATE_EDGE_ID,
                f"Edge id '{edge_id}' is declared {count} times.",
                edge_id=edge_id,
            )

    known = set(graph.node_ids())
    for edge in graph.edges:
        if edge.source not in known:
            issues.error(
                ValidationErrorKind.INVALID_EDGE_SOURCE,
                f"Edge '{edge.id}' source does not exist: {edge.source}",
                edge_id=edge.id,
                node_id=edge.source,
            )
        if edge.target not in known:
            issues.error(
                ValidationErrorKind.INVALID_EDGE_TARGET,
                f"Edge '{edge.id}' target does not exist: {edge.target}",
                edge_id=edge.id,
                node_id=edge.target,
            )


def _check_cardinality(graph: WorkflowGraph, issues: _Collector) -> None:
    triggers = graph.trigger_nodes()
    if not triggers:
        issues.error(ValidationErrorKind.NO_START_NODE, "Workflow must have a trigger node.")
    elif len(triggers) > 1:
        ids = [node.id for node in triggers]
        issues.error(
            ValidationErrorKind.MULTIPLE_START_NODES,
            f"Workflow has {len(ids)} trigger nodes: {', '.join(ids)}",
            node_ids=ids,
        )

    if not graph.end_nodes():
        issues.error(ValidationErrorKind.NO_END_NODE, "Workflow must have at least one end node.")

    for trigger in triggers:
        if graph.edges_to(trigger.id):
            issues.error(
                ValidationErrorKind.TRIGGER_HAS_INCOMING_EDGES,
                f"Trigger node '{trigger.id}' cannot have incoming edges.",
                node_id=trigger.id,
            )


def _check_orphans(graph: WorkflowGraph, issues: _Collector) -> None:
    if len(graph.nodes) <= 1:
        return
    connected = _ANALYZER.connected_node_ids(graph)
    for node in graph.nodes:
        if node.id not in connected:
            issues.error(
                ValidationErrorKind.ORPHAN_NODE,
                f"Node '{node.id}' is not connected to any other node.",
                node_id=node.id,
            )


def _check_reachability(graph: WorkflowGraph, issues: _Collector) -> None:
    triggers = graph.trigger_nodes()
    if len(triggers) != 1:
        return
    for node_id in _ANALYZER.unreachable_from(graph, triggers[0].id):
        issues.error(
            ValidationErrorKind.UNREACHABLE_NODE,
            f"Node '{node_id}' is not reachable from trigger '{triggers[0].id}'.",
            node_id=node_id,
        )


def _check_cycles(graph: WorkflowGraph, issues: _Collector) -> None:
    cycle = _ANALYZER.find_cycle(graph)
    if cycle:
        issues.error(
            ValidationErrorKind.CYCLE_DETECTED,
            f"Workflow graph contains a cycle: {' -> '.join(cycle + [cycle[0]])}",
            node_ids=cycle,
        )


def _check_retry_policy(
    policy: Optional[RetryPolicy], issues: _Collector, owner: str, node_id: Optional[str] = None
) -> None:
    if policy is None:
        return
    if policy.strategy == RetryStrategy.FAIL_AFTER_X and policy.max_attempts is None:
        issues.error(
            ValidationErrorKind.INVALID_RETRY_POLICY,
            f"{owner}: fail-after-x retry strategy requires maxAttempts.",
            node_id=node_id,
            field="maxAttempts",
        )
    if policy.max_attempts is not None and policy.max_attempts < 1:
        issues.error(
            ValidationErrorKind.INVALID_RETRY_POLICY,
            f"{owner}: maxAttempts must be at least 1.",
            node_id=node_id,
            field="maxAttempts",
        )
    if policy.backoff_coefficient is not None and policy.backoff_coefficient < 1:
        issues.error(
            ValidationErrorKind.INVALID_RETRY_POLICY,
            f"{owner}: backoffCoefficient must be at least 1.",
            node_id=node_id,
            field="backoffCoefficient",
        )
    for field, value in (
        ("initialInterval", policy.initial_interval),
        ("maxInterval", policy.max_interval),
    ):
        if value is not None and not is_duration(value):
            issues.error(
                ValidationErrorKind.INVALID_RETRY_POLICY,
                f"{owner}: {field} '{value}' is not a valid duration.",
                node_id=node_id,
                field=field,
            )


def _check_activity(node: WorkflowNode, issues: _Collector) -> None:
    config = extract_node_config(node)
    if not isinstance(config, ActivityConfig):
        return
    if config.timeout is None:
        issues.warning(
            ValidationWarningKind.NO_TIMEOUT,
            f"Activity '{node.id}' has no timeout; the workflow default applies.",
            node_id=node.id,
            field="timeout",
        )
    if config.retry_policy is None:
        issues.warning(
            ValidationWarningKind.NO_RETRY_POLICY,
            f"Activity '{node.id}' has no retry policy; the workflow default applies.",
            node_id=node.id,
            field="retryPolicy",
        )


def _check_condition(node: WorkflowNode, issues: _Collector) -> None:
    if not (node.data.condition or node.data.config_value("condition")):
        issues.warning(
            ValidationWarningKind.MISSING_OPTIONAL_FIELD,
            f"Condition node '{node.id}' has no condition; it will always take the true branch.",
            node_id=node.id,
            field="condition",
        )


def _check_loop(node: WorkflowNode, issues: _Collector) -> None:
    issues.warning(
        ValidationWarningKind.UNSUPPORTED_NODE,
        f"Loop node '{node.id}' is emitted as an unsupported marker; the loop body is not generated.",
        node_id=node.id,
    )


def _check_extractable(node: WorkflowNode, issues: _Collector) -> None:
    extract_node_config(node)


def _no_checks(node: WorkflowNode, issues: _Collector) -> None:
    return None


NodeCheck = Callable[[WorkflowNode, _Collector], None]

NODE_CHECKS: Dict[NodeType, NodeCheck] = {
    NodeType.TRIGGER: _no_checks,
    NodeType.END: _no_checks,
    NodeType.ACTIVITY: _check_activity,
    NodeType.AGENT: _check_activity,
    NodeType.CONDITIONAL: _check_condition,
    NodeType.CONDITION: _check_condition,
    NodeType.LOOP: _check_loop,
    NodeType.CHILD_WORKFLOW: _check_extractable,
    NodeType.SIGNAL: _check_extractable,
    NodeType.STATE_VARIABLE: _check_extractable,
    NodeType.KONG_LOGGING: _no_checks,
    NodeType.PHASE: _no_checks,
    NodeType.RETRY: _no_checks,
    NodeType.API_ENDPOINT: _no_checks,
    NodeType.DATA_IN: _no_checks,
    NodeType.DATA_OUT: _no_checks,
    NodeType.KONG_CACHE: _no_checks,
    NodeType.KONG_CORS: _no_checks,
    NodeType.GRAPHQL_GATEWAY: _no_checks,
    NodeType.MCP_SERVER: _no_checks,
}

require_exhaustive(NODE_CHECKS, "NODE_CHECKS")


def _check_node_configs(graph: WorkflowGraph, issues: _Collector) -> None:
    for node in graph.nodes:
        try:
            NODE_CHECKS[node.type](node, issues)
        except ConfigExtractionError as exc:
            issues.error(
                ValidationErrorKind(exc.kind.value),
                exc.message,
                node_id=exc.node_id,
                field=exc.field,
            )
        if node.data.timeout is not None and not is_duration(node.data.timeout):
            issues.error(
                ValidationErrorKind.INVALID_TIMEOUT,
                f"Node '{node.id}' timeout '{node.data.timeout}' is not a valid duration.",
                node_id=node.id,
                field="timeout",
            )
        _check_retry_policy(node.data.retry_policy, issues, f"Node '{node.id}'", node.id)

    settings = graph.settings
    if settings.default_timeout is not None and not is_duration(settings.default_timeout):
        issues.error(
            ValidationErrorKind.INVALID_TIMEOUT,
            f"Workflow default timeout '{settings.default_timeout}' is not a valid duration.",
            field="defaultTimeout",
        )
    if settings.max_duration is not None and not is_duration(settings.max_duration):
        issues.error(
            ValidationErrorKind.INVALID_TIMEOUT,
            f"Workflow maxDuration '{settings.max_duration}' is not a valid duration.",
            field="maxDuration",
        )
    _check_retry_policy(settings.retry_policy, issues, "Workflow settings")


def iter_references(value: Any) -> Iterator[str]:
    """Yield every variable reference found in nested config values."""

    if isinstance(value, str):
        for pattern in (_BRACE_REFERENCE, _TEMPLATE_REFERENCE):
            for match in pattern.finditer(value):
                reference = match.group(1).strip()
                if reference:
                    yield reference
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def _check_variables(graph: WorkflowGraph, issues: _Collector) -> None:
    declared: List[str] = [variable.name for variable in graph.variables]
    for name, count in Counter(declared).items():
        if count > 1:
            issues.warning(
                ValidationWarningKind.DUPLICATE_VARIABLE,
                f"Variable '{name}' is declared {count} times; the first declaration wins.",
                field=name,
                variable_name=name,
            )

    known = set(declared) | set(graph.node_ids()) | _WORKFLOW_SCOPE_NAMES
    used: Set[str] = set()
    for node in graph.nodes:
        references: List[str] = []
        references.extend(iter_references(node.data.config))
        references.extend(iter_references(node.data.input))
        if node.type == NodeType.STATE_VARIABLE:
            name = resolve_variable_name(node)
            if name:
                used.add(str(name))

        reported: Set[str] = set()
        for reference in references:
            # `{{customer.email}}` refers to `customer`
            candidates = {reference, reference.split(".", 1)[0].strip()}
            used.update(candidates)
            if candidates & known or reference in reported:
                continue
            reported.add(reference)
            issues.warning(
                ValidationWarningKind.UNKNOWN_REFERENCE,
                f"Node '{node.id}' references '{reference}', which is neither a declared "
                f"variable nor a node id.",
                node_id=node.id,
                variable_name=reference,
            )

    for name in dict.fromkeys(declared):
        if name not in used:
            issues.warning(
                ValidationWarningKind.UNUSED_VARIABLE,
                f"Variable '{name}' is declared but never referenced.",
                variable_name=name,
            )


def _check_dead_ends(graph: WorkflowGraph, issues: _Collector) -> None:
    if len(graph.nodes) <= 1:
        return
    for node_id in _ANALYZER.dead_ends(graph):
        issues.warning(
            ValidationWarningKind.DEAD_END,
            f"Node '{node_id}' has no outgoing edges and is not an end node.",
            node_id=node_id,
        )


VALIDATION_PASSES = (
    _check_structure,
    _check_cardinality,
    _check_orphans,
    _check_reachability,
    _check_cycles,
    _check_node_configs,
    _check_variables,
    _check_dead_ends,
)


def validate_workflow_graph(graph: WorkflowGraph) -> ValidationResult:
    issues = _Collector()
    for check in VALIDATION_PASSES:
        check(graph, issues)
    result = ValidationResult(
        valid=not issues.errors,
        errors=issues.errors,
        warnings=issues.warnings,
    )
    LOGGER.debug(
        "Validated workflow '%s': %d errors, %d warnings",
        graph.id,
        len(result.errors),
        len(result.warnings),
    )
    return result
