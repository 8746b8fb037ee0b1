from twc.ir.graph_schema import (
    NodeData,
    NodeType,
    RetryPolicy,
    RetryStrategy,
    VariableType,
    WorkflowEdge,
    WorkflowGraph,
    WorkflowNode,
    WorkflowSettings,
    WorkflowVariable,
)
from twc.ir.node_configs import ConfigExtractionError, extract_node_config
from twc.ir.validators import (
    GraphValidationError,
    ValidationErrorKind,
    ValidationResult,
    ValidationWarningKind,
    validate_workflow_graph,
)

__all__ = [
    "WorkflowGraph",
    "WorkflowNode",
    "WorkflowEdge",
    "WorkflowVariable",
    "WorkflowSettings",
    "NodeData",
    "NodeType",
    "RetryPolicy",
    "RetryStrategy",
    "VariableType",
    "ConfigExtractionError",
    "extract_node_config",
    "GraphValidationError",
    "ValidationErrorKind",
    "ValidationWarningKind",
    "ValidationResult",
    "validate_workflow_graph",
]
