"""
Per-variant node configuration payloads.

``NodeData`` is a loose bag of optional fields shared by every node type.
``extract_node_config`` narrows it to the payload a given node type actually
uses, raising ``ConfigExtractionError`` when a required field is absent.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from twc.ir.graph_schema import NodeData, NodeType, RetryPolicy, WorkflowNode


class ExtractionFailure(str, Enum):
    MISSING_ACTIVITY_NAME = "missing_activity_name"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_CONFIG = "invalid_config"


class ConfigExtractionError(ValueError):
    """Raised when a node lacks the configuration its type requires."""

    def __init__(
        self,
        node_id: str,
        message: str,
        *,
        field: Optional[str] = None,
        kind: ExtractionFailure = ExtractionFailure.MISSING_REQUIRED_FIELD,
    ) -> None:
        super().__init__(message)
        self.node_id = node_id
        self.field = field
        self.kind = kind
        self.message = message


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class VariableScope(str, Enum):
    WORKFLOW = "workflow"
    SERVICE = "service"
    PROJECT = "project"


class StateVariableKind(str, Enum):
    SERVICE_VARIABLE = "ServiceVariable"
    GET_VARIABLE = "GetVariable"
    SET_VARIABLE = "SetVariable"


class NodeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    node_id: str


class StartConfig(NodeConfig):
    trigger_type: Optional[str] = None
    schedule: Optional[str] = None


class StopConfig(NodeConfig):
    result_mapping: Optional[str] = None
    include_metadata: bool = False


class ActivityConfig(NodeConfig):
    activity_name: str
    timeout: Optional[str] = None
    retry_policy: Optional[RetryPolicy] = None
    input_mapping: Dict[str, Any] = Field(default_factory=dict)


class LogConfig(NodeConfig):
    message: str
    level: LogLevel = LogLevel.INFO
    include_workflow_context: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SignalConfig(NodeConfig):
    signal_name: str


class ConditionConfig(NodeConfig):
    condition: Optional[str] = None

    @property
    def expression(self) -> str:
        return (self.condition or "").strip() or "true"


class LoopConfig(NodeConfig):
    label: Optional[str] = None


class ChildWorkflowConfig(NodeConfig):
    workflow_id: str


class ServiceVariableConfig(NodeConfig):
    variable_name: str
    default_value: Optional[Any] = None
    persistence: bool = False
    ttl: Optional[Union[int, str]] = None


class GetVariableConfig(NodeConfig):
    variable_name: str
    scope: VariableScope = VariableScope.WORKFLOW
    default_value: Optional[Any] = None
    throw_if_missing: bool = False


class SetVariableConfig(NodeConfig):
    variable_name: str
    scope: VariableScope = VariableScope.WORKFLOW
    value_expression: Optional[str] = None
    static_value: Optional[Any] = None
    merge: bool = False
    create_if_missing: bool = True


class PassiveConfig(NodeConfig):
    node_type: NodeType


AnyNodeConfig = Union[
    StartConfig,
    StopConfig,
    ActivityConfig,
    LogConfig,
    SignalConfig,
    ConditionConfig,
    LoopConfig,
    ChildWorkflowConfig,
    ServiceVariableConfig,
    GetVariableConfig,
    SetVariableConfig,
    PassiveConfig,
]

Extractor = Callable[[WorkflowNode], AnyNodeConfig]


def require_exhaustive(table: Mapping[NodeType, Any], name: str) -> None:
    """Fail at import time when a dispatch table misses a node type."""

    missing = [member.value for member in NodeType if member not in table]
    if missing:
        raise RuntimeError(f"{name} has no entry for node types: {', '.join(missing)}")


def _first(*values: Any) -> Optional[Any]:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _normalized(value: Optional[str]) -> str:
    return "".join(char for char in (value or "").lower() if char.isalnum())


def is_log_component(data: NodeData) -> bool:
    return _normalized(data.component_name) == "log" or _normalized(data.activity_name) == "log"


def parse_log_level(raw: Optional[str]) -> LogLevel:
    value = (raw or "").strip().lower()
    if value == "debug":
        return LogLevel.DEBUG
    if value in ("warn", "warning"):
        return LogLevel.WARN
    if value == "error":
        return LogLevel.ERROR
    return LogLevel.INFO


def state_variable_kind(data: NodeData) -> StateVariableKind:
    discriminator = _normalized(data.component_name)
    if discriminator == "getvariable":
        return StateVariableKind.GET_VARIABLE
    if discriminator == "setvariable":
        return StateVariableKind.SET_VARIABLE
    return StateVariableKind.SERVICE_VARIABLE


def resolve_variable_name(node: WorkflowNode) -> Optional[str]:
    data = node.data
    return _first(data.variable_name, data.config_value("name", "variableName"), data.label)


def _extract_start(node: WorkflowNode) -> StartConfig:
    data = node.data
    return StartConfig(
        node_id=node.id,
        trigger_type=_first(data.trigger_type, data.config_value("triggerType")),
        schedule=_first(data.schedule, data.config_value("schedule")),
    )


def _extract_stop(node: WorkflowNode) -> StopConfig:
    data = node.data
    return StopConfig(
        node_id=node.id,
        result_mapping=_first(data.result_mapping, data.config_value("resultMapping")),
        include_metadata=_flag(
            _first(data.include_metadata, data.config_value("includeMetadata")), False
        ),
    )


def _extract_log(node: WorkflowNode) -> LogConfig:
    data = node.data
    metadata = data.config.get("metadata")
    return LogConfig(
        node_id=node.id,
        message=_first(data.log_message, data.config_value("message", "logMessage"), data.label)
        or "Log entry",
        level=parse_log_level(_first(data.log_level, data.config_value("level", "logLevel"))),
        include_workflow_context=_flag(
            _first(data.include_workflow_context, data.config_value("includeWorkflowContext")),
            True,
        ),
        metadata=metadata if isinstance(metadata, dict) else {},
    )


def _extract_activity(node: WorkflowNode) -> Union[ActivityConfig, LogConfig]:
    data = node.data
    if is_log_component(data):
        return _extract_log(node)
    name = _first(data.activity_name, data.component_name)
    if not name or not str(name).strip():
        raise ConfigExtractionError(
            node.id,
            f"{node.type.value.capitalize()} node '{node.id}' must declare activityName or componentName.",
            field="activityName",
            kind=ExtractionFailure.MISSING_ACTIVITY_NAME,
        )
    mapping = data.config.get("inputMapping")
    return ActivityConfig(
        node_id=node.id,
        activity_name=str(name).strip(),
        timeout=data.timeout,
        retry_policy=data.retry_policy,
        input_mapping=mapping if isinstance(mapping, dict) else {},
    )


def _extract_signal(node: WorkflowNode) -> SignalConfig:
    name = _first(node.data.signal_name, node.data.config_value("signalName"))
    if not name:
        raise ConfigExtractionError(
            node.id,
            f"Signal node '{node.id}' must declare signalName.",
            field="signalName",
        )
    return SignalConfig(node_id=node.id, signal_name=str(name))


def _extract_condition(node: WorkflowNode) -> ConditionConfig:
    return ConditionConfig(
        node_id=node.id,
        condition=_first(node.data.condition, node.data.config_value("condition")),
    )


def _extract_loop(node: WorkflowNode) -> LoopConfig:
    return LoopConfig(node_id=node.id, label=node.data.label)


def _extract_child_workflow(node: WorkflowNode) -> ChildWorkflowConfig:
    workflow_id = _first(
        node.data.workflow_id, node.data.config_value("workflowId", "workflowType")
    )
    if not workflow_id:
        raise ConfigExtractionError(
            node.id,
            f"Child workflow node '{node.id}' must declare workflowId.",
            field="workflowId",
        )
    return ChildWorkflowConfig(node_id=node.id, workflow_id=str(workflow_id))


def _extract_scope(node: WorkflowNode) -> VariableScope:
    raw = _first(node.data.variable_scope, node.data.config_value("scope", "variableScope"))
    if raw is None:
        return VariableScope.WORKFLOW
    try:
        return VariableScope(str(raw).strip().lower())
    except ValueError:
        raise ConfigExtractionError(
            node.id,
            f"State variable node '{node.id}' has unknown scope '{raw}'.",
            field="variableScope",
            kind=ExtractionFailure.INVALID_CONFIG,
        ) from None


def _extract_state_variable(
    node: WorkflowNode,
) -> Union[ServiceVariableConfig, GetVariableConfig, SetVariableConfig]:
    data = node.data
    if not (data.label or "").strip() and not data.config:
        raise ConfigExtractionError(
            node.id,
            f"State variable node '{node.id}' needs a label or a config map.",
            kind=ExtractionFailure.INVALID_CONFIG,
        )
    variable_name = str(resolve_variable_name(node) or node.id)
    default_value = _first(data.default_value, data.config_value("defaultValue"))
    kind = state_variable_kind(data)

    if kind is StateVariableKind.GET_VARIABLE:
        return GetVariableConfig(
            node_id=node.id,
            variable_name=variable_name,
            scope=_extract_scope(node),
            default_value=default_value,
            throw_if_missing=_flag(
                _first(data.throw_if_missing, data.config_value("throwIfMissing")), False
            ),
        )
    if kind is StateVariableKind.SET_VARIABLE:
        static_value = data.static_value
        if static_value is None:
            static_value = data.config.get("staticValue", data.config.get("value"))
        return SetVariableConfig(
            node_id=node.id,
            variable_name=variable_name,
            scope=_extract_scope(node),
            value_expression=_first(
                data.value_expression, data.config_value("valueExpression", "expression")
            ),
            static_value=static_value,
            merge=_flag(_first(data.merge, data.config_value("merge")), False),
            create_if_missing=_flag(
                _first(data.create_if_missing, data.config_value("createIfMissing")), True
            ),
        )
    return ServiceVariableConfig(
        node_id=node.id,
        variable_name=variable_name,
        default_value=default_value,
        persistence=_flag(_first(data.persistence, data.config_value("persistence")), False),
        ttl=_first(data.ttl, data.config_value("ttl")),
    )


def _extract_passive(node: WorkflowNode) -> PassiveConfig:
    return PassiveConfig(node_id=node.id, node_type=node.type)


CONFIG_EXTRACTORS: Dict[NodeType, Extractor] = {
    NodeType.TRIGGER: _extract_start,
    NodeType.END: _extract_stop,
    NodeType.ACTIVITY: _extract_activity,
    NodeType.AGENT: _extract_activity,
    NodeType.CONDITIONAL: _extract_condition,
    NodeType.CONDITION: _extract_condition,
    NodeType.LOOP: _extract_loop,
    NodeType.CHILD_WORKFLOW: _extract_child_workflow,
    NodeType.SIGNAL: _extract_signal,
    NodeType.STATE_VARIABLE: _extract_state_variable,
    NodeType.KONG_LOGGING: _extract_log,
    NodeType.PHASE: _extract_passive,
    NodeType.RETRY: _extract_passive,
    NodeType.API_ENDPOINT: _extract_passive,
    NodeType.DATA_IN: _extract_passive,
    NodeType.DATA_OUT: _extract_passive,
    NodeType.KONG_CACHE: _extract_passive,
    NodeType.KONG_CORS: _extract_passive,
    NodeType.GRAPHQL_GATEWAY: _extract_passive,
    NodeType.MCP_SERVER: _extract_passive,
}

require_exhaustive(CONFIG_EXTRACTORS, "CONFIG_EXTRACTORS")


def extract_node_config(node: WorkflowNode) -> AnyNodeConfig:
    return CONFIG_EXTRACTORS[node.type](node)
