"""
Typed graph representation for the Temporal Workflow Compiler (TWC).

Workflow-authoring tools send graphs as JSON with camelCase keys; the models
below accept either the camelCase alias or the snake_case field name.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Immutable base for every wire-facing model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class NodeType(str, Enum):
    TRIGGER = "trigger"
    ACTIVITY = "activity"
    AGENT = "agent"
    CONDITIONAL = "conditional"
    CONDITION = "condition"
    LOOP = "loop"
    CHILD_WORKFLOW = "child-workflow"
    SIGNAL = "signal"
    PHASE = "phase"
    RETRY = "retry"
    STATE_VARIABLE = "state-variable"
    API_ENDPOINT = "api-endpoint"
    END = "end"
    DATA_IN = "data-in"
    DATA_OUT = "data-out"
    KONG_LOGGING = "kong-logging"
    KONG_CACHE = "kong-cache"
    KONG_CORS = "kong-cors"
    GRAPHQL_GATEWAY = "graphql-gateway"
    MCP_SERVER = "mcp-server"


ACTIVITY_NODE_TYPES = frozenset({NodeType.ACTIVITY, NodeType.AGENT})
CONDITION_NODE_TYPES = frozenset({NodeType.CONDITIONAL, NodeType.CONDITION})
LONG_RUNNING_NODE_TYPES = frozenset({NodeType.SIGNAL, NodeType.LOOP, NodeType.PHASE})


class RetryStrategy(str, Enum):
    KEEP_TRYING = "keep-trying"
    FAIL_AFTER_X = "fail-after-x"
    EXPONENTIAL_BACKOFF = "exponential-backoff"
    NONE = "none"


class RetryPolicy(WireModel):
    strategy: RetryStrategy = RetryStrategy.NONE
    max_attempts: Optional[int] = None
    initial_interval: Optional[str] = None
    max_interval: Optional[str] = None
    backoff_coefficient: Optional[float] = None


class Position(WireModel):
    x: float = 0.0
    y: float = 0.0


class NodeData(WireModel):
    label: Optional[str] = None
    description: Optional[str] = None
    component_id: Optional[str] = None
    component_name: Optional[str] = None
    activity_name: Optional[str] = None
    signal_name: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    input: Dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[str] = None
    retry_policy: Optional[RetryPolicy] = None
    condition: Optional[str] = None
    workflow_id: Optional[str] = None
    variable_name: Optional[str] = None
    variable_type: Optional[str] = None
    variable_scope: Optional[str] = None
    default_value: Optional[Any] = None
    trigger_type: Optional[str] = None
    schedule: Optional[str] = None
    result_mapping: Optional[str] = None
    include_metadata: Optional[bool] = None
    log_message: Optional[str] = None
    log_level: Optional[str] = None
    include_workflow_context: Optional[bool] = None
    persistence: Optional[bool] = None
    ttl: Optional[Union[int, str]] = None
    throw_if_missing: Optional[bool] = None
    create_if_missing: Optional[bool] = None
    merge: Optional[bool] = None
    value_expression: Optional[str] = None
    static_value: Optional[Any] = None

    def config_value(self, *keys: str) -> Optional[Any]:
        """First non-empty value found in ``config`` under any of ``keys``."""

        for key in keys:
            value = self.config.get(key)
            if value not in (None, ""):
                return value
        return None


class WorkflowNode(WireModel):
    id: str
    type: NodeType
    data: NodeData = Field(default_factory=NodeData)
    position: Position = Field(default_factory=Position)

    def display_label(self) -> str:
        return self.data.label or self.id


class WorkflowEdge(WireModel):
    id: str
    source: str
    target: str
    label: Optional[str] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


class VariableType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"


class WorkflowVariable(WireModel):
    name: str
    type: VariableType = VariableType.ANY
    default_value: Optional[Any] = None
    required: bool = False
    description: Optional[str] = None


class WorkflowKind(str, Enum):
    TASK = "task"
    SERVICE = "service"


class WorkflowSettings(WireModel):
    default_timeout: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("defaultTimeout", "default_timeout", "timeout"),
    )
    retry_policy: Optional[RetryPolicy] = None
    task_queue: Optional[str] = None
    long_running: bool = False
    auto_continue_as_new: bool = False
    max_history_length: Optional[int] = Field(default=None, ge=1)
    max_duration: Optional[str] = None
    workflow_type: WorkflowKind = WorkflowKind.TASK


class WorkflowGraph(WireModel):
    id: str
    name: str = ""
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    variables: List[WorkflowVariable] = Field(default_factory=list)
    settings: WorkflowSettings = Field(
        default_factory=WorkflowSettings,
        validation_alias=AliasChoices("settings", "metadata"),
    )

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def node_map(self) -> Dict[str, WorkflowNode]:
        # First declaration wins when ids collide; the validator reports the clash.
        mapping: Dict[str, WorkflowNode] = {}
        for node in self.nodes:
            mapping.setdefault(node.id, node)
        return mapping

    def find_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def edges_from(self, node_id: str) -> List[WorkflowEdge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def edges_to(self, node_id: str) -> List[WorkflowEdge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def nodes_of_type(self, *types: NodeType) -> List[WorkflowNode]:
        return [node for node in self.nodes if node.type in types]

    def trigger_nodes(self) -> List[WorkflowNode]:
        return self.nodes_of_type(NodeType.TRIGGER)

    def find_trigger(self) -> Optional[WorkflowNode]:
        triggers = self.trigger_nodes()
        return triggers[0] if triggers else None

    def end_nodes(self) -> List[WorkflowNode]:
        return self.nodes_of_type(NodeType.END)

    def display_name(self) -> str:
        return self.name or self.id

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "WorkflowGraph":
        return cls.model_validate(payload)

    @classmethod
    def from_json(cls, raw: str) -> "WorkflowGraph":
        return cls.model_validate_json(raw)
