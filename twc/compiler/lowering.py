"""
Per-node lowering rules: each rule turns one node into a TypeScript fragment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Type, Union

from twc.compiler.identifiers import (
    safe_identifier,
    sanitize_identifier,
    to_camel_case,
    ts_object_key,
    ts_string,
    ts_template,
    ts_value,
)
from twc.ir.graph_schema import NodeType, WorkflowNode
from twc.ir.node_configs import (
    ActivityConfig,
    AnyNodeConfig,
    ChildWorkflowConfig,
    ConditionConfig,
    GetVariableConfig,
    LogConfig,
    LoopConfig,
    NodeConfig,
    ServiceVariableConfig,
    SetVariableConfig,
    SignalConfig,
    StartConfig,
    StopConfig,
    VariableScope,
    require_exhaustive,
)

DEFAULT_PROXY = "acts"


@dataclass(frozen=True)
class CodeFragment:
    component_type: str
    code: str
    is_activity: bool = False
    required_imports: Tuple[str, ...] = ()
    unsupported: bool = False
    result_var: Optional[str] = None


def activity_function_name(activity_name: str) -> str:
    return safe_identifier(activity_name.strip())


def signal_identifier(signal_name: str) -> str:
    return safe_identifier(f"{to_camel_case(signal_name) or 'workflow'}Signal")


@dataclass
class LoweringContext:
    """
    Per-workflow state shared by the lowering rules.

    ``node_suffixes`` and ``signal_identifiers`` hold collision-free names
    allocated up front; ``result_vars`` fills in as nodes are lowered so a
    node can consume the result of the node feeding it.
    """

    include_comments: bool = True
    proxy_by_node: Dict[str, str] = field(default_factory=dict)
    node_suffixes: Dict[str, str] = field(default_factory=dict)
    signal_identifiers: Dict[str, str] = field(default_factory=dict)
    incoming: Dict[str, List[str]] = field(default_factory=dict)
    result_vars: Dict[str, str] = field(default_factory=dict)

    def proxy_for(self, node_id: str) -> str:
        return self.proxy_by_node.get(node_id, DEFAULT_PROXY)

    def suffix_for(self, node_id: str) -> str:
        return self.node_suffixes.get(node_id) or sanitize_identifier(node_id)

    def signal_for(self, signal_name: str) -> str:
        return self.signal_identifiers.get(signal_name) or signal_identifier(signal_name)

    def upstream_result(self, node_id: str) -> Optional[str]:
        """Result variable reached by walking first incoming edges back from ``node_id``."""

        seen = {node_id}
        current = node_id
        while True:
            sources = self.incoming.get(current)
            if not sources:
                return None
            source = sources[0]
            if source in self.result_vars:
                return self.result_vars[source]
            if source in seen:
                return None
            seen.add(source)
            current = source


Rule = Callable[[WorkflowNode, AnyNodeConfig, LoweringContext], Optional[CodeFragment]]


def _input_argument(node: WorkflowNode, config: ActivityConfig, ctx: LoweringContext) -> str:
    if config.input_mapping:
        entries = []
        for key, value in config.input_mapping.items():
            source = ctx.result_vars.get(value) if isinstance(value, str) else None
            entries.append(f"{ts_object_key(str(key))}: {source or ts_value(value)}")
        return "{ " + ", ".join(entries) + " }"
    return ctx.upstream_result(node.id) or "input"


def state_slot(variable_name: str) -> str:
    return safe_identifier(variable_name)


def _comment(text: str) -> str:
    return "// " + " ".join(text.split())


class _Lines:
    def __init__(self, context: LoweringContext) -> None:
        self._context = context
        self.lines: List[str] = []

    def comment(self, text: str) -> None:
        if self._context.include_comments:
            self.lines.append(_comment(text))

    def add(self, *lines: str) -> None:
        self.lines.extend(lines)

    def code(self) -> str:
        return "\n".join(self.lines)


def _lower_start(node: WorkflowNode, config: StartConfig, ctx: LoweringContext) -> CodeFragment:
    out = _Lines(ctx)
    out.comment(f"Start: {node.id}")
    if config.trigger_type:
        out.comment(f"Trigger type: {config.trigger_type}")
    if config.schedule:
        out.comment(f"Schedule: {config.schedule}")
    out.add(
        "const startedAt = new Date().toISOString();",
        "console.log('[WORKFLOW_START]', { workflowId: workflowInfo().workflowId, startedAt });",
    )
    return CodeFragment("start", out.code(), required_imports=("workflowInfo",))


def _lower_stop(node: WorkflowNode, config: StopConfig, ctx: LoweringContext) -> CodeFragment:
    sid = ctx.suffix_for(node.id)
    result_expression = (
        (config.result_mapping or "").strip() or ctx.upstream_result(node.id) or "input"
    )
    out = _Lines(ctx)
    out.comment(f"Stop: {node.id}")
    out.add(
        f"const finalResult_{sid} = {result_expression};",
        f"const completedAt_{sid} = new Date().toISOString();",
    )
    if config.include_metadata:
        out.add(
            f"const executionMetadata_{sid} = {{",
            "  startedAt,",
            f"  completedAt: completedAt_{sid},",
            "  workflowId: workflowInfo().workflowId,",
            "  runId: workflowInfo().runId,",
            "};",
        )
    out.add(
        "console.log('[WORKFLOW_STOP]', { workflowId: workflowInfo().workflowId, "
        f"success: true, completedAt: completedAt_{sid} }});",
        "return {",
        "  success: true,",
        f"  result: finalResult_{sid},",
        f"  completedAt: completedAt_{sid},",
    )
    if config.include_metadata:
        out.add(f"  metadata: executionMetadata_{sid},")
    out.add("};")
    return CodeFragment("stop", out.code(), required_imports=("workflowInfo",))


def _lower_log(node: WorkflowNode, config: LogConfig, ctx: LoweringContext) -> CodeFragment:
    sid = ctx.suffix_for(node.id)
    level = config.level.value
    tag = level.upper()
    out = _Lines(ctx)
    out.comment(f"Log: {node.id} [{tag}]")

    data_parts: List[str] = []
    imports: Tuple[str, ...] = ()
    if config.metadata:
        out.add(f"const logMetadata_{sid} = {ts_value(config.metadata)};")
        data_parts.append(f"metadata: logMetadata_{sid}")
    if config.include_workflow_context:
        out.add(
            f"const logContext_{sid} = {{ workflowId: workflowInfo().workflowId, "
            f"runId: workflowInfo().runId, componentId: {ts_string(node.id)} }};"
        )
        data_parts.append(f"context: logContext_{sid}")
        imports = ("workflowInfo",)

    message = ts_template(config.message) if "${" in config.message else ts_string(config.message)
    arguments = [ts_string(f"[LOG:{tag}]"), message]
    if data_parts:
        arguments.append("{ " + ", ".join(data_parts) + " }")
    out.add(f"console.{level}({', '.join(arguments)});")
    return CodeFragment("log", out.code(), required_imports=imports)


def _lower_activity(
    node: WorkflowNode, config: Union[ActivityConfig, LogConfig], ctx: LoweringContext
) -> CodeFragment:
    if isinstance(config, LogConfig):
        return _lower_log(node, config, ctx)
    sid = ctx.suffix_for(node.id)
    function_name = activity_function_name(config.activity_name)
    out = _Lines(ctx)
    out.comment(f"{node.type.value.capitalize()}: {node.display_label()}")
    argument = _input_argument(node, config, ctx)
    out.add(f"const result_{sid} = await {ctx.proxy_for(node.id)}.{function_name}({argument});")
    return CodeFragment(node.type.value, out.code(), is_activity=True, result_var=f"result_{sid}")


def _lower_signal(node: WorkflowNode, config: SignalConfig, ctx: LoweringContext) -> CodeFragment:
    name = ts_string(config.signal_name)
    out = _Lines(ctx)
    out.comment(f"Signal: {node.id} ({config.signal_name})")
    out.add(
        f"setHandler({ctx.signal_for(config.signal_name)}, (payload: unknown) => {{",
        f"  signalPayloads[{name}] = payload;",
        f"  console.log('[SIGNAL]', {{ signal: {name}, nodeId: {ts_string(node.id)} }});",
        "});",
    )
    return CodeFragment("signal", out.code(), required_imports=("defineSignal", "setHandler"))


def _lower_condition(node: WorkflowNode, config: ConditionConfig, ctx: LoweringContext) -> CodeFragment:
    out = _Lines(ctx)
    out.comment(f"Condition: {node.id}")
    out.add(
        f"if ({config.expression}) {{",
        "  " + _comment(f"{node.display_label()}: branch body follows the outgoing edges"),
        "}",
    )
    return CodeFragment("condition", out.code())


def _lower_loop(node: WorkflowNode, config: LoopConfig, ctx: LoweringContext) -> CodeFragment:
    out = _Lines(ctx)
    out.add(
        _comment(f"UNSUPPORTED: loop node '{node.id}' is not lowered; its body is not generated."),
        f"console.warn('[UNSUPPORTED:LOOP]', {{ nodeId: {ts_string(node.id)} }});",
    )
    return CodeFragment("loop", out.code(), unsupported=True)


def _lower_child_workflow(
    node: WorkflowNode, config: ChildWorkflowConfig, ctx: LoweringContext
) -> CodeFragment:
    sid = ctx.suffix_for(node.id)
    out = _Lines(ctx)
    out.comment(f"Child workflow: {node.id}")
    out.add(
        f"const childResult_{sid} = await executeChild({ts_string(config.workflow_id)}, "
        "{ args: [input] });"
    )
    return CodeFragment(
        "child-workflow",
        out.code(),
        required_imports=("executeChild",),
        result_var=f"childResult_{sid}",
    )


def _lower_service_variable(
    node: WorkflowNode, config: ServiceVariableConfig, ctx: LoweringContext
) -> CodeFragment:
    slot = state_slot(config.variable_name)
    name = ts_string(config.variable_name)
    out = _Lines(ctx)
    out.comment(f"Service variable: {config.variable_name}")
    out.add(
        f"if (state.{slot} === undefined) {{",
        f"  state.{slot} = {ts_value(config.default_value)};",
        f"  console.log('[VAR:SERVICE:INIT]', {{ name: {name}, value: state.{slot} }});",
        "}",
    )
    return CodeFragment("ServiceVariable", out.code())


def _store_activity(operation: str, scope: VariableScope) -> str:
    return f"{operation}{scope.value.capitalize()}Variable"


def _lower_get_variable(
    node: WorkflowNode, config: GetVariableConfig, ctx: LoweringContext
) -> CodeFragment:
    sid = ctx.suffix_for(node.id)
    slot = state_slot(config.variable_name)
    name = ts_string(config.variable_name)
    tag = config.scope.value.upper()
    is_activity = config.scope is not VariableScope.WORKFLOW
    out = _Lines(ctx)
    out.comment(f"Get variable: {config.variable_name} ({config.scope.value} scope)")

    if is_activity:
        out.add(
            f"const result_{sid} = await {DEFAULT_PROXY}.{_store_activity('get', config.scope)}"
            f"({{ name: {name}, defaultValue: {ts_value(config.default_value)} }});"
        )
    else:
        value = f"state.{slot}"
        if config.default_value is not None:
            value = f"state.{slot} ?? {ts_value(config.default_value)}"
        out.add(
            f"const result_{sid} = {{",
            f"  value: {value},",
            f"  exists: state.{slot} !== undefined,",
            "};",
        )
    out.add(
        f"console.log('[VAR:GET:{tag}]', {{ name: {name}, exists: result_{sid}.exists }});"
    )
    if config.throw_if_missing:
        message = ts_string(
            f"[VAR:GET:ERROR] Variable {config.variable_name} not found in {config.scope.value} scope"
        )
        out.add(
            f"if (result_{sid}.value === undefined) {{",
            f"  throw new Error({message});",
            "}",
        )
    return CodeFragment("GetVariable", out.code(), is_activity=is_activity)


def _set_value_expression(config: SetVariableConfig) -> str:
    if config.value_expression:
        return config.value_expression
    if config.static_value is not None:
        return ts_value(config.static_value)
    return "input.value"


def _lower_set_variable(
    node: WorkflowNode, config: SetVariableConfig, ctx: LoweringContext
) -> CodeFragment:
    sid = ctx.suffix_for(node.id)
    slot = state_slot(config.variable_name)
    name = ts_string(config.variable_name)
    value = _set_value_expression(config)
    tag = config.scope.value.upper()
    is_activity = config.scope is not VariableScope.WORKFLOW
    out = _Lines(ctx)
    out.comment(f"Set variable: {config.variable_name} ({config.scope.value} scope)")

    if is_activity:
        merge = "true" if config.merge else "false"
        create = "true" if config.create_if_missing else "false"
        out.add(
            f"const result_{sid} = await {DEFAULT_PROXY}.{_store_activity('set', config.scope)}"
            f"({{ name: {name}, value: {value}, merge: {merge}, createIfMissing: {create} }});",
            f"console.log('[VAR:SET:{tag}]', {{ name: {name}, success: result_{sid}.success }});",
        )
        return CodeFragment("SetVariable", out.code(), is_activity=True)

    if config.merge:
        assignment = (
            f"state.{slot} = {{ ...(state.{slot} as Record<string, unknown> | undefined), "
            f"...(({value}) as Record<string, unknown>) }};"
        )
    else:
        assignment = f"state.{slot} = {value};"
    body = [
        assignment,
        f"console.log('[VAR:SET:{tag}]', {{ name: {name}, previous: prevValue_{sid}, "
        f"current: state.{slot} }});",
    ]
    out.add(f"const prevValue_{sid} = state.{slot};")
    if config.create_if_missing:
        out.add(*body)
    else:
        out.add(f"if (prevValue_{sid} !== undefined) {{", *("  " + line for line in body), "}")
    return CodeFragment("SetVariable", out.code())


_STATE_VARIABLE_RULES: Dict[Type[NodeConfig], Rule] = {
    ServiceVariableConfig: _lower_service_variable,
    GetVariableConfig: _lower_get_variable,
    SetVariableConfig: _lower_set_variable,
}


def _lower_state_variable(
    node: WorkflowNode, config: AnyNodeConfig, ctx: LoweringContext
) -> CodeFragment:
    return _STATE_VARIABLE_RULES[type(config)](node, config, ctx)


def _lower_nothing(node: WorkflowNode, config: AnyNodeConfig, ctx: LoweringContext) -> None:
    return None


LOWERING_RULES: Dict[NodeType, Rule] = {
    NodeType.TRIGGER: _lower_start,
    NodeType.END: _lower_stop,
    NodeType.ACTIVITY: _lower_activity,
    NodeType.AGENT: _lower_activity,
    NodeType.SIGNAL: _lower_signal,
    NodeType.CONDITIONAL: _lower_condition,
    NodeType.CONDITION: _lower_condition,
    NodeType.LOOP: _lower_loop,
    NodeType.CHILD_WORKFLOW: _lower_child_workflow,
    NodeType.STATE_VARIABLE: _lower_state_variable,
    NodeType.KONG_LOGGING: _lower_log,
    NodeType.PHASE: _lower_nothing,
    NodeType.RETRY: _lower_nothing,
    NodeType.API_ENDPOINT: _lower_nothing,
    NodeType.DATA_IN: _lower_nothing,
    NodeType.DATA_OUT: _lower_nothing,
    NodeType.KONG_CACHE: _lower_nothing,
    NodeType.KONG_CORS: _lower_nothing,
    NodeType.GRAPHQL_GATEWAY: _lower_nothing,
    NodeType.MCP_SERVER: _lower_nothing,
}

require_exhaustive(LOWERING_RULES, "LOWERING_RULES")


def lower_node(
    node: WorkflowNode, config: AnyNodeConfig, context: LoweringContext
) -> Optional[CodeFragment]:
    fragment = LOWERING_RULES[node.type](node, config, context)
    if fragment is not None and fragment.result_var:
        context.result_vars[node.id] = fragment.result_var
    return fragment
