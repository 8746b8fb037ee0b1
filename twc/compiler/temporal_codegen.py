"""
Temporal TypeScript code generation from a validated WorkflowGraph.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from twc.compiler.activity_proxies import group_activities, proxy_assignments
from twc.compiler.graph_analysis import GraphAnalyzer
from twc.compiler.identifiers import (
    IdentifierAllocator,
    safe_identifier,
    sanitize_identifier,
    to_kebab_case,
    ts_value,
    workflow_function_name,
)
from twc.compiler.lowering import (
    LoweringContext,
    activity_function_name,
    lower_node,
    signal_identifier,
)
from twc.compiler.records import (
    ActivitiesRecord,
    ActivityStub,
    ArtifactHeader,
    CompilerConfigRecord,
    ContinueAsNewPolicy,
    ManifestRecord,
    SignalDefinition,
    VariableDeclaration,
    WorkerRecord,
    WorkflowRecord,
)
from twc.compiler.templates import TemplateRenderer
from twc.ir.durations import parse_duration_ms
from twc.ir.graph_schema import (
    LONG_RUNNING_NODE_TYPES,
    NodeType,
    VariableType,
    WorkflowGraph,
    WorkflowNode,
    WorkflowVariable,
)
from twc.ir.node_configs import (
    ActivityConfig,
    AnyNodeConfig,
    ConfigExtractionError,
    GetVariableConfig,
    SetVariableConfig,
    SignalConfig,
    VariableScope,
    extract_node_config,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = "1m"
DEFAULT_TASK_QUEUE = "default-task-queue"
DEFAULT_MAX_HISTORY_LENGTH = 10_000

_TS_TYPES: Dict[VariableType, Tuple[str, Any]] = {
    VariableType.STRING: ("string", ""),
    VariableType.NUMBER: ("number", 0),
    VariableType.BOOLEAN: ("boolean", False),
    VariableType.OBJECT: ("Record<string, unknown>", {}),
    VariableType.ARRAY: ("unknown[]", []),
    VariableType.ANY: ("unknown", None),
}


class GenerationErrorKind(str, Enum):
    NO_START_NODE = "no_start_node"
    TEMPLATE_RENDER = "template_render"


class GenerationError(RuntimeError):
    """Raised when code generation cannot produce a complete artifact set."""

    def __init__(
        self, kind: GenerationErrorKind, message: str, artifact: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.artifact = artifact


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CodegenOptions(_CamelModel):
    workflow_name: Optional[str] = None
    default_timeout: Optional[str] = None
    include_comments: bool = True
    strict_mode: bool = True
    task_queue: Optional[str] = None
    generated_at: Optional[str] = None


class GeneratedArtifacts(_CamelModel):
    workflow_source: str
    activities_source: str
    worker_source: str
    manifest_source: str
    compiler_config_source: str

    def files(self) -> Dict[str, str]:
        return {
            "src/workflow.ts": self.workflow_source,
            "src/activities.ts": self.activities_source,
            "src/worker.ts": self.worker_source,
            "package.json": self.manifest_source,
            "tsconfig.json": self.compiler_config_source,
        }

    def write_to(self, directory: str) -> List[str]:
        root = Path(directory)
        written: List[str] = []
        for relative, content in self.files().items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            written.append(str(path))
        return written


def variable_declaration(variable: WorkflowVariable) -> VariableDeclaration:
    ts_type, type_default = _TS_TYPES[variable.type]
    default = variable.default_value if variable.default_value is not None else type_default
    return VariableDeclaration(
        name=variable.name,
        slot=safe_identifier(variable.name),
        ts_type=ts_type,
        default_literal=ts_value(default),
        required=variable.required,
        description=variable.description,
    )


def is_long_running(graph: WorkflowGraph) -> bool:
    settings = graph.settings
    if settings.long_running or settings.auto_continue_as_new:
        return True
    return any(node.type in LONG_RUNNING_NODE_TYPES for node in graph.nodes)


class TemporalCodeGenerator:
    def __init__(self, renderer: Optional[TemplateRenderer] = None) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.analyzer = GraphAnalyzer()

    def generate(
        self, graph: WorkflowGraph, options: Optional[CodegenOptions] = None
    ) -> GeneratedArtifacts:
        options = options or CodegenOptions()
        if graph.find_trigger() is None:
            raise GenerationError(
                GenerationErrorKind.NO_START_NODE,
                f"Workflow '{graph.id}' has no trigger node to start from.",
            )

        ordered = self._extract_configs(self.analyzer.emission_order(graph))
        default_timeout = options.default_timeout or graph.settings.default_timeout or DEFAULT_TIMEOUT
        activities = [config for _, config in ordered if isinstance(config, ActivityConfig)]
        proxies = group_activities(activities, default_timeout, graph.settings.retry_policy)
        signal_identifiers = self._signal_identifiers(ordered)
        context = LoweringContext(
            include_comments=options.include_comments,
            proxy_by_node=proxy_assignments(proxies),
            node_suffixes=self._node_suffixes(ordered),
            signal_identifiers=signal_identifiers,
            incoming=self._incoming(graph),
        )

        imports: Set[str] = {"proxyActivities"}
        body_blocks: List[str] = []
        exit_blocks: List[str] = []
        for node, config in ordered:
            if config is None:
                body_blocks.append(f"// Skipped {node.type.value} node '{node.id}': incomplete configuration")
                continue
            fragment = lower_node(node, config, context)
            if fragment is None:
                continue
            if fragment.unsupported:
                LOGGER.warning(
                    "Node '%s' (%s) has no lowering; emitted an unsupported marker",
                    node.id,
                    node.type.value,
                )
            imports.update(fragment.required_imports)
            if node.type == NodeType.END:
                exit_blocks.append(fragment.code)
            else:
                body_blocks.append(fragment.code)

        display_name = options.workflow_name or graph.display_name()
        function_name = workflow_function_name(display_name)
        header = ArtifactHeader(
            workflow_id=graph.id,
            workflow_name=display_name,
            generated_at=options.generated_at or datetime.now(timezone.utc).isoformat(),
        )
        signals = [
            SignalDefinition(name=name, identifier=identifier)
            for name, identifier in signal_identifiers.items()
        ]
        if signals:
            imports.add("defineSignal")

        long_running = is_long_running(graph)
        continue_as_new: Optional[ContinueAsNewPolicy] = None
        if long_running and graph.settings.auto_continue_as_new:
            continue_as_new = ContinueAsNewPolicy(
                max_history_length=graph.settings.max_history_length or DEFAULT_MAX_HISTORY_LENGTH,
                max_duration_ms=(
                    parse_duration_ms(graph.settings.max_duration)
                    if graph.settings.max_duration
                    else None
                ),
            )
            imports.update({"continueAsNew", "workflowInfo"})

        workflow_record = WorkflowRecord(
            header=header,
            function_name=function_name,
            imports=sorted(imports),
            proxies=proxies,
            signals=signals,
            variables=self._variables(graph),
            body_blocks=body_blocks,
            exit_blocks=exit_blocks,
            is_long_running=long_running,
            continue_as_new=continue_as_new,
        )
        activities_record = ActivitiesRecord(
            header=header,
            activities=self._activity_stubs(activities),
            include_variable_store=any(
                isinstance(config, (GetVariableConfig, SetVariableConfig))
                and config.scope is not VariableScope.WORKFLOW
                for _, config in ordered
            ),
        )
        worker_record = WorkerRecord(
            header=header,
            function_name=function_name,
            task_queue=options.task_queue or graph.settings.task_queue or DEFAULT_TASK_QUEUE,
        )
        manifest_record = ManifestRecord(
            package_name=to_kebab_case(display_name) or "temporal-workflow",
            description=f"Temporal worker for the {display_name} workflow",
        )
        compiler_config_record = CompilerConfigRecord(strict=options.strict_mode)

        renders: List[Tuple[str, Callable[[Any], str], BaseModel]] = [
            ("workflow", self.renderer.render_workflow, workflow_record),
            ("activities", self.renderer.render_activities, activities_record),
            ("worker", self.renderer.render_worker, worker_record),
            ("manifest", self.renderer.render_manifest, manifest_record),
            ("compiler_config", self.renderer.render_compiler_config, compiler_config_record),
        ]
        rendered: Dict[str, str] = {}
        for artifact, render, record in renders:
            try:
                rendered[artifact] = render(record)
            except Exception as exc:
                raise GenerationError(
                    GenerationErrorKind.TEMPLATE_RENDER,
                    f"Failed to render {artifact} artifact: {exc}",
                    artifact=artifact,
                ) from exc

        LOGGER.info(
            "Generated workflow '%s' (%d nodes, %d activity proxies)",
            function_name,
            len(graph.nodes),
            len(proxies),
        )
        return GeneratedArtifacts(
            workflow_source=rendered["workflow"],
            activities_source=rendered["activities"],
            worker_source=rendered["worker"],
            manifest_source=rendered["manifest"],
            compiler_config_source=rendered["compiler_config"],
        )

    @staticmethod
    def _extract_configs(
        nodes: List[WorkflowNode],
    ) -> List[Tuple[WorkflowNode, Optional[AnyNodeConfig]]]:
        extracted: List[Tuple[WorkflowNode, Optional[AnyNodeConfig]]] = []
        for node in nodes:
            try:
                extracted.append((node, extract_node_config(node)))
            except ConfigExtractionError as exc:
                LOGGER.warning("Skipping node '%s': %s", node.id, exc.message)
                extracted.append((node, None))
        return extracted

    @staticmethod
    def _node_suffixes(
        ordered: List[Tuple[WorkflowNode, Optional[AnyNodeConfig]]],
    ) -> Dict[str, str]:
        allocator = IdentifierAllocator()
        return {
            node.id: allocator.allocate(node.id, sanitize_identifier(node.id)) for node, _ in ordered
        }

    @staticmethod
    def _signal_identifiers(
        ordered: List[Tuple[WorkflowNode, Optional[AnyNodeConfig]]],
    ) -> Dict[str, str]:
        """Signal name to its declared constant, one entry per distinct name."""

        allocator = IdentifierAllocator()
        identifiers: Dict[str, str] = {}
        for _, config in ordered:
            if isinstance(config, SignalConfig) and config.signal_name not in identifiers:
                identifiers[config.signal_name] = allocator.allocate(
                    config.signal_name, signal_identifier(config.signal_name)
                )
        return identifiers

    @staticmethod
    def _incoming(graph: WorkflowGraph) -> Dict[str, List[str]]:
        incoming: Dict[str, List[str]] = {}
        for edge in graph.edges:
            incoming.setdefault(edge.target, []).append(edge.source)
        return incoming

    @staticmethod
    def _variables(graph: WorkflowGraph) -> List[VariableDeclaration]:
        declarations: Dict[str, VariableDeclaration] = {}
        for variable in graph.variables:
            declaration = variable_declaration(variable)
            declarations.setdefault(declaration.slot, declaration)
        return list(declarations.values())

    @staticmethod
    def _activity_stubs(activities: List[ActivityConfig]) -> List[ActivityStub]:
        stubs: Dict[str, ActivityStub] = {}
        for activity in activities:
            function_name = activity_function_name(activity.activity_name)
            stub = stubs.setdefault(
                function_name,
                ActivityStub(function_name=function_name, activity_name=activity.activity_name),
            )
            stub.node_ids.append(activity.node_id)
        return list(stubs.values())
