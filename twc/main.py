"""
Temporal Workflow Compiler (TWC) orchestration entrypoint.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from twc.compiler.temporal_codegen import CodegenOptions, GeneratedArtifacts, TemporalCodeGenerator
from twc.config import CompilerSettings, configure_logging
from twc.ir.graph_schema import WorkflowGraph
from twc.ir.validators import ValidationResult, validate_workflow_graph
from twc.runtime.verifier import ProjectVerifier, VerificationResult

LOGGER = logging.getLogger(__name__)


class CompilationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workflow_id: str
    workflow_name: str
    created_at: str
    validation: ValidationResult
    artifacts: Optional[GeneratedArtifacts] = None
    verification: Optional[VerificationResult] = None
    written_files: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        if not self.validation.valid:
            return False
        return self.verification is None or self.verification.success

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class WorkflowCompiler:
    def __init__(
        self,
        settings: Optional[CompilerSettings] = None,
        generator: Optional[TemporalCodeGenerator] = None,
        verifier: Optional[ProjectVerifier] = None,
    ) -> None:
        self.settings = settings or CompilerSettings()
        self.generator = generator or TemporalCodeGenerator()
        self.verifier = verifier or ProjectVerifier(self.settings.to_verifier_config())

    def validate(self, graph: WorkflowGraph) -> ValidationResult:
        return validate_workflow_graph(graph)

    def generate(
        self,
        graph: WorkflowGraph,
        options: Optional[CodegenOptions] = None,
        *,
        validate: bool = True,
    ) -> GeneratedArtifacts:
        if validate:
            self.validate(graph).raise_for_errors()
        return self.generator.generate(graph, options or self.settings.to_codegen_options())

    def verify(
        self, artifacts: GeneratedArtifacts, directory: Optional[str] = None
    ) -> VerificationResult:
        return self.verifier.verify(artifacts, directory)

    def compile(
        self,
        graph: WorkflowGraph,
        options: Optional[CodegenOptions] = None,
        *,
        verify: bool = False,
        output_dir: Optional[str] = None,
    ) -> CompilationResult:
        options = options or self.settings.to_codegen_options()
        validation = self.validate(graph)
        result = CompilationResult(
            workflow_id=graph.id,
            workflow_name=options.workflow_name or graph.display_name(),
            created_at=datetime.now(timezone.utc).isoformat(),
            validation=validation,
        )
        if not validation.valid:
            LOGGER.info(
                "Workflow '%s' failed validation with %d errors", graph.id, len(validation.errors)
            )
            return result

        result.artifacts = self.generator.generate(graph, options)
        if output_dir:
            result.written_files = result.artifacts.write_to(output_dir)
        if verify:
            result.verification = self.verify(result.artifacts, output_dir)
        return result


def _load_graph(raw_json: Optional[str], file_path: Optional[str]) -> WorkflowGraph:
    if raw_json:
        return WorkflowGraph.from_json(raw_json)
    if file_path:
        return WorkflowGraph.from_json(Path(file_path).read_text(encoding="utf-8"))
    raise ValueError("Provide --graph-json or --graph-file.")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Temporal Workflow Compiler (TWC)")
    parser.add_argument("--graph-json", type=str, default=None)
    parser.add_argument("--graph-file", type=str, default=None)
    parser.add_argument("--workflow-name", type=str, default=None)
    parser.add_argument("--default-timeout", type=str, default=None)
    parser.add_argument("--task-queue", type=str, default=None)
    parser.add_argument("--no-comments", action="store_true")
    parser.add_argument("--no-strict", action="store_true")
    parser.add_argument("--validate-only", action="store_true")
    parser.add_argument("--verify", action="store_true")
    parser.add_argument("--output-dir", type=str, default=None)
    parser.add_argument("--output-file", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None)
    args = parser.parse_args(argv)

    settings = CompilerSettings.from_env()
    configure_logging(args.log_level or settings.log_level)

    graph = _load_graph(args.graph_json, args.graph_file)
    compiler = WorkflowCompiler(settings=settings)
    if args.validate_only:
        validation = compiler.validate(graph)
        payload = validation.to_dict()
        succeeded = validation.valid
    else:
        options = settings.to_codegen_options(
            workflow_name=args.workflow_name,
            default_timeout=args.default_timeout,
            task_queue=args.task_queue,
        )
        if args.no_comments:
            options.include_comments = False
        if args.no_strict:
            options.strict_mode = False
        result = compiler.compile(
            graph, options, verify=args.verify, output_dir=args.output_dir
        )
        payload = result.to_dict()
        succeeded = result.success

    output = json.dumps(payload, indent=2, sort_keys=True)
    print(output)
    if args.output_file:
        Path(args.output_file).write_text(output, encoding="utf-8")
    return 0 if succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
