"""
FastAPI router for the Temporal Workflow Compiler.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from twc.compiler.temporal_codegen import CodegenOptions, GeneratedArtifacts, GenerationError
from twc.config import CompilerSettings
from twc.ir.graph_schema import WorkflowGraph
from twc.ir.validators import GraphValidationError
from twc.main import WorkflowCompiler
from twc.version import __version__


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompileOptions(CodegenOptions):
    verify: bool = False

    def codegen_options(self) -> CodegenOptions:
        return CodegenOptions(**self.model_dump(exclude={"verify"}))


class GenerateRequest(_CamelModel):
    workflow: WorkflowGraph
    options: CodegenOptions = Field(default_factory=CodegenOptions)


class CompileRequest(_CamelModel):
    workflow: WorkflowGraph
    options: CompileOptions = Field(default_factory=CompileOptions)


class VerifyRequest(_CamelModel):
    artifacts: GeneratedArtifacts


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def build_router(compiler: Optional[WorkflowCompiler] = None) -> APIRouter:
    compiler = compiler or WorkflowCompiler(settings=CompilerSettings.from_env())
    router = APIRouter(prefix="/api/v1", tags=["twc"])

    @router.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @router.get("/version")
    def version() -> Dict[str, str]:
        return {"name": "twc", "version": __version__}

    @router.get("/schema")
    def schema() -> Dict[str, Any]:
        return WorkflowGraph.model_json_schema(by_alias=True)

    @router.post("/validate")
    def validate_workflow(graph: WorkflowGraph) -> Dict[str, Any]:
        return compiler.validate(graph).to_dict()

    @router.post("/generate")
    def generate_workflow(payload: GenerateRequest) -> Dict[str, Any]:
        try:
            artifacts = compiler.generate(payload.workflow, payload.options)
        except GraphValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.result.to_dict())
        except GenerationError as exc:
            raise HTTPException(
                status_code=500, detail={"kind": exc.kind.value, "message": str(exc)}
            )
        return _dump(artifacts)

    @router.post("/verify")
    def verify_artifacts(payload: VerifyRequest) -> Dict[str, Any]:
        return _dump(compiler.verify(payload.artifacts))

    @router.post("/compile")
    def compile_workflow(payload: CompileRequest) -> Dict[str, Any]:
        try:
            result = compiler.compile(
                payload.workflow,
                payload.options.codegen_options(),
                verify=payload.options.verify,
            )
        except GenerationError as exc:
            raise HTTPException(
                status_code=500, detail={"kind": exc.kind.value, "message": str(exc)}
            )
        return result.to_dict()

    return router


def create_app(compiler: Optional[WorkflowCompiler] = None) -> FastAPI:
    app = FastAPI(title="Temporal Workflow Compiler", version=__version__)
    app.include_router(build_router(compiler))
    return app
