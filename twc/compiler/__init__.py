from twc.compiler.templates import TemplateRenderer
from twc.compiler.temporal_codegen import (
    CodegenOptions,
    GeneratedArtifacts,
    GenerationError,
    GenerationErrorKind,
    TemporalCodeGenerator,
)

__all__ = [
    "TemporalCodeGenerator",
    "TemplateRenderer",
    "CodegenOptions",
    "GeneratedArtifacts",
    "GenerationError",
    "GenerationErrorKind",
]
