"""Temporal Workflow Compiler package."""

from twc.version import __version__
from twc.main import CompilationResult, WorkflowCompiler

__all__ = ["WorkflowCompiler", "CompilationResult", "__version__"]
