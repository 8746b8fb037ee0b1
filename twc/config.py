"""
Environment-driven settings for the compiler, CLI and API.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, Field, field_validator

from twc.compiler.temporal_codegen import CodegenOptions
from twc.ir.durations import is_duration
from twc.runtime.verifier import VerifierConfig

ENV_PREFIX = "TWC_"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CompilerSettings(BaseModel):
    # Overrides for graph settings; None defers to the graph, then to built-in defaults.
    default_timeout: Optional[str] = None
    task_queue: Optional[str] = None
    include_comments: bool = True
    strict_mode: bool = True
    verify_timeout_seconds: int = Field(default=120, ge=1)
    install_dependencies: bool = False
    preserve_workdir: bool = False
    typecheck_command: List[str] = Field(
        default_factory=lambda: ["npx", "--no-install", "tsc", "--noEmit", "-p", "."]
    )
    lint_command: List[str] = Field(
        default_factory=lambda: ["npx", "--no-install", "eslint", "src", "--ext", ".ts", "--format", "unix"]
    )
    log_level: str = "INFO"

    @field_validator("default_timeout")
    @classmethod
    def validate_default_timeout(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_duration(value):
            raise ValueError(f"default_timeout is not a valid duration: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {value}")
        return level

    @classmethod
    def from_env(cls) -> "CompilerSettings":
        def get_env(key: str, default: Any, type_func: Callable[[str], Any] = str) -> Any:
            value = os.getenv(f"{ENV_PREFIX}{key}")
            if value is None:
                return default
            if type_func is bool:
                return value.strip().lower() in ("true", "1", "yes", "on")
            if type_func is list:
                return value.split()
            return type_func(value)

        defaults = cls()
        return cls(
            default_timeout=get_env("DEFAULT_TIMEOUT", defaults.default_timeout),
            task_queue=get_env("TASK_QUEUE", defaults.task_queue),
            include_comments=get_env("INCLUDE_COMMENTS", defaults.include_comments, bool),
            strict_mode=get_env("STRICT_MODE", defaults.strict_mode, bool),
            verify_timeout_seconds=get_env("VERIFY_TIMEOUT_SECONDS", defaults.verify_timeout_seconds, int),
            install_dependencies=get_env("INSTALL_DEPENDENCIES", defaults.install_dependencies, bool),
            preserve_workdir=get_env("PRESERVE_WORKDIR", defaults.preserve_workdir, bool),
            typecheck_command=get_env("TYPECHECK_COMMAND", defaults.typecheck_command, list),
            lint_command=get_env("LINT_COMMAND", defaults.lint_command, list),
            log_level=get_env("LOG_LEVEL", defaults.log_level),
        )

    def to_codegen_options(self, **overrides: Any) -> CodegenOptions:
        values = {
            "default_timeout": self.default_timeout,
            "task_queue": self.task_queue,
            "include_comments": self.include_comments,
            "strict_mode": self.strict_mode,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return CodegenOptions(**values)

    def to_verifier_config(self) -> VerifierConfig:
        return VerifierConfig(
            timeout_seconds=self.verify_timeout_seconds,
            install_dependencies=self.install_dependencies,
            preserve_workdir=self.preserve_workdir,
            typecheck_command=list(self.typecheck_command),
            lint_command=list(self.lint_command),
        )


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(level=(level or "INFO").upper(), format=LOG_FORMAT)
