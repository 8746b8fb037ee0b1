"""
Type-check and lint a generated Temporal project with external Node tooling.

Note:
- The project is written to a caller-supplied directory or to a temporary
  one that is removed afterwards unless ``preserve_workdir`` is set.
- Tool findings are reported as diagnostics; nothing here raises on a failed check.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from twc.compiler.temporal_codegen import GeneratedArtifacts

LOGGER = logging.getLogger(__name__)

TSC_LINE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\): "
    r"(?P<severity>error|warning) (?P<code>TS\d+): (?P<message>.*)$"
)
ESLINT_UNIX_LINE = re.compile(
    r"^(?P<file>[^:]+):(?P<line>\d+):(?P<column>\d+): "
    r"(?P<message>.*?) \[(?P<severity>Error|Warning)/(?P<code>[^\]]+)\]$"
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Diagnostic(_CamelModel):
    tool: str
    message: str
    severity: str = "error"
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    code: Optional[str] = None


class ToolRun(_CamelModel):
    tool: str
    command: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0


class VerificationResult(_CamelModel):
    success: bool
    type_check_diagnostics: List[Diagnostic] = Field(default_factory=list)
    lint_diagnostics: List[Diagnostic] = Field(default_factory=list)
    runs: List[ToolRun] = Field(default_factory=list)
    duration_ms: int = 0
    workdir: Optional[str] = None


class VerifierConfig(BaseModel):
    timeout_seconds: int = 120
    install_dependencies: bool = False
    preserve_workdir: bool = False
    install_command: List[str] = Field(
        default_factory=lambda: ["npm", "install", "--no-audit", "--no-fund"]
    )
    typecheck_command: List[str] = Field(
        default_factory=lambda: ["npx", "--no-install", "tsc", "--noEmit", "-p", "."]
    )
    lint_command: List[str] = Field(
        default_factory=lambda: ["npx", "--no-install", "eslint", "src", "--ext", ".ts", "--format", "unix"]
    )


def parse_tsc_output(output: str) -> List[Diagnostic]:
    diagnostics: List[Diagnostic] = []
    for raw in output.splitlines():
        match = TSC_LINE.match(raw.strip())
        if not match:
            continue
        diagnostics.append(
            Diagnostic(
                tool="tsc",
                file=match.group("file"),
                line=int(match.group("line")),
                column=int(match.group("column")),
                severity=match.group("severity"),
                code=match.group("code"),
                message=match.group("message"),
            )
        )
    return diagnostics


def parse_eslint_output(output: str) -> List[Diagnostic]:
    diagnostics: List[Diagnostic] = []
    for raw in output.splitlines():
        match = ESLINT_UNIX_LINE.match(raw.strip())
        if not match:
            continue
        diagnostics.append(
            Diagnostic(
                tool="eslint",
                file=match.group("file"),
                line=int(match.group("line")),
                column=int(match.group("column")),
                severity=match.group("severity").lower(),
                code=match.group("code"),
                message=match.group("message"),
            )
        )
    return diagnostics


class ProjectVerifier:
    def __init__(self, config: Optional[VerifierConfig] = None) -> None:
        self.config = config or VerifierConfig()

    def verify(
        self, artifacts: GeneratedArtifacts, directory: Optional[str] = None
    ) -> VerificationResult:
        workdir = Path(directory) if directory else Path(tempfile.mkdtemp(prefix="twc-verify-"))
        temporary = directory is None
        start = time.time()
        try:
            artifacts.write_to(str(workdir))
            result = self._run_checks(workdir)
        finally:
            if temporary and not self.config.preserve_workdir:
                shutil.rmtree(workdir, ignore_errors=True)
        result.duration_ms = int((time.time() - start) * 1000)
        if not temporary or self.config.preserve_workdir:
            result.workdir = str(workdir)
        return result

    def _run_checks(self, workdir: Path) -> VerificationResult:
        runs: List[ToolRun] = []
        if self.config.install_dependencies:
            install = self._run("npm", self.config.install_command, workdir)
            runs.append(install)
            if install.exit_code != 0:
                return VerificationResult(
                    success=False,
                    type_check_diagnostics=[self._failure_diagnostic(install)],
                    runs=runs,
                )

        typecheck = self._run("tsc", self.config.typecheck_command, workdir)
        runs.append(typecheck)
        type_diagnostics = parse_tsc_output(typecheck.stdout + "\n" + typecheck.stderr)
        if typecheck.exit_code != 0 and not type_diagnostics:
            type_diagnostics.append(self._failure_diagnostic(typecheck))

        lint = self._run("eslint", self.config.lint_command, workdir)
        runs.append(lint)
        lint_diagnostics = parse_eslint_output(lint.stdout + "\n" + lint.stderr)
        if lint.exit_code != 0 and not lint_diagnostics:
            lint_diagnostics.append(self._failure_diagnostic(lint))

        success = (
            typecheck.exit_code == 0
            and lint.exit_code == 0
            and not any(diag.severity == "error" for diag in type_diagnostics + lint_diagnostics)
        )
        return VerificationResult(
            success=success,
            type_check_diagnostics=type_diagnostics,
            lint_diagnostics=lint_diagnostics,
            runs=runs,
        )

    def _run(self, tool: str, command: List[str], workdir: Path) -> ToolRun:
        LOGGER.debug("Running %s in %s: %s", tool, workdir, " ".join(command))
        start = time.time()
        try:
            completed = subprocess.run(
                command,
                cwd=str(workdir),
                capture_output=True,
                text=True,
                timeout=self.config.timeout_seconds,
            )
            return ToolRun(
                tool=tool,
                command=command,
                exit_code=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
                duration_ms=int((time.time() - start) * 1000),
            )
        except FileNotFoundError:
            LOGGER.warning("%s is not installed: %s", tool, command[0])
            return ToolRun(
                tool=tool,
                command=command,
                exit_code=127,
                stderr=f"tool-missing: {command[0]} not found",
                duration_ms=int((time.time() - start) * 1000),
            )
        except subprocess.TimeoutExpired as exc:
            LOGGER.warning("%s timed out after %ss", tool, self.config.timeout_seconds)
            return ToolRun(
                tool=tool,
                command=command,
                exit_code=124,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr) + "\nTimeoutExpired",
                duration_ms=int((time.time() - start) * 1000),
            )

    @staticmethod
    def _failure_diagnostic(run: ToolRun) -> Diagnostic:
        if run.exit_code == 127:
            code = "tool-missing"
        elif run.exit_code == 124:
            code = "timeout"
        else:
            code = f"exit-{run.exit_code}"
        detail = (run.stderr or run.stdout).strip().splitlines()
        return Diagnostic(
            tool=run.tool,
            code=code,
            message=detail[-1] if detail else f"{run.tool} exited with code {run.exit_code}",
        )


def _as_text(value: Optional[object]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
