"""
Template-ready data records, one per generated artifact.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from twc.compiler.activity_proxies import ProxyGroup


class ArtifactHeader(BaseModel):
    workflow_id: str
    workflow_name: str
    generated_at: str


class SignalDefinition(BaseModel):
    name: str
    identifier: str


class VariableDeclaration(BaseModel):
    name: str
    slot: str
    ts_type: str
    default_literal: str
    required: bool = False
    description: Optional[str] = None


class ActivityStub(BaseModel):
    function_name: str
    activity_name: str
    node_ids: List[str] = Field(default_factory=list)


class ContinueAsNewPolicy(BaseModel):
    max_history_length: int
    max_duration_ms: Optional[int] = None


class WorkflowRecord(BaseModel):
    header: ArtifactHeader
    function_name: str
    imports: List[str] = Field(default_factory=list)
    proxies: List[ProxyGroup] = Field(default_factory=list)
    signals: List[SignalDefinition] = Field(default_factory=list)
    variables: List[VariableDeclaration] = Field(default_factory=list)
    body_blocks: List[str] = Field(default_factory=list)
    exit_blocks: List[str] = Field(default_factory=list)
    is_long_running: bool = False
    continue_as_new: Optional[ContinueAsNewPolicy] = None

    @property
    def has_signals(self) -> bool:
        return bool(self.signals)


class ActivitiesRecord(BaseModel):
    header: ArtifactHeader
    activities: List[ActivityStub] = Field(default_factory=list)
    include_variable_store: bool = False


class WorkerRecord(BaseModel):
    header: ArtifactHeader
    function_name: str
    task_queue: str


class ManifestRecord(BaseModel):
    package_name: str
    description: str


class CompilerConfigRecord(BaseModel):
    strict: bool = True
