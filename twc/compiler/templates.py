"""
TypeScript templates for the five generated artifacts.

Each ``render_*`` method is a pure function of its record.
"""

from __future__ import annotations

import json
import textwrap
from typing import Any, Dict, List, Sequence

from twc.compiler.identifiers import ts_string, ts_value
from twc.compiler.records import (
    ActivitiesRecord,
    ArtifactHeader,
    CompilerConfigRecord,
    ManifestRecord,
    WorkerRecord,
    WorkflowRecord,
)
from twc.version import __version__

TEMPORAL_SDK_VERSION = "^1.11.0"
# Node results and the state object are declared whether or not a later node reads them.
UNUSED_VARS_IGNORE_PATTERN = r"^(state|result_\w+|childResult_\w+)$"


class TemplateRenderer:
    def __init__(
        self,
        generator_name: str = "twc",
        generator_version: str = __version__,
        temporal_version: str = TEMPORAL_SDK_VERSION,
        typescript_version: str = "^5.4.0",
    ) -> None:
        self.generator_name = generator_name
        self.generator_version = generator_version
        self.temporal_version = temporal_version
        self.typescript_version = typescript_version

    def _banner(self, header: ArtifactHeader, title: str, notes: Sequence[str] = ()) -> str:
        body = [
            f"@generated by {self.generator_name} {self.generator_version}. Do not edit by hand.",
            f"{title}: {header.workflow_name} ({header.workflow_id})",
            f"Generated at: {header.generated_at}",
            *notes,
        ]
        lines = ["/**"]
        lines.extend(" * " + " ".join(text.replace("*/", "* /").split()) for text in body)
        lines.append(" */")
        return "\n".join(lines)

    @staticmethod
    def _indent(block: str, level: int = 1) -> str:
        return textwrap.indent(block, "  " * level)

    def render_workflow(self, record: WorkflowRecord) -> str:
        notes: List[str] = []
        if record.is_long_running:
            notes.append(
                "Long-running: continues as new when history grows too large."
                if record.continue_as_new is not None
                else "Long-running: enable autoContinueAsNew to bound history growth."
            )
        sections: List[str] = [self._banner(record.header, "Workflow", notes)]
        sections.append(
            f"import {{ {', '.join(record.imports)} }} from '@temporalio/workflow';\n"
            "import type * as activities from './activities';"
        )

        proxy_blocks: List[str] = []
        for proxy in record.proxies:
            retry = proxy.retry
            proxy_blocks.append(
                "\n".join(
                    [
                        f"// Activities with a {proxy.timeout} start-to-close timeout",
                        f"const {proxy.name} = proxyActivities<typeof activities>({{",
                        f"  startToCloseTimeout: {ts_string(proxy.timeout)},",
                        "  retry: {",
                        f"    maximumAttempts: {retry.maximum_attempts},",
                        f"    initialInterval: {ts_string(retry.initial_interval)},",
                        f"    maximumInterval: {ts_string(retry.maximum_interval)},",
                        f"    backoffCoefficient: {ts_value(retry.backoff_coefficient)},",
                        "  },",
                        "});",
                    ]
                )
            )
        sections.append("\n\n".join(proxy_blocks))

        if record.has_signals:
            sections.append(
                "\n".join(
                    f"export const {signal.identifier} = defineSignal<[unknown]>({ts_string(signal.name)});"
                    for signal in record.signals
                )
            )

        state_lines = ["export interface WorkflowState {"]
        for variable in record.variables:
            if variable.description:
                state_lines.append(f"  /** {' '.join(variable.description.split())} */")
            optional = "" if variable.required else "?"
            state_lines.append(f"  {variable.slot}{optional}: {variable.ts_type};")
        state_lines.append("  [key: string]: unknown;")
        state_lines.append("}")
        sections.append("\n".join(state_lines))

        sections.append(
            "\n".join(
                [
                    "export interface WorkflowResult {",
                    "  success: boolean;",
                    "  result: unknown;",
                    "  completedAt: string;",
                    "  metadata?: Record<string, unknown>;",
                    "}",
                ]
            )
        )

        sections.append(self._render_function(record))
        return "\n\n".join(section for section in sections if section) + "\n"

    def _render_function(self, record: WorkflowRecord) -> str:
        lines: List[str] = [
            f"export async function {record.function_name}("
            "input: Record<string, unknown> = {}"
            "): Promise<WorkflowResult> {"
        ]

        prologue = ["const state: WorkflowState = {"]
        prologue.extend(
            f"  {variable.slot}: {variable.default_literal}," for variable in record.variables
        )
        prologue.append("};")
        if record.has_signals:
            prologue.append("const signalPayloads: Record<string, unknown> = {};")

        blocks: List[str] = ["\n".join(prologue)]
        blocks.extend(record.body_blocks)
        if record.continue_as_new is not None:
            blocks.append(self._render_continue_as_new(record))
        if record.exit_blocks:
            blocks.extend(record.exit_blocks)
        else:
            blocks.append(
                "return { success: true, result: input, completedAt: new Date().toISOString() };"
            )

        lines.append("\n\n".join(self._indent(block) for block in blocks))
        lines.append("}")
        return "\n".join(lines)

    def _render_continue_as_new(self, record: WorkflowRecord) -> str:
        policy = record.continue_as_new
        conditions = [f"workflowInfo().historyLength >= {policy.max_history_length}"]
        if policy.max_duration_ms is not None:
            conditions.append(
                f"Date.now() - Date.parse(startedAt) >= {policy.max_duration_ms}"
            )
        return "\n".join(
            [
                f"if ({' || '.join(conditions)}) {{",
                "  console.log('[WORKFLOW_CONTINUE_AS_NEW]', { workflowId: workflowInfo().workflowId });",
                f"  await continueAsNew<typeof {record.function_name}>(input);",
                "}",
            ]
        )

    def render_activities(self, record: ActivitiesRecord) -> str:
        sections: List[str] = [self._banner(record.header, "Activities")]
        sections.append("export type LogLevel = 'debug' | 'info' | 'warn' | 'error';")

        for stub in record.activities:
            sections.append(
                "\n".join(
                    [
                        f"// Used by: {', '.join(stub.node_ids)}",
                        f"export async function {stub.function_name}("
                        "input: Record<string, unknown>"
                        "): Promise<Record<string, unknown>> {",
                        f"  console.log('[ACTIVITY]', {{ activity: {ts_string(stub.activity_name)}, input }});",
                        f"  return {{ success: true, activity: {ts_string(stub.activity_name)}, input }};",
                        "}",
                    ]
                )
            )

        if record.include_variable_store:
            sections.append(self._render_variable_store())
        return "\n\n".join(sections) + "\n"

    @staticmethod
    def _render_variable_store() -> str:
        return textwrap.dedent(
            """\
            export type VariableScope = 'service' | 'project';

            export interface VariableMetadata {
              scope: VariableScope;
              updatedAt?: string;
            }

            export interface GetVariableInput {
              name: string;
              defaultValue?: unknown;
            }

            export interface GetVariableOutput {
              value: unknown;
              exists: boolean;
              metadata?: VariableMetadata;
            }

            export interface SetVariableInput {
              name: string;
              value: unknown;
              merge?: boolean;
              createIfMissing?: boolean;
            }

            export interface SetVariableOutput {
              success: boolean;
              previousValue?: unknown;
              metadata?: VariableMetadata;
            }

            // Replace with a durable store shared across workflow runs.
            const variableStore: Record<VariableScope, Map<string, unknown>> = {
              service: new Map<string, unknown>(),
              project: new Map<string, unknown>(),
            };

            function readVariable(scope: VariableScope, input: GetVariableInput): GetVariableOutput {
              const store = variableStore[scope];
              const exists = store.has(input.name);
              return {
                value: exists ? store.get(input.name) : input.defaultValue,
                exists,
                metadata: { scope },
              };
            }

            function writeVariable(scope: VariableScope, input: SetVariableInput): SetVariableOutput {
              const store = variableStore[scope];
              const exists = store.has(input.name);
              if (!exists && input.createIfMissing === false) {
                return { success: false, metadata: { scope } };
              }
              const previousValue = store.get(input.name);
              const isObject = (value: unknown): value is Record<string, unknown> =>
                typeof value === 'object' && value !== null && !Array.isArray(value);
              const nextValue =
                input.merge && isObject(previousValue) && isObject(input.value)
                  ? { ...previousValue, ...input.value }
                  : input.value;
              store.set(input.name, nextValue);
              return { success: true, previousValue, metadata: { scope, updatedAt: new Date().toISOString() } };
            }

            export async function getServiceVariable(input: GetVariableInput): Promise<GetVariableOutput> {
              return readVariable('service', input);
            }

            export async function getProjectVariable(input: GetVariableInput): Promise<GetVariableOutput> {
              return readVariable('project', input);
            }

            export async function setServiceVariable(input: SetVariableInput): Promise<SetVariableOutput> {
              return writeVariable('service', input);
            }

            export async function setProjectVariable(input: SetVariableInput): Promise<SetVariableOutput> {
              return writeVariable('project', input);
            }"""
        )

    def render_worker(self, record: WorkerRecord) -> str:
        queue = ts_string(record.task_queue)
        body = textwrap.dedent(
            f"""\
            import {{ NativeConnection, Worker }} from '@temporalio/worker';
            import * as activities from './activities';

            export const TASK_QUEUE = {queue};

            async function run(): Promise<void> {{
              const connection = await NativeConnection.connect({{
                address: process.env.TEMPORAL_ADDRESS ?? 'localhost:7233',
              }});
              const worker = await Worker.create({{
                connection,
                namespace: process.env.TEMPORAL_NAMESPACE ?? 'default',
                taskQueue: TASK_QUEUE,
                workflowsPath: require.resolve('./workflow'),
                activities,
              }});
              console.log('[WORKER_START]', {{ taskQueue: TASK_QUEUE, workflow: {ts_string(record.function_name)} }});
              await worker.run();
            }}

            run().catch((err: unknown) => {{
              console.error(err);
              process.exit(1);
            }});
            """
        )
        return f"{self._banner(record.header, 'Worker')}\n{body}"

    def render_manifest(self, record: ManifestRecord) -> str:
        temporal = self.temporal_version
        manifest: Dict[str, Any] = {
            "name": record.package_name,
            "version": "1.0.0",
            "private": True,
            "description": record.description,
            "main": "lib/worker.js",
            "scripts": {
                "build": "tsc",
                "typecheck": "tsc --noEmit",
                "lint": "eslint src --ext .ts",
                "start": "node lib/worker.js",
            },
            "dependencies": {
                "@temporalio/activity": temporal,
                "@temporalio/client": temporal,
                "@temporalio/worker": temporal,
                "@temporalio/workflow": temporal,
            },
            "devDependencies": {
                "@types/node": "^20.11.0",
                "@typescript-eslint/eslint-plugin": "^7.0.0",
                "@typescript-eslint/parser": "^7.0.0",
                "eslint": "^8.57.0",
                "typescript": self.typescript_version,
            },
            "eslintConfig": {
                "root": True,
                "parser": "@typescript-eslint/parser",
                "plugins": ["@typescript-eslint"],
                "extends": ["eslint:recommended", "plugin:@typescript-eslint/recommended"],
                "env": {"node": True, "es2020": True},
                # Branch bodies and every exit after the first are emitted in sequence.
                "rules": {
                    "no-constant-condition": "off",
                    "no-unreachable": "off",
                    "@typescript-eslint/no-unused-vars": [
                        "error",
                        {"varsIgnorePattern": UNUSED_VARS_IGNORE_PATTERN},
                    ],
                },
            },
        }
        return json.dumps(manifest, indent=2) + "\n"

    def render_compiler_config(self, record: CompilerConfigRecord) -> str:
        config: Dict[str, Any] = {
            "compilerOptions": {
                "target": "es2020",
                "module": "commonjs",
                "lib": ["es2020"],
                "strict": record.strict,
                "noImplicitAny": True,
                "esModuleInterop": True,
                "skipLibCheck": True,
                "forceConsistentCasingInFileNames": True,
                "outDir": "lib",
                "rootDir": "src",
                "sourceMap": True,
            },
            "include": ["src/**/*.ts"],
        }
        return json.dumps(config, indent=2) + "\n"
