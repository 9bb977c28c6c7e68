"""
AgentFlow - Command line entry point.

Usage:
    agentflow validate <file>
    agentflow run <file> [--node ID] [--verbose]
    agentflow variables <file>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from agentflow.core.data_types import stringify
from agentflow.core.errors import WorkflowError
from agentflow.core.execution import ExecutionProgress, RunReport, RunStatus
from agentflow.core.graph import NodeStatus
from agentflow.core.interaction import (
    ConfirmationAction,
    ConfirmationKind,
    ConfirmationRequest,
    ConfirmationResult,
)
from agentflow.core.project import Project, ProjectSettings
from agentflow.nodes import register_all_nodes
from agentflow.providers import get_registry


logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 60


def preview(value, length: int = PREVIEW_LENGTH) -> str:
    """Single-line, truncated rendering of a value."""
    text = stringify(value).replace("\n", "\\n")
    return text if len(text) <= length else text[:length - 3] + "..."


class ConsoleConfirmationHandler:
    """
    Asks for confirmations on the terminal.

    Input is read in a worker thread so the event loop keeps running;
    the caller's timeout still applies. A reader thread abandoned by a
    timeout finishes on the next line typed.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    async def request(self, request: ConfirmationRequest) -> ConfirmationResult:
        seconds = request.timeout_ms / 1000 if request.timeout_ms else 0
        print(f"\n{request.title}", file=self.stream)
        if request.message:
            print(request.message, file=self.stream)
        print(f"  current: {preview(request.value)}", file=self.stream)
        if request.kind is ConfirmationKind.INPUT:
            hint = "type a value, empty line keeps the current one"
        else:
            hint = "enter confirms, :skip, :clear, :cancel, or type a new value"
        if seconds:
            hint += f" ({seconds:g}s)"
        answer = await asyncio.to_thread(input, f"  {hint}> ")

        command = answer.strip().lower()
        if command == ":skip":
            return ConfirmationResult(ConfirmationAction.SKIP)
        if command == ":clear":
            return ConfirmationResult(ConfirmationAction.CLEAR)
        if command == ":cancel":
            return ConfirmationResult(ConfirmationAction.CANCEL)
        if answer == "":
            return ConfirmationResult(ConfirmationAction.CONFIRM, request.value)
        return ConfirmationResult(ConfirmationAction.CONFIRM, answer)


def _open_project(path: Path, confirmation=None) -> Project:
    registry = register_all_nodes()
    providers = get_registry()
    providers.load_config()
    return Project.open(
        path,
        settings=ProjectSettings.load(),
        registry=registry,
        ai_client=providers.get_default(),
        confirmation=confirmation,
    )


# --- Commands ---

def cmd_validate(args: argparse.Namespace) -> int:
    project = _open_project(Path(args.file))
    report = project.workflow.validate()
    for warning in report.warnings:
        print(f"warning: {warning}")
    for error in report.errors:
        print(f"error: {error}")
    if report.is_valid:
        print(f"{project.name}: OK ({len(project.workflow)} nodes)")
        return 0
    return 1


def cmd_variables(args: argparse.Namespace) -> int:
    project = _open_project(Path(args.file))
    variables = project.workflow.variables.list()
    if not variables:
        print("No variables")
        return 0
    width = max(len(v.name) for v in variables)
    for variable in variables:
        print(f"{variable.name:<{width}}  {variable.type.value:<10}  {preview(variable.value)}")
    return 0


def _print_report(report: RunReport) -> None:
    for node_id, result in report.results.items():
        if result.ok:
            outputs = ", ".join(f"{port}={preview(v, 40)}" for port, v in result.outputs.items())
            print(f"  ok      {node_id} ({result.duration:.2f}s) {outputs}")
        else:
            print(f"  failed  {node_id}: {result.error}")
    for node_id in report.skipped:
        print(f"  skipped {node_id}")


async def _run(args: argparse.Namespace) -> int:
    confirmation = ConsoleConfirmationHandler()
    project = _open_project(Path(args.file), confirmation)
    workflow = project.workflow

    report = workflow.validate()
    if not report.is_valid:
        for error in report.errors:
            print(f"error: {error}")
        return 1

    coordinator = workflow.coordinator
    resumers: set[asyncio.Task] = set()

    async def ask_and_resume(node_id: str) -> None:
        staged = coordinator.staged_input(node_id)
        result = await confirmation.request(ConfirmationRequest(
            kind=ConfirmationKind.INPUT,
            title=f"{node_id} is waiting for input",
            value=staged,
            timeout_ms=0,
            node_id=node_id,
        ))
        workflow.resume(node_id, result.value_or(staged))

    def on_status(node_id: str, status: NodeStatus) -> None:
        if status is NodeStatus.WAITING:
            task = asyncio.get_running_loop().create_task(ask_and_resume(node_id))
            resumers.add(task)
            task.add_done_callback(resumers.discard)

    def on_progress(progress: ExecutionProgress) -> None:
        if progress.status is RunStatus.RUNNING and progress.current_nodes:
            logger.info(f"[{progress.progress_percent:.0f}%] {progress.message}")

    coordinator.on_status(on_status)
    targets = [args.node] if args.node else None
    run_report = await workflow.run(targets, on_progress=on_progress)

    print(f"{project.name}: {run_report.status.name.lower()}")
    _print_report(run_report)
    return 0 if run_report.status is RunStatus.COMPLETED else 1


def cmd_run(args: argparse.Namespace) -> int:
    return asyncio.run(_run(args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentflow", description="Run node-graph AI workflows")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Check a workflow file")
    validate.add_argument("file", help="Workflow JSON file")
    validate.set_defaults(func=cmd_validate)

    run = subparsers.add_parser("run", help="Execute a workflow file")
    run.add_argument("file", help="Workflow JSON file")
    run.add_argument("--node", metavar="ID", help="Only run this node and its upstream nodes")
    run.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
                     help="Enable debug logging")
    run.set_defaults(func=cmd_run)

    variables = subparsers.add_parser("variables", help="List the variables saved with a workflow")
    variables.add_argument("file", help="Workflow JSON file")
    variables.set_defaults(func=cmd_variables)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for AgentFlow.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (FileNotFoundError, ValueError, WorkflowError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
