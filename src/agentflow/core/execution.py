"""
Execution Engine - Per-node execution and graph walking.

This module provides:
- NodeContext: What a node behavior can reach while it runs
- ExecutionResult: Outcome of a single node execution
- ExecutionCoordinator: Drives one node through its status state machine
- WorkflowRunner: Topological walker that executes a whole graph

Node status moves idle -> executing -> success | error. Nodes whose input
mode is manual park in waiting until resume() is called, then continue
executing.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable

from agentflow.core.bindings import BindingResolver
from agentflow.core.errors import AlreadyRunningError, ExecutionError
from agentflow.core.graph import Node, NodeGraph, NodeStatus
from agentflow.core.interaction import (
    ConfirmationHandler,
    ConfirmationRequest,
    ConfirmationResult,
    PendingResolution,
    confirm_with_timeout,
)
from agentflow.core.node_types import NodeType
from agentflow.core.templates import DoubleBraceResolver, TemplateResolver
from agentflow.core.variables import VariableStore


logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """
    Outcome of executing one node.

    outputs is empty when the execution failed; error then carries the
    wrapped behavior failure.
    """
    node_id: str
    inputs: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, Any] = field(default_factory=dict)
    error: ExecutionError | None = None
    duration: float = 0.0  # Seconds

    @property
    def ok(self) -> bool:
        return self.error is None


StatusCallback = Callable[[str, NodeStatus], None]
ResultCallback = Callable[[ExecutionResult], None]


class NodeContext:
    """
    Context passed to node behaviors during execution.

    Provides access to:
    - The AI client capability
    - Interactive confirmation and manual input suspension
    - Template rendering against the node's inputs and the variable store
    - The variable store itself
    """

    def __init__(
        self,
        coordinator: ExecutionCoordinator,
        node: Node,
        node_type: NodeType,
    ):
        self._coordinator = coordinator
        self.node = node
        self.node_type = node_type
        self.emitted: set[str] = set()

    @property
    def node_id(self) -> str:
        return self.node.id

    @property
    def store(self) -> VariableStore:
        return self._coordinator.store

    @property
    def ai_client(self) -> Any:
        return self._coordinator.ai_client

    @property
    def http_timeout(self) -> float:
        return self._coordinator.http_timeout

    def get_ai_client(self) -> Any:
        """The AI client, or ValueError if none is configured."""
        client = self._coordinator.ai_client
        if client is None:
            raise ValueError(f"No AI client configured for {self.node_type.name}")
        return client

    def emit(self, port: str, value: Any) -> None:
        """
        Deliver a value to the connections of an output port immediately.

        A node that emits on a port delivers every value itself; the value
        it finally returns for that port is stored but not delivered again.
        """
        self.emitted.add(port)
        resolver = self._coordinator.resolver
        for connection in self._coordinator.graph.get_output_connections(self.node.id, port):
            resolver.record_arrival(connection, value)

    def render(self, text: str) -> str:
        """Render {{ references }} in text against this node's context."""
        return self._coordinator.render_template(self.node, text)

    async def confirm(self, request: ConfirmationRequest) -> ConfirmationResult:
        """Ask the user to confirm a value, with the request's timeout."""
        request.node_id = self.node.id
        return await confirm_with_timeout(self._coordinator.confirmation, request)

    async def wait_for_input(self, staged: Any = None) -> Any:
        """
        Park the node in waiting until resume() supplies a value.

        Raises:
            ResolutionCancelled: If the wait was abandoned
        """
        return await self._coordinator.suspend(self.node, staged)


class ExecutionCoordinator:
    """
    Executes single nodes.

    For each execution:
    - Refuses nodes already executing or waiting
    - Resolves inputs through the BindingResolver
    - Renders templates in the configuration
    - Awaits the node behavior to completion
    - Writes outputs back through the BindingResolver
    - Reports status changes and results to listeners

    Failures are local: they mark the node as error and are returned in
    the ExecutionResult rather than raised.
    """

    def __init__(
        self,
        graph: NodeGraph,
        store: VariableStore,
        resolver: BindingResolver | None = None,
        ai_client: Any = None,
        confirmation: ConfirmationHandler | None = None,
        templates: TemplateResolver | None = None,
        http_timeout: float = 30.0,
    ):
        self.graph = graph
        self.store = store
        self.resolver = resolver if resolver is not None else BindingResolver(graph, store)
        self.ai_client = ai_client
        self.confirmation = confirmation
        self.templates = templates or DoubleBraceResolver()
        self.http_timeout = http_timeout
        self._pending: dict[str, PendingResolution] = {}
        self._staged: dict[str, Any] = {}

        # Callbacks
        self._status_listeners: list[StatusCallback] = []
        self._result_listeners: list[ResultCallback] = []

    def on_status(self, callback: StatusCallback) -> None:
        """Register a callback for node status changes."""
        self._status_listeners.append(callback)

    def on_result(self, callback: ResultCallback) -> None:
        """Register a callback for finished executions."""
        self._result_listeners.append(callback)

    def _set_status(self, node: Node, status: NodeStatus) -> None:
        node.status = status
        logger.debug(f"{node.id} -> {status.value}")
        for callback in self._status_listeners:
            try:
                callback(node.id, status)
            except Exception:
                logger.exception("Status listener failed")

    def _report(self, result: ExecutionResult) -> None:
        for callback in self._result_listeners:
            try:
                callback(result)
            except Exception:
                logger.exception("Result listener failed")

    # --- Templates ---

    def template_context(self, node: Node) -> dict[str, Any]:
        """
        Names visible to templates of a node.

        Node inputs shadow node outputs, which shadow the node metadata and
        global variables. Unset (None) ports shadow nothing.
        """
        context: dict[str, Any] = {var.name: var.value for var in self.store.list()}
        context.update({
            "node_id": node.id,
            "node_type": node.type_id,
            "inputs": dict(node.inputs),
            "outputs": dict(node.outputs),
        })
        context.update({k: v for k, v in node.outputs.items() if v is not None})
        context.update({k: v for k, v in node.inputs.items() if v is not None})
        return context

    def render_template(self, node: Node, text: str) -> str:
        return self.templates.render(text, self.template_context(node))

    def _render_config(self, node: Node) -> dict[str, Any]:
        context = self.template_context(node)
        render_value = getattr(self.templates, "render_value", None)
        if render_value is not None:
            return render_value(node.config, context)
        return {
            key: self.templates.render(value, context) if isinstance(value, str) else value
            for key, value in node.config.items()
        }

    # --- Execution ---

    async def execute(self, node_id: str) -> ExecutionResult:
        """
        Execute a node once.

        Raises:
            NotFoundError: If the node or its type does not exist
            AlreadyRunningError: If the node is executing or waiting
        """
        node = self.graph.require_node(node_id)
        if node.status.is_running:
            raise AlreadyRunningError(node_id)
        node_type = self.graph.registry.require(node.type_id)

        started = time.monotonic()
        node.error = None
        self._set_status(node, NodeStatus.EXECUTING)

        inputs: dict[str, Any] = {}
        try:
            inputs = await self.resolver.resolve_inputs(node)
            node.inputs = inputs
            parameters = self._render_config(node)

            context = NodeContext(self, node, node_type)
            if node_type.executor is None:
                outputs: dict[str, Any] = {}
            else:
                outputs = await node_type.executor(dict(inputs), parameters, context) or {}

            node.outputs = dict(outputs)
            await self.resolver.resolve_outputs(node, outputs, context.emitted)

        except asyncio.CancelledError:
            node.error = "Execution cancelled"
            node.outputs = {}
            self._set_status(node, NodeStatus.ERROR)
            raise

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning(f"Node {node_id} failed: {message}")
            error = ExecutionError(node_id, message)
            error.__cause__ = e
            node.error = message
            node.outputs = {}
            self._set_status(node, NodeStatus.ERROR)
            result = ExecutionResult(node_id, inputs, {}, error, time.monotonic() - started)
            self._report(result)
            return result

        self._set_status(node, NodeStatus.SUCCESS)
        result = ExecutionResult(node_id, inputs, dict(outputs), None, time.monotonic() - started)
        self._report(result)
        return result

    # --- Waiting / resume ---

    async def suspend(self, node: Node, staged: Any = None) -> Any:
        """Move an executing node to waiting until it is resumed."""
        if node.status is not NodeStatus.EXECUTING:
            raise RuntimeError(f"Node {node.id} cannot wait from {node.status.value}")
        token = PendingResolution(label=node.id)
        self._pending[node.id] = token
        self._staged[node.id] = staged
        self._set_status(node, NodeStatus.WAITING)
        try:
            value = await token.wait()
        finally:
            # A replaced workflow may already hold a new token under this id
            if self._pending.get(node.id) is token:
                del self._pending[node.id]
                self._staged.pop(node.id, None)
        self._set_status(node, NodeStatus.EXECUTING)
        return value

    def resume(self, node_id: str, value: Any = None) -> bool:
        """
        Resume a waiting node with a value.

        Returns False if the node is not waiting (or was already resumed).
        """
        token = self._pending.get(node_id)
        if token is None:
            return False
        return token.resolve(value)

    def discard(self, node_id: str, reason: str = "Node removed") -> bool:
        """Abandon a waiting node; its execution ends in error."""
        token = self._pending.get(node_id)
        if token is None:
            return False
        return token.cancel(reason)

    def is_waiting(self, node_id: str) -> bool:
        return node_id in self._pending

    def staged_input(self, node_id: str) -> Any:
        """Value a waiting node staged for the user."""
        return self._staged.get(node_id)

    def waiting_nodes(self) -> list[str]:
        return list(self._pending)

    def reset(self, node_id: str) -> None:
        """Return an idle-able node to idle and forget its results."""
        node = self.graph.require_node(node_id)
        if node.status.is_running:
            raise AlreadyRunningError(node_id)
        node.inputs = {}
        node.outputs = {}
        node.error = None
        self._set_status(node, NodeStatus.IDLE)


# ---------------------------------------------------------------------------
# Graph walking
# ---------------------------------------------------------------------------

class RunStatus(Enum):
    """Status of a whole-graph run."""
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass
class ExecutionProgress:
    """Progress information for a run."""
    status: RunStatus
    current_nodes: list[str] = field(default_factory=list)
    nodes_completed: int = 0
    nodes_total: int = 0
    message: str = ""
    error: str | None = None

    @property
    def progress_percent(self) -> float:
        if self.nodes_total == 0:
            return 0.0
        return (self.nodes_completed / self.nodes_total) * 100


@dataclass
class RunReport:
    """Outcome of a whole-graph run."""
    status: RunStatus
    results: dict[str, ExecutionResult] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    @property
    def failed(self) -> list[str]:
        return [nid for nid, r in self.results.items() if not r.ok]


class WorkflowRunner:
    """
    Executes a graph in topological order.

    Nodes of the same batch have no dependencies on each other and run
    concurrently. Nodes downstream of a failure are skipped; unrelated
    branches keep running.
    """

    def __init__(
        self,
        coordinator: ExecutionCoordinator,
        on_progress: Callable[[ExecutionProgress], None] | None = None,
    ):
        self.coordinator = coordinator
        self._on_progress = on_progress

    def _report_progress(self, progress: ExecutionProgress) -> None:
        if self._on_progress:
            self._on_progress(progress)

    async def run(self, target_nodes: list[str] | None = None) -> RunReport:
        """
        Run the graph, or only the targets and their upstream nodes.

        Raises:
            GraphCycleError: If the graph contains a cycle
        """
        graph = self.coordinator.graph
        batches = graph.execution_batches()

        if target_nodes:
            wanted = set(target_nodes)
            for nid in target_nodes:
                graph.require_node(nid)
                wanted |= graph.get_upstream_nodes(nid)
            batches = [[nid for nid in batch if nid in wanted] for batch in batches]
            batches = [batch for batch in batches if batch]

        total = sum(len(batch) for batch in batches)
        report = RunReport(status=RunStatus.RUNNING)
        self._report_progress(ExecutionProgress(
            status=RunStatus.RUNNING,
            nodes_total=total,
            message="Starting execution",
        ))

        blocked: set[str] = set()
        completed = 0
        for batch in batches:
            runnable = []
            for nid in batch:
                upstream = {c.source.node_id for c in graph.connections_into(nid)}
                if upstream & blocked:
                    blocked.add(nid)
                    report.skipped.append(nid)
                    completed += 1
                else:
                    runnable.append(nid)

            self._report_progress(ExecutionProgress(
                status=RunStatus.RUNNING,
                current_nodes=runnable,
                nodes_completed=completed,
                nodes_total=total,
                message=f"Executing {', '.join(runnable)}",
            ))

            results = await asyncio.gather(
                *(self.coordinator.execute(nid) for nid in runnable)
            )
            for result in results:
                report.results[result.node_id] = result
                if not result.ok:
                    blocked.add(result.node_id)
            completed += len(runnable)

        report.completed_at = time.time()
        if blocked:
            report.status = RunStatus.FAILED
            first_error = next((r.error for r in report.results.values() if r.error), None)
            self._report_progress(ExecutionProgress(
                status=RunStatus.FAILED,
                nodes_completed=completed,
                nodes_total=total,
                error=str(first_error) if first_error else None,
                message=f"Execution failed: {first_error}",
            ))
        else:
            report.status = RunStatus.COMPLETED
            self._report_progress(ExecutionProgress(
                status=RunStatus.COMPLETED,
                nodes_completed=total,
                nodes_total=total,
                message="Execution complete",
            ))
        logger.info(
            f"Run finished: {len(report.results)} executed, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        )
        return report
