"""
Workflow - The facade a UI or walker drives.

A Workflow owns one graph, one variable store, the binding resolver and
the execution coordinator, and keeps them consistent: node creation
auto-binds outputs, connections update downstream bindings and node
removal abandons any pending manual input.
"""

from __future__ import annotations

import logging
from typing import Any

from agentflow.core.bindings import BindingResolver, MultiInputMode, NodeBindingConfig, OutputParseConfig
from agentflow.core.execution import ExecutionCoordinator, ExecutionResult, RunReport, WorkflowRunner
from agentflow.core.graph import Connection, Node, NodeGraph
from agentflow.core.interaction import ConfirmationHandler
from agentflow.core.node_types import NodeRegistry
from agentflow.core.templates import TemplateResolver
from agentflow.core.validation import ValidationReport, validate_workflow
from agentflow.core.variables import VariableStore
from agentflow.core import workspace


logger = logging.getLogger(__name__)


class Workflow:
    """
    A node graph together with its variables and execution machinery.

    Example:
        workflow = Workflow()
        text = workflow.add_node("text-input", {"text": "hello"})
        upper = workflow.add_node("text-transform", {"operation": "uppercase"})
        workflow.connect(text.id, "text", upper.id, "text")
        await workflow.execute(text.id)
        result = await workflow.execute(upper.id)
    """

    def __init__(
        self,
        registry: NodeRegistry | None = None,
        ai_client: Any = None,
        confirmation: ConfirmationHandler | None = None,
        templates: TemplateResolver | None = None,
        workspace_id: int = 1,
        auto_bind: bool = True,
        http_timeout: float = 30.0,
    ):
        self.graph = NodeGraph(registry, workspace_id=workspace_id)
        self.variables = VariableStore(confirmation)
        self.resolver = BindingResolver(self.graph, self.variables)
        self.coordinator = ExecutionCoordinator(
            self.graph,
            self.variables,
            self.resolver,
            ai_client=ai_client,
            confirmation=confirmation,
            templates=templates,
            http_timeout=http_timeout,
        )
        self.auto_bind = auto_bind

    @property
    def registry(self) -> NodeRegistry:
        return self.graph.registry

    # --- Graph editing ---

    def add_node(
        self,
        type_id: str,
        config: dict[str, Any] | None = None,
        x: float = 0.0,
        y: float = 0.0,
    ) -> Node:
        """Create a node and bind its outputs to fresh variables."""
        node = self.graph.add_node(type_id, config, x, y)
        if self.auto_bind:
            try:
                self.resolver.auto_bind_outputs(node, self.graph.registry.require(type_id))
            except Exception:
                self.graph.remove_node(node.id)
                raise
        return node

    def remove_node(self, node_id: str) -> Node:
        """Remove a node, abandoning it first if it waits for input."""
        self.graph.require_node(node_id)
        self.coordinator.discard(node_id)
        node = self.graph.remove_node(node_id)
        self.resolver.forget_node(node_id)
        return node

    def connect(self, from_id: str, from_port: str, to_id: str, to_port: str) -> Connection:
        """Connect two ports and update the downstream bindings."""
        connection = self.graph.connect(from_id, from_port, to_id, to_port)
        self.resolver.on_connect(connection, self.graph.node_type(to_id))
        return connection

    def disconnect(self, connection_id: str) -> Connection:
        """Remove a connection along with values still buffered on it."""
        connection = self.graph.disconnect(connection_id)
        self.resolver.drop_arrivals(connection.target.node_id, connection.target.port)
        return connection

    def configure_bindings(
        self,
        node_id: str,
        input_mappings: dict[str, str] | None = None,
        output_mappings: dict[str, str] | None = None,
        custom_inputs: list[str] | None = None,
        custom_outputs: list[str] | None = None,
        multi_input_mode: MultiInputMode | str | None = None,
        output_parse_config: dict[str, OutputParseConfig | dict] | None = None,
    ) -> NodeBindingConfig:
        """Update a node's port bindings."""
        return self.resolver.configure(
            node_id,
            input_mappings=input_mappings,
            output_mappings=output_mappings,
            custom_inputs=custom_inputs,
            custom_outputs=custom_outputs,
            multi_input_mode=multi_input_mode,
            output_parse_config=output_parse_config,
        )

    # --- Execution ---

    async def execute(self, node_id: str) -> ExecutionResult:
        """Execute a single node."""
        return await self.coordinator.execute(node_id)

    def resume(self, node_id: str, value: Any = None) -> bool:
        """Resume a node waiting for manual input."""
        return self.coordinator.resume(node_id, value)

    async def run(self, target_nodes: list[str] | None = None, on_progress=None) -> RunReport:
        """Execute the whole graph in dependency order."""
        return await WorkflowRunner(self.coordinator, on_progress).run(target_nodes)

    def validate(self) -> ValidationReport:
        return validate_workflow(self.graph)

    # --- Serialization ---

    def export(self, name: str = "workflow") -> dict[str, Any]:
        """Export the graph, bindings and variables."""
        return workspace.export_workflow(self, name)

    def import_data(self, data: dict[str, Any]) -> None:
        """Replace this workflow's contents with an exported document."""
        workspace.import_workflow(self, data)

    def __len__(self) -> int:
        return len(self.graph)
