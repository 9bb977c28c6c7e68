"""
Workflow Validation - Static checks run before a whole-graph execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from agentflow.core.bindings import NO_INPUT
from agentflow.core.graph import NodeGraph


@dataclass
class ValidationReport:
    """Errors block a run; warnings are informational."""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_workflow(graph: NodeGraph) -> ValidationReport:
    """
    Check a graph for problems that would prevent a sensible run.

    Reports an empty graph, missing start nodes, cycles, unknown node
    types and per-type configuration problems as errors; isolated nodes
    in a multi-node graph as warnings.
    """
    report = ValidationReport()
    if len(graph) == 0:
        report.errors.append("Workflow has no nodes")
        return report

    if not graph.start_nodes():
        report.errors.append("Workflow has no start node (every node has an incoming connection)")

    for cycle in graph.find_cycles():
        report.errors.append(f"Cycle detected: {' -> '.join(cycle + cycle[:1])}")

    if len(graph) > 1:
        for node_id in graph.isolated_nodes():
            report.warnings.append(f"Node {node_id} is not connected to any other node")

    for node_id, node in graph.nodes.items():
        node_type = graph.registry.get(node.type_id)
        if node_type is None:
            report.errors.append(f"Node {node_id} has unknown type {node.type_id}")
            continue
        bound = set(node.input_connections) | {
            port for port, mapping in node.bindings.input_mappings.items() if mapping != NO_INPUT
        }
        for problem in node_type.validate_config(node.config, bound):
            report.errors.append(f"{node_id}: {problem}")

    return report
