"""
Workspace Persistence - Export, import, save and load workflows.

This module converts between a live graph and its persisted shape:
- Node: {id, type, x, y, config, connections: {inputs, outputs}}
- Graph: {nodes, connections, bindings, variables, metadata}

and saves workflow documents as JSON files.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from agentflow.core.bindings import NodeBindingConfig
from agentflow.core.data_types import decode_value, encode_value
from agentflow.core.errors import ValidationError
from agentflow.core.graph import Node, NodeGraph
from agentflow.core.variables import VariableStore

if TYPE_CHECKING:
    from agentflow.core.workflow import Workflow


logger = logging.getLogger(__name__)

FORMAT_VERSION = 2

# Workspace storage directory
WORKSPACE_DIR = Path.home() / ".local" / "share" / "agentflow" / "workflows"


def get_workspace_dir() -> Path:
    """Get the workflow storage directory, creating if needed."""
    WORKSPACE_DIR.mkdir(parents=True, exist_ok=True)
    return WORKSPACE_DIR


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def export_node(node: Node) -> dict[str, Any]:
    """Persisted shape of a single node."""
    return {
        "id": node.id,
        "type": node.type_id,
        "x": node.x,
        "y": node.y,
        "config": encode_value(node.config),
        "connections": {
            "inputs": {
                port: {"nodeId": ref.node_id, "outputPort": ref.port}
                for port, ref in node.input_connections.items()
            },
            "outputs": {
                port: [{"nodeId": ref.node_id, "inputPort": ref.port} for ref in refs]
                for port, refs in node.output_connections.items()
            },
        },
    }


def export_graph(graph: NodeGraph) -> dict[str, Any]:
    """Persisted shape of a graph's nodes and connections."""
    return {
        "nodes": [export_node(node) for node in graph.nodes.values()],
        "connections": [
            {
                "id": conn.id,
                "from": {"nodeId": conn.source.node_id, "output": conn.source.port},
                "to": {"nodeId": conn.target.node_id, "input": conn.target.port},
            }
            for conn in graph.connections
        ],
    }


def export_workflow(workflow: Workflow, name: str = "workflow") -> dict[str, Any]:
    """Full workflow document including bindings and variables."""
    data = export_graph(workflow.graph)
    data["bindings"] = {
        node_id: node.bindings.to_dict() for node_id, node in workflow.graph.nodes.items()
    }
    data["variables"] = workflow.variables.export()
    data["metadata"] = {
        "version": FORMAT_VERSION,
        "name": name,
        "workspace_id": workflow.graph.workspace_id,
        "saved_at": datetime.now().isoformat(),
    }
    return data


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def _connection_tuples(data: dict[str, Any]) -> list[tuple[str, str, str, str]]:
    """Connections of a document, from the list or from per-node maps."""
    if "connections" in data:
        return [
            (c["from"]["nodeId"], c["from"]["output"], c["to"]["nodeId"], c["to"]["input"])
            for c in data["connections"]
        ]
    tuples = []
    for node in data.get("nodes", []):
        for port, ref in node.get("connections", {}).get("inputs", {}).items():
            tuples.append((ref["nodeId"], ref["outputPort"], node["id"], port))
    return tuples


def import_graph(graph: NodeGraph, data: dict[str, Any], bindings: dict[str, Any] | None = None) -> None:
    """
    Rebuild a graph from its persisted shape.

    The graph is cleared first. Node ids are preserved and the id counters
    advance past them, so restored ids are never reissued.

    Raises:
        ValidationError: If the document is malformed
        NotFoundError: If it references unknown node types or ports
    """
    if "nodes" not in data:
        raise ValidationError("Invalid workflow document: missing 'nodes'")

    graph.clear()
    for entry in data["nodes"]:
        node = graph.add_node(
            entry["type"],
            decode_value(entry.get("config", {})),
            x=entry.get("x", 0.0),
            y=entry.get("y", 0.0),
            node_id=entry["id"],
        )
        # Merged defaults must not add keys the document did not have
        node.config = decode_value(entry.get("config", {}))
        if bindings and node.id in bindings:
            node.bindings = NodeBindingConfig.from_dict(bindings[node.id])

    for from_id, from_port, to_id, to_port in _connection_tuples(data):
        graph.connect(from_id, from_port, to_id, to_port)


def import_workflow(workflow: Workflow, data: dict[str, Any]) -> None:
    """
    Replace a workflow's graph, bindings and variables with a document.

    The document is first rebuilt into scratch objects, so a failure
    leaves the workflow untouched. On success, waiting nodes are
    abandoned and buffered arrivals dropped.

    Raises:
        ValidationError: If the document is malformed or too new
        NotFoundError: If it references unknown node types or ports
    """
    metadata = data.get("metadata", {})
    version = metadata.get("version", FORMAT_VERSION)
    if version > FORMAT_VERSION:
        raise ValidationError(f"Unsupported workflow version {version}")
    workspace_id = metadata.get("workspace_id", workflow.graph.workspace_id)

    if "variables" in data:
        VariableStore().import_data(data["variables"])
    import_graph(NodeGraph(workflow.graph.registry, workspace_id), data, data.get("bindings"))

    for node_id in workflow.coordinator.waiting_nodes():
        workflow.coordinator.discard(node_id, "Workflow replaced")
    workflow.resolver.clear_arrivals()
    workflow.graph.workspace_id = workspace_id
    if "variables" in data:
        workflow.variables.import_data(data["variables"], replace=True)
    import_graph(workflow.graph, data, data.get("bindings"))
    logger.info(f"Imported workflow with {len(workflow.graph)} nodes")


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def save_workflow(
    workflow: Workflow,
    path: Path | None = None,
    name: str = "workflow",
) -> Path:
    """
    Save a workflow to disk.

    Args:
        workflow: The workflow to save
        path: Optional specific path, otherwise uses the default location
        name: Workflow name (used for filename if path not specified)

    Returns:
        Path where the workflow was saved
    """
    data = export_workflow(workflow, name)

    if path is None:
        path = get_workspace_dir() / f"{name}.json"

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    return path


def load_workflow_file(path: Path) -> dict[str, Any]:
    """
    Load a workflow document from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the format is invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Workflow not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Failed to parse workflow: {path}: {e}") from e

    if not isinstance(data, dict) or "nodes" not in data:
        raise ValidationError(f"Invalid workflow format: {path}")

    return data


def list_workflows() -> list[dict[str, Any]]:
    """
    List all saved workflows.

    Returns:
        List of metadata dicts with 'name', 'path', 'saved_at', 'node_count'
    """
    workflows = []
    for path in get_workspace_dir().glob("*.json"):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.debug(f"Skipping unreadable workflow {path}")
            continue
        metadata = data.get("metadata", {})
        workflows.append({
            "name": metadata.get("name", path.stem),
            "path": path,
            "saved_at": metadata.get("saved_at", ""),
            "node_count": len(data.get("nodes", [])),
        })

    # Sort by most recent
    workflows.sort(key=lambda w: w.get("saved_at", ""), reverse=True)
    return workflows
