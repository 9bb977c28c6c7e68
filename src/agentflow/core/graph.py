"""
Node graph - nodes, connections and the walks over them.

- Node: a configured unit of work with ports, status and last values
- Connection: an edge from one output port to one input port; an input
  port has at most one
- NodeGraph: owns both, hands out node ids and keeps them consistent
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agentflow.core.bindings import NodeBindingConfig
from agentflow.core.errors import (
    DuplicatePortTargetError,
    GraphCycleError,
    NotFoundError,
)
from agentflow.core.node_types import NodeRegistry, NodeType


logger = logging.getLogger(__name__)


def make_connection_id(from_node: str, from_port: str, to_node: str, to_port: str) -> str:
    """Deterministic connection id for a (source, target) port pair."""
    return f"{from_node}-{from_port}-{to_node}-{to_port}"


@dataclass(frozen=True)
class PortRef:
    """Reference to a port on a node."""
    node_id: str
    port: str


@dataclass(frozen=True)
class Connection:
    """
    Directed edge from an output port to an input port.

    Connects an output port of one node to an input port of another.
    """
    id: str
    source: PortRef
    target: PortRef

    @classmethod
    def create(
        cls,
        source_node: str,
        source_output: str,
        target_node: str,
        target_input: str,
    ) -> Connection:
        """Build a connection with its derived id."""
        return cls(
            id=make_connection_id(source_node, source_output, target_node, target_input),
            source=PortRef(source_node, source_output),
            target=PortRef(target_node, target_input),
        )


class NodeStatus(Enum):
    """Execution status of a node."""
    IDLE = "idle"
    EXECUTING = "executing"
    WAITING = "waiting"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_running(self) -> bool:
        return self in (NodeStatus.EXECUTING, NodeStatus.WAITING)


@dataclass
class Node:
    """
    A single node in the workflow graph.

    Nodes have:
    - A unique, never reused ID
    - A type (references a NodeType in the registry)
    - Position on the canvas
    - Configuration values
    - Status plus the last resolved inputs and produced outputs
    - Connection maps kept in sync by the graph
    - Port bindings
    """
    id: str
    type_id: str
    x: float = 0.0
    y: float = 0.0
    config: dict[str, Any] = field(default_factory=dict)

    declared_inputs: list[str] = field(default_factory=list)
    declared_outputs: list[str] = field(default_factory=list)
    bindings: NodeBindingConfig = field(default_factory=NodeBindingConfig)

    # Runtime state (not serialized)
    status: NodeStatus = NodeStatus.IDLE
    inputs: dict[str, Any] = field(default_factory=dict, repr=False)
    outputs: dict[str, Any] = field(default_factory=dict, repr=False)
    error: str | None = None

    input_connections: dict[str, PortRef] = field(default_factory=dict, repr=False)
    output_connections: dict[str, list[PortRef]] = field(default_factory=dict, repr=False)

    @property
    def display_name(self) -> str:
        """Name shown to users, e.g. "TextInput2"."""
        return self.id.split("_", 1)[1] if "_" in self.id else self.id

    @property
    def input_ports(self) -> list[str]:
        """Declared plus custom input port names."""
        return self.declared_inputs + [p for p in self.bindings.custom_inputs if p not in self.declared_inputs]

    @property
    def output_ports(self) -> list[str]:
        """Declared plus custom output port names."""
        return self.declared_outputs + [p for p in self.bindings.custom_outputs if p not in self.declared_outputs]

    def set_config(self, name: str, value: Any) -> None:
        self.config[name] = value

    def get_config(self, name: str, default: Any = None) -> Any:
        return self.config.get(name, default)


class NodeGraph:
    """
    The complete node graph for a workflow.

    Holds nodes and connections, allocates node ids and keeps every
    connection referentially valid. The graph never schedules execution;
    walkers use connections_into(), connections_out_of() and
    execution_order().
    """

    def __init__(self, registry: NodeRegistry | None = None, workspace_id: int = 1):
        self.registry = registry if registry is not None else NodeRegistry.instance()
        self.workspace_id = workspace_id
        self._nodes: dict[str, Node] = {}
        self._connections: dict[str, Connection] = {}
        self._counters: dict[str, int] = defaultdict(int)

    # --- Node operations ---

    @property
    def nodes(self) -> dict[str, Node]:
        """Snapshot of the nodes keyed by id."""
        return self._nodes.copy()

    def allocate_id(self, node_type: NodeType) -> str:
        """Next unused id for a node type. Ids are never reused."""
        prefix = node_type.id_prefix
        while True:
            self._counters[prefix] += 1
            node_id = f"WS{self.workspace_id}_{prefix}{self._counters[prefix]}"
            if node_id not in self._nodes:
                return node_id

    def add_node(
        self,
        type_id: str,
        config: dict[str, Any] | None = None,
        x: float = 0.0,
        y: float = 0.0,
        node_id: str | None = None,
    ) -> Node:
        """
        Create a node of the given type and add it to the graph.

        The type's default configuration is merged with the overrides.
        Passing node_id restores a node with a known id.

        Raises:
            NotFoundError: If the type is not registered
            ValueError: If node_id is already in use
        """
        node_type = self.registry.require(type_id)
        if node_id is None:
            node_id = self.allocate_id(node_type)
        elif node_id in self._nodes:
            raise ValueError(f"Node id already in use: {node_id}")
        else:
            self._reserve_id(node_type, node_id)

        merged = node_type.get_default_parameters()
        merged.update(config or {})
        node = Node(
            id=node_id,
            type_id=type_id,
            x=x,
            y=y,
            config=merged,
            declared_inputs=node_type.input_names,
            declared_outputs=node_type.output_names,
        )
        self._nodes[node_id] = node
        logger.debug(f"Added node {node_id}")
        return node

    def _reserve_id(self, node_type: NodeType, node_id: str) -> None:
        """Advance the counter past a restored id so it is never reissued."""
        match = re.fullmatch(rf"WS\d+_{re.escape(node_type.id_prefix)}(\d+)", node_id)
        if match:
            prefix = node_type.id_prefix
            self._counters[prefix] = max(self._counters[prefix], int(match.group(1)))

    def remove_node(self, node_id: str) -> Node:
        """
        Remove a node and every connection touching it.

        The node type's cleanup hook runs first.

        Raises:
            NotFoundError: If the node does not exist
        """
        node = self.require_node(node_id)
        node_type = self.registry.get(node.type_id)
        if node_type and node_type.cleanup:
            try:
                node_type.cleanup(node)
            except Exception:
                logger.exception(f"Cleanup hook failed for {node_id}")

        for conn in self.connections_into(node_id) + self.connections_out_of(node_id):
            self._unlink(conn)
        del self._nodes[node_id]
        logger.debug(f"Removed node {node_id}")
        return node

    def get_node(self, node_id: str) -> Node | None:
        """The node with this id, or None."""
        return self._nodes.get(node_id)

    def require_node(self, node_id: str) -> Node:
        """Get a node by ID or raise NotFoundError."""
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError("Node", node_id)
        return node

    def node_type(self, node_id: str) -> NodeType:
        return self.registry.require(self.require_node(node_id).type_id)

    # --- Connection operations ---

    @property
    def connections(self) -> list[Connection]:
        """Snapshot of every connection."""
        return list(self._connections.values())

    def get_connection(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def connect(
        self,
        from_id: str,
        from_port: str,
        to_id: str,
        to_port: str,
    ) -> Connection:
        """
        Connect an output port to an input port.

        Any connection already feeding the input is replaced.

        Raises:
            NotFoundError: If a node or port does not exist
            DuplicatePortTargetError: If this exact connection exists
        """
        source = self.require_node(from_id)
        target = self.require_node(to_id)
        if from_port not in source.output_ports:
            raise NotFoundError("Output port", f"{from_id}.{from_port}")
        if to_port not in target.input_ports:
            raise NotFoundError("Input port", f"{to_id}.{to_port}")

        connection = Connection.create(from_id, from_port, to_id, to_port)
        if connection.id in self._connections:
            raise DuplicatePortTargetError(connection.id)

        existing = self.get_input_connection(to_id, to_port)
        if existing is not None:
            logger.debug(f"Replacing connection {existing.id}")
            self._unlink(existing)

        self._connections[connection.id] = connection
        source.output_connections.setdefault(from_port, []).append(connection.target)
        target.input_connections[to_port] = connection.source
        return connection

    def disconnect(self, connection_id: str) -> Connection:
        """
        Remove a connection by ID.

        Raises:
            NotFoundError: If the connection does not exist
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            raise NotFoundError("Connection", connection_id)
        self._unlink(connection)
        return connection

    def _unlink(self, connection: Connection) -> None:
        self._connections.pop(connection.id, None)
        source = self._nodes.get(connection.source.node_id)
        if source:
            targets = source.output_connections.get(connection.source.port, [])
            if connection.target in targets:
                targets.remove(connection.target)
            if not targets:
                source.output_connections.pop(connection.source.port, None)
        target = self._nodes.get(connection.target.node_id)
        if target and target.input_connections.get(connection.target.port) == connection.source:
            del target.input_connections[connection.target.port]

    def connections_into(self, node_id: str) -> list[Connection]:
        """All connections whose target is the node."""
        return [c for c in self._connections.values() if c.target.node_id == node_id]

    def connections_out_of(self, node_id: str) -> list[Connection]:
        """All connections whose source is the node."""
        return [c for c in self._connections.values() if c.source.node_id == node_id]

    def get_input_connection(self, node_id: str, input_name: str) -> Connection | None:
        """The single connection into an input port, if any."""
        for conn in self._connections.values():
            if conn.target.node_id == node_id and conn.target.port == input_name:
                return conn
        return None

    def get_output_connections(self, node_id: str, output_name: str) -> list[Connection]:
        """Connections leaving one output port, in creation order."""
        return [
            conn for conn in self._connections.values()
            if conn.source.node_id == node_id and conn.source.port == output_name
        ]

    # --- Graph analysis ---

    def start_nodes(self) -> list[str]:
        """Nodes with no incoming connections."""
        targets = {c.target.node_id for c in self._connections.values()}
        return [nid for nid in self._nodes if nid not in targets]

    def isolated_nodes(self) -> list[str]:
        """Nodes with no connections at all."""
        linked = set()
        for conn in self._connections.values():
            linked.add(conn.source.node_id)
            linked.add(conn.target.node_id)
        return [nid for nid in self._nodes if nid not in linked]

    def execution_batches(self) -> list[list[str]]:
        """
        Group nodes into batches that can run concurrently.

        Every node appears in a later batch than all of its upstream
        producers.

        Raises:
            GraphCycleError: If the graph contains a cycle
        """
        dependencies: dict[str, set[str]] = {nid: set() for nid in self._nodes}
        for conn in self._connections.values():
            if conn.source.node_id != conn.target.node_id:
                dependencies[conn.target.node_id].add(conn.source.node_id)
            else:
                raise GraphCycleError([conn.source.node_id])

        # Kahn's algorithm, one layer at a time
        batches: list[list[str]] = []
        remaining = dict(dependencies)
        while remaining:
            ready = [nid for nid, deps in remaining.items() if not deps]
            if not ready:
                raise GraphCycleError(sorted(remaining))
            batches.append(ready)
            for nid in ready:
                del remaining[nid]
            for deps in remaining.values():
                deps.difference_update(ready)
        return batches

    def execution_order(self) -> list[str]:
        """Nodes in topological order."""
        return [nid for batch in self.execution_batches() for nid in batch]

    def find_cycles(self) -> list[list[str]]:
        """Return each distinct cycle found by depth-first search."""
        adjacency: dict[str, list[str]] = {nid: [] for nid in self._nodes}
        for conn in self._connections.values():
            adjacency[conn.source.node_id].append(conn.target.node_id)

        cycles: list[list[str]] = []
        seen_cycles: set[frozenset[str]] = set()
        visited: set[str] = set()

        def visit(node_id: str, path: list[str]) -> None:
            if node_id in path:
                cycle = path[path.index(node_id):]
                key = frozenset(cycle)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(cycle)
                return
            if node_id in visited:
                return
            visited.add(node_id)
            for nxt in adjacency[node_id]:
                visit(nxt, path + [node_id])

        for nid in self._nodes:
            visit(nid, [])
        return cycles

    def get_upstream_nodes(self, node_id: str) -> set[str]:
        """Ids a node transitively consumes from."""
        upstream: set[str] = set()
        to_visit = [node_id]
        while to_visit:
            current = to_visit.pop()
            for conn in self.connections_into(current):
                source_id = conn.source.node_id
                if source_id not in upstream:
                    upstream.add(source_id)
                    to_visit.append(source_id)
        return upstream

    def get_downstream_nodes(self, node_id: str) -> set[str]:
        """Ids reachable by following connections forward from a node."""
        downstream: set[str] = set()
        to_visit = [node_id]
        while to_visit:
            current = to_visit.pop()
            for conn in self.connections_out_of(current):
                target_id = conn.target.node_id
                if target_id not in downstream:
                    downstream.add(target_id)
                    to_visit.append(target_id)
        return downstream

    # --- Utility ---

    def clear(self) -> None:
        """Remove all nodes and connections. Id counters are kept."""
        self._nodes.clear()
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        """True if the id names a node in this graph."""
        return node_id in self._nodes
