"""
Binding Resolver - Translate node ports into concrete values.

This module defines:
- NO_INPUT / NO_OUTPUT: Sentinels that disable a port binding
- MultiInputMode: How repeated arrivals on an input combine
- OutputParseConfig: Per-port output parse transform settings
- NodeBindingConfig: The binding configuration carried by every node
- BindingResolver: Input and output resolution against graph and store

Input precedence is: "no input" sentinel, variable mapping, graph
connection, configuration default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from agentflow.core.data_types import (
    VariableType,
    default_value_for,
    infer_type_from_port,
    infer_type_from_value,
    stringify,
)
from agentflow.core.errors import NotFoundError
from agentflow.core.output_parsing import ParseMode, parse_output

if TYPE_CHECKING:
    from agentflow.core.graph import Connection, Node, NodeGraph
    from agentflow.core.node_types import NodeType
    from agentflow.core.variables import VariableStore


logger = logging.getLogger(__name__)

NO_INPUT = "__NO_INPUT__"
NO_OUTPUT = "__NO_OUTPUT__"


class MultiInputMode(Enum):
    """How values arriving repeatedly on a connected input combine."""
    OVERRIDE = "override"  # Most recent value
    CONCAT = "concat"      # Text joined with newlines, in arrival order
    JSON = "json"          # Object keyed by "<node_id>.<port>" of the source
    BATCH = "batch"        # Ordered list of every arrival


@dataclass
class OutputParseConfig:
    """Transform applied to an output before it is stored."""
    mode: ParseMode = ParseMode.DEFAULT
    config: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode.value, "config": self.config}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OutputParseConfig:
        return cls(mode=ParseMode(data.get("mode", "default")), config=str(data.get("config", "")))


@dataclass
class NodeBindingConfig:
    """
    Port bindings for a single node.

    Attributes:
        input_mappings: Port -> variable name or NO_INPUT. Absent ports use
            the graph connection, if any.
        output_mappings: Port -> variable name or NO_OUTPUT
        custom_inputs: Extra input port names
        custom_outputs: Extra output port names
        multi_input_mode: Combination rule for repeated arrivals
        output_parse_config: Port -> parse transform
    """
    input_mappings: dict[str, str] = field(default_factory=dict)
    output_mappings: dict[str, str] = field(default_factory=dict)
    custom_inputs: list[str] = field(default_factory=list)
    custom_outputs: list[str] = field(default_factory=list)
    multi_input_mode: MultiInputMode = MultiInputMode.OVERRIDE
    output_parse_config: dict[str, OutputParseConfig] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_mappings": dict(self.input_mappings),
            "output_mappings": dict(self.output_mappings),
            "custom_inputs": list(self.custom_inputs),
            "custom_outputs": list(self.custom_outputs),
            "multi_input_mode": self.multi_input_mode.value,
            "output_parse_config": {
                port: cfg.to_dict() for port, cfg in self.output_parse_config.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeBindingConfig:
        return cls(
            input_mappings=dict(data.get("input_mappings", {})),
            output_mappings=dict(data.get("output_mappings", {})),
            custom_inputs=list(data.get("custom_inputs", [])),
            custom_outputs=list(data.get("custom_outputs", [])),
            multi_input_mode=MultiInputMode(data.get("multi_input_mode", "override")),
            output_parse_config={
                port: OutputParseConfig.from_dict(cfg)
                for port, cfg in data.get("output_parse_config", {}).items()
            },
        )


@dataclass
class Arrival:
    """A value delivered to an input by an upstream execution."""
    source: str  # "<node_id>.<port>"
    value: Any


def merge_arrivals(arrivals: list[Arrival], mode: MultiInputMode) -> Any:
    """Combine buffered arrivals according to a multi-input mode."""
    if not arrivals:
        return None
    if mode is MultiInputMode.CONCAT:
        return "\n".join(stringify(a.value) for a in arrivals)
    if mode is MultiInputMode.JSON:
        merged: dict[str, Any] = {}
        for arrival in arrivals:
            merged[arrival.source] = arrival.value
        return merged
    if mode is MultiInputMode.BATCH:
        return [a.value for a in arrivals]
    return arrivals[-1].value


class BindingResolver:
    """
    Resolves node ports against the graph and the variable store.

    The resolver also buffers values arriving on connected inputs so that
    multi-input modes can combine several upstream executions before the
    downstream node consumes them.
    """

    def __init__(self, graph: NodeGraph, store: VariableStore):
        self.graph = graph
        self.store = store
        # (node_id, port) -> arrivals not yet consumed
        self._arrivals: dict[tuple[str, str], list[Arrival]] = {}

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(
        self,
        node_id: str,
        input_mappings: dict[str, str] | None = None,
        output_mappings: dict[str, str] | None = None,
        custom_inputs: list[str] | None = None,
        custom_outputs: list[str] | None = None,
        multi_input_mode: MultiInputMode | str | None = None,
        output_parse_config: dict[str, OutputParseConfig | dict] | None = None,
    ) -> NodeBindingConfig:
        """
        Update a node's bindings. Given mappings are merged into the
        existing ones; a value of None removes a mapping.

        Raises:
            NotFoundError: If the node or a named port does not exist
        """
        node = self.graph.require_node(node_id)
        bindings = node.bindings

        # Validate everything before mutating anything
        new_inputs = list(bindings.custom_inputs) if custom_inputs is None else list(custom_inputs)
        new_outputs = list(bindings.custom_outputs) if custom_outputs is None else list(custom_outputs)
        valid_inputs = set(node.declared_inputs) | set(new_inputs)
        valid_outputs = set(node.declared_outputs) | set(new_outputs)
        for port in (input_mappings or {}):
            if port not in valid_inputs:
                raise NotFoundError("Input port", f"{node_id}.{port}")
        for port in list(output_mappings or {}) + list(output_parse_config or {}):
            if port not in valid_outputs:
                raise NotFoundError("Output port", f"{node_id}.{port}")
        mode = MultiInputMode(multi_input_mode) if multi_input_mode is not None else None
        parse_configs = {
            port: cfg if isinstance(cfg, OutputParseConfig) else OutputParseConfig.from_dict(cfg)
            for port, cfg in (output_parse_config or {}).items()
        }

        bindings.custom_inputs = new_inputs
        bindings.custom_outputs = new_outputs
        _merge_mappings(bindings.input_mappings, input_mappings)
        _merge_mappings(bindings.output_mappings, output_mappings)
        if mode is not None:
            bindings.multi_input_mode = mode
        bindings.output_parse_config.update(parse_configs)
        return bindings

    def auto_bind_outputs(self, node: Node, node_type: NodeType) -> None:
        """
        Create and map a variable for every output of a new node.

        Control nodes are skipped; their outputs follow the upstream
        variable once connected.
        """
        if node_type.passthrough:
            return
        for index, port in enumerate(node.declared_outputs):
            definition = node_type.get_output(port)
            vtype = (definition.value_type if definition else None) or infer_type_from_port(port)
            name = self.variable_name_for(node, port, primary=index == 0 and vtype.is_textual)
            self._ensure_variable(name, vtype)
            node.bindings.output_mappings[port] = name

    def on_connect(self, connection: Connection, node_type: NodeType | None) -> None:
        """
        Update downstream bindings after a connection is created.

        A variable mapping on the target input would shadow the new
        connection, so it is dropped. Pass-through control nodes map their
        primary output to the upstream port's variable.
        """
        target = self.graph.require_node(connection.target.node_id)
        port = connection.target.port
        mapping = target.bindings.input_mappings.get(port)
        if mapping is not None and mapping != NO_INPUT:
            del target.bindings.input_mappings[port]
        self._arrivals.pop((target.id, port), None)

        if node_type is not None and node_type.passthrough and target.declared_outputs:
            source = self.graph.require_node(connection.source.node_id)
            upstream_var = source.bindings.output_mappings.get(connection.source.port)
            if upstream_var and upstream_var != NO_OUTPUT:
                target.bindings.output_mappings[target.declared_outputs[0]] = upstream_var

    def drop_arrivals(self, node_id: str, port: str) -> None:
        self._arrivals.pop((node_id, port), None)

    def clear_arrivals(self) -> None:
        self._arrivals.clear()

    def forget_node(self, node_id: str) -> None:
        """Drop buffered arrivals for a removed node."""
        for key in [k for k in self._arrivals if k[0] == node_id]:
            del self._arrivals[key]

    @staticmethod
    def variable_name_for(node: Node, port: str, primary: bool = False) -> str:
        """Deterministic variable name for an output port."""
        if primary:
            return node.display_name
        return f"{node.display_name}_{port}"

    def _ensure_variable(self, name: str, vtype: VariableType) -> None:
        if name not in self.store:
            self.store.create(name, vtype, default_value_for(vtype), "Auto-created output variable")

    # ------------------------------------------------------------------
    # Input resolution
    # ------------------------------------------------------------------

    def record_arrival(self, connection: Connection, value: Any) -> None:
        """Buffer a value produced upstream for a connected input."""
        key = (connection.target.node_id, connection.target.port)
        source = f"{connection.source.node_id}.{connection.source.port}"
        self._arrivals.setdefault(key, []).append(Arrival(source, value))

    def pending_arrivals(self, node_id: str, port: str) -> list[Arrival]:
        return list(self._arrivals.get((node_id, port), []))

    async def resolve_input(self, node: Node, port: str) -> Any:
        """
        Effective value of one input port.

        Precedence: NO_INPUT sentinel, variable mapping, graph connection,
        the node's own configuration default. Dangling variable mappings
        resolve to None.
        """
        mapping = node.bindings.input_mappings.get(port)
        if mapping:
            # A mapping shadows the connection; its arrivals are dropped
            self.drop_arrivals(node.id, port)
            if mapping == NO_INPUT:
                return None
            try:
                value, _ = await self.store.read(mapping)
            except NotFoundError:
                logger.warning(f"Input {node.id}.{port} is mapped to missing variable {mapping}")
                return None
            return value

        connection = self.graph.get_input_connection(node.id, port)
        if connection is not None:
            arrivals = self._arrivals.pop((node.id, port), None)
            if arrivals:
                return merge_arrivals(arrivals, node.bindings.multi_input_mode)
            source = self.graph.get_node(connection.source.node_id)
            if source is None:
                return None
            return source.outputs.get(connection.source.port)

        return node.config.get(port)

    async def resolve_inputs(self, node: Node) -> dict[str, Any]:
        """Resolve every declared and custom input of a node."""
        return {port: await self.resolve_input(node, port) for port in node.input_ports}

    # ------------------------------------------------------------------
    # Output resolution
    # ------------------------------------------------------------------

    async def resolve_output(self, node: Node, port: str, raw: Any) -> str | None:
        """
        Store one produced output in its variable.

        Returns the variable written, or None when the output is discarded.

        Raises:
            TypeMismatchError: If the variable is a media type and the value
                is not a media payload
        """
        mapping = node.bindings.output_mappings.get(port)
        if mapping == NO_OUTPUT:
            return None

        parse = node.bindings.output_parse_config.get(port)
        value = parse_output(raw, parse.mode, parse.config) if parse else raw

        if not mapping or mapping not in self.store:
            primary = bool(node.output_ports) and port == node.output_ports[0]
            vtype = infer_type_from_value(value, infer_type_from_port(port))
            name = mapping or self.variable_name_for(node, port, primary=primary and vtype.is_textual)
            if name not in self.store:
                self.store.create(name, vtype, None, "Auto-created output variable")
            node.bindings.output_mappings[port] = name
            mapping = name

        written = await self.store.write(mapping, value)
        return mapping if written else None

    async def resolve_outputs(
        self,
        node: Node,
        outputs: dict[str, Any],
        emitted: set[str] | None = None,
    ) -> dict[str, str]:
        """
        Store every produced output and propagate it downstream.

        Ports listed in emitted already delivered their arrivals while the
        node ran and are only stored. Returns a map of port -> variable
        written.
        """
        written: dict[str, str] = {}
        for port, raw in outputs.items():
            variable = await self.resolve_output(node, port, raw)
            if variable:
                written[port] = variable
            if emitted and port in emitted:
                continue
            for connection in self.graph.get_output_connections(node.id, port):
                self.record_arrival(connection, raw)
        return written


def _merge_mappings(target: dict[str, str], updates: dict[str, str | None] | None) -> None:
    for port, value in (updates or {}).items():
        if value is None:
            target.pop(port, None)
        else:
            target[port] = value
