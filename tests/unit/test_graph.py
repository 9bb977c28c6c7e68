"""
Tests for the graph module.
"""

import pytest

from agentflow.core.errors import DuplicatePortTargetError, GraphCycleError, NotFoundError
from agentflow.core.graph import Connection, NodeGraph, NodeStatus, PortRef
from agentflow.core.node_types import (
    InputDefinition,
    NodeCategory,
    NodeRegistry,
    NodeType,
    OutputDefinition,
    ParameterDefinition,
)


@pytest.fixture
def graph(registry):
    return NodeGraph(registry)


class TestConnection:
    """Tests for Connection dataclass."""

    def test_create_builds_deterministic_id(self):
        conn = Connection.create("WS1_A1", "out", "WS1_B1", "in")
        assert conn.id == "WS1_A1-out-WS1_B1-in"
        assert conn.source == PortRef("WS1_A1", "out")
        assert conn.target == PortRef("WS1_B1", "in")


class TestNodeIds:
    """Tests for node id allocation."""

    def test_ids_use_workspace_and_type_prefix(self, graph):
        node = graph.add_node("text-input")
        assert node.id == "WS1_TextInput1"
        assert node.display_name == "TextInput1"

    def test_counters_are_per_type(self, graph):
        graph.add_node("text-input")
        second = graph.add_node("text-input")
        chat = graph.add_node("ai-chat")
        assert second.id == "WS1_TextInput2"
        assert chat.id == "WS1_AiChat1"

    def test_ids_are_never_reused(self, graph):
        first = graph.add_node("text-input")
        graph.remove_node(first.id)
        again = graph.add_node("text-input")
        assert again.id == "WS1_TextInput2"

    def test_workspace_id_in_prefix(self, registry):
        graph = NodeGraph(registry, workspace_id=3)
        assert graph.add_node("delay").id == "WS3_Delay1"

    def test_restored_id_advances_counter(self, graph):
        graph.add_node("text-input", node_id="WS1_TextInput7")
        assert graph.add_node("text-input").id == "WS1_TextInput8"

    def test_restoring_existing_id_fails(self, graph):
        node = graph.add_node("text-input")
        with pytest.raises(ValueError):
            graph.add_node("text-input", node_id=node.id)

    def test_unknown_type(self, graph):
        with pytest.raises(NotFoundError):
            graph.add_node("no-such-node")


class TestNodeGraph:
    """Tests for NodeGraph."""

    def test_defaults_merged_with_config(self, graph):
        node = graph.add_node("text-transform", {"operation": "uppercase"})
        assert node.config["operation"] == "uppercase"
        assert node.config["regex"] is False
        assert node.status is NodeStatus.IDLE

    def test_ports_come_from_type(self, graph):
        node = graph.add_node("ai-chat-window")
        assert node.input_ports == ["prompt", "context"]
        assert node.output_ports == ["response", "conversation"]

    def test_connect(self, graph):
        a = graph.add_node("text-input")
        b = graph.add_node("text-transform")
        conn = graph.connect(a.id, "text", b.id, "text")

        assert graph.connections == [conn]
        assert b.input_connections["text"] == PortRef(a.id, "text")
        assert a.output_connections["text"] == [PortRef(b.id, "text")]
        assert graph.get_input_connection(b.id, "text") == conn

    def test_connect_replaces_existing_input(self, graph):
        a = graph.add_node("text-input")
        b = graph.add_node("text-input")
        target = graph.add_node("text-transform")
        graph.connect(a.id, "text", target.id, "text")
        newer = graph.connect(b.id, "text", target.id, "text")

        assert graph.connections == [newer]
        assert "text" not in a.output_connections

    def test_duplicate_connection(self, graph):
        a = graph.add_node("text-input")
        b = graph.add_node("text-transform")
        graph.connect(a.id, "text", b.id, "text")
        with pytest.raises(DuplicatePortTargetError):
            graph.connect(a.id, "text", b.id, "text")

    def test_connect_unknown_port(self, graph):
        a = graph.add_node("text-input")
        b = graph.add_node("text-transform")
        with pytest.raises(NotFoundError):
            graph.connect(a.id, "missing", b.id, "text")
        with pytest.raises(NotFoundError):
            graph.connect(a.id, "text", b.id, "missing")

    def test_fan_out(self, graph):
        a = graph.add_node("text-input")
        b = graph.add_node("text-transform")
        c = graph.add_node("text-splitter")
        graph.connect(a.id, "text", b.id, "text")
        graph.connect(a.id, "text", c.id, "text")
        assert len(graph.get_output_connections(a.id, "text")) == 2

    def test_disconnect(self, graph):
        a = graph.add_node("text-input")
        b = graph.add_node("text-transform")
        conn = graph.connect(a.id, "text", b.id, "text")
        graph.disconnect(conn.id)

        assert graph.connections == []
        assert b.input_connections == {}
        assert a.output_connections == {}
        with pytest.raises(NotFoundError):
            graph.disconnect(conn.id)

    def test_remove_node_removes_connections(self, graph):
        a = graph.add_node("text-input")
        b = graph.add_node("text-transform")
        c = graph.add_node("text-splitter")
        graph.connect(a.id, "text", b.id, "text")
        graph.connect(b.id, "text", c.id, "text")

        graph.remove_node(b.id)

        assert b.id not in graph
        assert graph.connections == []
        assert a.output_connections == {}
        assert c.input_connections == {}

    def test_remove_node_runs_cleanup_hook(self):
        cleaned = []
        registry = NodeRegistry()
        registry.register(NodeType(
            id="timer",
            name="Timer",
            category=NodeCategory.CONTROL,
            cleanup=lambda node: cleaned.append(node.id),
        ))
        graph = NodeGraph(registry)
        node = graph.add_node("timer")
        graph.remove_node(node.id)
        assert cleaned == [node.id]

    def test_failing_cleanup_hook_does_not_block_removal(self):
        def explode(node):
            raise RuntimeError("boom")

        registry = NodeRegistry()
        registry.register(NodeType(id="timer", name="Timer", category=NodeCategory.CONTROL, cleanup=explode))
        graph = NodeGraph(registry)
        node = graph.add_node("timer")
        graph.remove_node(node.id)
        assert len(graph) == 0

    def test_remove_missing_node(self, graph):
        with pytest.raises(NotFoundError):
            graph.remove_node("WS1_Nothing1")


class TestGraphAnalysis:
    """Tests for ordering and dependency queries."""

    @pytest.fixture
    def diamond(self):
        registry = NodeRegistry()
        registry.register(NodeType(
            id="step",
            name="Step",
            category=NodeCategory.CONTROL,
            inputs=[InputDefinition("a"), InputDefinition("b")],
            outputs=[OutputDefinition("out")],
        ))
        graph = NodeGraph(registry)
        top = graph.add_node("step")
        left = graph.add_node("step")
        right = graph.add_node("step")
        bottom = graph.add_node("step")
        graph.connect(top.id, "out", left.id, "a")
        graph.connect(top.id, "out", right.id, "a")
        graph.connect(left.id, "out", bottom.id, "a")
        graph.connect(right.id, "out", bottom.id, "b")
        return graph, top, left, right, bottom

    def test_execution_batches(self, diamond):
        graph, top, left, right, bottom = diamond
        batches = graph.execution_batches()
        assert batches[0] == [top.id]
        assert sorted(batches[1]) == sorted([left.id, right.id])
        assert batches[2] == [bottom.id]

    def test_execution_order_respects_dependencies(self, diamond):
        graph, top, left, right, bottom = diamond
        order = graph.execution_order()
        assert order.index(top.id) < order.index(left.id) < order.index(bottom.id)
        assert order.index(right.id) < order.index(bottom.id)

    def test_upstream_and_downstream(self, diamond):
        graph, top, left, right, bottom = diamond
        assert graph.get_upstream_nodes(bottom.id) == {top.id, left.id, right.id}
        assert graph.get_downstream_nodes(left.id) == {bottom.id}
        assert graph.get_upstream_nodes(top.id) == set()

    def test_start_and_isolated_nodes(self, diamond):
        graph, top, *_ = diamond
        lonely = graph.add_node("step")
        assert set(graph.start_nodes()) == {top.id, lonely.id}
        assert graph.isolated_nodes() == [lonely.id]

    def test_cycle_detection(self, diamond):
        graph, top, left, right, bottom = diamond
        graph.connect(bottom.id, "out", top.id, "a")

        with pytest.raises(GraphCycleError):
            graph.execution_batches()
        cycles = graph.find_cycles()
        assert cycles
        assert top.id in cycles[0]

    def test_self_loop_is_a_cycle(self, diamond):
        graph, top, *_ = diamond
        graph.connect(top.id, "out", top.id, "b")
        with pytest.raises(GraphCycleError):
            graph.execution_batches()
        assert [top.id] in graph.find_cycles()

    def test_clear_keeps_counters(self, graph):
        graph.add_node("text-input")
        graph.clear()
        assert len(graph) == 0
        assert graph.add_node("text-input").id == "WS1_TextInput2"


class TestNodeRegistry:

    def test_lookup(self, registry):
        assert "ai-chat" in registry
        assert registry.require("ai-chat").id_prefix == "AiChat"
        assert registry.get("nope") is None
        with pytest.raises(NotFoundError):
            registry.require("nope")

    def test_iteration_covers_every_category(self, registry):
        categories = {node_type.category for node_type in registry}
        assert len(registry) == len(list(registry))
        assert {NodeCategory.AI, NodeCategory.CONTROL, NodeCategory.TEXT} <= categories

    def test_enum_defaults_to_first_choice(self):
        param = ParameterDefinition.enum("mode", "Mode", [("a", "A"), ("b", "B")])
        assert param.default == "a"
        assert param.choices == [("a", "A"), ("b", "B")]
