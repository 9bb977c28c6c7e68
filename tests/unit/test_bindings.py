"""
Tests for port binding resolution.
"""

import pytest

from agentflow.core.bindings import (
    NO_INPUT,
    NO_OUTPUT,
    Arrival,
    MultiInputMode,
    NodeBindingConfig,
    OutputParseConfig,
    merge_arrivals,
)
from agentflow.core.data_types import VariableType
from agentflow.core.errors import NotFoundError
from agentflow.core.output_parsing import ParseMode
from agentflow.core.workflow import Workflow


class TestAutoBinding:
    """Tests for variables created alongside new nodes."""

    def test_primary_text_output_uses_display_name(self, workflow):
        node = workflow.add_node("text-input")
        assert node.bindings.output_mappings == {"text": "TextInput1"}
        variable = workflow.variables.get("TextInput1")
        assert variable.type is VariableType.STRING
        assert variable.value == ""

    def test_secondary_outputs_are_suffixed(self, workflow):
        node = workflow.add_node("ai-chat-window")
        assert node.bindings.output_mappings == {
            "response": "AiChatWindow1",
            "conversation": "AiChatWindow1_conversation",
        }
        assert workflow.variables.get("AiChatWindow1_conversation").type is VariableType.ARRAY

    def test_non_text_primary_output_is_suffixed(self, workflow):
        node = workflow.add_node("ai-image-generation")
        assert node.bindings.output_mappings["images"] == "AiImageGeneration1_images"
        assert workflow.variables.get("AiImageGeneration1_images").type is VariableType.IMAGE

    def test_control_nodes_are_not_bound(self, workflow):
        node = workflow.add_node("delay")
        assert node.bindings.output_mappings == {}
        assert len(workflow.variables) == 0

    def test_existing_variable_is_reused(self, workflow):
        workflow.variables.create("TextInput1", VariableType.STRING, "keep me")
        workflow.add_node("text-input")
        assert workflow.variables.get("TextInput1").value == "keep me"

    def test_auto_bind_disabled(self, registry):
        workflow = Workflow(registry=registry, auto_bind=False)
        node = workflow.add_node("text-input")
        assert node.bindings.output_mappings == {}
        assert len(workflow.variables) == 0

    @pytest.mark.asyncio
    async def test_unbound_output_creates_variable_on_first_write(self, registry):
        workflow = Workflow(registry=registry, auto_bind=False)
        node = workflow.add_node("text-input", {"text": "hello"})
        await workflow.execute(node.id)
        assert node.bindings.output_mappings["text"] == "TextInput1"
        assert workflow.variables.get("TextInput1").value == "hello"


class TestInputPrecedence:
    """Tests for resolving input ports."""

    @pytest.mark.asyncio
    async def test_config_fallback(self, workflow):
        node = workflow.add_node("text-transform", {"text": "from config"})
        assert await workflow.resolver.resolve_input(node, "text") == "from config"

    @pytest.mark.asyncio
    async def test_connection_beats_config(self, workflow):
        source = workflow.add_node("text-input", {"text": "upstream"})
        target = workflow.add_node("text-transform", {"text": "from config"})
        workflow.connect(source.id, "text", target.id, "text")
        await workflow.execute(source.id)
        assert await workflow.resolver.resolve_input(target, "text") == "upstream"

    @pytest.mark.asyncio
    async def test_connection_without_arrivals_reads_last_output(self, workflow):
        source = workflow.add_node("text-input", {"text": "upstream"})
        target = workflow.add_node("text-transform")
        workflow.connect(source.id, "text", target.id, "text")
        await workflow.execute(source.id)

        await workflow.resolver.resolve_input(target, "text")
        assert await workflow.resolver.resolve_input(target, "text") == "upstream"

    @pytest.mark.asyncio
    async def test_mapping_beats_connection(self, workflow):
        source = workflow.add_node("text-input", {"text": "upstream"})
        target = workflow.add_node("text-transform")
        workflow.connect(source.id, "text", target.id, "text")
        await workflow.execute(source.id)
        workflow.variables.create("topic", VariableType.STRING, "mapped")
        workflow.configure_bindings(target.id, input_mappings={"text": "topic"})

        assert await workflow.resolver.resolve_input(target, "text") == "mapped"

    @pytest.mark.asyncio
    async def test_no_input_beats_everything(self, workflow):
        source = workflow.add_node("text-input", {"text": "upstream"})
        target = workflow.add_node("text-transform", {"text": "from config"})
        workflow.connect(source.id, "text", target.id, "text")
        await workflow.execute(source.id)
        workflow.configure_bindings(target.id, input_mappings={"text": NO_INPUT})

        assert await workflow.resolver.resolve_input(target, "text") is None

    @pytest.mark.asyncio
    async def test_dangling_mapping_resolves_to_none(self, workflow):
        node = workflow.add_node("text-transform", {"text": "from config"})
        workflow.configure_bindings(node.id, input_mappings={"text": "ghost"})
        assert await workflow.resolver.resolve_input(node, "text") is None

    @pytest.mark.asyncio
    async def test_custom_input(self, workflow):
        node = workflow.add_node("text-transform")
        workflow.variables.create("extra_value", VariableType.NUMBER, 7)
        workflow.configure_bindings(
            node.id,
            custom_inputs=["extra"],
            input_mappings={"extra": "extra_value"},
        )
        inputs = await workflow.resolver.resolve_inputs(node)
        assert inputs["extra"] == 7
        assert "text" in inputs


class TestConnectBindings:
    """Tests for binding updates when ports are connected."""

    def test_connect_drops_shadowing_mapping(self, workflow):
        source = workflow.add_node("text-input")
        target = workflow.add_node("text-transform")
        workflow.variables.create("topic", VariableType.STRING)
        workflow.configure_bindings(target.id, input_mappings={"text": "topic"})

        workflow.connect(source.id, "text", target.id, "text")

        assert "text" not in target.bindings.input_mappings

    def test_connect_keeps_no_input(self, workflow):
        source = workflow.add_node("text-input")
        target = workflow.add_node("text-transform")
        workflow.configure_bindings(target.id, input_mappings={"text": NO_INPUT})
        workflow.connect(source.id, "text", target.id, "text")
        assert target.bindings.input_mappings["text"] == NO_INPUT

    @pytest.mark.asyncio
    async def test_passthrough_follows_upstream_variable(self, workflow):
        source = workflow.add_node("text-input", {"text": "through"})
        delay = workflow.add_node("delay", {"duration": 0})
        workflow.connect(source.id, "text", delay.id, "input")

        assert delay.bindings.output_mappings["output"] == "TextInput1"

        await workflow.execute(source.id)
        workflow.variables.update("TextInput1", "overwritten")
        await workflow.execute(delay.id)
        assert workflow.variables.get("TextInput1").value == "through"


class TestConfigure:
    """Tests for BindingResolver.configure."""

    def test_unknown_port_changes_nothing(self, workflow):
        node = workflow.add_node("text-transform")
        with pytest.raises(NotFoundError):
            workflow.configure_bindings(
                node.id,
                input_mappings={"text": "a", "nope": "b"},
                multi_input_mode="batch",
            )
        assert node.bindings.input_mappings == {}
        assert node.bindings.multi_input_mode is MultiInputMode.OVERRIDE

    def test_none_removes_mapping(self, workflow):
        node = workflow.add_node("text-transform")
        workflow.configure_bindings(node.id, input_mappings={"text": "a"})
        workflow.configure_bindings(node.id, input_mappings={"text": None})
        assert node.bindings.input_mappings == {}

    def test_unknown_node(self, workflow):
        with pytest.raises(NotFoundError):
            workflow.configure_bindings("WS1_Missing1", input_mappings={})

    def test_binding_config_dict_round_trip(self):
        config = NodeBindingConfig(
            input_mappings={"text": "topic"},
            output_mappings={"text": NO_OUTPUT},
            custom_inputs=["extra"],
            multi_input_mode=MultiInputMode.CONCAT,
            output_parse_config={"text": OutputParseConfig(ParseMode.REGEX, r"(\d+)")},
        )
        assert NodeBindingConfig.from_dict(config.to_dict()) == config


class TestMultiInput:
    """Tests for combining repeated arrivals."""

    def test_merge_modes(self):
        arrivals = [Arrival("WS1_A1.out", "one"), Arrival("WS1_B1.out", "two")]
        assert merge_arrivals(arrivals, MultiInputMode.OVERRIDE) == "two"
        assert merge_arrivals(arrivals, MultiInputMode.CONCAT) == "one\ntwo"
        assert merge_arrivals(arrivals, MultiInputMode.BATCH) == ["one", "two"]
        assert merge_arrivals(arrivals, MultiInputMode.JSON) == {
            "WS1_A1.out": "one",
            "WS1_B1.out": "two",
        }
        assert merge_arrivals([], MultiInputMode.BATCH) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode, expected", [
        ("override", "second"),
        ("concat", "first\nsecond"),
        ("batch", ["first", "second"]),
        ("json", {"WS1_TextInput1.text": "second"}),
    ])
    async def test_repeated_upstream_executions(self, workflow, mode, expected):
        source = workflow.add_node("text-input", {"text": "first"})
        target = workflow.add_node("text-transform")
        workflow.connect(source.id, "text", target.id, "text")
        workflow.configure_bindings(target.id, multi_input_mode=mode)

        await workflow.execute(source.id)
        source.config["text"] = "second"
        await workflow.execute(source.id)

        assert await workflow.resolver.resolve_input(target, "text") == expected

    @pytest.mark.asyncio
    async def test_arrivals_are_consumed(self, workflow):
        source = workflow.add_node("text-input", {"text": "first"})
        target = workflow.add_node("text-transform")
        workflow.connect(source.id, "text", target.id, "text")
        workflow.configure_bindings(target.id, multi_input_mode="batch")
        await workflow.execute(source.id)

        assert workflow.resolver.pending_arrivals(target.id, "text")
        await workflow.resolver.resolve_input(target, "text")
        assert workflow.resolver.pending_arrivals(target.id, "text") == []

    @pytest.mark.asyncio
    async def test_mapped_input_discards_arrivals(self, workflow):
        source = workflow.add_node("text-input")
        target = workflow.add_node("text-transform")
        workflow.connect(source.id, "text", target.id, "text")
        workflow.variables.create("manual", VariableType.STRING, "typed")
        workflow.configure_bindings(target.id, input_mappings={"text": "manual"}, multi_input_mode="batch")

        for value in ("v0", "v1", "v2"):
            source.config["text"] = value
            await workflow.execute(source.id)
            result = await workflow.execute(target.id)
            assert result.inputs["text"] == "typed"
        assert workflow.resolver.pending_arrivals(target.id, "text") == []

        workflow.configure_bindings(target.id, input_mappings={"text": None})
        source.config["text"] = "v3"
        await workflow.execute(source.id)
        assert await workflow.resolver.resolve_input(target, "text") == ["v3"]

    @pytest.mark.asyncio
    async def test_no_input_discards_arrivals(self, workflow):
        source = workflow.add_node("text-input", {"text": "ignored"})
        target = workflow.add_node("text-transform")
        workflow.connect(source.id, "text", target.id, "text")
        workflow.configure_bindings(target.id, input_mappings={"text": NO_INPUT})
        await workflow.execute(source.id)

        assert await workflow.resolver.resolve_input(target, "text") is None
        assert workflow.resolver.pending_arrivals(target.id, "text") == []

    @pytest.mark.asyncio
    async def test_disconnect_drops_buffered_arrivals(self, workflow):
        source = workflow.add_node("text-input", {"text": "first"})
        target = workflow.add_node("text-transform")
        connection = workflow.connect(source.id, "text", target.id, "text")
        workflow.configure_bindings(target.id, multi_input_mode="batch")
        await workflow.execute(source.id)
        source.config["text"] = "second"
        await workflow.execute(source.id)

        workflow.disconnect(connection.id)
        assert workflow.resolver.pending_arrivals(target.id, "text") == []

        workflow.connect(source.id, "text", target.id, "text")
        assert await workflow.resolver.resolve_input(target, "text") == "second"


class TestOutputResolution:
    """Tests for storing produced outputs."""

    @pytest.mark.asyncio
    async def test_no_output_discards(self, workflow):
        node = workflow.add_node("text-input", {"text": "hello"})
        workflow.configure_bindings(node.id, output_mappings={"text": NO_OUTPUT})
        result = await workflow.execute(node.id)

        assert result.outputs == {"text": "hello"}
        assert workflow.variables.get("TextInput1").value == ""

    @pytest.mark.asyncio
    async def test_parse_config_applies_before_storing(self, workflow):
        node = workflow.add_node("text-input", {"text": "The answer is 42."})
        workflow.configure_bindings(
            node.id,
            output_parse_config={"text": {"mode": "regex", "config": r"(\d+)"}},
        )
        result = await workflow.execute(node.id)

        assert workflow.variables.get("TextInput1").value == "42"
        assert result.outputs["text"] == "The answer is 42."

    @pytest.mark.asyncio
    async def test_deleted_variable_is_recreated(self, workflow):
        node = workflow.add_node("text-input", {"text": "again"})
        workflow.variables.delete("TextInput1")
        await workflow.execute(node.id)
        assert workflow.variables.get("TextInput1").value == "again"

    @pytest.mark.asyncio
    async def test_mismatched_value_retags_variable(self, workflow):
        node = workflow.add_node("text-input", {"text": "not a number"})
        workflow.variables.create("count", VariableType.NUMBER, 0)
        workflow.configure_bindings(node.id, output_mappings={"text": "count"})
        await workflow.execute(node.id)

        variable = workflow.variables.get("count")
        assert variable.type is VariableType.STRING
        assert variable.value == "not a number"

    @pytest.mark.asyncio
    async def test_text_into_media_variable_fails_node(self, workflow):
        node = workflow.add_node("text-input", {"text": "caption"})
        workflow.variables.create("picture", VariableType.IMAGE)
        workflow.configure_bindings(node.id, output_mappings={"text": "picture"})
        result = await workflow.execute(node.id)

        assert not result.ok
        assert workflow.variables.get("picture").value is None
