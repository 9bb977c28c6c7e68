"""
Tests for workflow validation.
"""

from agentflow.core.bindings import NO_INPUT
from agentflow.core.data_types import VariableType


class TestValidateWorkflow:

    def test_empty_workflow(self, workflow):
        report = workflow.validate()
        assert not report.is_valid
        assert report.errors == ["Workflow has no nodes"]

    def test_single_configured_node(self, workflow):
        workflow.add_node("text-input", {"text": "hi"})
        report = workflow.validate()
        assert report.is_valid
        assert report.warnings == []

    def test_missing_required_config(self, workflow):
        node = workflow.add_node("ai-chat")
        report = workflow.validate()
        assert report.errors == [f"{node.id}: prompt is required"]

    def test_connected_input_needs_no_config(self, workflow):
        text = workflow.add_node("text-input", {"text": "hi"})
        chat = workflow.add_node("ai-chat")
        workflow.connect(text.id, "text", chat.id, "prompt")
        assert workflow.validate().is_valid

    def test_mapped_input_needs_no_config(self, workflow):
        chat = workflow.add_node("ai-chat")
        workflow.variables.create("question", VariableType.STRING, "why?")
        workflow.configure_bindings(chat.id, input_mappings={"prompt": "question"})
        assert workflow.validate().is_valid

    def test_no_input_mapping_does_not_count_as_bound(self, workflow):
        chat = workflow.add_node("ai-chat")
        workflow.configure_bindings(chat.id, input_mappings={"prompt": NO_INPUT})
        assert not workflow.validate().is_valid

    def test_isolated_nodes_warn(self, workflow):
        a = workflow.add_node("text-input", {"text": "a"})
        workflow.add_node("text-input", {"text": "b"})
        report = workflow.validate()
        assert report.is_valid
        assert len(report.warnings) == 2
        assert a.id in report.warnings[0]

    def test_cycle_and_no_start_node(self, workflow):
        a = workflow.add_node("text-transform")
        b = workflow.add_node("text-transform")
        workflow.connect(a.id, "text", b.id, "text")
        workflow.connect(b.id, "text", a.id, "text")
        report = workflow.validate()
        assert any("no start node" in e for e in report.errors)
        assert any(e.startswith("Cycle detected") for e in report.errors)

    def test_condition_operator_checks(self, workflow):
        cond = workflow.add_node("condition", {"operator": "equals", "value": ""})
        assert workflow.validate().errors == [f"{cond.id}: value is required"]
        cond.config["operator"] = "not_empty"
        assert workflow.validate().is_valid
        cond.config["operator"] = "bigger"
        assert workflow.validate().errors == [f"{cond.id}: unknown operator bigger"]
