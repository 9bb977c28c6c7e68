"""
Input Nodes - Nodes that provide text to the workflow.

text-input emits configured text; optional-input asks the user for a
value and falls back to its default when nobody answers in time.
"""

from __future__ import annotations

from typing import Any

from agentflow.core.data_types import VariableType, stringify
from agentflow.core.interaction import ConfirmationKind, ConfirmationRequest
from agentflow.core.node_types import (
    NodeType,
    NodeCategory,
    InputDefinition,
    OutputDefinition,
    ParameterDefinition,
    NodeRegistry,
    register_node,
)


async def text_input_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Execute text node - passes the input, or the configured text, to output."""
    value = inputs.get("input")
    if value is None or value == "":
        return {"text": stringify(parameters.get("text", ""))}
    return {"text": context.render(stringify(value))}


TEXT_INPUT_NODE = NodeType(
    id="text-input",
    name="Text Input",
    description="Text entered in the node, or passed through from its input",
    category=NodeCategory.INPUT,
    inputs=[
        InputDefinition(name="input", label="Input"),
    ],
    outputs=[
        OutputDefinition(
            name="text",
            label="Text",
            value_type=VariableType.STRING,
            description="The text",
        ),
    ],
    parameters=[
        ParameterDefinition.text(
            name="text",
            label="Text",
            default="",
            multiline=True,
            description="Enter your text here; {{ references }} are filled in",
        ),
    ],
    executor=text_input_executor,
)


async def optional_input_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Ask the user for a value; skip or timeout keeps the default."""
    default = stringify(parameters.get("defaultText", ""))
    timeout = float(parameters.get("timeout", 20) or 0)
    result = await context.confirm(ConfirmationRequest(
        kind=ConfirmationKind.INPUT,
        title=stringify(parameters.get("prompt")) or "Enter a value",
        value=default,
        timeout_ms=int(timeout * 1000),
    ))
    return {"text": stringify(result.value_or(default))}


OPTIONAL_INPUT_NODE = NodeType(
    id="optional-input",
    name="Optional Input",
    description="Ask the user for text, falling back to a default",
    category=NodeCategory.INTERACTIVE,
    inputs=[],
    outputs=[
        OutputDefinition(name="text", label="Text", value_type=VariableType.STRING),
    ],
    parameters=[
        ParameterDefinition.text(name="prompt", label="Question", default="Enter a value"),
        ParameterDefinition.text(name="defaultText", label="Default", default="", multiline=True),
        ParameterDefinition.integer(
            name="timeout",
            label="Timeout (s)",
            default=20,
            min_value=1,
            max_value=3600,
        ),
    ],
    executor=optional_input_executor,
)


def register_prompt_nodes(registry: NodeRegistry | None = None) -> None:
    """Register the text input node types."""
    register_node(TEXT_INPUT_NODE, registry)
    register_node(OPTIONAL_INPUT_NODE, registry)
