"""
Control Nodes - Branch, repeat and pace values flowing through a graph.

Control nodes pass values through: once connected, their primary output
writes to the same variable as the upstream port feeding them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from agentflow.core.data_types import stringify
from agentflow.core.node_types import (
    NodeType,
    NodeCategory,
    InputDefinition,
    OutputDefinition,
    ParameterDefinition,
    NodeRegistry,
    register_node,
)


logger = logging.getLogger(__name__)

OPERATORS = ["equals", "not_equals", "contains", "empty", "not_empty"]
UNARY_OPERATORS = ("empty", "not_empty")


def evaluate_condition(value: Any, operator: str, expected: str = "") -> bool:
    """Evaluate a condition operator against a value."""
    text = stringify(value)
    if operator == "equals":
        return text == expected
    if operator == "not_equals":
        return text != expected
    if operator == "contains":
        return expected in text
    if operator == "empty":
        return not text.strip()
    if operator == "not_empty":
        return bool(text.strip())
    raise ValueError(f"Unknown operator: {operator}")


# --- condition ---

async def condition_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Route the input to the true or false output."""
    value = inputs.get("input")
    matched = evaluate_condition(
        value,
        parameters.get("operator", "equals"),
        stringify(parameters.get("value")),
    )
    logger.debug(f"{context.node_id}: condition {'matched' if matched else 'not matched'}")
    return {"true": value} if matched else {"false": value}


def _validate_condition(config: dict[str, Any], bound_inputs: set[str]) -> list[str]:
    operator = config.get("operator", "equals")
    if operator not in OPERATORS:
        return [f"unknown operator {operator}"]
    if operator not in UNARY_OPERATORS and not stringify(config.get("value")):
        return ["value is required"]
    return []


CONDITION_NODE = NodeType(
    id="condition",
    name="Condition",
    description="Send the input down the true or false branch",
    category=NodeCategory.CONTROL,
    inputs=[
        InputDefinition(name="input", label="Input"),
    ],
    outputs=[
        OutputDefinition(name="true", label="True"),
        OutputDefinition(name="false", label="False"),
    ],
    parameters=[
        ParameterDefinition.enum(
            name="operator",
            label="Operator",
            options=[(op, op.replace("_", " ").capitalize()) for op in OPERATORS],
            default="equals",
        ),
        ParameterDefinition.text(name="value", label="Value", default=""),
    ],
    executor=condition_executor,
    validator=_validate_condition,
    passthrough=True,
)


# --- loop ---

async def loop_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """
    Deliver a sequence of values downstream, one arrival per item.

    In "each" mode an array input yields its items (a non-array yields
    itself once); in "repeat" mode the input is delivered iterations
    times. The output variable receives the whole sequence.
    """
    value = inputs.get("input")
    iterations = int(parameters.get("iterations", 1))
    if iterations < 1:
        raise ValueError("Iterations must be at least 1")

    if parameters.get("mode", "each") == "each":
        items = list(value) if isinstance(value, (list, tuple)) else [value]
        items = items[:iterations] if parameters.get("limit", False) else items
    else:
        items = [value] * iterations

    for item in items:
        context.emit("output", item)
    return {"output": items}


LOOP_NODE = NodeType(
    id="loop",
    name="Loop",
    description="Deliver each array item, or the input repeatedly, downstream",
    category=NodeCategory.CONTROL,
    inputs=[
        InputDefinition(name="input", label="Input"),
    ],
    outputs=[
        OutputDefinition(name="output", label="Output"),
    ],
    parameters=[
        ParameterDefinition.enum(
            name="mode",
            label="Mode",
            options=[("each", "For each item"), ("repeat", "Repeat")],
            default="each",
        ),
        ParameterDefinition.integer(name="iterations", label="Iterations", default=1, min_value=1, max_value=1000),
        ParameterDefinition.boolean(
            name="limit",
            label="Limit Items",
            default=False,
            description="In for-each mode, stop after the iteration count",
        ),
    ],
    executor=loop_executor,
    passthrough=True,
)


# --- delay ---

async def delay_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    duration = max(0, int(parameters.get("duration", 1000)))
    await asyncio.sleep(duration / 1000)
    return {"output": inputs.get("input")}


DELAY_NODE = NodeType(
    id="delay",
    name="Delay",
    description="Wait before passing the input on",
    category=NodeCategory.CONTROL,
    inputs=[
        InputDefinition(name="input", label="Input"),
    ],
    outputs=[
        OutputDefinition(name="output", label="Output"),
    ],
    parameters=[
        ParameterDefinition.integer(name="duration", label="Duration (ms)", default=1000, min_value=0),
    ],
    executor=delay_executor,
    passthrough=True,
)


def register_control_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all control node types."""
    for node_type in (CONDITION_NODE, LOOP_NODE, DELAY_NODE):
        register_node(node_type, registry)
