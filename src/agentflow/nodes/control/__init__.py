"""
Control Nodes package.

Pass-through nodes for branching, looping and pacing.
"""

from agentflow.nodes.control.flow import (
    CONDITION_NODE,
    LOOP_NODE,
    DELAY_NODE,
    evaluate_condition,
    register_control_nodes,
)

__all__ = [
    "CONDITION_NODE",
    "LOOP_NODE",
    "DELAY_NODE",
    "evaluate_condition",
    "register_control_nodes",
]
