"""
Nodes package - All built-in node types.

This package contains node implementations organized by category:
- ai: Chat, text generation and analysis, images, speech
- io: Text input, files, HTTP, variable storage
- text: JSON parsing, transforms, splitting
- control: Condition, loop, delay
"""

from agentflow.core.node_types import NodeRegistry
from agentflow.nodes.ai import register_ai_nodes
from agentflow.nodes.control import register_control_nodes
from agentflow.nodes.io import register_io_nodes
from agentflow.nodes.text import register_text_nodes


def register_all_nodes(registry: NodeRegistry | None = None) -> NodeRegistry:
    """Register all built-in nodes (with the shared registry by default)."""
    if registry is None:
        registry = NodeRegistry.instance()
    register_io_nodes(registry)
    register_ai_nodes(registry)
    register_text_nodes(registry)
    register_control_nodes(registry)
    return registry


__all__ = [
    "register_all_nodes",
]
