"""
AI Nodes package.

Nodes that call the AI client: chat, text, image and audio.
"""

from agentflow.core.node_types import NodeRegistry
from agentflow.nodes.ai.chat import (
    CHAT_NODE,
    TEXT_GENERATION_NODE,
    TEXT_ANALYSIS_NODE,
    CHAT_WINDOW_NODE,
    chat_executor,
    chat_window_executor,
    register_chat_nodes,
)
from agentflow.nodes.ai.media import (
    IMAGE_GENERATION_NODE,
    IMAGE_EDIT_NODE,
    IMAGE_VARIATION_NODE,
    AUDIO_TRANSCRIPTION_NODE,
    TEXT_TO_SPEECH_NODE,
    register_media_nodes,
)


def register_ai_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all AI node types."""
    register_chat_nodes(registry)
    register_media_nodes(registry)


__all__ = [
    "CHAT_NODE",
    "TEXT_GENERATION_NODE",
    "TEXT_ANALYSIS_NODE",
    "CHAT_WINDOW_NODE",
    "IMAGE_GENERATION_NODE",
    "IMAGE_EDIT_NODE",
    "IMAGE_VARIATION_NODE",
    "AUDIO_TRANSCRIPTION_NODE",
    "TEXT_TO_SPEECH_NODE",
    "chat_executor",
    "chat_window_executor",
    "register_ai_nodes",
]
