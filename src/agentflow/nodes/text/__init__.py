"""
Text Nodes package.

Nodes for parsing, transforming and splitting text.
"""

from agentflow.nodes.text.transform import (
    JSON_PARSER_NODE,
    TEXT_TRANSFORM_NODE,
    TEXT_SPLITTER_NODE,
    split_text,
    transform_text,
    register_text_nodes,
)

__all__ = [
    "JSON_PARSER_NODE",
    "TEXT_TRANSFORM_NODE",
    "TEXT_SPLITTER_NODE",
    "split_text",
    "transform_text",
    "register_text_nodes",
]
