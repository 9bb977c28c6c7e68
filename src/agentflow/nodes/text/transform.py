"""
Text Nodes - Parse, transform and split text.
"""

from __future__ import annotations

import json
import re
from typing import Any

from agentflow.core.data_types import VariableType, stringify
from agentflow.core.node_types import (
    NodeType,
    NodeCategory,
    InputDefinition,
    OutputDefinition,
    ParameterDefinition,
    NodeRegistry,
    register_node,
)
from agentflow.core.templates import MISSING, lookup_path


# --- json-parser ---

async def json_parser_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Parse JSON text and optionally pick out a nested value."""
    raw = inputs.get("json")
    if isinstance(raw, (dict, list)):
        data: Any = raw
    else:
        text = stringify(raw).strip()
        if not text:
            raise ValueError("No JSON to parse")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e

    path = stringify(parameters.get("path")).strip()
    if path:
        found = lookup_path({"data": data}, f"data{path}" if path.startswith("[") else f"data.{path}")
        if found is MISSING:
            raise ValueError(f"Path not found in JSON: {path}")
        data = found
    return {"data": data}


JSON_PARSER_NODE = NodeType(
    id="json-parser",
    name="JSON Parser",
    description="Parse JSON text into structured data",
    category=NodeCategory.TEXT,
    inputs=[
        InputDefinition(name="json", label="JSON"),
    ],
    outputs=[
        OutputDefinition(name="data", label="Data", value_type=VariableType.OBJECT),
    ],
    parameters=[
        ParameterDefinition.text(
            name="path",
            label="Path",
            default="",
            description="Optional path into the parsed data, e.g. items[0].name",
        ),
    ],
    executor=json_parser_executor,
)


# --- text-transform ---

TRANSFORMS = ["lowercase", "uppercase", "trim", "replace"]


def transform_text(text: str, operation: str, pattern: str = "", replacement: str = "", regex: bool = False) -> str:
    """Apply one text transform."""
    if operation == "lowercase":
        return text.lower()
    if operation == "uppercase":
        return text.upper()
    if operation == "trim":
        return text.strip()
    if operation == "replace":
        if not pattern:
            return text
        if regex:
            try:
                return re.sub(pattern, replacement, text)
            except re.error as e:
                raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e
        return text.replace(pattern, replacement)
    raise ValueError(f"Unknown operation: {operation}")


async def text_transform_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    text = stringify(inputs.get("text"))
    return {
        "text": transform_text(
            text,
            parameters.get("operation", "lowercase"),
            stringify(parameters.get("pattern")),
            stringify(parameters.get("replacement")),
            bool(parameters.get("regex", False)),
        )
    }


TEXT_TRANSFORM_NODE = NodeType(
    id="text-transform",
    name="Text Transform",
    description="Change case, trim or replace text",
    category=NodeCategory.TEXT,
    inputs=[
        InputDefinition(name="text", label="Text"),
    ],
    outputs=[
        OutputDefinition(name="text", label="Text", value_type=VariableType.STRING),
    ],
    parameters=[
        ParameterDefinition.enum(
            name="operation",
            label="Operation",
            options=[(op, op.capitalize()) for op in TRANSFORMS],
            default="lowercase",
        ),
        ParameterDefinition.text(name="pattern", label="Find", default=""),
        ParameterDefinition.text(name="replacement", label="Replace With", default=""),
        ParameterDefinition.boolean(name="regex", label="Regular Expression", default=False),
    ],
    executor=text_transform_executor,
)


# --- text-splitter ---

def split_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 200, separator: str = "\n\n") -> list[str]:
    """
    Split text into chunks of at most chunk_size characters.

    Separator-delimited pieces are packed greedily into chunks. A new chunk
    starts with up to chunk_overlap trailing characters of the previous
    one. Pieces longer than a chunk are cut into overlapping windows.
    """
    if chunk_size <= 0:
        raise ValueError("Chunk size must be positive")
    overlap = max(0, min(chunk_overlap, chunk_size - 1))
    pieces = text.split(separator) if separator else [text]

    chunks: list[str] = []
    current = ""
    for piece in pieces:
        if not piece:
            continue
        candidate = f"{current}{separator}{piece}" if current else piece
        if len(candidate) <= chunk_size:
            current = candidate
            continue

        if current:
            chunks.append(current)
        if len(piece) > chunk_size:
            step = chunk_size - overlap
            for start in range(0, len(piece), step):
                chunks.append(piece[start:start + chunk_size])
                if start + chunk_size >= len(piece):
                    break
            current = ""
        else:
            tail = current[-overlap:] if overlap and current else ""
            current = tail + piece if len(tail) + len(piece) <= chunk_size else piece

    if current:
        chunks.append(current)
    return chunks


async def text_splitter_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    chunks = split_text(
        stringify(inputs.get("text")),
        int(parameters.get("chunkSize", 1000)),
        int(parameters.get("chunkOverlap", 200)),
        # Config stores escapes as typed
        stringify(parameters.get("separator", "\n\n")).replace("\\n", "\n"),
    )
    return {"chunks": chunks}


TEXT_SPLITTER_NODE = NodeType(
    id="text-splitter",
    name="Text Splitter",
    description="Split long text into overlapping chunks",
    category=NodeCategory.TEXT,
    inputs=[
        InputDefinition(name="text", label="Text"),
    ],
    outputs=[
        OutputDefinition(name="chunks", label="Chunks", value_type=VariableType.ARRAY),
    ],
    parameters=[
        ParameterDefinition.integer(name="chunkSize", label="Chunk Size", default=1000, min_value=1),
        ParameterDefinition.integer(name="chunkOverlap", label="Overlap", default=200, min_value=0),
        ParameterDefinition.text(name="separator", label="Separator", default="\n\n"),
    ],
    executor=text_splitter_executor,
)


def register_text_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all text node types."""
    for node_type in (JSON_PARSER_NODE, TEXT_TRANSFORM_NODE, TEXT_SPLITTER_NODE):
        register_node(node_type, registry)
