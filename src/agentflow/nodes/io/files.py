"""
File Nodes - Read and write files on the local disk.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from agentflow.core.data_types import MediaBlob, VariableType, is_media_value, stringify
from agentflow.core.node_types import (
    NodeType,
    NodeCategory,
    InputDefinition,
    OutputDefinition,
    ParameterDefinition,
    ParameterType,
    NodeRegistry,
    register_node,
    required_input,
)


logger = logging.getLogger(__name__)


async def file_input_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Read a text file. Binary files belong in a file-upload node."""
    file_path = stringify(parameters.get("path")).strip()
    path = Path(file_path).expanduser()
    if not file_path or not path.is_file():
        raise ValueError(f"File not found: {file_path}")

    try:
        content = path.read_text(encoding=parameters.get("encoding") or "utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"{path.name} is not a text file; use a file upload node") from e
    return {"content": content, "filename": path.name}


FILE_INPUT_NODE = NodeType(
    id="file-input",
    name="File Input",
    description="Read a text file from disk",
    category=NodeCategory.INPUT,
    inputs=[],
    outputs=[
        OutputDefinition(name="content", label="Content", value_type=VariableType.LARGE_TEXT),
        OutputDefinition(name="filename", label="Filename"),
    ],
    parameters=[
        ParameterDefinition(
            name="path",
            label="File",
            param_type=ParameterType.FILE_PATH,
            default="",
        ),
        ParameterDefinition.text(name="encoding", label="Encoding", default="utf-8"),
    ],
    executor=file_input_executor,
    validator=required_input("path"),
)


async def file_output_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Write the content input to a file."""
    filename = stringify(parameters.get("filename")).strip()
    if not filename:
        raise ValueError("Filename is empty")
    directory = Path(stringify(parameters.get("directory")).strip() or ".").expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename

    content = inputs.get("content")
    if is_media_value(content):
        blob = content if isinstance(content, MediaBlob) else content[0]
        path.write_bytes(blob.data)
        size = blob.size
    else:
        text = stringify(content)
        encoding = parameters.get("encoding") or "utf-8"
        mode = "a" if parameters.get("append", False) else "w"
        with open(path, mode, encoding=encoding) as f:
            f.write(text)
        size = len(text.encode(encoding))

    logger.info(f"Wrote {size} bytes to {path}")
    return {"path": str(path)}


FILE_OUTPUT_NODE = NodeType(
    id="file-output",
    name="File Output",
    description="Save text or media to a file",
    category=NodeCategory.OUTPUT,
    inputs=[
        InputDefinition(name="content", label="Content"),
    ],
    outputs=[
        OutputDefinition(name="path", label="Path"),
    ],
    parameters=[
        ParameterDefinition.text(name="filename", label="Filename", default="output.txt"),
        ParameterDefinition(
            name="directory",
            label="Directory",
            param_type=ParameterType.FILE_PATH,
            default="",
        ),
        ParameterDefinition.boolean(name="append", label="Append", default=False),
        ParameterDefinition.text(name="encoding", label="Encoding", default="utf-8"),
    ],
    executor=file_output_executor,
    validator=required_input("filename"),
)


def register_file_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all file node types."""
    register_node(FILE_INPUT_NODE, registry)
    register_node(FILE_OUTPUT_NODE, registry)
