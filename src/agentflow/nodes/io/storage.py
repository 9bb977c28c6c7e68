"""
Storage Nodes - Move files and downloads into global variables.

These nodes put payloads into the variable store under a storage name
and report what was stored; storage-reader reads them back.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from agentflow.core.data_types import MediaBlob, VariableType, infer_type_from_value, stringify
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
from agentflow.core.variables import VariableStore
from agentflow.nodes.io.network import fetch, resolve_timeout


logger = logging.getLogger(__name__)


def storage_name_for(filename: str, fallback: str = "file") -> str:
    """Derive a valid variable name from a filename."""
    stem = Path(filename).stem if filename else ""
    name = re.sub(r"\W+", "_", stem).strip("_") or fallback
    if name[0].isdigit():
        name = f"{fallback}_{name}"
    return name


def payload_size(value: Any) -> int:
    if isinstance(value, MediaBlob):
        return value.size
    return len(stringify(value).encode("utf-8"))


async def store_payload(
    store: VariableStore,
    name: str,
    value: Any,
    description: str = "",
) -> VariableType:
    """
    Put a payload into a variable, creating or replacing it as needed.

    A variable whose binary-ness does not match the payload is replaced
    with one of the payload's type, keeping its description and policy.
    Returns the stored type.
    """
    vtype = infer_type_from_value(value)
    if name not in store:
        store.create(name, vtype, value, description)
        return vtype

    existing = store.get(name)
    if existing.type.is_binary != vtype.is_binary:
        logger.info(f"Replacing {existing.type.value} variable {name} with {vtype.value}")
        store.delete(name)
        store.create(name, vtype, value, description or existing.description, existing.policy)
        return vtype

    await store.write(name, value)
    return store.get(name).type


def _storage_outputs() -> list[OutputDefinition]:
    return [
        OutputDefinition(name="storageName", label="Storage Name"),
        OutputDefinition(name="type", label="Type"),
        OutputDefinition(name="size", label="Size", value_type=VariableType.NUMBER),
    ]


# --- file-upload ---

async def file_upload_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Load a local file into a global variable."""
    file_path = stringify(parameters.get("path")).strip()
    path = Path(file_path).expanduser()
    if not file_path or not path.is_file():
        raise ValueError(f"File not found: {file_path}")

    blob = MediaBlob.from_file(path)
    value: Any = blob
    if blob.mime_type.startswith("text/") or blob.mime_type == "application/json":
        value = blob.data.decode("utf-8", errors="replace")

    name = stringify(inputs.get("storageName")).strip() or storage_name_for(path.name)
    vtype = await store_payload(context.store, name, value, stringify(parameters.get("description")))
    logger.info(f"Uploaded {path.name} to {name} ({vtype.value})")
    return {"storageName": name, "type": vtype.value, "size": payload_size(value)}


FILE_UPLOAD_NODE = NodeType(
    id="file-upload",
    name="File Upload",
    description="Store a local file in a global variable",
    category=NodeCategory.STORAGE,
    inputs=[
        InputDefinition(name="storageName", label="Storage Name"),
    ],
    outputs=_storage_outputs(),
    parameters=[
        ParameterDefinition(name="path", label="File", param_type=ParameterType.FILE_PATH, default=""),
        ParameterDefinition.text(name="storageName", label="Storage Name", default=""),
        ParameterDefinition.text(name="description", label="Description", default=""),
    ],
    executor=file_upload_executor,
    validator=required_input("path"),
)


# --- url-loader ---

async def url_loader_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Download a URL into a global variable."""
    url = stringify(inputs.get("url")).strip()
    if not url:
        raise ValueError("URL is empty")

    response = await fetch(url, timeout=resolve_timeout(parameters, context))
    filename = unquote(Path(urlparse(url).path).name) or None

    force_type = parameters.get("forceType", "")
    as_text = response.is_text if force_type == "" else force_type == "text"
    if as_text:
        value: Any = response.text()
    else:
        value = MediaBlob.from_bytes(response.body, response.content_type or None, filename)
        value.metadata["source_url"] = url

    name = stringify(inputs.get("storageName")).strip() or storage_name_for(filename or "", "download")
    vtype = await store_payload(context.store, name, value, stringify(parameters.get("description")))
    return {"storageName": name, "type": vtype.value, "size": payload_size(value)}


URL_LOADER_NODE = NodeType(
    id="url-loader",
    name="URL Loader",
    description="Download a URL into a global variable",
    category=NodeCategory.STORAGE,
    inputs=[
        InputDefinition(name="url", label="URL"),
        InputDefinition(name="storageName", label="Storage Name"),
    ],
    outputs=_storage_outputs(),
    parameters=[
        ParameterDefinition.text(name="url", label="URL", default=""),
        ParameterDefinition.text(name="storageName", label="Storage Name", default=""),
        ParameterDefinition.text(name="description", label="Description", default=""),
        ParameterDefinition.enum(
            name="forceType",
            label="Store As",
            options=[("", "Detect"), ("text", "Text"), ("binary", "Binary")],
            default="",
        ),
        ParameterDefinition.integer(name="timeout", label="Timeout (s)", default=0, min_value=0),
    ],
    executor=url_loader_executor,
    validator=required_input("url"),
)


# --- storage-reader ---

async def storage_reader_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Read a stored variable by name."""
    name = stringify(inputs.get("storageName")).strip()
    if not name:
        raise ValueError("Storage name is empty")
    value, vtype = await context.store.read(name)
    return {"content": value, "type": vtype.value, "size": payload_size(value)}


STORAGE_READER_NODE = NodeType(
    id="storage-reader",
    name="Storage Reader",
    description="Read a global variable by name",
    category=NodeCategory.STORAGE,
    inputs=[
        InputDefinition(name="storageName", label="Storage Name"),
    ],
    outputs=[
        OutputDefinition(name="content", label="Content"),
        OutputDefinition(name="type", label="Type"),
        OutputDefinition(name="size", label="Size", value_type=VariableType.NUMBER),
    ],
    parameters=[
        ParameterDefinition.text(name="storageName", label="Storage Name", default=""),
    ],
    executor=storage_reader_executor,
    validator=required_input("storageName"),
)


def register_storage_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all storage node types."""
    for node_type in (FILE_UPLOAD_NODE, URL_LOADER_NODE, STORAGE_READER_NODE):
        register_node(node_type, registry)
