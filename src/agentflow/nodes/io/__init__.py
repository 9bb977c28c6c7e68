"""
I/O Nodes package.

Nodes that take text from the user, read and write files, call HTTP
endpoints and move payloads into the variable store.
"""

from agentflow.core.node_types import NodeRegistry
from agentflow.nodes.io.files import (
    FILE_INPUT_NODE,
    FILE_OUTPUT_NODE,
    register_file_nodes,
)
from agentflow.nodes.io.network import (
    HTTP_REQUEST_NODE,
    HttpRequestError,
    HttpResponse,
    fetch,
    register_network_nodes,
)
from agentflow.nodes.io.prompt import (
    TEXT_INPUT_NODE,
    OPTIONAL_INPUT_NODE,
    register_prompt_nodes,
)
from agentflow.nodes.io.storage import (
    FILE_UPLOAD_NODE,
    URL_LOADER_NODE,
    STORAGE_READER_NODE,
    storage_name_for,
    store_payload,
    register_storage_nodes,
)


def register_io_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all I/O node types."""
    register_prompt_nodes(registry)
    register_file_nodes(registry)
    register_network_nodes(registry)
    register_storage_nodes(registry)


__all__ = [
    "TEXT_INPUT_NODE",
    "OPTIONAL_INPUT_NODE",
    "FILE_INPUT_NODE",
    "FILE_OUTPUT_NODE",
    "HTTP_REQUEST_NODE",
    "FILE_UPLOAD_NODE",
    "URL_LOADER_NODE",
    "STORAGE_READER_NODE",
    "HttpRequestError",
    "HttpResponse",
    "fetch",
    "storage_name_for",
    "store_payload",
    "register_io_nodes",
]
