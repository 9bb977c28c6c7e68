"""
Network Nodes - HTTP requests from inside a workflow.

Requests are made with aiohttp; each node execution opens its own
session, bounded by the node's timeout or the coordinator's default.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from agentflow.core.data_types import VariableType, stringify
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

HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class HttpRequestError(Exception):
    """Raised when a server answers with an error status."""

    def __init__(self, url: str, status: int, reason: str = ""):
        self.url = url
        self.status = status
        detail = f" {reason}" if reason else ""
        super().__init__(f"HTTP {status}{detail} for {url}")


@dataclass
class HttpResponse:
    """A fully read HTTP response."""
    status: int
    content_type: str
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_json(self) -> bool:
        return self.content_type == "application/json" or self.content_type.endswith("+json")

    @property
    def is_text(self) -> bool:
        return self.content_type.startswith("text/") or self.is_json or self.content_type in (
            "application/xml",
            "application/javascript",
        )

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def resolve_timeout(parameters: dict[str, Any], context: Any) -> float:
    """The node's timeout in seconds, falling back to the context default."""
    timeout = parameters.get("timeout") or 0
    if timeout and float(timeout) > 0:
        return float(timeout)
    return float(getattr(context, "http_timeout", 30.0))


async def fetch(
    url: str,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    data: Any = None,
    timeout: float = 30.0,
) -> HttpResponse:
    """
    Perform a request and read the whole body.

    Dicts and lists are sent as JSON; other payloads as text.

    Raises:
        HttpRequestError: On a 4xx/5xx response
        aiohttp.ClientError: On connection failures
        asyncio.TimeoutError: When the timeout elapses
    """
    kwargs: dict[str, Any] = {"headers": headers or {}}
    if data is not None:
        if isinstance(data, (dict, list)):
            kwargs["json"] = data
        else:
            kwargs["data"] = stringify(data)

    logger.debug(f"{method} {url}")
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.request(method, url, **kwargs) as resp:
            body = await resp.read()
            if resp.status >= 400:
                raise HttpRequestError(url, resp.status, resp.reason or "")
            return HttpResponse(
                status=resp.status,
                content_type=resp.content_type,
                body=body,
                headers=dict(resp.headers),
            )


def _parse_headers(value: Any) -> dict[str, str]:
    if not value:
        return {}
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValueError(f"Headers must be a JSON object: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError("Headers must be a JSON object")
    return {str(k): str(v) for k, v in parsed.items()}


async def http_request_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Execute an HTTP request and output the decoded body."""
    url = stringify(inputs.get("url")).strip()
    if not url:
        raise ValueError("URL is empty")
    method = str(parameters.get("method", "GET")).upper()
    if method not in HTTP_METHODS:
        raise ValueError(f"Unsupported HTTP method: {method}")

    data = inputs.get("data")
    if isinstance(data, str) and data:
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            pass  # Sent as plain text

    response = await fetch(
        url,
        method=method,
        headers=_parse_headers(parameters.get("headers")),
        data=data if data not in (None, "") else None,
        timeout=resolve_timeout(parameters, context),
    )

    response_type = parameters.get("responseType", "auto")
    if response_type == "json" or (response_type == "auto" and response.is_json):
        try:
            body: Any = json.loads(response.body or b"null")
        except json.JSONDecodeError as e:
            raise ValueError(f"Response is not valid JSON: {e}") from e
    else:
        body = response.text()
    return {"response": body, "status": response.status}


HTTP_REQUEST_NODE = NodeType(
    id="http-request",
    name="HTTP Request",
    description="Call an HTTP endpoint and output the response body",
    category=NodeCategory.NETWORK,
    inputs=[
        InputDefinition(name="url", label="URL"),
        InputDefinition(name="data", label="Body", description="JSON or text request body"),
    ],
    outputs=[
        OutputDefinition(name="response", label="Response"),
        OutputDefinition(name="status", label="Status", value_type=VariableType.NUMBER),
    ],
    parameters=[
        ParameterDefinition.text(name="url", label="URL", default=""),
        ParameterDefinition.enum(
            name="method",
            label="Method",
            options=[(m, m) for m in HTTP_METHODS],
            default="GET",
        ),
        ParameterDefinition(
            name="headers",
            label="Headers",
            param_type=ParameterType.JSON,
            default="",
            description="JSON object of request headers",
        ),
        ParameterDefinition.enum(
            name="responseType",
            label="Response",
            options=[("auto", "Automatic"), ("json", "JSON"), ("text", "Text")],
            default="auto",
        ),
        ParameterDefinition.integer(
            name="timeout",
            label="Timeout (s)",
            default=0,
            min_value=0,
            description="0 uses the project default",
        ),
    ],
    executor=http_request_executor,
    validator=required_input("url"),
)


def register_network_nodes(registry: NodeRegistry | None = None) -> None:
    register_node(HTTP_REQUEST_NODE, registry)
