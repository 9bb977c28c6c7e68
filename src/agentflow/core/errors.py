"""
Workflow Errors - Exception hierarchy for the workflow core.

Structural errors (duplicates, missing references, type mismatches) are
raised synchronously by the mutating operation and leave the graph or store
untouched. ExecutionError wraps a node behavior failure and is reported
through the node status instead of being raised by the coordinator.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for workflow errors."""
    pass


class DuplicateNameError(WorkflowError):
    """A variable with this name already exists."""

    def __init__(self, name: str):
        super().__init__(f"Variable already exists: {name}")
        self.name = name


class DuplicatePortTargetError(WorkflowError):
    """An identical connection already exists."""

    def __init__(self, connection_id: str):
        super().__init__(f"Connection already exists: {connection_id}")
        self.connection_id = connection_id


class NotFoundError(WorkflowError, KeyError):
    """A node, port, node type, connection or variable does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key

    def __str__(self) -> str:
        # KeyError quotes its message otherwise
        return self.args[0]


class TypeMismatchError(WorkflowError, TypeError):
    """A value does not match the declared variable type."""

    def __init__(self, name: str, expected: str, value: object):
        super().__init__(
            f"Variable '{name}' expects {expected}, got {type(value).__name__}"
        )
        self.name = name
        self.expected = expected


class AlreadyRunningError(WorkflowError):
    """The node is already executing or waiting for input."""

    def __init__(self, node_id: str):
        super().__init__(f"Node is already running: {node_id}")
        self.node_id = node_id


class ExecutionError(WorkflowError):
    """A node behavior failed. The original exception is the __cause__."""

    def __init__(self, node_id: str, message: str):
        super().__init__(message)
        self.node_id = node_id
        self.message = message


class GraphCycleError(WorkflowError):
    """The graph contains a cycle and cannot be ordered."""

    def __init__(self, node_ids: list[str]):
        super().__init__(f"Graph contains a cycle through: {', '.join(node_ids)}")
        self.node_ids = node_ids


class ValidationError(WorkflowError, ValueError):
    """A workflow document or configuration is invalid."""
    pass
