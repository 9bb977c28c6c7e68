"""
Node types - what a node can do.

A NodeType bundles the declared ports, the configuration fields with their
defaults, the executor coroutine and optional validation/cleanup hooks.
Graph nodes refer to their type by tag ("ai-chat", "loop", ...) and resolve
it through a NodeRegistry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from agentflow.core.data_types import ParameterValue, VariableType
from agentflow.core.errors import NotFoundError

if TYPE_CHECKING:
    from agentflow.core.graph import Node


class ParameterType(Enum):
    """Kind of a configuration field, as shown to an editor."""
    TEXT = "text"
    TEXT_MULTILINE = "text_multiline"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    ENUM = "enum"
    FILE_PATH = "file_path"
    JSON = "json"


class NodeCategory(Enum):
    AI = "ai"
    INPUT = "input"
    OUTPUT = "output"
    TEXT = "text"
    CONTROL = "control"
    NETWORK = "network"
    STORAGE = "storage"
    INTERACTIVE = "interactive"


@dataclass
class InputDefinition:
    """An input port. Its name is the key used in bindings and executor inputs."""
    name: str
    label: str = ""
    description: str = ""


@dataclass
class OutputDefinition:
    """
    An output port.

    value_type is the variable type created when the port is auto-bound;
    None infers it from the port name.
    """
    name: str
    label: str = ""
    value_type: VariableType | None = None
    description: str = ""


@dataclass
class ParameterDefinition:
    """
    A configuration field.

    default is merged into the config of every new node. Numeric fields may
    carry bounds and enum fields their (value, label) choices; both are
    editor hints, executors check what they rely on.
    """
    name: str
    label: str
    param_type: ParameterType
    default: ParameterValue = None
    min_value: float | None = None
    max_value: float | None = None
    choices: list[tuple[str, str]] = field(default_factory=list)
    description: str = ""

    @classmethod
    def text(cls, name: str, label: str, default: str = "", multiline: bool = False,
             description: str = "") -> ParameterDefinition:
        kind = ParameterType.TEXT_MULTILINE if multiline else ParameterType.TEXT
        return cls(name, label, kind, default, description=description)

    @classmethod
    def integer(cls, name: str, label: str, default: int = 0, min_value: int | None = None,
                max_value: int | None = None, description: str = "") -> ParameterDefinition:
        return cls(name, label, ParameterType.INTEGER, default, min_value, max_value, description=description)

    @classmethod
    def float_param(cls, name: str, label: str, default: float = 0.0, min_value: float | None = None,
                    max_value: float | None = None, description: str = "") -> ParameterDefinition:
        return cls(name, label, ParameterType.FLOAT, default, min_value, max_value, description=description)

    @classmethod
    def boolean(cls, name: str, label: str, default: bool = False, description: str = "") -> ParameterDefinition:
        return cls(name, label, ParameterType.BOOLEAN, default, description=description)

    @classmethod
    def enum(cls, name: str, label: str, options: list[tuple[str, str]], default: str | None = None,
             description: str = "") -> ParameterDefinition:
        """Choice field; the first option is the default unless one is given."""
        if default is None and options:
            default = options[0][0]
        return cls(name, label, ParameterType.ENUM, default, choices=list(options), description=description)


@runtime_checkable
class NodeExecutor(Protocol):
    """Signature every node behavior implements."""

    async def __call__(
        self,
        inputs: dict[str, Any],
        parameters: dict[str, Any],
        context: Any,
    ) -> dict[str, Any]:
        """
        Run the node.

        Args:
            inputs: Resolved input values by port name
            parameters: Node configuration with templates rendered
            context: NodeContext giving access to the AI client,
                confirmation handler and variable store

        Returns:
            Output values by port name
        """
        ...


ConfigValidator = Callable[[dict[str, Any], set[str]], list[str]]
CleanupHook = Callable[["Node"], None]


@dataclass
class NodeType:
    """
    A registered kind of node.

    The type tag doubles as the source of the id prefix: "ai-chat" nodes
    get ids like WS1_AiChat3 and auto-bound variables named AiChat3.
    """
    id: str  # Type tag, e.g. "ai-chat"
    name: str  # Human-readable name, e.g. "AI Chat"
    category: NodeCategory
    description: str = ""

    inputs: list[InputDefinition] = field(default_factory=list)
    outputs: list[OutputDefinition] = field(default_factory=list)
    parameters: list[ParameterDefinition] = field(default_factory=list)

    executor: NodeExecutor | None = None
    validator: ConfigValidator | None = None
    cleanup: CleanupHook | None = None

    # Control nodes pass their input through under the upstream variable
    passthrough: bool = False

    @property
    def id_prefix(self) -> str:
        """CamelCase token used in node ids and display names."""
        return "".join(part.capitalize() for part in re.split(r"[^A-Za-z0-9]+", self.id) if part)

    @property
    def input_names(self) -> list[str]:
        return [port.name for port in self.inputs]

    @property
    def output_names(self) -> list[str]:
        return [port.name for port in self.outputs]

    def get_input(self, name: str) -> InputDefinition | None:
        return next((port for port in self.inputs if port.name == name), None)

    def get_output(self, name: str) -> OutputDefinition | None:
        return next((port for port in self.outputs if port.name == name), None)

    def get_default_parameters(self) -> dict[str, ParameterValue]:
        """Config a fresh node starts from."""
        return {param.name: param.default for param in self.parameters}

    def validate_config(self, config: dict[str, Any], bound_inputs: set[str] | None = None) -> list[str]:
        """
        Return a list of problems with a node configuration.

        bound_inputs names the input ports fed by a connection or variable,
        which need no configuration fallback.
        """
        if self.validator is None:
            return []
        return self.validator(config, bound_inputs or set())


class NodeRegistry:
    """
    Lookup table of available node types.

    Node modules register their types at startup; graphs resolve type tags
    through a registry instance. The shared instance is available through
    instance(), but graphs may be given their own.
    """

    _shared: NodeRegistry | None = None

    def __init__(self):
        self._by_tag: dict[str, NodeType] = {}

    @classmethod
    def instance(cls) -> NodeRegistry:
        """The process-wide registry used when none is passed."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    def register(self, node_type: NodeType) -> None:
        """Add a node type, replacing any type with the same tag."""
        self._by_tag[node_type.id] = node_type

    def get(self, type_id: str) -> NodeType | None:
        return self._by_tag.get(type_id)

    def require(self, type_id: str) -> NodeType:
        """Look up a node type or raise NotFoundError."""
        node_type = self._by_tag.get(type_id)
        if node_type is None:
            raise NotFoundError("Node type", type_id)
        return node_type

    def __iter__(self):
        return iter(self._by_tag.values())

    def __len__(self) -> int:
        return len(self._by_tag)

    def __contains__(self, type_id: str) -> bool:
        return type_id in self._by_tag


def register_node(node_type: NodeType, registry: NodeRegistry | None = None) -> NodeType:
    """Register a node type with a registry (the shared one by default)."""
    (registry if registry is not None else NodeRegistry.instance()).register(node_type)
    return node_type


def required_input(port: str) -> ConfigValidator:
    """Validator requiring a port to be bound or configured with a value."""

    def validate(config: dict[str, Any], bound_inputs: set[str]) -> list[str]:
        if port in bound_inputs:
            return []
        value = config.get(port)
        if value is None or (isinstance(value, str) and not value.strip()):
            return [f"{port} is required"]
        return []

    return validate
