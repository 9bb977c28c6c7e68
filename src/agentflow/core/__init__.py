"""
Core module - Graph, variables, bindings and the execution engine.

This module provides the fundamental building blocks for agentflow:
- Graph: Nodes, ports and connections
- Variables: The typed global variable store
- Bindings: Port-to-variable resolution
- Execution: Per-node execution and graph walking
- Workflow: The facade tying them together
- Project: Settings and persistence
"""

from agentflow.core.errors import (
    AlreadyRunningError,
    DuplicateNameError,
    DuplicatePortTargetError,
    ExecutionError,
    GraphCycleError,
    NotFoundError,
    TypeMismatchError,
    ValidationError,
    WorkflowError,
)

from agentflow.core.data_types import (
    MediaBlob,
    ParameterValue,
    VariableType,
    coerce_value,
)

from agentflow.core.graph import (
    Connection,
    Node,
    NodeGraph,
    NodeStatus,
    PortRef,
)

from agentflow.core.node_types import (
    InputDefinition,
    NodeCategory,
    NodeExecutor,
    NodeRegistry,
    NodeType,
    OutputDefinition,
    ParameterDefinition,
    ParameterType,
    register_node,
    required_input,
)

from agentflow.core.variables import (
    GlobalVariable,
    InteractionPolicy,
    VariableStore,
)

from agentflow.core.bindings import (
    NO_INPUT,
    NO_OUTPUT,
    BindingResolver,
    MultiInputMode,
    NodeBindingConfig,
    OutputParseConfig,
)

from agentflow.core.output_parsing import ParseMode, parse_output

from agentflow.core.interaction import (
    ConfirmationAction,
    ConfirmationKind,
    ConfirmationRequest,
    ConfirmationResult,
    InteractionBroker,
    ResolutionCancelled,
)

from agentflow.core.execution import (
    ExecutionCoordinator,
    ExecutionResult,
    NodeContext,
    RunReport,
    RunStatus,
    WorkflowRunner,
)

from agentflow.core.validation import ValidationReport, validate_workflow
from agentflow.core.workflow import Workflow
from agentflow.core.project import Project, ProjectSettings


__all__ = [
    # errors.py
    "AlreadyRunningError",
    "DuplicateNameError",
    "DuplicatePortTargetError",
    "ExecutionError",
    "GraphCycleError",
    "NotFoundError",
    "TypeMismatchError",
    "ValidationError",
    "WorkflowError",
    # data_types.py
    "MediaBlob",
    "ParameterValue",
    "VariableType",
    "coerce_value",
    # graph.py
    "Connection",
    "Node",
    "NodeGraph",
    "NodeStatus",
    "PortRef",
    # node_types.py
    "InputDefinition",
    "NodeCategory",
    "NodeExecutor",
    "NodeRegistry",
    "NodeType",
    "OutputDefinition",
    "ParameterDefinition",
    "ParameterType",
    "register_node",
    "required_input",
    # variables.py
    "GlobalVariable",
    "InteractionPolicy",
    "VariableStore",
    # bindings.py
    "NO_INPUT",
    "NO_OUTPUT",
    "BindingResolver",
    "MultiInputMode",
    "NodeBindingConfig",
    "OutputParseConfig",
    # output_parsing.py
    "ParseMode",
    "parse_output",
    # interaction.py
    "ConfirmationAction",
    "ConfirmationKind",
    "ConfirmationRequest",
    "ConfirmationResult",
    "InteractionBroker",
    "ResolutionCancelled",
    # execution.py
    "ExecutionCoordinator",
    "ExecutionResult",
    "NodeContext",
    "RunReport",
    "RunStatus",
    "WorkflowRunner",
    # validation.py
    "ValidationReport",
    "validate_workflow",
    # workflow.py / project.py
    "Workflow",
    "Project",
    "ProjectSettings",
]
