"""
Variable Store - Process-wide registry of typed global variables.

This module provides:
- InteractionPolicy: Per-variable prompt-on-read/write settings
- GlobalVariable: A named, typed value with description and history
- VariableEvent: Change notification passed to observers
- VariableStore: Create/read/update/delete/list with observers
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from agentflow.core.data_types import (
    CoercionOutcome,
    VariableType,
    coerce_value,
    decode_value,
    encode_value,
)
from agentflow.core.errors import DuplicateNameError, NotFoundError, TypeMismatchError
from agentflow.core.interaction import (
    ConfirmationAction,
    ConfirmationHandler,
    ConfirmationKind,
    ConfirmationRequest,
    confirm_with_timeout,
)


logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


@dataclass
class InteractionPolicy:
    """When to ask a human before a variable is read or written."""
    prompt_on_write: bool = False
    prompt_on_read: bool = False
    timeout_ms: int = 20000

    @property
    def enabled(self) -> bool:
        return self.prompt_on_write or self.prompt_on_read

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt_on_write": self.prompt_on_write,
            "prompt_on_read": self.prompt_on_read,
            "timeout_ms": self.timeout_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InteractionPolicy:
        return cls(
            prompt_on_write=data.get("prompt_on_write", False),
            prompt_on_read=data.get("prompt_on_read", False),
            timeout_ms=data.get("timeout_ms", 20000),
        )


@dataclass
class HistoryEntry:
    """A previous value of a variable."""
    value: Any
    timestamp: float


@dataclass
class GlobalVariable:
    """
    A named, typed value shared by all nodes.

    Attributes:
        name: Unique identifier
        type: Type tag the value must match
        value: Current value (None means unset)
        description: Optional human description
        policy: Optional interactive confirmation policy
        history: Most recent previous values, newest first
    """
    name: str
    type: VariableType
    value: Any = None
    description: str = ""
    policy: InteractionPolicy | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    history: list[HistoryEntry] = field(default_factory=list, repr=False)


class VariableAction(Enum):
    """Kinds of change reported to observers."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class VariableEvent:
    """Change notification delivered to observers."""
    action: VariableAction
    name: str
    variable: GlobalVariable | None
    old_value: Any = None


VariableObserver = Callable[[VariableEvent], None]


def validate_variable_name(name: str) -> str:
    """Strip and validate a variable name, returning the cleaned name."""
    cleaned = name.strip() if isinstance(name, str) else ""
    if not cleaned or not cleaned.isidentifier():
        raise ValueError(
            f"Invalid variable name {name!r}: must start with a letter or "
            "underscore and contain only letters, digits and underscores"
        )
    return cleaned


class VariableStore:
    """
    Keyed registry of global variables.

    Observers are called synchronously after every successful create,
    update and delete. Exceptions raised by observers are logged and
    never reach the caller.

    read() and write() honor each variable's interaction policy by routing
    through the injected confirmation handler; get() and update() are the
    direct, non-interactive accessors.
    """

    def __init__(self, confirmation: ConfirmationHandler | None = None):
        self._variables: dict[str, GlobalVariable] = {}
        self._observers: list[VariableObserver] = []
        self._subscribers: dict[str, list[VariableObserver]] = {}
        self.confirmation = confirmation

    # --- Observers ---

    def add_observer(self, observer: VariableObserver) -> None:
        """Observe changes to every variable."""
        self._observers.append(observer)

    def remove_observer(self, observer: VariableObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def subscribe(self, name: str, callback: VariableObserver) -> Callable[[], None]:
        """
        Observe a single variable.

        Returns a function that removes the subscription.
        """
        self._subscribers.setdefault(name, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(name, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._subscribers.pop(name, None)

        return unsubscribe

    def _notify(self, event: VariableEvent) -> None:
        for callback in [*self._observers, *self._subscribers.get(event.name, [])]:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Variable observer failed for '{event.name}'")

    # --- CRUD ---

    def create(
        self,
        name: str,
        type: VariableType | str,
        value: Any = None,
        description: str = "",
        policy: InteractionPolicy | None = None,
    ) -> GlobalVariable:
        """
        Create a variable.

        Raises:
            DuplicateNameError: If the name is taken
            TypeMismatchError: If the value does not fit the type
            ValueError: If the name is not a valid identifier
        """
        name = validate_variable_name(name)
        vtype = VariableType(type)
        if name in self._variables:
            raise DuplicateNameError(name)

        coercion = coerce_value(value, vtype)
        if not coercion.ok:
            raise TypeMismatchError(name, vtype.value, value)

        variable = GlobalVariable(
            name=name,
            type=vtype,
            value=coercion.value,
            description=description,
            policy=policy,
        )
        self._variables[name] = variable
        logger.debug(f"Created variable {name} ({vtype.value})")
        self._notify(VariableEvent(VariableAction.CREATED, name, variable))
        return variable

    def get(self, name: str) -> GlobalVariable:
        """Get a variable without any interaction."""
        variable = self._variables.get(name)
        if variable is None:
            raise NotFoundError("Variable", name)
        return variable

    async def read(self, name: str) -> tuple[Any, VariableType]:
        """
        Read a variable's value and type.

        With prompt_on_read set, the stored value is offered for
        confirmation; the confirmed value is returned for this read only.
        A timeout or skip returns the stored value.
        """
        variable = self.get(name)
        value = variable.value
        policy = variable.policy
        if policy and policy.prompt_on_read:
            result = await confirm_with_timeout(self.confirmation, ConfirmationRequest(
                kind=ConfirmationKind.READ,
                title=f"Confirm value of {name}",
                value=value,
                timeout_ms=policy.timeout_ms,
                variable_name=name,
            ))
            value = result.value_or(value)
        return value, variable.type

    def update(self, name: str, value: Any, description: str | None = None) -> GlobalVariable:
        """
        Replace a variable's value.

        Raises:
            NotFoundError: If the variable does not exist
            TypeMismatchError: If the value does not fit the stored type
        """
        variable = self.get(name)
        coercion = coerce_value(value, variable.type)
        if not coercion.ok:
            raise TypeMismatchError(name, variable.type.value, value)
        self._commit(variable, coercion.value, description)
        return variable

    async def write(self, name: str, value: Any) -> bool:
        """
        Write a produced value, honoring prompt_on_write.

        Returns False when the user cancelled the write.
        """
        variable = self.get(name)
        policy = variable.policy
        if policy and policy.prompt_on_write:
            result = await confirm_with_timeout(self.confirmation, ConfirmationRequest(
                kind=ConfirmationKind.WRITE,
                title=f"Confirm new value of {name}",
                value=value,
                timeout_ms=policy.timeout_ms,
                variable_name=name,
            ))
            if result.action is ConfirmationAction.CANCEL:
                logger.info(f"Write to {name} cancelled by user")
                return False
            value = result.value_or(value)
        self.store(name, value)
        return True

    def store(self, name: str, value: Any) -> GlobalVariable:
        """
        Write a produced value, coercing softly.

        Values that only fit as text re-tag a non-binary variable as
        string. Binary variables reject non-media values.
        """
        variable = self.get(name)
        coercion = coerce_value(value, variable.type)
        if coercion.outcome is CoercionOutcome.FAILED:
            raise TypeMismatchError(name, variable.type.value, value)
        if coercion.outcome is CoercionOutcome.STRINGIFIED:
            logger.warning(
                f"Value for {name} does not fit {variable.type.value}; storing as string"
            )
            variable.type = VariableType.STRING
        self._commit(variable, coercion.value, None)
        return variable

    def _commit(self, variable: GlobalVariable, value: Any, description: str | None) -> None:
        old_value = variable.value
        variable.history.insert(0, HistoryEntry(old_value, variable.updated_at))
        del variable.history[HISTORY_LIMIT:]
        variable.value = value
        if description is not None:
            variable.description = description
        variable.updated_at = time.time()
        self._notify(VariableEvent(VariableAction.UPDATED, variable.name, variable, old_value))

    def set_policy(self, name: str, policy: InteractionPolicy | None) -> None:
        """Attach or remove an interaction policy."""
        self.get(name).policy = policy

    def delete(self, name: str) -> GlobalVariable:
        """Delete a variable. Bindings referring to it become dangling."""
        variable = self._variables.pop(name, None)
        if variable is None:
            raise NotFoundError("Variable", name)
        logger.debug(f"Deleted variable {name}")
        self._notify(VariableEvent(VariableAction.DELETED, name, None, variable.value))
        return variable

    def list(
        self,
        type: VariableType | str | None = None,
        search: str | None = None,
    ) -> list[GlobalVariable]:
        """List variables, optionally filtered by type and text search."""
        vtype = VariableType(type) if type is not None else None
        query = search.lower() if search else None
        result = []
        for variable in self._variables.values():
            if vtype is not None and variable.type is not vtype:
                continue
            if query and query not in variable.name.lower() and query not in variable.description.lower():
                continue
            result.append(variable)
        return result

    def history(self, name: str) -> list[HistoryEntry]:
        """Previous values of a variable, newest first."""
        return list(self.get(name).history)

    def clear(self) -> None:
        """Remove every variable without notifying observers."""
        self._variables.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    def __len__(self) -> int:
        return len(self._variables)

    # --- Serialization ---

    def export(self) -> dict[str, Any]:
        """Export all variables to a JSON-safe dictionary."""
        return {
            name: {
                "type": var.type.value,
                "value": encode_value(var.value),
                "description": var.description,
                "policy": var.policy.to_dict() if var.policy else None,
            }
            for name, var in self._variables.items()
        }

    def import_data(self, data: dict[str, Any], replace: bool = True) -> int:
        """
        Import variables exported by export().

        With replace=False existing variables are kept and colliding
        entries are skipped. Returns the number of variables imported.
        """
        if replace:
            self.clear()
        count = 0
        for name, entry in data.items():
            if name in self._variables:
                continue
            policy = InteractionPolicy.from_dict(entry["policy"]) if entry.get("policy") else None
            self.create(
                name,
                entry.get("type", "string"),
                decode_value(entry.get("value")),
                entry.get("description", ""),
                policy,
            )
            count += 1
        return count
