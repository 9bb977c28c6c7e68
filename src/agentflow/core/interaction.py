"""
Interaction - Suspend/resume primitives for human-in-the-loop operations.

This module provides:
- PendingResolution: A token completed exactly once by a resume call
- ConfirmationRequest/Result: The payloads exchanged with a UI collaborator
- ConfirmationHandler: Protocol for the injected confirmation capability
- InteractionBroker: Handler that parks requests until a UI responds
- confirm_with_timeout: Runs a confirmation with a timer-driven fallback
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable


logger = logging.getLogger(__name__)

_token_ids = itertools.count(1)


class ResolutionCancelled(Exception):
    """The pending resolution was abandoned before anyone resumed it."""
    pass


class PendingResolution:
    """
    A suspension point waiting for an external resume.

    The first call to resolve() or cancel() wins; later calls return False
    and have no effect.
    """

    def __init__(self, label: str = ""):
        self.id = f"pending-{next(_token_ids)}"
        self.label = label
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        """Complete the token with a value."""
        if self._future.done():
            logger.debug(f"Ignoring second resolution of {self.id}")
            return False
        self._future.set_result(value)
        return True

    def cancel(self, reason: str = "cancelled") -> bool:
        """Abort the wait; the waiter sees ResolutionCancelled."""
        if self._future.done():
            return False
        self._future.set_exception(ResolutionCancelled(reason))
        return True

    async def wait(self) -> Any:
        """Suspend until resolved."""
        return await self._future

    def __repr__(self) -> str:
        return f"PendingResolution({self.id}, label={self.label!r}, done={self.done})"


class ConfirmationKind(Enum):
    """What the confirmation is about."""
    READ = "read"
    WRITE = "write"
    INPUT = "input"


class ConfirmationAction(Enum):
    """How the user answered a confirmation."""
    CONFIRM = "confirm"   # Use the value returned with the result
    SKIP = "skip"         # Keep the original value
    CLEAR = "clear"       # Use an empty string
    CANCEL = "cancel"     # Abandon the operation
    TIMEOUT = "timeout"   # Nobody answered in time


@dataclass
class ConfirmationRequest:
    """A request for human confirmation of a value."""
    kind: ConfirmationKind
    title: str
    value: Any = None
    timeout_ms: int = 20000
    variable_name: str | None = None
    node_id: str | None = None
    message: str = ""


@dataclass
class ConfirmationResult:
    """The answer to a ConfirmationRequest."""
    action: ConfirmationAction
    value: Any = None

    def value_or(self, original: Any) -> Any:
        """Effective value given the value originally offered."""
        if self.action is ConfirmationAction.CONFIRM:
            return self.value
        if self.action is ConfirmationAction.CLEAR:
            return ""
        return original


@runtime_checkable
class ConfirmationHandler(Protocol):
    """Capability that asks a human to confirm or edit a value."""

    async def request(self, request: ConfirmationRequest) -> ConfirmationResult:
        ...


async def confirm_with_timeout(
    handler: ConfirmationHandler | None,
    request: ConfirmationRequest,
) -> ConfirmationResult:
    """
    Ask for confirmation, falling back when the timeout elapses.

    Without a handler the operation proceeds as if the user skipped.
    A timeout_ms of 0 or less waits indefinitely.
    """
    if handler is None:
        return ConfirmationResult(ConfirmationAction.SKIP)

    timeout = request.timeout_ms / 1000 if request.timeout_ms and request.timeout_ms > 0 else None
    try:
        return await asyncio.wait_for(handler.request(request), timeout=timeout)
    except asyncio.TimeoutError:
        logger.info(f"Confirmation '{request.title}' timed out after {request.timeout_ms}ms")
        return ConfirmationResult(ConfirmationAction.TIMEOUT)


@dataclass
class _ParkedRequest:
    request: ConfirmationRequest
    token: PendingResolution


class InteractionBroker:
    """
    Confirmation handler that parks requests until the UI responds.

    The UI subscribes with on_request() to learn about new requests and
    answers them with respond(). Requests abandoned by a timeout are
    dropped from the pending list.
    """

    def __init__(self) -> None:
        self._parked: dict[str, _ParkedRequest] = {}
        self._listeners: list[Callable[[str, ConfirmationRequest], None]] = []

    def on_request(self, callback: Callable[[str, ConfirmationRequest], None]) -> None:
        """Register a callback invoked with (token_id, request)."""
        self._listeners.append(callback)

    async def request(self, request: ConfirmationRequest) -> ConfirmationResult:
        token = PendingResolution(label=request.title)
        self._parked[token.id] = _ParkedRequest(request, token)
        for callback in self._listeners:
            try:
                callback(token.id, request)
            except Exception:
                logger.exception("Confirmation listener failed")
        try:
            return await token.wait()
        finally:
            self._parked.pop(token.id, None)

    def respond(
        self,
        token_id: str,
        action: ConfirmationAction,
        value: Any = None,
    ) -> bool:
        """Answer a parked request. Returns False if it is no longer pending."""
        parked = self._parked.get(token_id)
        if parked is None:
            return False
        return parked.token.resolve(ConfirmationResult(action, value))

    def pending(self) -> dict[str, ConfirmationRequest]:
        """Requests currently waiting for an answer."""
        return {tid: p.request for tid, p in self._parked.items()}


@dataclass
class ScriptedConfirmationHandler:
    """
    Handler that answers from a fixed list of results.

    Useful for headless runs and tests; requests beyond the script are
    answered with SKIP.
    """
    results: list[ConfirmationResult] = field(default_factory=list)
    seen: list[ConfirmationRequest] = field(default_factory=list)

    async def request(self, request: ConfirmationRequest) -> ConfirmationResult:
        self.seen.append(request)
        if self.results:
            return self.results.pop(0)
        return ConfirmationResult(ConfirmationAction.SKIP)
