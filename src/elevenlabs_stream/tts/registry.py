"""Bookkeeping for the contexts multiplexed onto one streaming connection."""

import logging
import threading
from enum import Enum

from ..errors import ContextStateError, ValidationError
from .protocol import InboundFrame

logger = logging.getLogger(__name__)


class _SingleContext:
    """Identifier of the one implicit context on a single-context connection."""

    def __repr__(self) -> str:
        return "SINGLE_CONTEXT"


SINGLE_CONTEXT = _SingleContext()


class ContextState(str, Enum):
    """Lifecycle of one context."""

    INITIALIZED = "initialized"
    STREAMING = "streaming"
    FLUSHED = "flushed"
    CLOSING = "closing"
    CLOSED = "closed"


_LIVE_STATES = frozenset({ContextState.INITIALIZED, ContextState.STREAMING, ContextState.FLUSHED})


class ContextRegistry:
    """Tracks context identifiers and their state for one connection.

    Identifiers are never reused within a connection's lifetime: registering
    an identifier that is closing or closed raises ContextStateError.

    All transitions run under one lock, so registration and close of the same
    identifier cannot interleave when driven from several threads.
    """

    def __init__(self, multi: bool = True) -> None:
        self.multi = multi
        self._states: dict[str | _SingleContext, ContextState] = {}
        self._lock = threading.Lock()

    def register(self, context_id: str | _SingleContext) -> None:
        """Record a newly initialized context.

        Raises:
            ContextStateError: On duplicate or reused identifiers, or a second
                context on a single-context connection.
        """
        self._check_identifier(context_id)
        with self._lock:
            state = self._states.get(context_id)
            if state in _LIVE_STATES:
                raise ContextStateError(f"Context {context_id!r} is already initialized")
            if state is not None:
                raise ContextStateError(
                    f"Context {context_id!r} was closed and cannot be reused on this connection"
                )
            self._states[context_id] = ContextState.INITIALIZED
        logger.debug(f"Context {context_id!r} initialized")

    def state(self, context_id: str | _SingleContext) -> ContextState | None:
        """Current state, or None for identifiers never registered."""
        with self._lock:
            return self._states.get(context_id)

    def require_live(self, context_id: str | _SingleContext) -> ContextState:
        """Return the state of a context that may still receive frames.

        Raises:
            ContextStateError: If the context is unknown, closing or closed.
        """
        with self._lock:
            state = self._states.get(context_id)
        if state is None:
            raise ContextStateError(f"Context {context_id!r} has not been initialized")
        if state not in _LIVE_STATES:
            raise ContextStateError(f"Context {context_id!r} is {state.value}")
        return state

    def mark_streaming(self, context_id: str | _SingleContext) -> None:
        self._transition(context_id, ContextState.STREAMING)

    def mark_flushed(self, context_id: str | _SingleContext) -> None:
        self._transition(context_id, ContextState.FLUSHED)

    def begin_close(self, context_id: str | _SingleContext) -> None:
        self._transition(context_id, ContextState.CLOSING)

    def mark_closed(self, context_id: str | _SingleContext) -> None:
        """Retire a context once its close round-trips or the socket closes."""
        with self._lock:
            if context_id not in self._states:
                return
            self._states[context_id] = ContextState.CLOSED
        logger.debug(f"Context {context_id!r} closed")

    def close_all(self) -> None:
        """Retire every context; called when the connection goes away."""
        with self._lock:
            for context_id in self._states:
                self._states[context_id] = ContextState.CLOSED

    def live_contexts(self) -> list[str | _SingleContext]:
        with self._lock:
            return [cid for cid, state in self._states.items() if state in _LIVE_STATES]

    def route(self, frame: InboundFrame) -> str | _SingleContext | None:
        """Return the context an inbound frame belongs to.

        Single-context connections route everything to SINGLE_CONTEXT. On
        multi-context connections frames without a context id return None.
        """
        if not self.multi:
            return SINGLE_CONTEXT
        return frame.context_id

    def _transition(self, context_id: str | _SingleContext, target: ContextState) -> None:
        with self._lock:
            state = self._states.get(context_id)
            if state is None:
                raise ContextStateError(f"Context {context_id!r} has not been initialized")
            if state not in _LIVE_STATES:
                raise ContextStateError(f"Context {context_id!r} is {state.value}")
            self._states[context_id] = target

    def _check_identifier(self, context_id: str | _SingleContext) -> None:
        if not self.multi:
            if context_id is not SINGLE_CONTEXT:
                raise ContextStateError(
                    "Single-context connections carry exactly one implicit context"
                )
            return
        if not isinstance(context_id, str) or not context_id:
            raise ValidationError("context_id is required")
