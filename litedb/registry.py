"""Per-execution-context registry of named connections.

An execution context is one worker's private scope: a thread, a task, or any
sequence of operations that never interleave. Callers create one
``ExecutionContext`` per worker and pass it explicitly. Bindings are never
shared between contexts, so nothing here needs a lock.
"""

import logging
from typing import Dict, List, Optional

from .exceptions import DuplicateBindingError

logger = logging.getLogger(__name__)


class ExecutionContext:
    """Mapping of logical connection name -> live connection for one worker.

    Use it as a context manager around the worker's lifetime; bindings still
    present on exit are reported as leaks and dropped (not closed).
    """

    def __init__(self, label: Optional[str] = None):
        self.label = label or f"context-{id(self):x}"
        self._connections: Dict[str, object] = {}

    def names(self) -> List[str]:
        return list(self._connections)

    def __len__(self):
        return len(self._connections)

    def __repr__(self):
        return f"ExecutionContext({self.label!r}, names={self.names()!r})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for name, connection in self._connections.items():
            logger.warning(
                "Connection '%s' still bound on %s at teardown: %r. "
                "MUST INVESTIGATE POTENTIAL CONNECTION LEAK!",
                name, self.label, connection,
            )
        self._connections.clear()


def get_connection(context: ExecutionContext, name: str):
    """Return the connection bound under `name`, or None."""
    return context._connections.get(name)


def attach(context: ExecutionContext, name: str, connection) -> None:
    """Bind `connection` under `name`; the name must not already be bound."""
    existing = context._connections.get(name)
    if existing is not None:
        raise DuplicateBindingError(name, existing)
    context._connections[name] = connection
    logger.debug("Attached connection %r named '%s' to %s", connection, name, context.label)


def detach(context: ExecutionContext, name: str) -> None:
    """Remove the binding for `name`. The connection itself is untouched."""
    if context._connections.pop(name, None) is not None:
        logger.debug("Detached connection '%s' from %s", name, context.label)


def list_all(context: ExecutionContext) -> list:
    """All connections bound in this context, for shutdown sweeps."""
    return list(context._connections.values())


def connection_map(context: ExecutionContext) -> dict:
    """Copy of the name -> connection mapping."""
    return dict(context._connections)
