"""Error types raised by the access layer.

Argument-validation failures are plain ``ValueError`` raised before any SQL
reaches the backend; everything here signals a connection or execution
problem.
"""

from typing import Optional, Sequence


class LiteDBError(Exception):
    """Base class for all litedb errors."""


class InitializationError(LiteDBError):
    """A physical connection could not be established."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class DuplicateBindingError(LiteDBError):
    """A connection is already bound under this name in the current context.

    Signals a missing close/detach in the caller, never a retryable condition.
    """

    def __init__(self, name: str, existing=None):
        super().__init__(
            f"You are opening a connection '{name}' without closing a previous one. "
            f"Check your logic. Connection still remains on context: {existing!r}"
        )
        self.name = name


class DBAccessError(LiteDBError):
    """Operational failure, usually wrapping a native driver error.

    When raised for a failed statement it carries the SQL text and the bound
    parameters; the native error is available as ``__cause__``.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        query: Optional[str] = None,
        params: Optional[Sequence] = None,
        cause: Optional[BaseException] = None,
    ):
        self.query = query
        self.params = tuple(params) if params else ()
        if message is None:
            message = _describe(query, self.params, cause)
        super().__init__(message)


def _describe(query, params, cause) -> str:
    parts = [str(cause) if cause is not None else "database access failed"]
    if query is not None:
        parts.append(f"query: {query}")
    if params:
        parts.append("params: " + ", ".join(str(p) for p in params))
    return ", ".join(parts)
