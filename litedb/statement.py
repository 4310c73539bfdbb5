"""Compiled, parameter-ready statements over DB-API cursors."""

import logging
from typing import Dict, List, Optional, Sequence

from .dialects import Dialect, driver_module

logger = logging.getLogger(__name__)


def close_quietly(resource, what: str = "resource") -> None:
    """Close `resource`, logging instead of raising on failure."""
    if resource is None:
        return
    try:
        resource.close()
    except Exception as e:
        logger.warning("Failed to close %s %r: %s", what, resource, e)


def _driver_errors(module, *names) -> tuple:
    return tuple(getattr(module, name) for name in names if hasattr(module, name))


class PreparedStatement:
    """SQL text compiled against one connection with its own cursor.

    Parameters are bound positionally (1-based) and kept until cleared, so a
    statement can be re-executed or fed into a batch. When `key_column` is
    given the statement is compiled so the generated key can be read back
    after `execute_update()`.
    """

    def __init__(self, connection, sql: str, key_column: Optional[str] = None,
                 dialect: Optional[Dialect] = None):
        self.connection = connection
        self.sql = sql
        self.key_column = key_column
        self.dialect = dialect if dialect is not None else Dialect.of(connection)
        self.compiled_sql = self.dialect.key_returning_sql(sql, key_column)
        self._params: Dict[int, object] = {}
        self._batch: List[tuple] = []
        self._cursor = connection.cursor()
        self.closed = False

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<PreparedStatement {state} {self.sql!r}>"

    # --- Parameters ---

    def set_param(self, index: int, value) -> None:
        if index < 1:
            raise ValueError(f"parameter index must start at 1, got {index}")
        self._params[index] = value

    def set_params(self, params: Sequence) -> None:
        for index, value in enumerate(params, start=1):
            self.set_param(index, value)

    def bind_large_object(self, index: int, data: bytes) -> None:
        """Bind `data` as a driver large-object value, else as raw bytes."""
        module = driver_module(self.connection)
        try:
            value = module.Binary(data)
        except (AttributeError, NotImplementedError):
            logger.debug("Driver %r has no Binary constructor, binding raw bytes", module)
            value = data
        except _driver_errors(module, "NotSupportedError") as e:
            logger.debug("Large objects not supported by driver, binding raw bytes: %s", e)
            value = data
        except (TypeError, ValueError) + _driver_errors(module, "Error") as e:
            logger.debug("Could not wrap large object, binding raw bytes: %s", e)
            value = data
        self.set_param(index, value)

    def clear_parameters(self) -> None:
        self._params.clear()

    def bound_params(self) -> tuple:
        if not self._params:
            return ()
        highest = max(self._params)
        missing = [i for i in range(1, highest + 1) if i not in self._params]
        if missing:
            raise ValueError(f"parameter(s) not set: {missing}")
        return tuple(self._params[i] for i in range(1, highest + 1))

    # --- Execution ---

    def execute_update(self) -> int:
        """Execute with the bound parameters, returning the affected-row count."""
        self._ensure_open()
        params = self.bound_params()
        if params:
            self._cursor.execute(self.compiled_sql, params)
        else:
            self._cursor.execute(self.compiled_sql)
        return self._cursor.rowcount

    def generated_key(self):
        """First generated key of the last execution, or None.

        With RETURNING the value is read from the key column itself, so a
        NULL key column gives None.
        """
        self._ensure_open()
        if self.dialect.returns_keys and self.key_column:
            row = self._cursor.fetchone()
            if row is None:
                return None
            if isinstance(row, dict):
                return next(iter(row.values()), None)
            return row[0]
        return getattr(self._cursor, "lastrowid", None)

    def add_batch(self) -> None:
        """Queue the currently bound parameters as one execution unit."""
        self._ensure_open()
        self._batch.append(self.bound_params())

    def pending_batch(self) -> int:
        return len(self._batch)

    def execute_batch(self) -> int:
        """Execute every queued unit, then reset for the next batch round."""
        self._ensure_open()
        if not self._batch:
            return 0
        try:
            self._cursor.executemany(self.compiled_sql, self._batch)
            return self._cursor.rowcount
        finally:
            self._batch.clear()
            self.clear_parameters()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._batch.clear()
        self._params.clear()
        self._cursor.close()

    def _ensure_open(self):
        if self.closed:
            raise ValueError(f"statement is closed: {self.sql}")
