"""Cross-context cache of compiled insert statements.

Layout is ``connection -> {sql -> PreparedStatement}``. The outer mapping is
shared by every execution context and guarded by a lock. Each inner mapping
belongs to one connection, and a connection is driven by exactly one context
at a time; callers must uphold that, it is not checked here.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from .statement import PreparedStatement, close_quietly

logger = logging.getLogger(__name__)


class StatementCache:
    def __init__(self):
        self._lock = threading.Lock()
        # Keyed by id(connection); cached statements hold a reference to the
        # connection, so the id cannot be reused while an entry exists.
        self._statements: Dict[int, Dict[str, PreparedStatement]] = {}

    def lookup(self, connection, sql: str) -> Optional[PreparedStatement]:
        with self._lock:
            inner = self._statements.get(id(connection))
        if inner is None:
            return None
        return inner.get(sql)

    def store(self, connection, sql: str, statement: PreparedStatement) -> None:
        with self._lock:
            inner = self._statements.setdefault(id(connection), {})
        displaced = inner.get(sql)
        inner[sql] = statement
        if displaced is not None and displaced is not statement:
            close_quietly(displaced, "displaced cached statement")

    def get_or_prepare(
        self, connection, sql: str, factory: Callable[[], PreparedStatement]
    ) -> PreparedStatement:
        """Return the cached statement for `sql`, compiling it on first use.

        Lookup and store happen under one lock hold, so concurrent callers on
        the same connection never compile the same SQL twice.
        """
        with self._lock:
            inner = self._statements.get(id(connection), {})
            statement = inner.get(sql)
            if statement is None or statement.closed:
                statement = factory()
                inner[sql] = statement
                self._statements[id(connection)] = inner
                logger.debug("Cached statement for connection %r: %s", connection, sql)
            return statement

    def evict(self, connection) -> int:
        """Drop and close every statement cached for `connection`.

        Close failures are logged and swallowed. Returns the number evicted.
        """
        with self._lock:
            inner = self._statements.pop(id(connection), None)
        if not inner:
            return 0
        for statement in inner.values():
            close_quietly(statement, "cached statement")
        logger.debug("Evicted %d cached statement(s) for connection %r", len(inner), connection)
        return len(inner)

    def size(self, connection=None) -> int:
        """Number of cached statements for one connection, or overall."""
        with self._lock:
            if connection is not None:
                return len(self._statements.get(id(connection), {}))
            return sum(len(inner) for inner in self._statements.values())


# Shared by every DB facade unless one is injected.
statement_cache = StatementCache()
