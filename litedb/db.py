"""Access facade over named, context-bound DB-API connections.

A `DB` is a logical connection name inside one execution context. Callers
open (or attach) a connection once, then run queries, DML, transactions and
batches through the facade without passing the connection around:

    with ExecutionContext() as ctx:
        db = DB(ctx)
        db.open(sqlite3, "app.db")
        try:
            new_id = db.exec_insert("INSERT INTO people(name) VALUES(?)", "id", "Alice")
            for row in db.find("SELECT * FROM people WHERE id = ?", new_id):
                ...
        finally:
            db.close()
"""

import logging
import re
import time
from contextlib import contextmanager
from typing import Optional

from . import config, registry
from .dialects import Dialect
from .exceptions import DBAccessError, DuplicateBindingError, InitializationError
from .registry import ExecutionContext
from .rows import RowStream
from .statement import PreparedStatement, close_quietly
from .statement_cache import StatementCache, statement_cache

logger = logging.getLogger(__name__)

DEFAULT_NAME = "default"

# qmark, format and pyformat parameter styles
PLACEHOLDER_TOKENS = ("?", "%s", "%(")

_SELECT = re.compile(r"\bselect\b", re.IGNORECASE)
_INSERT = re.compile(r"\binsert\b", re.IGNORECASE)


def has_placeholder(sql: str) -> bool:
    return any(token in sql for token in PLACEHOLDER_TOKENS)


class DB:
    """Named connection handle scoped to one execution context."""

    def __init__(self, context: ExecutionContext, name: str = DEFAULT_NAME,
                 cache: Optional[StatementCache] = None):
        self.context = context
        self.name = name
        self.cache = statement_cache if cache is None else cache

    def __repr__(self):
        return f"DB({self.name!r}, bound={self.has_connection()})"

    # --- Connection lifecycle ---

    def open(self, driver, url: str, user: Optional[str] = None,
             password: Optional[str] = None, **kwargs):
        """Connect through a DB-API module (anything with `connect`) and bind it.

        The URL is passed positionally, except for drivers whose connect()
        takes keywords only (PyMySQL, MySQLdb), which get it split into
        host, port, user, password and database. Raises DuplicateBindingError
        if this name is already bound, and InitializationError if the
        connection cannot be established.
        """
        self._check_existing_connection()
        args, connect_kwargs = Dialect.of_driver(driver).connect_args(url)
        connect_kwargs.update(kwargs)
        if user is not None:
            connect_kwargs["user"] = user
        if password is not None:
            connect_kwargs["password"] = password
        try:
            connection = driver.connect(*args, **connect_kwargs)
        except Exception as e:
            raise InitializationError(f"Failed to connect to URL: {url}", url=url) from e
        registry.attach(self.context, self.name, connection)
        return connection

    def open_source(self, source):
        """Bind a connection taken from an externally managed source.

        `source` may be a psycopg2 pool (`getconn`), an object exposing
        `get_connection` or `connect`, or a zero-argument callable. Pooled
        connections should be given back with `detach()` and the pool's own
        release call rather than `close()`.
        """
        self._check_existing_connection()
        acquire = _source_factory(source)
        try:
            connection = acquire()
        except Exception as e:
            raise InitializationError(f"Failed to obtain connection from {source!r}") from e
        registry.attach(self.context, self.name, connection)
        return connection

    def open_from_env(self, driver, **kwargs):
        """Open using the DATABASE_URL environment variable."""
        return self.open(driver, config.database_url(), **kwargs)

    def attach(self, connection) -> None:
        """Bind an externally managed connection under this name."""
        registry.attach(self.context, self.name, connection)

    def detach(self):
        """Unbind and return the connection without closing it.

        Cached statements for the connection are closed. Returns None (and
        logs a warning) if nothing was bound.
        """
        connection = registry.get_connection(self.context, self.name)
        if connection is None:
            logger.warning("Cannot detach connection '%s' because it is not available", self.name)
            return None
        registry.detach(self.context, self.name)
        self.cache.evict(connection)
        return connection

    def close(self, suppress_warning: bool = False) -> None:
        """Close the bound connection and unbind it.

        The binding is removed on every path, including a failed close.
        Failures are logged unless `suppress_warning` is set; never raised.
        """
        try:
            connection = registry.get_connection(self.context, self.name)
            if connection is None:
                if not suppress_warning:
                    logger.warning("Cannot close connection '%s' because it is not available", self.name)
                return
            self.cache.evict(connection)
            connection.close()
            logger.debug("Closed connection: %r", connection)
        except Exception:
            if not suppress_warning:
                logger.warning(
                    "Could not close connection '%s'! MUST INVESTIGATE POTENTIAL CONNECTION LEAK!",
                    self.name, exc_info=True,
                )
        finally:
            registry.detach(self.context, self.name)

    def connection(self):
        """The bound connection; DBAccessError if none is bound."""
        connection = registry.get_connection(self.context, self.name)
        if connection is None:
            raise DBAccessError(
                f"there is no connection '{self.name}' on {self.context.label}, "
                "are you sure you opened it?"
            )
        return connection

    def has_connection(self) -> bool:
        return registry.get_connection(self.context, self.name) is not None

    @staticmethod
    def connections(context: ExecutionContext) -> dict:
        """Name -> connection for everything bound in `context`."""
        return registry.connection_map(context)

    def _check_existing_connection(self):
        existing = registry.get_connection(self.context, self.name)
        if existing is not None:
            raise DuplicateBindingError(self.name, existing)

    # --- Queries ---

    def count(self, table: str, query: Optional[str] = None, *params) -> int:
        """Row count of `table`, optionally filtered by a WHERE clause.

        A filter of "*" counts all rows and cannot be combined with params.
        """
        if query is not None and query.strip() == "*":
            if params:
                raise ValueError("cannot use '*' and parameters")
            query = None
        sql = f"SELECT COUNT(*) FROM {table}"
        if query is not None:
            sql += f" WHERE {query}"
        return int(self.first_cell(sql, *params))

    def find(self, sql: str, *params) -> RowStream:
        """Run a select and return a lazy stream of row dicts.

        The stream owns its cursor: exhaust it, close it, or use it in a
        `with` block. Backends that buffer whole result sets by default get
        a server-side or unbuffered cursor.
        """
        if params and not has_placeholder(sql):
            raise ValueError("you passed arguments, but the query does not have placeholders: (?)")
        if not _SELECT.search(sql):
            raise ValueError("query must be 'select' query")

        connection = self.connection()
        dialect = Dialect.of(connection)
        cursor = None
        try:
            cursor = dialect.streaming_cursor(connection)
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
        except Exception as e:
            close_quietly(cursor, "cursor")
            self._log_exception("Query failed", sql, e)
            raise DBAccessError(query=sql, params=params, cause=e) from e
        return RowStream(cursor, sql, params)

    def find_all(self, sql: str, *params) -> list:
        """Entire result set as a list. Do not use it for large result sets."""
        start = time.time()
        with self.find(sql, *params) as rows:
            results = list(rows)
        self._log_query(sql, params, start)
        return results

    all = find_all

    def first_cell(self, sql: str, *params):
        """Value of the first column of the first row, or None."""
        rows = self.find_all(sql, *params)
        if not rows:
            return None
        row = rows[0]
        if len(row) > 1:
            raise ValueError(f"query: {sql} selects more than one column")
        return next(iter(row.values()))

    def first_column(self, sql: str, *params) -> list:
        """Values of a single-column query."""
        start = time.time()
        results = []
        with self.find(sql, *params) as rows:
            for row in rows:
                if len(row) > 1:
                    raise ValueError("Query selects more than one column")
                results.append(next(iter(row.values())))
        self._log_query(sql, params, start)
        return results

    # --- DML ---

    def exec(self, sql: str, *params) -> int:
        """Execute DML, returning the number of affected rows."""
        if sql.strip().lower().startswith("select"):
            raise ValueError("expected DML, but got select...")
        if params and not has_placeholder(sql):
            raise ValueError("query must be parametrized")

        connection = self.connection()
        start = time.time()
        cursor = None
        try:
            cursor = connection.cursor()
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            count = cursor.rowcount
        except Exception as e:
            self._log_exception("Query failed", sql, e)
            raise DBAccessError(query=sql, params=params, cause=e) from e
        finally:
            close_quietly(cursor, "statement")
        self._log_query(sql, params, start)
        return count

    def exec_insert(self, sql: str, key_column: str, *params):
        """Execute an insert and return the generated key of `key_column`.

        The compiled statement is cached per connection. Returns -1 when the
        backend produced no key or key retrieval is unsupported.
        """
        if not _INSERT.search(sql):
            raise ValueError("this method is only for inserts")

        connection = self.connection()
        start = time.time()
        try:
            statement = self.cache.get_or_prepare(
                connection, sql, lambda: PreparedStatement(connection, sql, key_column)
            )
            statement.clear_parameters()
            for index, param in enumerate(params, start=1):
                if isinstance(param, (bytes, bytearray)):
                    statement.bind_large_object(index, bytes(param))
                else:
                    statement.set_param(index, param)
            statement.execute_update()
        except Exception as e:
            self._log_exception("Failed query", sql, e)
            raise DBAccessError(query=sql, params=params, cause=e) from e
        self._log_query(sql, params, start)

        try:
            key = statement.generated_key()
        except Exception:
            logger.error(
                "Failed to find out the auto-incremented value, returning -1, query: %s",
                sql, exc_info=True,
            )
            return -1
        if key is None:
            return -1
        return key

    # --- Transactions ---

    def open_transaction(self) -> None:
        """Turn autocommit off on the bound connection."""
        connection = self._transaction_connection("open")
        try:
            # DB-API connections without an autocommit switch already start
            # in manual-commit mode
            if hasattr(connection, "autocommit"):
                connection.autocommit = False
        except Exception as e:
            raise DBAccessError(str(e)) from e
        logger.debug("Transaction opened on '%s'", self.name)

    def commit_transaction(self) -> None:
        connection = self._transaction_connection("commit")
        try:
            connection.commit()
        except Exception as e:
            raise DBAccessError(str(e)) from e
        logger.debug("Transaction committed on '%s'", self.name)

    def rollback_transaction(self) -> None:
        connection = self._transaction_connection("rollback")
        try:
            connection.rollback()
        except Exception as e:
            raise DBAccessError(str(e)) from e
        logger.debug("Transaction rolled back on '%s'", self.name)

    @contextmanager
    def transaction(self):
        """Open a transaction, commit on success, roll back on error."""
        self.open_transaction()
        try:
            yield self
        except Exception:
            self.rollback_transaction()
            raise
        self.commit_transaction()

    def _transaction_connection(self, action: str):
        connection = registry.get_connection(self.context, self.name)
        if connection is None:
            raise DBAccessError(
                f"Cannot {action} transaction, connection '{self.name}' not available"
            )
        return connection

    # --- Batches ---

    def start_batch(self, sql: str) -> PreparedStatement:
        """Compile `sql` for batched execution. Not cached; the caller closes it."""
        connection = self.connection()
        try:
            return PreparedStatement(connection, sql)
        except Exception as e:
            raise DBAccessError(query=sql, cause=e) from e

    def add_batch(self, statement: PreparedStatement, *params) -> None:
        """Bind `params` positionally and queue them as one batch unit."""
        statement.set_params(params)
        statement.add_batch()

    def execute_batch(self, statement: PreparedStatement) -> int:
        """Run every queued unit and clear parameters for the next round."""
        try:
            return statement.execute_batch()
        except Exception as e:
            raise DBAccessError(query=statement.sql, cause=e) from e

    # --- Logging ---

    def _log_query(self, sql, params, start):
        logger.debug(
            "Query: %s, params: %s, took: %d milliseconds",
            sql, ", ".join(str(p) for p in params), (time.time() - start) * 1000,
        )

    def _log_exception(self, message, sql, error):
        if config.log_exceptions():
            logger.error("%s: %s", message, sql, exc_info=error)


def _source_factory(source):
    for attr in ("getconn", "get_connection", "connect"):
        factory = getattr(source, attr, None)
        if callable(factory):
            return factory
    if callable(source):
        return source
    raise TypeError(f"not a connection source: {source!r}")
