"""Shared fixtures for the litedb test suite."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from litedb import DB, ExecutionContext, StatementCache


# ---------------------------------------------------------------------------
# Context / cache fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def context():
    """Execution context for a single test worker."""
    return ExecutionContext("test-worker")


@pytest.fixture
def cache():
    """Private statement cache so tests never share cached statements."""
    return StatementCache()


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sqlite_db(context, cache):
    """DB bound to an in-memory SQLite database with a `people` table."""
    db = DB(context, cache=cache)
    db.open(sqlite3, ":memory:")
    db.exec("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT, photo BLOB)")
    yield db
    db.close(suppress_warning=True)


@pytest.fixture
def mock_cursor():
    """Mock DB-API cursor."""
    cursor = MagicMock()
    cursor.rowcount = 1
    cursor.lastrowid = 7
    cursor.description = [("id",), ("name",)]
    cursor.fetchmany.return_value = []
    return cursor


@pytest.fixture
def mock_connection(mock_cursor):
    """Mock DB-API connection handing out `mock_cursor`."""
    connection = MagicMock()
    connection.cursor.return_value = mock_cursor
    return connection


@pytest.fixture
def mock_db(context, cache, mock_connection):
    """DB with `mock_connection` attached under the default name."""
    db = DB(context, cache=cache)
    db.attach(mock_connection)
    return db
