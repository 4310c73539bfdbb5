"""Lightweight DB-API access layer: named connections per execution context."""

from .db import DB, DEFAULT_NAME
from .dialects import Dialect
from .exceptions import (
    DBAccessError,
    DuplicateBindingError,
    InitializationError,
    LiteDBError,
)
from .registry import ExecutionContext
from .rows import RowStream
from .statement import PreparedStatement
from .statement_cache import StatementCache, statement_cache

__all__ = [
    "DB",
    "DEFAULT_NAME",
    "Dialect",
    "DBAccessError",
    "DuplicateBindingError",
    "InitializationError",
    "LiteDBError",
    "ExecutionContext",
    "RowStream",
    "PreparedStatement",
    "StatementCache",
    "statement_cache",
]
