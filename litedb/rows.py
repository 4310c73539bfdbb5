"""Lazy row streams returned by DB.find()."""

import logging
from collections import deque
from collections.abc import Mapping
from typing import Optional, Sequence

from . import config
from .exceptions import DBAccessError
from .statement import close_quietly

logger = logging.getLogger(__name__)


class RowStream:
    """Forward-only, non-restartable iterator of row dicts.

    Owns the cursor it reads from and closes it exactly once: when the rows
    run out, when a fetch fails, or when `close()` is called. Callers that
    stop early must close the stream (or use it in a `with` block), otherwise
    the cursor leaks.
    """

    def __init__(self, cursor, query: str, params: Sequence = (),
                 fetch_size: Optional[int] = None):
        self.query = query
        self.params = tuple(params)
        self._cursor = cursor
        self._fetch_size = fetch_size or config.fetch_size()
        self._buffer = deque()
        self._columns = None
        self._exhausted = False
        self.closed = False
        self.rows_read = 0

    def __iter__(self):
        return self

    def __next__(self) -> dict:
        if self.closed:
            raise StopIteration
        if not self._buffer and not self._fill():
            self.close()
            raise StopIteration
        self.rows_read += 1
        return self._to_mapping(self._buffer.popleft())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._buffer.clear()
        close_quietly(self._cursor, "result cursor")
        self._cursor = None

    def _fill(self) -> bool:
        if self._exhausted:
            return False
        try:
            rows = self._cursor.fetchmany(self._fetch_size)
        except Exception as e:
            self.close()
            raise DBAccessError(query=self.query, params=self.params, cause=e) from e
        if not rows:
            self._exhausted = True
            return False
        self._buffer.extend(rows)
        return True

    def _to_mapping(self, row) -> dict:
        if isinstance(row, Mapping):
            return dict(row)
        if self._columns is None:
            self._columns = [column[0] for column in self._cursor.description]
        return dict(zip(self._columns, row))
