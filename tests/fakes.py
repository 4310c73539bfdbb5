"""Driver connection stand-ins for dialect-dependent tests."""

from unittest.mock import MagicMock


class FakeConnection:
    """Connection stand-in whose class module decides the detected dialect."""

    def __init__(self):
        self.cursor = MagicMock()
        self.commit = MagicMock()
        self.rollback = MagicMock()
        self.close = MagicMock()
        self.autocommit = True


class FakePgConnection(FakeConnection):
    pass


FakePgConnection.__module__ = "psycopg2.extensions"


class FakeMySQLConnection(FakeConnection):
    pass


FakeMySQLConnection.__module__ = "pymysql.connections"
