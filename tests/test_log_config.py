"""Tests for litedb/log_config.py."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from litedb.log_config import setup_logging


@pytest.fixture
def clean_logging(monkeypatch):
    """Give setup_logging an unconfigured root and restore it afterwards."""
    root = logging.getLogger()
    package = logging.getLogger("litedb")
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)
    monkeypatch.setattr(package, "handlers", [])
    yield root, package
    for handler in package.handlers:
        handler.close()


def test_skips_when_root_already_configured(tmp_path, monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [logging.NullHandler()])
    setup_logging(log_file=str(tmp_path / "litedb.log"))
    assert not (tmp_path / "litedb.log").exists()


def test_console_only_without_log_file(clean_logging):
    root, package = clean_logging
    setup_logging(level=logging.DEBUG)
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
    assert package.handlers == []


def test_level_from_env(clean_logging, monkeypatch):
    root, _ = clean_logging
    monkeypatch.setenv("LITEDB_LOG_LEVEL", "warning")
    setup_logging()
    assert root.level == logging.WARNING


def test_rotating_file_for_package_loggers(clean_logging, tmp_path):
    _, package = clean_logging
    setup_logging(level=logging.INFO, log_file=str(tmp_path / "litedb.log"))
    assert [type(h) for h in package.handlers] == [RotatingFileHandler]
    logging.getLogger("litedb.db").warning("connection leak")
    package.handlers[0].flush()
    assert "connection leak" in (tmp_path / "litedb.log").read_text()
