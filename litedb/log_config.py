"""Logging setup for applications embedding litedb.

The library itself only calls `logging.getLogger(__name__)`; this helper is
for scripts that want query timings and connection-leak warnings on the
console and, optionally, in a rotating file.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "LITEDB_LOG_LEVEL"


def setup_logging(level=None, log_file=None):
    """Console handler on the root logger, plus `log_file` for litedb's loggers.

    `level` defaults to LITEDB_LOG_LEVEL (or INFO). The file rotates at
    5 MB with 3 backups. Does nothing if the root logger is already set up.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()

    formatter = logging.Formatter(LOG_FORMAT)
    root.setLevel(level)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
        handler.setFormatter(formatter)
        logging.getLogger("litedb").addHandler(handler)
