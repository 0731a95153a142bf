import logging
import logging.handlers
import os
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

try:
    __version__ = version("lktlog")
except PackageNotFoundError:  # pragma: no cover
    # package is not installed
    __version__ = "0.0.0"

# Root logger; all lktlog modules log through it.
logger = logging.getLogger()

CONSOLE_FORMAT = "%(levelname)-8s|%(message)s"
LOGFILE_FORMAT = "%(asctime)s|%(name)-20s|%(levelname)-8s|%(message)s"
LOGFILE_MAX_BYTES = 100000
LOGFILE_BACKUPS = 5

# Libraries that are chatty at DEBUG level (rdflib plugin loading, openpyxl
# reader warnings). They never log below WARNING.
LIBRARY_LOGGERS = ("rdflib", "openpyxl")


def _loglevel_from_env(default: int) -> int:
    name = os.getenv("LOGLEVEL", "").strip().upper()
    level = logging.getLevelName(name) if name else default
    if not isinstance(level, int):
        # unknown names resolve to "Level <name>"
        level = default
    return min(logging.CRITICAL, max(level, logging.NOTSET))


def _logfile_handler(logfile: Path, loglevel: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        logfile, maxBytes=LOGFILE_MAX_BYTES, backupCount=LOGFILE_BACKUPS
    )
    handler.setLevel(loglevel)
    handler.setFormatter(
        logging.Formatter(fmt=LOGFILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )
    return handler


def setup_logging(loglevel: int = logging.INFO, logfile: Path | None = None):
    """
    Setup logging to console and optionally to a rotating logfile.

    The environment variable LOGLEVEL takes precedence over `loglevel`.
    Loggers of the rdflib and openpyxl libraries are kept at WARNING or above
    so that a DEBUG run shows the conversion steps of lktlog only.
    """
    loglevel = _loglevel_from_env(loglevel)
    logging.basicConfig(level=loglevel, format=CONSOLE_FORMAT)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(loglevel, logging.WARNING))

    if logfile is not None:
        logger.addHandler(_logfile_handler(logfile, loglevel))
