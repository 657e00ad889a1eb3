"""Logging configuration for agentsync.

Output goes to stderr (``-v``/``-vv``) and/or a log file. GitPython logs
every git invocation on the ``git`` logger; it is routed to the same
handlers and only shown at debug verbosity.
"""

import logging
import sys
from pathlib import Path

FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_ROUTED = ("agentsync", "git")


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


def setup_logging(verbose: int = 0, log_file: Path | None = None) -> logging.Logger:
    """Configure the ``agentsync`` and ``git`` loggers and return the former.

    Safe to call more than once per process: handlers from an earlier call
    are closed and replaced.

    Args:
        verbose: 0 logs nothing to stderr, 1 logs INFO, 2+ logs DEBUG and git commands
        log_file: Optional file that receives the same records
    """
    logger = logging.getLogger("agentsync")
    for name in _ROUTED:
        _reset(logging.getLogger(name))

    if verbose == 0 and log_file is None:
        return logger

    level = logging.DEBUG if verbose >= 2 else logging.INFO
    formatter = logging.Formatter(FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = []
    if verbose > 0:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        for name in _ROUTED:
            logging.getLogger(name).addHandler(handler)

    logger.setLevel(level)
    git_logger = logging.getLogger("git")
    git_logger.setLevel(logging.DEBUG if verbose >= 2 else logging.WARNING)
    for name in _ROUTED:
        logging.getLogger(name).propagate = False

    logger.debug("Logging configured (verbose=%d, log_file=%s)", verbose, log_file)
    return logger
