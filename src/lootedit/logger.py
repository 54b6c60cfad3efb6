"""Logging setup.

A full-screen TUI owns the terminal, so records go to a file when one is
given and to the Textual devtools console (``textual console``) otherwise.
"""

from __future__ import annotations

import logging

from textual.logging import TextualHandler

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_file: str | None = None, verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger("lootedit")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = TextualHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
