"""Logging setup for the CLI.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed once, here, when the CLI starts.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from apimap.helpers.console import console

LOGGER_NAME = "apimap"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Route the ``apimap`` logger hierarchy through a rich handler."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=console,
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger
