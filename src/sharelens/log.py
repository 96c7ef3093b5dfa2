"""Logging setup: Rich console handler on the ``sharelens`` logger."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("LiteLLM", "litellm", "httpx", "httpcore", "urllib3")


def configure_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Attach a RichHandler to the package logger (idempotent).

    Library modules only call ``logging.getLogger(__name__)``; handlers are
    installed once, by the CLI entry point.

    Args:
        verbose: Log at DEBUG instead of INFO.
        console: Console to write to (defaults to stderr).

    Returns:
        The configured ``sharelens`` logger.
    """
    logger = logging.getLogger("sharelens")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            rich_tracebacks=True,
            show_path=verbose,
            log_time_format="[%H:%M:%S]",
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
