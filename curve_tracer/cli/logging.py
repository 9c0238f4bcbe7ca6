"""
Console logging for the curve tracer CLI.

Each level is routed to its own stream with a short prefix:

    DEBUG    stderr  "[DEBUG] "   (only with -v)
    INFO     stdout  ""           (hidden with -q)
    WARNING  stdout  "! "
    ERROR    stderr  "!! "        (CRITICAL too)
"""

import argparse
import logging
import sys
from typing import Iterable, Optional, TextIO

LEVEL_PREFIXES = {
    logging.DEBUG: '[DEBUG] ',
    logging.INFO: '',
    logging.WARNING: '! ',
    logging.ERROR: '!! ',
}


class PrefixFormatter(logging.Formatter):
    """Bare message with a fixed prefix, no timestamps or logger names."""

    def __init__(self, prefix: str = ''):
        super().__init__()
        self.prefix = prefix

    def format(self, record):
        return f"{self.prefix}{record.getMessage()}"


class LevelFilter(logging.Filter):
    """Filter that accepts only specific log levels."""

    def __init__(self, levels):
        super().__init__()
        self.levels = levels if isinstance(levels, (list, tuple)) else [levels]

    def filter(self, record):
        return record.levelno in self.levels


def _route(
    logger: logging.Logger,
    stream: TextIO,
    level: int,
    only: Optional[Iterable[int]] = None
) -> None:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    if only is not None:
        handler.addFilter(LevelFilter(list(only)))
    handler.setFormatter(PrefixFormatter(LEVEL_PREFIXES[level]))
    logger.addHandler(handler)


def setup_logging(args: argparse.Namespace) -> None:
    """
    Configure the root logger from command line arguments.

    With ``-v`` the Gauss-Newton refiner's per-iteration trace appears on
    stderr; ``-q`` leaves only warnings and errors.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments with 'quiet' and 'verbose' attributes
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    if not args.quiet:
        _route(root_logger, sys.stdout, logging.INFO, only=[logging.INFO])
    _route(root_logger, sys.stdout, logging.WARNING, only=[logging.WARNING])
    _route(root_logger, sys.stderr, logging.ERROR)
    if args.verbose >= 1:
        _route(root_logger, sys.stderr, logging.DEBUG, only=[logging.DEBUG])


def log_separator(length: int = 50, char: str = "=") -> None:
    """Log a separator line for visual clarity."""
    logging.getLogger(__name__).info(char * length)
