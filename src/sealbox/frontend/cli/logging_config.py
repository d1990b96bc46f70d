"""Lightweight logging setup for the command line."""

import logging
import sys


def configure_logging(verbosity: int = 0) -> None:
    # Configure root logger once; -v for INFO, -vv for DEBUG.
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
