"""Logging configuration helpers."""

import logging


def configure_logging(verbose: bool = False) -> None:
    """Configure application logging with a single stderr handler."""
    logger = logging.getLogger("food_tracker")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
