"""
Logging configuration utilities.

This module provides functions for setting up and configuring logging.
"""
import logging
import sys
from typing import Callable, Optional

PROGRESS_PREFIX = "create-backingfiles: "


class ProgressHookHandler(logging.Handler):
    """Forward log messages to an external progress callback."""

    def __init__(self, hook: Callable[[str], None], level: int = logging.INFO):
        super().__init__(level)
        self.hook = hook

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.hook(f"{PROGRESS_PREFIX}{record.getMessage()}")
        except Exception:
            self.handleError(record)

def setup_logging(
    debug: bool = False,
    progress_hook: Optional[Callable[[str], None]] = None
) -> Optional[ProgressHookHandler]:
    """
    Configure logging for the application.

    Args:
        debug: Whether to enable debug logging
        progress_hook: Optional callback receiving every INFO+ message,
            used by a controlling setup process to collect progress

    Returns:
        The handler attached for progress_hook, if any
    """
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger('backingfiles')
    logger.setLevel(level)

    if progress_hook is None:
        return None

    handler = ProgressHookHandler(progress_hook)
    logger.addHandler(handler)
    return handler
