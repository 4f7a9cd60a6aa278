"""
Selection context logger.

Provides logging interface for selection context with automatic [select] prefix.
All selection modules should import from this module, not from utils.logger directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[select]"


def _log_info(message: str) -> None:
    """Log info message with [select] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [select] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [select] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")
