"""
Intake context logger.

Provides logging interface for intake context with automatic [intake] prefix.
All intake modules should import from this module, not from utils.logger directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[intake]"


# Wrapper functions with automatic [intake] prefix


def _log_info(message: str) -> None:
    """Log info message with [intake] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [intake] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [intake] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [intake] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [intake] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_collection_result(username: str, repositories: list, elapsed_time: float, network_calls: int) -> None:
    """Log the outcome of a profile collection."""
    _log_success(f"{username}: collected {len(repositories)} repositories ({elapsed_time:.2f}s)")
    _log_debug(f"  Network calls: {network_calls}")
    for repo in repositories[:10]:
        _log_debug(f"  {repo.name}: importance {repo.importance_score}, {repo.commit_count} commits")
    if len(repositories) > 10:
        _log_debug(f"  ... and {len(repositories) - 10} more")
