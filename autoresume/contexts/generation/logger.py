"""
Generation context logger.

Provides logging interface for generation context with automatic [generate] prefix.
All generation modules should import from this module, not from utils.logger directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[generate]"


def _log_info(message: str) -> None:
    """Log info message with [generate] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [generate] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [generate] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [generate] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_content_summary(content) -> None:
    """Log section sizes of a ResumeContent."""
    _log_success(
        f"Generated {len(content.skills)} skill categories, {len(content.projects)} projects, "
        f"{len(content.experience)} experience and {len(content.education)} education entries"
    )
    for project in content.projects:
        _log_debug(f"  Project: {project.title} ({project.reference})")
