"""
Exception taxonomy for the auto-resume pipeline.

Every pipeline failure derives from AutoResumeError and records the stage it
came from, so the CLI can report which step failed. UserAborted is not an
AutoResumeError: aborting the selection is an expected way out of a run.
"""

from pathlib import Path
from typing import List, Optional


class AutoResumeError(Exception):
    """
    Base class for pipeline failures.

    Attributes:
        message: Error description
        stage: Pipeline stage that raised the error (e.g., "fetch", "ranking")
    """

    stage = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        self.message = message
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class ConfigError(AutoResumeError):
    """Profile file missing or not matching the configuration schema."""

    stage = "config"


# --- Network ---


class FetchError(AutoResumeError):
    """
    Network or HTTP failure while fetching a resource.

    Attributes:
        url: Requested URL
        status_code: HTTP status (None for transport-level failures)
        retryable: Whether the failure class is transient
    """

    stage = "fetch"

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        self.url = url
        self.status_code = status_code
        self.retryable = retryable

        parts = [message]
        if status_code is not None:
            parts.append(f"(HTTP {status_code})")
        if url:
            parts.append(f"for {url}")
        super().__init__(" ".join(parts))


class RateLimited(FetchError):
    """
    Upstream rate limit hit or budget insufficient for the remaining work.

    Attributes:
        retry_after: Seconds until the limit resets, when the upstream says so
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message}; retry after {retry_after:.0f}s"
        super().__init__(message, url=url, status_code=status_code, retryable=True)


class CollectionError(AutoResumeError):
    """GitHub profile could not be collected (listing failed or malformed)."""

    stage = "collect"


# --- Job source ---


class ResolutionError(AutoResumeError):
    """Explicitly requested job source is bad or unusable."""

    stage = "job-source"


class JobFileNotFound(ResolutionError):
    """Job description file does not exist."""


class JobFileUnreadable(ResolutionError):
    """Job description file exists but cannot be read as text."""


# --- Generative provider ---


class GenerationError(AutoResumeError):
    """Base for failures of a generative provider call."""

    stage = "generation"


class GenerationTransportError(GenerationError):
    """Provider unreachable, rate limited or overloaded after all retries."""


class InvalidOutputError(GenerationError):
    """
    Provider output failed to decode or validate after all re-prompts.

    Attributes:
        attempts: Number of provider responses that were rejected
        reasons: Rejection reason for each attempt, oldest first
    """

    def __init__(self, message: str, stage: Optional[str] = None, reasons: Optional[List[str]] = None):
        self.reasons = list(reasons or [])
        self.attempts = len(self.reasons)
        if self.reasons:
            message = f"{message} (last reason: {self.reasons[-1]})"
        super().__init__(message, stage=stage)


# --- Selection ---


class SelectionError(AutoResumeError):
    """Invalid selection input or misuse of the selection state machine."""

    stage = "selection"


class UserAborted(Exception):
    """The user cancelled the interactive selection. Not a failure."""


# --- Document ---


class AssemblyError(AutoResumeError):
    """Template and resume fields do not line up. Internal invariant violation."""

    stage = "assembly"


class CompilationError(AutoResumeError):
    """
    LaTeX compiler rejected the document.

    Attributes:
        errors: Parsed compiler errors
        log: Raw compiler output
        tex_path: Where the offending source was preserved (set by the pipeline)
    """

    stage = "compile"

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        log: str = "",
        tex_path: Optional[Path] = None,
    ):
        self.errors = list(errors or [])
        self.log = log
        self.tex_path = tex_path

        parts = [message]
        for error in self.errors[:5]:
            parts.append(f"  ! {error}")
        if len(self.errors) > 5:
            parts.append(f"  ... and {len(self.errors) - 5} more errors")
        super().__init__("\n".join(parts))
