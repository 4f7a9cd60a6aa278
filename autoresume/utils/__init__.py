"""
Shared utilities for auto-resume.

Common functionality used across contexts:
- HTTP fetching with caching and retries
- LLM providers and structured output
- LaTeX helpers
- Logging setup
"""

from autoresume.utils.retry import RetryPolicy
from autoresume.utils.timestamp import now

__all__ = ["RetryPolicy", "now"]
