"""Timestamp formatting utilities."""

from datetime import datetime, timezone


def now() -> str:
    """Filesystem-safe local timestamp for run directories (e.g., 20251114_123456)."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def parse_iso(iso_timestamp: str):
    """
    Parse an ISO 8601 timestamp as returned by the GitHub API.

    Accepts the trailing "Z" form. Returns None for empty or malformed input.
    """
    if not iso_timestamp:
        return None
    try:
        return datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_relative(dt: datetime, reference: datetime = None) -> str:
    """
    Format datetime as compact relative time (e.g., "2h ago").

    - Seconds: "30s ago"
    - Minutes: "15m ago"
    - Hours: "2h ago"
    - Days: "5d ago"

    Args:
        dt: datetime to format (naive values are taken as UTC)
        reference: Point in time to measure from (default: now, UTC)

    Returns:
        Compact relative time string
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    reference = reference or datetime.now(timezone.utc)
    diff = reference - dt

    if diff.total_seconds() < 0:
        diff = -diff
        suffix = "from now"
    else:
        suffix = "ago"

    seconds = int(diff.total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = diff.days

    if seconds < 60:
        return f"{seconds}s {suffix}"
    elif minutes < 60:
        return f"{minutes}m {suffix}"
    elif hours < 24:
        return f"{hours}h {suffix}"
    else:
        return f"{days}d {suffix}"
