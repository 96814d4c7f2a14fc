"""
Helper functions for formatting data into human-readable strings.
"""

from datetime import datetime


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_last_played(last_played: datetime | None, now: datetime | None = None) -> str:
    """Describes when an installation was last started (e.g., '3h 2m ago')."""
    if last_played is None:
        return "never"
    elapsed = ((now or datetime.now()) - last_played).total_seconds()
    if elapsed < 0:
        return "just now"
    if elapsed >= 7 * 86400:
        return last_played.strftime("%Y-%m-%d")
    return f"{format_duration(elapsed)} ago"
