from collections.abc import Sequence
from datetime import datetime

from .brew_types import PackageRecord


def format_time_interval(seconds: float) -> str:
    """Formats a countdown as `2h 5m` / `5m`, or `now` when due."""
    if seconds <= 0:
        return "now"
    hours = int(seconds // 3600)
    minutes = int(seconds // 60) % 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def summarize_outdated(
    packages: Sequence[PackageRecord],
    checking: bool = False,
    error: bool = False,
    max_display: int = 3,
) -> str:
    """Builds the tray status line for the current snapshot."""
    if checking:
        return "Checking for updates..."
    if error:
        return "Error checking updates"
    if not packages:
        return "Homebrew is up to date"

    count = len(packages)
    lines = [f"{count} outdated package{'' if count == 1 else 's'}:"]
    lines.extend(p.name for p in packages[:max_display])
    if count > max_display:
        lines.append(f"...(and {count - max_display} more)")
    return "\n".join(lines)


def last_checked_text(last_check: datetime | None) -> str:
    if last_check is None:
        return "Last checked: Never"
    return f"Last checked: {last_check:%Y-%m-%d %H:%M}"


def next_check_text(now: datetime, next_check: datetime | None) -> str:
    if next_check is None:
        return "Next check: Manual only"
    remaining = (next_check - now).total_seconds()
    if remaining <= 0:
        return "Next check: Checking soon..."
    return f"Next check: {next_check:%H:%M} ({format_time_interval(remaining)})"
