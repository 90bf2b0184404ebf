from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Final

MANUAL_LABEL: Final[str] = "Manually"
DEFAULT_INTERVAL_SEC: Final[int] = 24 * 60 * 60
MANUAL_CHECK_COOLDOWN_SEC: Final[int] = 60

BUILTIN_INTERVALS: Final[dict[str, int]] = {
    "Every Hour": 60 * 60,
    "Every 6 Hours": 6 * 60 * 60,
    "Every Day": 24 * 60 * 60,
    "Every Week": 7 * 24 * 60 * 60,
    MANUAL_LABEL: 0,
}


@dataclass(frozen=True, slots=True)
class ScheduleConfig:
    """Check interval options: built-in entries plus user-defined ones.

    Attributes:
        custom: User-defined label -> seconds entries.
    """

    custom: Mapping[str, int] = field(default_factory=dict)

    def options(self) -> dict[str, int]:
        """Returns all label -> seconds options; built-in labels always win."""
        options = dict(BUILTIN_INTERVALS)
        for label, seconds in self.custom.items():
            if label not in options:
                options[label] = int(seconds)
        return options

    def resolve(self, saved: int | str | None) -> int:
        """Maps a persisted interval value to seconds.

        Accepts seconds or a (legacy) label. Unknown or missing values fall back
        to the default daily interval.

        Args:
            saved: Persisted value, if any.

        Returns:
            Interval in seconds; 0 means manual only.
        """
        options = self.options()
        if isinstance(saved, str):
            if saved in options:
                return options[saved]
            try:
                saved = int(saved)
            except ValueError:
                return DEFAULT_INTERVAL_SEC
        if saved is None:
            return DEFAULT_INTERVAL_SEC
        if saved in options.values():
            return saved
        return DEFAULT_INTERVAL_SEC

    def label_for(self, seconds: int) -> str | None:
        for label, value in self.options().items():
            if value == seconds:
                return label
        return None


def validate_custom_interval(label: str, seconds: int) -> tuple[str, int]:
    """Checks a user-supplied custom interval.

    Raises:
        ValueError: If the label is empty or built-in, or seconds is not positive.
    """
    name = label.strip()
    if not name:
        raise ValueError("interval name must not be empty")
    if name in BUILTIN_INTERVALS:
        raise ValueError(f"'{name}' is a built-in interval")
    if seconds <= 0:
        raise ValueError("interval must be a positive number of seconds")
    return name, int(seconds)


def next_run_time(now: datetime, interval_sec: int) -> datetime | None:
    """Next deadline, always counted from `now`; None for manual schedules."""
    if interval_sec <= 0:
        return None
    return now + timedelta(seconds=interval_sec)


def manual_cooldown_remaining(
    now: datetime, last_manual: datetime | None, cooldown_sec: int = MANUAL_CHECK_COOLDOWN_SEC
) -> int:
    """Seconds until another manual check is allowed (0 when allowed)."""
    if last_manual is None:
        return 0
    elapsed = (now - last_manual).total_seconds()
    if elapsed >= cooldown_sec:
        return 0
    return max(1, int(cooldown_sec - elapsed))
