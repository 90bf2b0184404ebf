import json
from typing import Final

from logly import logger
from PySide6.QtCore import QSettings

from brewtray.core.brew_types import BrewCommands
from brewtray.core.schedule import ScheduleConfig, validate_custom_interval

ORGANIZATION: Final[str] = "brewtray"
APPLICATION: Final[str] = "brewtray"

KEY_INTERVAL: Final[str] = "updateCheckInterval"
KEY_CUSTOM_INTERVALS: Final[str] = "customIntervals"
KEY_LOGIN_ITEM: Final[str] = "loginItemEnabled"
KEY_NOTIFICATIONS: Final[str] = "notificationsEnabled"
KEY_UPDATE_COMMAND: Final[str] = "updateCommands"
KEY_UPGRADE_COMMAND: Final[str] = "upgradeCommands"
KEY_OUTDATED_COMMAND: Final[str] = "outdatedCommands"
KEY_UPDATE_BEFORE_SCHEDULED: Final[str] = "updateBeforeScheduledCheck"


def _split_command(value: object) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if str(v))
    if isinstance(value, str):
        return tuple(value.split())
    return ()


class AppSettings:
    """Typed access to persisted preferences.

    Values live in a `QSettings` store. Commands are stored as space separated
    strings and custom intervals as a JSON object, which keeps the INI and native
    backends behaving the same.
    """

    def __init__(self, settings: QSettings | None = None):
        self._settings = settings or QSettings(ORGANIZATION, APPLICATION)

    # ---- Schedule
    def check_interval_raw(self) -> int | str | None:
        value = self._settings.value(KEY_INTERVAL)
        if value is None:
            return None
        if isinstance(value, (int, float)):
            return int(value)
        return str(value)

    def set_check_interval(self, seconds: int) -> None:
        self._settings.setValue(KEY_INTERVAL, int(seconds))

    def custom_intervals(self) -> dict[str, int]:
        raw = self._settings.value(KEY_CUSTOM_INTERVALS, "")
        if not raw:
            return {}
        try:
            data = json.loads(str(raw))
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed {KEY_CUSTOM_INTERVALS} value")
            return {}
        if not isinstance(data, dict):
            return {}
        intervals: dict[str, int] = {}
        for label, seconds in data.items():
            try:
                intervals[str(label)] = int(seconds)
            except (TypeError, ValueError):
                continue
        return intervals

    def add_custom_interval(self, label: str, seconds: int) -> None:
        """Stores a custom interval.

        Raises:
            ValueError: If the entry is invalid or shadows a built-in label.
        """
        name, value = validate_custom_interval(label, seconds)
        intervals = self.custom_intervals()
        intervals[name] = value
        self._settings.setValue(KEY_CUSTOM_INTERVALS, json.dumps(intervals))

    def remove_custom_interval(self, label: str) -> None:
        intervals = self.custom_intervals()
        if intervals.pop(label, None) is not None:
            self._settings.setValue(KEY_CUSTOM_INTERVALS, json.dumps(intervals))

    def schedule_config(self) -> ScheduleConfig:
        return ScheduleConfig(custom=self.custom_intervals())

    def check_interval(self) -> int:
        """Returns the active interval in seconds, repairing invalid stored values."""
        config = self.schedule_config()
        raw = self.check_interval_raw()
        seconds = config.resolve(raw)
        if raw is None or str(raw) != str(seconds):
            self.set_check_interval(seconds)
        return seconds

    def update_before_scheduled_check(self) -> bool:
        return bool(self._settings.value(KEY_UPDATE_BEFORE_SCHEDULED, False, type=bool))

    def set_update_before_scheduled_check(self, enabled: bool) -> None:
        self._settings.setValue(KEY_UPDATE_BEFORE_SCHEDULED, bool(enabled))

    # ---- Flags
    def login_item_enabled(self) -> bool:
        return bool(self._settings.value(KEY_LOGIN_ITEM, True, type=bool))

    def set_login_item_enabled(self, enabled: bool) -> None:
        self._settings.setValue(KEY_LOGIN_ITEM, bool(enabled))

    def notifications_enabled(self) -> bool:
        return bool(self._settings.value(KEY_NOTIFICATIONS, True, type=bool))

    def set_notifications_enabled(self, enabled: bool) -> None:
        self._settings.setValue(KEY_NOTIFICATIONS, bool(enabled))

    # ---- Commands
    def brew_commands(self) -> BrewCommands:
        """Returns the configured commands; unset or empty entries use defaults."""
        defaults = BrewCommands()
        return BrewCommands(
            update=_split_command(self._settings.value(KEY_UPDATE_COMMAND)) or defaults.update,
            upgrade=_split_command(self._settings.value(KEY_UPGRADE_COMMAND)) or defaults.upgrade,
            outdated=_split_command(self._settings.value(KEY_OUTDATED_COMMAND))
            or defaults.outdated,
        )

    def set_brew_commands(
        self,
        update: str | None = None,
        upgrade: str | None = None,
        outdated: str | None = None,
    ) -> None:
        for key, value in (
            (KEY_UPDATE_COMMAND, update),
            (KEY_UPGRADE_COMMAND, upgrade),
            (KEY_OUTDATED_COMMAND, outdated),
        ):
            if value is not None:
                self._settings.setValue(key, " ".join(value.split()))

    def reset_brew_commands(self) -> None:
        for key in (KEY_UPDATE_COMMAND, KEY_UPGRADE_COMMAND, KEY_OUTDATED_COMMAND):
            self._settings.remove(key)

    def sync(self) -> None:
        self._settings.sync()
