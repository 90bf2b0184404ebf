import pytest
from PySide6.QtCore import QSettings

from brewtray.core.brew_types import BrewCommands
from brewtray.core.schedule import DEFAULT_INTERVAL_SEC
from brewtray.infra import settings as settings_module
from brewtray.infra.settings import AppSettings


@pytest.fixture
def settings(qapp, tmp_path) -> AppSettings:
    return AppSettings(QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat))


def test_check_interval_defaults_to_daily_and_persists(settings: AppSettings) -> None:
    assert settings.check_interval_raw() is None

    assert settings.check_interval() == DEFAULT_INTERVAL_SEC
    assert settings.check_interval_raw() is not None


def test_check_interval_repairs_unknown_values(settings: AppSettings) -> None:
    settings._settings.setValue(settings_module.KEY_INTERVAL, "Every Fortnight")

    assert settings.check_interval() == DEFAULT_INTERVAL_SEC
    assert str(settings.check_interval_raw()) == str(DEFAULT_INTERVAL_SEC)


def test_check_interval_accepts_legacy_label(settings: AppSettings) -> None:
    settings._settings.setValue(settings_module.KEY_INTERVAL, "Every Hour")

    assert settings.check_interval() == 3600


def test_custom_intervals_round_trip_and_validation(settings: AppSettings) -> None:
    settings.add_custom_interval("Every 2 Hours", 7200)
    settings.set_check_interval(7200)

    assert settings.custom_intervals() == {"Every 2 Hours": 7200}
    assert settings.check_interval() == 7200

    with pytest.raises(ValueError):
        settings.add_custom_interval("Every Day", 10)

    settings.remove_custom_interval("Every 2 Hours")
    assert settings.custom_intervals() == {}
    assert settings.check_interval() == DEFAULT_INTERVAL_SEC


def test_malformed_custom_intervals_are_ignored(settings: AppSettings) -> None:
    settings._settings.setValue(settings_module.KEY_CUSTOM_INTERVALS, "{not json")

    assert settings.custom_intervals() == {}


def test_flags_have_defaults(settings: AppSettings) -> None:
    assert settings.login_item_enabled() is True
    assert settings.notifications_enabled() is True
    assert settings.update_before_scheduled_check() is False

    settings.set_notifications_enabled(False)
    settings.set_update_before_scheduled_check(True)

    assert settings.notifications_enabled() is False
    assert settings.update_before_scheduled_check() is True


def test_brew_commands_fall_back_to_defaults(settings: AppSettings) -> None:
    assert settings.brew_commands() == BrewCommands()

    settings.set_brew_commands(outdated="outdated  --greedy --verbose", update="")

    commands = settings.brew_commands()
    assert commands.outdated == ("outdated", "--greedy", "--verbose")
    assert commands.update == ("update",)

    settings.reset_brew_commands()
    assert settings.brew_commands() == BrewCommands()
