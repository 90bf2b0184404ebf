from dataclasses import FrozenInstanceError

import pytest

from brewtray.core.brew_types import (
    SOURCE_FORMULA,
    UNKNOWN_VERSION,
    BrewCommands,
    CheckOutcome,
    InstalledPackageRecord,
    PackageRecord,
    ProcessResult,
)
from brewtray.core.errors import NonZeroExitError


def test_package_record_defaults() -> None:
    record = PackageRecord(name="wget")

    assert record.current_version == UNKNOWN_VERSION
    assert record.available_version == UNKNOWN_VERSION
    assert record.source == ""
    assert record.selected is False


def test_package_record_identity_is_the_name() -> None:
    a = PackageRecord(name="wget", current_version="1.0", source="formula")
    b = PackageRecord(name="wget", current_version="2.0", selected=True)

    assert a == b
    assert hash(a) == hash(b)
    assert a != PackageRecord(name="curl")


def test_records_are_frozen() -> None:
    record = PackageRecord(name="wget")

    with pytest.raises(FrozenInstanceError):
        record.name = "changed"  # type: ignore[misc]


def test_installed_record_defaults_to_formula() -> None:
    assert InstalledPackageRecord(name="git").source == SOURCE_FORMULA


def test_process_result_ok() -> None:
    assert ProcessResult(stdout="").ok
    assert not ProcessResult(stdout="", returncode=1).ok
    assert not ProcessResult(stdout=None, error=NonZeroExitError(2)).ok


def test_check_outcome_failed_and_default_commands() -> None:
    assert not CheckOutcome().failed
    assert CheckOutcome(error=NonZeroExitError(1, "boom")).failed
    assert BrewCommands().outdated == ("outdated", "--verbose")
