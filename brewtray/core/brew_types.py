from dataclasses import dataclass, field
from datetime import datetime
from typing import Final

from .errors import BrewError

UNKNOWN_VERSION: Final[str] = "unknown"

SOURCE_FORMULA: Final[str] = "formula"
SOURCE_CASK: Final[str] = "cask"


@dataclass(frozen=True, slots=True)
class PackageRecord:
    """Represents one entry of the outdated listing.

    Identity is the package name; two records with the same name compare equal
    regardless of their version fields.

    Attributes:
        name: Package name (may carry a tap prefix until enriched).
        current_version: Installed version, or `UNKNOWN_VERSION`.
        available_version: Newer version, or `UNKNOWN_VERSION`.
        source: "formula", "cask", a tap path such as "org/repo", or "" until enriched.
        selected: UI-only selection flag.
    """

    name: str
    current_version: str = field(default=UNKNOWN_VERSION, compare=False)
    available_version: str = field(default=UNKNOWN_VERSION, compare=False)
    source: str = field(default="", compare=False)
    selected: bool = field(default=False, compare=False)


@dataclass(frozen=True, slots=True)
class InstalledPackageRecord:
    """Represents an installed formula or cask."""

    name: str
    version: str = field(default="", compare=False)
    source: str = field(default=SOURCE_FORMULA, compare=False)


@dataclass(slots=True)
class CheckState:
    """Scheduler bookkeeping shared by the orchestrator and the UI.

    Attributes:
        is_running: Single-flight guard for update checks.
        last_check_time: When the last check completed.
        next_scheduled_time: Next timer deadline; None means manual only.
        last_error: Whether the last check failed.
        last_outdated_count: Outdated count of the last successful check.
    """

    is_running: bool = False
    last_check_time: datetime | None = None
    next_scheduled_time: datetime | None = None
    last_error: bool = False
    last_outdated_count: int = 0


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Result of one external process invocation.

    `stdout` is None in streaming mode and when the process never started.
    """

    stdout: str | None
    stderr: str = ""
    returncode: int = 0
    error: BrewError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    """Result of one update-check pipeline run."""

    packages: tuple[PackageRecord, ...] = ()
    error: BrewError | None = None
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True, slots=True)
class BrewCommands:
    """Argument lists (without the executable) for configurable brew commands."""

    update: tuple[str, ...] = ("update",)
    upgrade: tuple[str, ...] = ("upgrade",)
    outdated: tuple[str, ...] = ("outdated", "--verbose")
