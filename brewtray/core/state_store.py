from collections.abc import Iterable, Sequence

from logly import logger

from .brew_types import CheckState, InstalledPackageRecord, PackageRecord


def _dedupe_by_name(records: Iterable[PackageRecord]) -> tuple[PackageRecord, ...]:
    seen: set[str] = set()
    unique: list[PackageRecord] = []
    for record in records:
        if record.name in seen:
            continue
        seen.add(record.name)
        unique.append(record)
    return tuple(unique)


def _command_targets(args: Sequence[str]) -> list[str]:
    """Package names from a command argument list (flags and subcommand dropped)."""
    return [a for a in args[1:] if a and not a.startswith("-")]


class StateStore:
    """Last known outdated/installed snapshot plus the check bookkeeping.

    Lists are exposed as tuples and only ever replaced wholesale, so a reader never
    observes a half-written snapshot. All writers are expected to run on the GUI
    thread.
    """

    def __init__(self) -> None:
        self._outdated: tuple[PackageRecord, ...] = ()
        self._installed: tuple[InstalledPackageRecord, ...] = ()
        self.check_state = CheckState()

    @property
    def outdated_packages(self) -> tuple[PackageRecord, ...]:
        return self._outdated

    @property
    def installed_packages(self) -> tuple[InstalledPackageRecord, ...]:
        return self._installed

    def publish_outdated(self, records: Iterable[PackageRecord]) -> bool:
        """Replaces the outdated list after a successful check.

        Args:
            records: Enriched records; later duplicates of a name are dropped.

        Returns:
            True when the outdated count went from zero to non-zero.
        """
        self._outdated = _dedupe_by_name(records)
        count = len(self._outdated)
        became_outdated = self.check_state.last_outdated_count == 0 and count > 0
        self.check_state.last_outdated_count = count
        self.check_state.last_error = False
        return became_outdated

    def publish_failure(self) -> None:
        """Clears the outdated list so a stale snapshot is never shown as current."""
        self._outdated = ()
        self.check_state.last_error = True

    def publish_installed(self, records: Iterable[InstalledPackageRecord]) -> None:
        unique: dict[str, InstalledPackageRecord] = {}
        for record in records:
            unique.setdefault(record.name, record)
        self._installed = tuple(sorted(unique.values(), key=lambda r: r.name))

    def apply_command_result(self, args: Sequence[str], returncode: int) -> bool:
        """Applies an optimistic mutation after a package-level command.

        `upgrade <names>` drops the names from the outdated list, `uninstall
        <names>` from both lists. Bare `upgrade`/`update`, other commands and
        failures are left to the next full refresh.

        Args:
            args: Command arguments without the executable.
            returncode: Exit status of the command.

        Returns:
            True if the snapshot changed.
        """
        if returncode != 0 or not args:
            return False

        command = args[0]
        targets = set(_command_targets(args))
        if not targets:
            return False

        if command == "upgrade":
            before = len(self._outdated)
            self._outdated = tuple(r for r in self._outdated if r.name not in targets)
            logger.info(f"Optimistic update: removed {', '.join(sorted(targets))} from outdated")
            return len(self._outdated) != before

        if command in ("uninstall", "remove", "rm"):
            before = (len(self._outdated), len(self._installed))
            self._outdated = tuple(r for r in self._outdated if r.name not in targets)
            self._installed = tuple(r for r in self._installed if r.name not in targets)
            logger.info(
                f"Optimistic update: removed {', '.join(sorted(targets))} from installed/outdated"
            )
            return (len(self._outdated), len(self._installed)) != before

        return False
