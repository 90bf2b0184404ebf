from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from logly import logger

from brewtray.core.brew_list_parser import (
    parse_brew_info_source,
    parse_brew_list_versions,
    parse_brew_name_list,
)
from brewtray.core.brew_types import (
    SOURCE_CASK,
    SOURCE_FORMULA,
    InstalledPackageRecord,
    ProcessResult,
)
from brewtray.core.errors import EnrichmentProbeError
from brewtray.infra.process_runner import ProcessRunner

OutputCallback = Callable[[str], None]


class BrewService:
    """Homebrew queries and commands on top of a `ProcessRunner`.

    Every method blocks until brew exits and must therefore run off the GUI thread.
    """

    def __init__(self, runner: ProcessRunner):
        self._runner = runner

    def interrupt(self) -> int:
        return self._runner.interrupt()

    def update_database(
        self, command: Sequence[str], on_output: OutputCallback | None = None
    ) -> ProcessResult:
        """Runs the database refresh command (`brew update` by default)."""
        logger.info(f"Running brew {' '.join(command)}")
        result = self._runner.run(command, on_output=on_output)
        if result.ok:
            logger.info("brew update completed successfully")
        else:
            logger.warning(
                f"brew update failed: {result.error or f'exit code {result.returncode}'}"
            )
        return result

    def list_outdated(self, command: Sequence[str]) -> ProcessResult:
        """Runs the listing command in buffered mode so the output can be parsed."""
        return self._runner.run(command)

    def installed_names(self, kind: str) -> set[str] | None:
        """Returns installed formula or cask names, or None if brew failed.

        Args:
            kind: "formula" or "cask".
        """
        result = self._runner.run(["list", "-1", f"--{kind}"])
        if not result.ok or result.stdout is None:
            logger.warning(f"Failed to list installed {kind} names: {result.stderr.strip()}")
            return None
        return parse_brew_name_list(result.stdout)

    def _list_versions(self, kind: str) -> list[InstalledPackageRecord] | None:
        result = self._runner.run(["list", "--versions", f"--{kind}"])
        if not result.ok or result.stdout is None:
            logger.error(f"Error fetching installed {kind} versions: {result.stderr.strip()}")
            return None
        return parse_brew_list_versions(result.stdout, kind)

    def list_installed(self) -> list[InstalledPackageRecord] | None:
        """Fetches installed formulae and casks concurrently.

        Returns:
            Records sorted by name, or None if either listing failed.
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="brew-list") as pool:
            formulae = pool.submit(self._list_versions, SOURCE_FORMULA)
            casks = pool.submit(self._list_versions, SOURCE_CASK)
            formula_rows, cask_rows = formulae.result(), casks.result()

        if formula_rows is None or cask_rows is None:
            return None

        rows = sorted(formula_rows + cask_rows, key=lambda r: r.name)
        logger.info(f"Found {len(rows)} installed packages")
        return rows

    def probe_source(self, name: str) -> str:
        """Asks `brew info` where a single package comes from.

        Raises:
            EnrichmentProbeError: If brew fails or the answer is ambiguous.
        """
        result = self._runner.run(["info", "--json=v2", name])
        if not result.ok or result.stdout is None:
            raise EnrichmentProbeError(
                f"brew info {name} failed: {result.error or f'exit code {result.returncode}'}"
            )
        source = parse_brew_info_source(result.stdout)
        if source is None:
            raise EnrichmentProbeError(f"brew info {name} gave no usable provenance")
        return source

    def run_command(
        self, args: Sequence[str], on_output: OutputCallback | None = None
    ) -> ProcessResult:
        """Runs an arbitrary package-level command (upgrade, uninstall...)."""
        return self._runner.run(args, on_output=on_output)
