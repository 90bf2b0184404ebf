from collections.abc import Callable

from logly import logger

from brewtray.core.brew_outdated_parser import parse_brew_outdated
from brewtray.core.brew_types import BrewCommands, CheckOutcome
from brewtray.core.errors import NonZeroExitError

from .brew_service import BrewService
from .source_enricher import SourceEnricher


def run_update_check(
    service: BrewService,
    enricher: SourceEnricher,
    commands: BrewCommands,
    run_database_update: bool = False,
    on_output: Callable[[str], None] | None = None,
) -> CheckOutcome:
    """Runs one update check: optional database refresh, listing, parse, enrich.

    Meant to run on a worker thread. Failures are returned in the outcome rather
    than raised; only the exit code decides between "nothing outdated" and an
    error, never the shape of the output.

    Args:
        service: Brew access for this check.
        enricher: Resolves package provenance.
        commands: Configured update/listing commands.
        run_database_update: Refresh brew's package index first.
        on_output: Visible output surface, if one is attached.

    Returns:
        The check outcome.
    """
    if run_database_update:
        # A failed refresh still leaves a usable (older) index to list against.
        service.update_database(commands.update, on_output=on_output)

    result = service.list_outdated(commands.outdated)
    if result.error is not None:
        logger.error(f"Error checking for outdated packages: {result.error}")
        return CheckOutcome(error=result.error, detail=str(result.error))

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        logger.error(f"Error in background check (status {result.returncode}): {detail or 'No output'}")
        return CheckOutcome(error=NonZeroExitError(result.returncode, detail), detail=detail)

    text = result.stdout or ""
    if on_output is not None:
        for line in text.splitlines():
            on_output(line)

    packages = parse_brew_outdated(text)
    logger.info(f"Check found {len(packages)} outdated packages")
    return CheckOutcome(packages=tuple(enricher.enrich(packages)))
