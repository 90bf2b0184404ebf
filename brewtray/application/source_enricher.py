from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from logly import logger

from brewtray.core.brew_types import SOURCE_CASK, SOURCE_FORMULA, PackageRecord
from brewtray.core.errors import EnrichmentProbeError

from .brew_service import BrewService

DEFAULT_SOURCE = SOURCE_FORMULA


class SourceEnricher:
    """Fills in the `source` of records coming out of the outdated listing.

    Cheap bulk lookups go first (installed formula and cask name sets, fetched
    concurrently), then tap-qualified names are split, and only the remaining
    stragglers get a `brew info` probe each. Probes run in parallel; any probe
    that fails falls back to `formula`.
    """

    def __init__(self, service: BrewService, max_probe_workers: int = 8):
        self._service = service
        self._max_probe_workers = max(1, max_probe_workers)

    def _fetch_name_sets(self) -> tuple[set[str], set[str]]:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="brew-names") as pool:
            formulae = pool.submit(self._service.installed_names, SOURCE_FORMULA)
            casks = pool.submit(self._service.installed_names, SOURCE_CASK)
            formula_names, cask_names = formulae.result(), casks.result()
        return formula_names or set(), cask_names or set()

    def _probe(self, name: str) -> str:
        try:
            return self._service.probe_source(name)
        except EnrichmentProbeError as e:
            logger.warning(f"{e}; defaulting {name} to {DEFAULT_SOURCE}")
            return DEFAULT_SOURCE

    def enrich(self, records: Sequence[PackageRecord]) -> list[PackageRecord]:
        """Returns the records with `source` populated, in the same order.

        Args:
            records: Parsed records; ones that already have a source are kept as is.

        Returns:
            New list of records. No brew call is made when nothing needs resolving.
        """
        pending = [i for i, r in enumerate(records) if not r.source]
        if not pending:
            return list(records)

        logger.info(f"Resolving sources for {len(pending)} packages")
        formula_names, cask_names = self._fetch_name_sets()

        enriched = list(records)
        stragglers: list[int] = []
        for i in pending:
            record = enriched[i]
            if record.name in cask_names:
                enriched[i] = replace(record, source=SOURCE_CASK)
            elif record.name in formula_names:
                enriched[i] = replace(record, source=SOURCE_FORMULA)
            elif "/" in record.name.strip("/"):
                tap, _, short_name = record.name.strip("/").rpartition("/")
                enriched[i] = replace(record, name=short_name, source=tap)
            else:
                stragglers.append(i)

        if stragglers:
            names = [enriched[i].name for i in stragglers]
            workers = min(self._max_probe_workers, len(names))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="brew-info") as pool:
                sources = list(pool.map(self._probe, names))
            for i, source in zip(stragglers, sources):
                enriched[i] = replace(enriched[i], source=source)

        return enriched
