import threading
from collections.abc import Callable, Sequence
from datetime import datetime
from functools import partial
from typing import Any, Protocol

from logly import logger
from PySide6.QtCore import QObject, QTimer, Signal

from brewtray.core.brew_types import BrewCommands, CheckOutcome, CheckState, ProcessResult
from brewtray.core.schedule import manual_cooldown_remaining, next_run_time
from brewtray.core.state_store import StateStore
from brewtray.infra.settings import AppSettings

from .brew_service import BrewService
from .source_enricher import SourceEnricher
from .update_check import run_update_check

Completion = Callable[[], None]
OutputCallback = Callable[[str], None]

# QTimer takes a signed 32-bit millisecond interval (~24.8 days).
_MAX_TIMER_MS = 2**31 - 1


class JobRunner(Protocol):
    def submit(
        self,
        fn: Callable[[OutputCallback], Any],
        on_finished: Callable[[Any], None],
        on_output: OutputCallback | None = None,
    ) -> int: ...


def _fire(completions: list[Completion]) -> None:
    for completion in completions:
        completion()


class CheckOrchestrator(QObject):
    """Coordinates update checks, installed-package refreshes and package commands.

    Only one update check runs at a time. A trigger that arrives while a check is in
    flight does not start another one; its completion joins the running check.
    All results are applied to the `StateStore` on the thread this object lives in.
    """

    log = Signal(str)
    state_changed = Signal()
    became_outdated = Signal(int)
    rate_limited = Signal(int)  # seconds until a manual check is allowed
    busy_changed = Signal(bool)  # package command running
    command_finished = Signal(object, int)  # args, returncode

    def __init__(
        self,
        store: StateStore,
        settings: AppSettings,
        jobs: JobRunner,
        check_service: BrewService,
        installed_service: BrewService,
        command_service: BrewService,
        enricher: SourceEnricher | None = None,
        clock: Callable[[], datetime] = datetime.now,
        refresh_delay_ms: int = 1000,
        parent: QObject | None = None,
    ):
        """Initializes the orchestrator.

        Args:
            store: Snapshot published to the UI.
            settings: Interval and command preferences.
            jobs: Runs blocking work off the GUI thread.
            check_service: Brew access used by update checks.
            installed_service: Brew access used by installed-package refreshes.
            command_service: Brew access used by package commands.
            enricher: Provenance resolver; defaults to one using `check_service`.
            clock: Source of the current time.
            refresh_delay_ms: Delay before the refresh that follows a command.
            parent: Optional Qt parent object.
        """
        super().__init__(parent)
        self._store = store
        self._settings = settings
        self._jobs = jobs
        self._check_service = check_service
        self._installed_service = installed_service
        self._command_service = command_service
        self._enricher = enricher or SourceEnricher(check_service)
        self._clock = clock
        self._refresh_delay_ms = refresh_delay_ms

        self._check_lock = threading.Lock()
        self._check_waiters: list[Completion] = []
        self._refresh_after_check = False
        self._refresh_waiters: list[Completion] = []
        self._last_manual_trigger: datetime | None = None

        self._installed_generation = 0
        self._installed_in_flight = False
        self._installed_waiters: list[Completion] = []

        self._command_running = False

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timer_fired)

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def state(self) -> CheckState:
        return self._store.check_state

    def is_checking(self) -> bool:
        return self.state.is_running

    # ---- Lifecycle
    def start(self) -> None:
        """Runs the initial silent check, then loads installed packages."""
        logger.info("Starting initial update check")
        self.check(completion=self.refresh_installed)

    def shutdown(self) -> None:
        """Stops the timer and interrupts any brew process still running."""
        self._timer.stop()
        for service in (self._check_service, self._installed_service, self._command_service):
            service.interrupt()

    # ---- Update checks
    def _try_begin_check(self) -> bool:
        with self._check_lock:
            if self.state.is_running:
                return False
            self.state.is_running = True
            return True

    def check(
        self,
        run_database_update: bool = False,
        display_output: bool = False,
        completion: Completion | None = None,
    ) -> bool:
        """Starts an update check unless one is already running.

        Args:
            run_database_update: Run the database refresh command before listing.
            display_output: Stream output to the `log` signal.
            completion: Called once the (new or already running) check finishes.

        Returns:
            True if a new check was started.
        """
        if completion is not None:
            self._check_waiters.append(completion)

        if not self._try_begin_check():
            logger.info("Update check already in progress. Skipping.")
            return False

        logger.info(f"Starting update check (database update={run_database_update})")
        if display_output:
            self.log.emit("[running] checking for updates ...")
        self.state_changed.emit()

        commands = self._settings.brew_commands()
        self._jobs.submit(
            partial(self._run_check_job, commands, run_database_update, display_output),
            self._on_check_finished,
            on_output=self.log.emit if display_output else None,
        )
        return True

    def check_now(self, completion: Completion | None = None) -> bool:
        """Manual check: refreshes the database first and shows the output.

        Rejected with `rate_limited` when issued within a minute of the previous
        manual trigger.
        """
        now = self._clock()
        remaining = manual_cooldown_remaining(now, self._last_manual_trigger)
        if remaining:
            logger.info(f"Manual check rate limited ({remaining}s left)")
            self.rate_limited.emit(remaining)
            if completion is not None:
                completion()
            return False

        self._last_manual_trigger = now
        logger.info("Manual update check triggered")
        return self.check(run_database_update=True, display_output=True, completion=completion)

    def _run_check_job(
        self,
        commands: BrewCommands,
        run_database_update: bool,
        display_output: bool,
        emit_output: OutputCallback,
    ) -> CheckOutcome:
        return run_update_check(
            self._check_service,
            self._enricher,
            commands,
            run_database_update=run_database_update,
            on_output=emit_output if display_output else None,
        )

    def _on_check_finished(self, outcome: object) -> None:
        state = self.state
        state.last_check_time = self._clock()

        if isinstance(outcome, CheckOutcome) and not outcome.failed:
            if self._store.publish_outdated(outcome.packages):
                count = state.last_outdated_count
                logger.info(f"{count} packages became outdated")
                self.became_outdated.emit(count)
        else:
            detail = outcome.detail if isinstance(outcome, CheckOutcome) else str(outcome)
            logger.error(f"Update check failed: {detail or 'no output'}")
            self._store.publish_failure()
            self.log.emit("[error] checking for updates failed")
            if detail:
                self.log.emit(detail)

        with self._check_lock:
            state.is_running = False

        self.schedule_timer()

        waiters, self._check_waiters = self._check_waiters, []
        _fire(waiters)

        if self._refresh_after_check:
            self._refresh_after_check = False
            waiters, self._refresh_waiters = self._refresh_waiters, []
            self.full_refresh(completion=partial(_fire, waiters))

    # ---- Schedule
    def _arm_timer(self, ms: int) -> None:
        self._timer.start(max(0, min(ms, _MAX_TIMER_MS)))

    def schedule_timer(self) -> None:
        """Re-arms the timer at `now + interval` (or disarms it for manual)."""
        self._timer.stop()
        interval = self._settings.check_interval()
        next_time = next_run_time(self._clock(), interval)
        self.state.next_scheduled_time = next_time

        if next_time is None:
            logger.info("Update checks set to manual.")
        else:
            self._arm_timer(interval * 1000)
            logger.info(
                f"Scheduled update check every {interval} seconds. Next check at {next_time:%H:%M:%S}"
            )
        self.state_changed.emit()

    def set_interval(self, value: int | str) -> None:
        """Persists a new interval (seconds or label) and re-arms the timer."""
        seconds = self._settings.schedule_config().resolve(value)
        self._settings.set_check_interval(seconds)
        self.schedule_timer()

    def _on_timer_fired(self) -> None:
        next_time = self.state.next_scheduled_time
        if next_time is None:
            return
        now = self._clock()
        if next_time > now:
            # Long intervals are armed in chunks the timer can represent.
            self._arm_timer(int((next_time - now).total_seconds() * 1000))
            return
        logger.info("Running scheduled update check")
        self.check(run_database_update=self._settings.update_before_scheduled_check())

    def handle_wake(self, *_args: object) -> None:
        """Runs a missed check after suspend, otherwise re-arms the timer."""
        next_time = self.state.next_scheduled_time
        if next_time is not None and next_time < self._clock():
            logger.info("Missed scheduled update during sleep, running now")
            self.check(run_database_update=self._settings.update_before_scheduled_check())
        else:
            self.schedule_timer()

    # ---- Installed packages
    def refresh_installed(self, completion: Completion | None = None) -> None:
        """Reloads installed packages; a newer request supersedes a running one."""
        if completion is not None:
            self._installed_waiters.append(completion)

        if self._installed_in_flight:
            logger.info("Superseding stale installed-packages fetch")
            self._installed_service.interrupt()

        self._installed_generation += 1
        generation = self._installed_generation
        self._installed_in_flight = True
        self._jobs.submit(
            lambda _emit: self._installed_service.list_installed(),
            lambda result, g=generation: self._on_installed_finished(g, result),
        )

    def _on_installed_finished(self, generation: int, result: object) -> None:
        if generation != self._installed_generation:
            logger.info("Ignoring stale installed-packages result")
            return

        self._installed_in_flight = False
        if isinstance(result, list):
            self._store.publish_installed(result)
        else:
            logger.error("Failed to fetch installed packages; keeping previous list")
        self.state_changed.emit()

        waiters, self._installed_waiters = self._installed_waiters, []
        _fire(waiters)

    def full_refresh(self, completion: Completion | None = None) -> None:
        """Silent update check followed by an installed-packages refresh."""
        if self.state.is_running:
            # The running check may predate the last command; run another after it.
            self._refresh_after_check = True
            if completion is not None:
                self._refresh_waiters.append(completion)
            return
        self.check(completion=partial(self.refresh_installed, completion))

    # ---- Package commands
    def run_package_command(self, args: Sequence[str]) -> bool:
        """Runs a brew command with streamed output, one at a time.

        Args:
            args: Subcommand and arguments, e.g. `("upgrade", "wget")`.

        Returns:
            True if the command was started.
        """
        command = tuple(args)
        if not command:
            return False
        if self._command_running:
            self.log.emit("[info] already running")
            return False

        self._command_running = True
        self.busy_changed.emit(True)
        self.log.emit(f"$ brew {' '.join(command)}")
        logger.info(f"Running brew command: {' '.join(command)}")

        self._jobs.submit(
            lambda emit: self._command_service.run_command(command, on_output=emit),
            lambda result, c=command: self._on_command_finished(c, result),
            on_output=self.log.emit,
        )
        return True

    def upgrade(self, names: Sequence[str]) -> bool:
        targets = [n for n in names if n]
        if not targets:
            self.log.emit("[info] select a package to upgrade")
            return False
        return self.run_package_command(("upgrade", *targets))

    def upgrade_all(self) -> bool:
        return self.run_package_command(self._settings.brew_commands().upgrade)

    def update_database(self) -> bool:
        return self.run_package_command(self._settings.brew_commands().update)

    def uninstall(self, names: Sequence[str]) -> bool:
        targets = [n for n in names if n]
        if not targets:
            self.log.emit("[info] select a package to uninstall")
            return False
        return self.run_package_command(("uninstall", *targets))

    def _on_command_finished(self, command: tuple[str, ...], result: object) -> None:
        if isinstance(result, ProcessResult):
            returncode = result.returncode
            if result.error is not None:
                self.log.emit(f"[error] {result.error}")
        else:
            returncode = -1
            self.log.emit(f"[error] {result}")

        self._command_running = False
        self.busy_changed.emit(False)
        self.handle_command_finished(command, returncode)

    def handle_command_finished(self, command: Sequence[str], returncode: int) -> None:
        """Applies the optimistic update and schedules the authoritative refresh."""
        label = " ".join(command)
        if returncode == 0:
            logger.info(f"Task {label} completed successfully.")
            if self._store.apply_command_result(command, returncode):
                self.state_changed.emit()
        else:
            logger.warning(f"Task {label} failed with exit code {returncode}. Triggering full refresh.")
            self.log.emit(f"[error] brew failed (code={returncode})")

        self.command_finished.emit(tuple(command), returncode)

        if self._refresh_delay_ms <= 0:
            self.full_refresh()
        else:
            QTimer.singleShot(self._refresh_delay_ms, self.full_refresh)
