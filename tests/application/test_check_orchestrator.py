from datetime import datetime, timedelta

import pytest
from PySide6.QtCore import QSettings

from brewtray.application.brew_service import BrewService
from brewtray.application.check_orchestrator import CheckOrchestrator
from brewtray.core.brew_types import PackageRecord, ProcessResult
from brewtray.core.state_store import StateStore
from brewtray.infra.settings import AppSettings

OUTDATED = ("outdated", "--verbose")
START = datetime(2024, 5, 1, 9, 0, 0)


class _Clock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class _Harness:
    def __init__(self, settings, scripted_runner, fake_jobs, responses, auto):
        self.check_runner = scripted_runner(responses)
        self.installed_runner = scripted_runner(responses)
        self.command_runner = scripted_runner(responses)
        self.jobs = fake_jobs(auto=auto)
        self.clock = _Clock()
        self.store = StateStore()
        self.orchestrator = CheckOrchestrator(
            self.store,
            settings,
            self.jobs,
            check_service=BrewService(self.check_runner),
            installed_service=BrewService(self.installed_runner),
            command_service=BrewService(self.command_runner),
            clock=self.clock,
            refresh_delay_ms=0,
        )

        self.logs: list[str] = []
        self.became_outdated: list[int] = []
        self.rate_limited: list[int] = []
        self.busy: list[bool] = []
        self.orchestrator.log.connect(self.logs.append)
        self.orchestrator.became_outdated.connect(self.became_outdated.append)
        self.orchestrator.rate_limited.connect(self.rate_limited.append)
        self.orchestrator.busy_changed.connect(self.busy.append)

    def respond(self, args: tuple[str, ...], result: ProcessResult) -> None:
        for runner in (self.check_runner, self.installed_runner, self.command_runner):
            runner.responses[args] = result

    def outdated_names(self) -> list[str]:
        return [r.name for r in self.store.outdated_packages]

    def listing_calls(self) -> int:
        return self.check_runner.calls.count(OUTDATED)


@pytest.fixture
def make_harness(qapp, tmp_path, scripted_runner, fake_jobs):
    settings = AppSettings(QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat))

    def make(responses: dict | None = None, auto: bool = True) -> _Harness:
        base = {
            OUTDATED: ProcessResult(stdout="wget (1.21) < 1.22\n"),
            ("list", "-1", "--formula"): ProcessResult(stdout="wget\ngit\nnode\n"),
            ("list", "--versions", "--formula"): ProcessResult(stdout="git 2.44\nwget 1.21\n"),
        }
        base.update(responses or {})
        return _Harness(settings, scripted_runner, fake_jobs, base, auto)

    return make


def test_concurrent_triggers_run_a_single_check(make_harness) -> None:
    h = make_harness(auto=False)
    completions: list[int] = []

    started = [h.orchestrator.check(completion=lambda i=i: completions.append(i)) for i in range(5)]

    assert started == [True, False, False, False, False]
    assert h.jobs.submitted == 1
    assert h.orchestrator.is_checking()

    h.jobs.finish_all()

    assert h.listing_calls() == 1
    assert sorted(completions) == [0, 1, 2, 3, 4]
    assert not h.orchestrator.is_checking()
    assert h.outdated_names() == ["wget"]


def test_became_outdated_fires_only_on_zero_to_positive(make_harness) -> None:
    h = make_harness()

    h.orchestrator.check()
    h.orchestrator.check()
    h.respond(OUTDATED, ProcessResult(stdout=""))
    h.orchestrator.check()
    h.respond(OUTDATED, ProcessResult(stdout="git (2.43) < 2.44\nnode (20) < 21\n"))
    h.orchestrator.check()

    assert h.became_outdated == [1, 2]


def test_failed_check_clears_list_and_sets_error(make_harness) -> None:
    h = make_harness()
    h.orchestrator.check()
    assert h.outdated_names() == ["wget"]

    h.respond(OUTDATED, ProcessResult(stdout="", stderr="Error: network down\n", returncode=1))
    h.orchestrator.check()

    assert h.outdated_names() == []
    assert h.store.check_state.last_error is True
    assert h.store.check_state.last_check_time == START
    assert "[error] checking for updates failed" in h.logs
    assert "Error: network down" in h.logs
    assert not h.orchestrator.is_checking()


def test_job_exception_is_absorbed_as_failure(make_harness, monkeypatch) -> None:
    h = make_harness()

    def boom(command):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(h.orchestrator._check_service, "list_outdated", boom)
    h.orchestrator.check()

    assert h.store.check_state.last_error is True
    assert not h.orchestrator.is_checking()


def test_manual_check_updates_database_and_shows_output(make_harness) -> None:
    h = make_harness({("update",): ProcessResult(stdout="Already up-to-date.\n")})

    assert h.orchestrator.check_now() is True

    assert h.check_runner.calls[0] == ("update",)
    assert h.logs[0] == "[running] checking for updates ..."
    assert "Already up-to-date." in h.logs
    assert "wget (1.21) < 1.22" in h.logs


def test_manual_check_is_rate_limited(make_harness) -> None:
    h = make_harness()
    completions: list[str] = []

    assert h.orchestrator.check_now() is True
    h.clock.advance(seconds=15)
    assert h.orchestrator.check_now(completion=lambda: completions.append("done")) is False

    assert h.rate_limited == [45]
    assert completions == ["done"]
    assert h.listing_calls() == 1

    h.clock.advance(seconds=45)
    assert h.orchestrator.check_now() is True
    assert h.listing_calls() == 2


def test_scheduled_check_skips_database_update_by_default(make_harness) -> None:
    h = make_harness()
    h.orchestrator.check()
    deadline = h.store.check_state.next_scheduled_time
    assert deadline == START + timedelta(days=1)

    h.clock.now = deadline
    h.orchestrator._on_timer_fired()

    assert h.listing_calls() == 2
    assert ("update",) not in h.check_runner.calls


def test_timer_fired_early_rearms_without_checking(make_harness) -> None:
    h = make_harness()
    h.orchestrator.check()

    h.clock.advance(hours=1)
    h.orchestrator._on_timer_fired()

    assert h.listing_calls() == 1
    assert h.orchestrator._timer.isActive()


def test_wake_after_missed_deadline_runs_check_and_reschedules(make_harness) -> None:
    h = make_harness()
    h.orchestrator.check()

    h.clock.advance(days=2)
    h.orchestrator.handle_wake(172800.0)

    assert h.listing_calls() == 2
    assert h.store.check_state.next_scheduled_time > h.clock()
    assert h.store.check_state.next_scheduled_time == h.clock() + timedelta(days=1)


def test_wake_before_deadline_only_reschedules(make_harness) -> None:
    h = make_harness()
    h.orchestrator.check()

    h.clock.advance(hours=3)
    h.orchestrator.handle_wake(600.0)

    assert h.listing_calls() == 1
    assert h.store.check_state.next_scheduled_time == h.clock() + timedelta(days=1)


def test_manual_interval_disarms_schedule(make_harness) -> None:
    h = make_harness()
    h.orchestrator.check()

    h.orchestrator.set_interval(0)

    assert h.store.check_state.next_scheduled_time is None
    assert not h.orchestrator._timer.isActive()

    h.clock.advance(days=3)
    h.orchestrator.handle_wake(1.0)
    assert h.listing_calls() == 1


def test_start_checks_then_loads_installed(make_harness) -> None:
    h = make_harness()

    h.orchestrator.start()

    assert h.outdated_names() == ["wget"]
    assert [r.name for r in h.store.installed_packages] == ["git", "wget"]


def test_upgrade_is_optimistic_then_authoritative(make_harness) -> None:
    h = make_harness()
    h.store.publish_outdated(
        [PackageRecord(name="wget"), PackageRecord(name="git"), PackageRecord(name="node")]
    )
    seen_at_command_finish: list[list[str]] = []
    h.orchestrator.command_finished.connect(
        lambda args, code: seen_at_command_finish.append(h.outdated_names())
    )
    h.respond(OUTDATED, ProcessResult(stdout="git (2.43) < 2.44\n"))

    assert h.orchestrator.upgrade(["wget"]) is True

    assert seen_at_command_finish == [["git", "node"]]
    assert h.outdated_names() == ["git"]
    assert ("upgrade", "wget") in h.command_runner.streamed
    assert h.busy == [True, False]


def test_failed_command_skips_optimistic_update_but_refreshes(make_harness) -> None:
    h = make_harness({("upgrade", "wget"): ProcessResult(stdout="Error: nope\n", returncode=1)})
    h.store.publish_outdated([PackageRecord(name="wget")])
    seen: list[list[str]] = []
    h.orchestrator.command_finished.connect(lambda args, code: seen.append(h.outdated_names()))

    h.orchestrator.upgrade(["wget"])

    assert seen == [["wget"]]
    assert "[error] brew failed (code=1)" in h.logs
    assert h.listing_calls() == 1


def test_only_one_package_command_at_a_time(make_harness) -> None:
    h = make_harness(auto=False)

    assert h.orchestrator.upgrade_all() is True
    assert h.orchestrator.uninstall(["wget"]) is False
    assert "[info] already running" in h.logs
    assert h.orchestrator.upgrade([]) is False


def test_stale_installed_fetch_is_preempted(make_harness) -> None:
    h = make_harness(auto=False)
    completions: list[str] = []

    h.orchestrator.refresh_installed(completion=lambda: completions.append("first"))
    h.orchestrator.refresh_installed(completion=lambda: completions.append("second"))

    assert h.installed_runner.interrupts == 1

    h.respond(("list", "--versions", "--formula"), ProcessResult(stdout="zsh 5.9\n"))
    h.jobs.finish_next()
    assert h.store.installed_packages == ()
    assert completions == []

    h.jobs.finish_next()
    assert [r.name for r in h.store.installed_packages] == ["zsh"]
    assert completions == ["first", "second"]


def test_failed_installed_fetch_keeps_previous_list(make_harness) -> None:
    h = make_harness()
    h.orchestrator.refresh_installed()
    assert [r.name for r in h.store.installed_packages] == ["git", "wget"]

    h.respond(("list", "--versions", "--cask"), ProcessResult(stdout="", returncode=1))
    h.orchestrator.refresh_installed()

    assert [r.name for r in h.store.installed_packages] == ["git", "wget"]


def test_full_refresh_during_check_runs_after_it(make_harness) -> None:
    h = make_harness(auto=False)
    completions: list[str] = []

    h.orchestrator.check()
    h.orchestrator.full_refresh(completion=lambda: completions.append("refreshed"))
    assert h.jobs.submitted == 1

    h.jobs.finish_all()

    assert h.listing_calls() == 2
    assert completions == ["refreshed"]
    assert [r.name for r in h.store.installed_packages] == ["git", "wget"]


def test_shutdown_interrupts_every_runner(make_harness) -> None:
    h = make_harness()
    h.orchestrator.check()

    h.orchestrator.shutdown()

    assert not h.orchestrator._timer.isActive()
    assert h.check_runner.interrupts == 1
    assert h.installed_runner.interrupts == 1
    assert h.command_runner.interrupts == 1


def test_refresh_corrects_upgrade_that_left_a_package_outdated(make_harness) -> None:
    h = make_harness()
    h.store.publish_outdated(
        [PackageRecord(name="wget"), PackageRecord(name="git"), PackageRecord(name="node")]
    )
    seen_at_command_finish: list[list[str]] = []
    h.orchestrator.command_finished.connect(
        lambda args, code: seen_at_command_finish.append(h.outdated_names())
    )
    # brew exits 0 but git is still behind afterwards.
    h.respond(OUTDATED, ProcessResult(stdout="git (2.43) < 2.44\nnode (20) < 21\n"))

    assert h.orchestrator.upgrade(["wget", "git"]) is True

    assert seen_at_command_finish == [["node"]]
    assert h.outdated_names() == ["git", "node"]


def test_refresh_restores_package_uninstall_did_not_remove(make_harness) -> None:
    h = make_harness()
    h.store.publish_outdated([PackageRecord(name="wget"), PackageRecord(name="git")])
    h.orchestrator.refresh_installed()
    assert [r.name for r in h.store.installed_packages] == ["git", "wget"]

    seen_at_command_finish: list[tuple[list[str], list[str]]] = []
    h.orchestrator.command_finished.connect(
        lambda args, code: seen_at_command_finish.append(
            (h.outdated_names(), [r.name for r in h.store.installed_packages])
        )
    )
    h.respond(OUTDATED, ProcessResult(stdout="git (2.43) < 2.44\nwget (1.21) < 1.22\n"))

    assert h.orchestrator.uninstall(["wget"]) is True

    assert seen_at_command_finish == [(["git"], ["git"])]
    assert ("uninstall", "wget") in h.command_runner.streamed
    assert h.outdated_names() == ["git", "wget"]
    assert [r.name for r in h.store.installed_packages] == ["git", "wget"]
