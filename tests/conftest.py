import os
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from PySide6.QtWidgets import QApplication

from brewtray.core.brew_types import ProcessResult


@pytest.fixture(scope="session")
def qapp() -> QApplication:
    # Widget tests run headless.
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


class ScriptedRunner:
    """Stand-in for `ProcessRunner` answering from a table keyed by argument tuple."""

    def __init__(self, responses: dict[tuple[str, ...], ProcessResult] | None = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, ...]] = []
        self.streamed: list[tuple[str, ...]] = []
        self.interrupts = 0

    def run(
        self, args: Sequence[str], on_output: Callable[[str], None] | None = None
    ) -> ProcessResult:
        key = tuple(args)
        self.calls.append(key)
        result = self.responses.get(key, ProcessResult(stdout="", returncode=0))
        if on_output is not None:
            self.streamed.append(key)
            for line in (result.stdout or "").splitlines():
                on_output(line)
            return ProcessResult(stdout=None, returncode=result.returncode, error=result.error)
        return result

    def interrupt(self) -> int:
        self.interrupts += 1
        return 0


class FakeJobRunner:
    """Synchronous job runner.

    With `auto=True` a job runs and completes inside `submit`. Otherwise jobs queue
    up until `finish_next()`/`finish_all()` runs them, which lets a test issue
    triggers while work is still "in flight".
    """

    def __init__(self, auto: bool = True):
        self.auto = auto
        self.pending: list[tuple[Callable, Callable, Callable | None]] = []
        self.submitted = 0

    def submit(
        self,
        fn: Callable[[Callable[[str], None]], Any],
        on_finished: Callable[[Any], None],
        on_output: Callable[[str], None] | None = None,
    ) -> int:
        self.submitted += 1
        job = (fn, on_finished, on_output)
        if self.auto:
            self._complete(job)
        else:
            self.pending.append(job)
        return self.submitted

    @staticmethod
    def _complete(job: tuple[Callable, Callable, Callable | None]) -> None:
        fn, on_finished, on_output = job
        emit = on_output or (lambda _text: None)
        try:
            result = fn(emit)
        except Exception as e:
            result = e
        on_finished(result)

    def finish_next(self) -> None:
        self._complete(self.pending.pop(0))

    def finish_all(self) -> None:
        while self.pending:
            self.finish_next()


@pytest.fixture
def scripted_runner() -> type[ScriptedRunner]:
    return ScriptedRunner


@pytest.fixture
def fake_jobs() -> type[FakeJobRunner]:
    return FakeJobRunner
