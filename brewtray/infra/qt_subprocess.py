from collections.abc import Callable
from typing import Any

from logly import logger
from PySide6.QtCore import QObject, QThread, Signal, Slot

OutputCallback = Callable[[str], None]
JobFunction = Callable[[OutputCallback], Any]


class JobWorker(QObject):
    """Runs a blocking job function in a background Qt thread.

    The worker is meant to be moved to a `QThread` and started via a signal/slot.
    `finished` is emitted exactly once, carrying either the function's return value
    or the exception it raised.
    """

    finished = Signal(int, object)
    output = Signal(int, str)

    def __init__(self, fn: JobFunction, job_id: int = 0):
        super().__init__()
        self._fn = fn
        self._job_id = job_id

    def _emit_output(self, text: str) -> None:
        self.output.emit(self._job_id, text)

    @Slot()
    def run(self):
        """Executes the job function and emits `finished`."""
        try:
            result = self._fn(self._emit_output)
        except Exception as e:
            logger.exception("Background job failed")
            result = e
        self.finished.emit(self._job_id, result)


class QtJobRunner(QObject):
    """Starts job functions on their own `QThread`s.

    Results and streamed output are delivered back on the thread this object lives
    in (normally the GUI thread), because the worker signals are connected to slots
    of this object and therefore queued across threads.
    """

    def __init__(self, parent: QObject | None = None):
        super().__init__(parent)
        self._next_job_id = 0
        self._threads: dict[int, tuple[QThread, JobWorker]] = {}
        self._on_finished: dict[int, Callable[[Any], None]] = {}
        self._on_output: dict[int, OutputCallback] = {}

    def active_count(self) -> int:
        return len(self._threads)

    def submit(
        self,
        fn: JobFunction,
        on_finished: Callable[[Any], None],
        on_output: OutputCallback | None = None,
    ) -> int:
        """Runs `fn(emit_output)` in the background.

        Args:
            fn: Blocking function; receives a thread-safe output callback.
            on_finished: Called once with the result (or the raised exception).
            on_output: Called for each output chunk the job emits.

        Returns:
            The job id.
        """
        self._next_job_id += 1
        job_id = self._next_job_id

        thread = QThread()
        worker = JobWorker(fn, job_id=job_id)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)

        worker.finished.connect(self._on_worker_finished)
        worker.output.connect(self._on_worker_output)
        worker.finished.connect(thread.quit)
        worker.finished.connect(worker.deleteLater)
        thread.finished.connect(thread.deleteLater)
        # Binding `t` keeps the wrapper alive until `deleteLater` runs.
        thread.finished.connect(lambda jid=job_id, t=thread: self._on_thread_finished(jid))

        self._threads[job_id] = (thread, worker)
        self._on_finished[job_id] = on_finished
        if on_output is not None:
            self._on_output[job_id] = on_output

        thread.start()
        return job_id

    @Slot(int, str)
    def _on_worker_output(self, job_id: int, text: str) -> None:
        callback = self._on_output.get(job_id)
        if callback is not None:
            callback(text)

    @Slot(int, object)
    def _on_worker_finished(self, job_id: int, result: object) -> None:
        self._on_output.pop(job_id, None)
        callback = self._on_finished.pop(job_id, None)
        if callback is not None:
            callback(result)

    def _on_thread_finished(self, job_id: int) -> None:
        """Drops the references kept alive for the duration of the job."""
        self._threads.pop(job_id, None)

    def wait_all(self, timeout_ms: int = 5000) -> None:
        """Blocks until all job threads have stopped (used on shutdown)."""
        for thread, _worker in list(self._threads.values()):
            thread.quit()
            thread.wait(timeout_ms)
