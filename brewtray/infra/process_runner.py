import os
import shutil
import subprocess
import threading
from collections.abc import Callable, Mapping, Sequence

from logly import logger

from brewtray.core.brew_types import ProcessResult
from brewtray.core.errors import ExecutableNotFoundError, ProcessSpawnError

from .brew import BREW_ENV_OVERLAY, build_brew_argv

OutputCallback = Callable[[str], None]


def decode_output(data: bytes | None) -> str:
    """Decodes process output bytes, replacing undecodable sequences."""
    if not data:
        return ""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """Runs brew subcommands and tracks the live processes for interruption.

    `run()` blocks until the process exits, so it is meant to be called from a
    worker thread (see `QtJobRunner`). It never raises for process failures: the
    failure is carried in the returned `ProcessResult` so callers can always
    release whatever they hold. One runner is used per logical operation, which
    makes `interrupt()` target only that operation's processes.
    """

    def __init__(
        self,
        executable: str | None,
        env_overlay: Mapping[str, str] | None = None,
    ):
        self._executable = executable
        self._env_overlay = dict(BREW_ENV_OVERLAY if env_overlay is None else env_overlay)
        self._lock = threading.Lock()
        self._active: set[subprocess.Popen] = set()

    @property
    def executable(self) -> str | None:
        return self._executable

    def run(
        self, args: Sequence[str], on_output: OutputCallback | None = None
    ) -> ProcessResult:
        """Runs `brew <args>` to completion.

        Args:
            args: Subcommand and flags.
            on_output: When given, runs in streaming mode: stderr is merged into
                stdout and each line is passed to the callback as it arrives.
                Nothing is buffered, so `stdout` of the result is None.

        Returns:
            The process result; `error` is set when the process could not start.
        """
        if not self._executable or shutil.which(self._executable) is None:
            logger.error(f"brew executable not found: {self._executable}")
            return ProcessResult(
                stdout=None,
                returncode=-1,
                error=ExecutableNotFoundError(self._executable),
            )

        argv = build_brew_argv(args, self._executable)
        env = {**os.environ, **self._env_overlay}
        streaming = on_output is not None
        logger.info(f"Starting subprocess streaming={streaming} argv={' '.join(argv)}")

        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if streaming else subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=env,
            )
        except OSError as e:
            logger.error(f"Failed to start {argv[0]}: {e}")
            return ProcessResult(
                stdout=None,
                stderr=str(e),
                returncode=-1,
                error=ProcessSpawnError(str(e)),
            )

        with self._lock:
            self._active.add(proc)
        try:
            if streaming:
                assert proc.stdout is not None
                for line in iter(proc.stdout.readline, b""):
                    on_output(decode_output(line).rstrip("\n"))
                returncode = proc.wait()
                result = ProcessResult(stdout=None, returncode=returncode)
            else:
                stdout, stderr = proc.communicate()
                result = ProcessResult(
                    stdout=decode_output(stdout),
                    stderr=decode_output(stderr),
                    returncode=proc.returncode,
                )
        finally:
            with self._lock:
                self._active.discard(proc)

        logger.info(f"Subprocess finished returncode={result.returncode}")
        return result

    def interrupt(self) -> int:
        """Sends SIGTERM to every live process of this runner.

        Returns:
            The number of processes signalled.
        """
        with self._lock:
            procs = list(self._active)
        signalled = 0
        for proc in procs:
            if proc.poll() is None:
                try:
                    proc.terminate()
                    signalled += 1
                except ProcessLookupError:
                    continue
        if signalled:
            logger.warning(f"Interrupted {signalled} running brew process(es)")
        return signalled
