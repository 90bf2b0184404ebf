class BrewError(Exception):
    """Base class for failures talking to the brew executable."""


class ExecutableNotFoundError(BrewError):
    """The brew executable could not be located."""

    def __init__(self, executable: str | None = None):
        self.executable = executable
        super().__init__(f"brew executable not found: {executable or '(none)'}")


class ProcessSpawnError(BrewError):
    """The OS refused to start the process (permissions, resources...)."""


class NonZeroExitError(BrewError):
    """The process ran but exited with a non-zero status."""

    def __init__(self, returncode: int, detail: str = ""):
        self.returncode = returncode
        self.detail = detail
        super().__init__(f"brew exited with code {returncode}")


class EnrichmentProbeError(BrewError):
    """A per-package provenance probe failed or was ambiguous."""
