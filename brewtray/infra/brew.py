import os
import shutil
from collections.abc import Sequence
from typing import Final

COMMON_BREW_PATHS: Final[tuple[str, ...]] = (
    "/opt/homebrew/bin/brew",  # Apple Silicon
    "/usr/local/bin/brew",  # Intel
    "/home/linuxbrew/.linuxbrew/bin/brew",
    "/usr/bin/brew",
    "/bin/brew",
)

# Keep output plain so the line parser sees what it expects.
BREW_ENV_OVERLAY: Final[dict[str, str]] = {
    "HOMEBREW_NO_COLOR": "1",
    "HOMEBREW_NO_EMOJI": "1",
    "HOMEBREW_NO_ENV_HINTS": "1",
}


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def find_brew_executable() -> str | None:
    """Finds the Homebrew executable.

    Checks the well-known install locations first, then `PATH`, then
    `$HOMEBREW_PREFIX/bin/brew`.

    Returns:
        The executable path, or None if Homebrew is not installed.
    """
    for path in COMMON_BREW_PATHS:
        if _is_executable(path):
            return path

    found = shutil.which("brew")
    if found:
        return found

    prefix = os.environ.get("HOMEBREW_PREFIX")
    if prefix:
        path = os.path.join(prefix, "bin", "brew")
        if _is_executable(path):
            return path

    return None


def build_brew_argv(args: Sequence[str], brew: str) -> list[str]:
    """Builds an argv list for a brew subcommand.

    Args:
        args: Subcommand and flags, e.g. `["outdated", "--verbose"]`.
        brew: Path of the brew executable.

    Returns:
        Argument vector suitable for `subprocess.Popen(...)`.
    """
    return [brew, *args]
