import re

from logly import logger

from .brew_types import UNKNOWN_VERSION, PackageRecord

# brew can emit ANSI colours even with HOMEBREW_NO_COLOR when run through a pty.
_ANSI_OSC_RE = re.compile(r"\x1b\][^\x07]*(?:\x07|\x1b\\)")
_ANSI_CSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
_ANSI_2CHAR_RE = re.compile(r"\x1b[@-Z\\-_]")

# `ffmpeg (6.0_1) < 6.1`, `firefox (115.0) != 116.0 [pinned at 115.0]`
_RELATIONAL_RE = re.compile(r"^(\S+)\s+\(([^)]+)\)\s*(?:!=|<)\s*(\S+)")
# `mycask 1.2 -> 1.3`
_ARROW_RE = re.compile(r"^(\S+)\s+(\S+)\s+->\s+(\S+)")
# `node (20.1.0)` with nothing recognisable after it
_PAREN_ONLY_RE = re.compile(r"^(\S+)\s+\(([^)]+)\)")

_USABLE_NAME_RE = re.compile(r"^[A-Za-z0-9@][A-Za-z0-9@+._/-]*$")

_BANNER_PREFIXES = (
    "==>",
    "warning:",
    "error:",
    "note:",
    "checking for",
    "running:",
    "you have",
    "already up-to-date",
)


def _sanitize(text: str) -> str:
    """Normalizes newlines and strips common ANSI escape sequences."""
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _ANSI_OSC_RE.sub("", text)
    text = _ANSI_CSI_RE.sub("", text)
    text = _ANSI_2CHAR_RE.sub("", text)
    return text


def is_banner_line(line: str) -> bool:
    """Returns True for headers and status chatter that are not package rows."""
    lower = line.strip().lower()
    return any(lower.startswith(prefix) for prefix in _BANNER_PREFIXES)


def parse_outdated_line(line: str) -> PackageRecord | None:
    """Parses one listing line, trying each pattern tier in order.

    Args:
        line: A single, already sanitized line.

    Returns:
        The parsed record, or None for blank, banner or nameless lines.
    """
    s = line.strip()
    if not s or is_banner_line(s):
        return None

    for pattern in (_RELATIONAL_RE, _ARROW_RE):
        match = pattern.match(s)
        if match:
            name, current, available = match.groups()
            return PackageRecord(
                name=name,
                current_version=current.strip(),
                available_version=available.strip(),
            )

    match = _PAREN_ONLY_RE.match(s)
    if match:
        return PackageRecord(
            name=match.group(1),
            current_version=match.group(2).strip(),
            available_version=UNKNOWN_VERSION,
        )

    # ---- Fallback: keep the name, give up on versions
    name = s.split()[0]
    if not _USABLE_NAME_RE.match(name):
        logger.debug(f"Dropping unparsable outdated line: {s!r}")
        return None
    return PackageRecord(
        name=name,
        current_version=UNKNOWN_VERSION,
        available_version=UNKNOWN_VERSION,
    )


def parse_brew_outdated(text: str) -> list[PackageRecord]:
    """Parses `brew outdated --verbose` output into records.

    The output is meant for humans, so each line goes through a tiered set of
    patterns and the last tier only recovers the package name. Line order is
    preserved and duplicates are kept.

    Args:
        text: Raw stdout of the listing command.

    Returns:
        Parsed records; possibly fewer than the number of input lines.
    """
    records: list[PackageRecord] = []
    for line in _sanitize(text).splitlines():
        record = parse_outdated_line(line)
        if record is not None:
            records.append(record)
    return records
