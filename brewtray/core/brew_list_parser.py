import json
from typing import Any

from .brew_types import SOURCE_CASK, SOURCE_FORMULA, InstalledPackageRecord

_CORE_TAP = "homebrew/core"
_CASK_TAP = "homebrew/cask"


def extract_first_json_value(text: str) -> Any | None:
    """Finds the JSON payload in `brew info` output.

    brew may print "==> Auto-updating Homebrew..." and tap fetch lines ahead of
    the payload on stdout. Decoding is attempted from every '{' or '[' until one
    succeeds, so a stray bracket in that chatter is skipped over.

    Args:
        text: Raw command stdout.

    Returns:
        The decoded payload, or None when stdout holds no valid JSON.
    """
    decoder = json.JSONDecoder()
    for i, ch in enumerate(text):
        if ch not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, i)
            return value
        except json.JSONDecodeError:
            continue
    return None


def parse_brew_name_list(text: str) -> set[str]:
    """Parses `brew list -1 --formula|--cask` output into a name set."""
    names: set[str] = set()
    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith("==>"):
            continue
        names.add(s.split()[0])
    return names


def parse_brew_list_versions(text: str, source: str) -> list[InstalledPackageRecord]:
    """Parses `brew list --versions` output.

    Each line is `name version [version...]`; the first version is used. Lines
    without a version are skipped.

    Args:
        text: Command stdout.
        source: Provenance tag for every row ("formula" or "cask").

    Returns:
        Records in input order.
    """
    records: list[InstalledPackageRecord] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or parts[0].startswith("==>"):
            continue
        records.append(
            InstalledPackageRecord(name=parts[0], version=parts[1], source=source)
        )
    return records


def _tap_of(item: object) -> str:
    if not isinstance(item, dict):
        return ""
    tap = item.get("tap")
    return tap.strip() if isinstance(tap, str) else ""


def parse_brew_info_source(text: str) -> str | None:
    """Derives a package's provenance from `brew info --json=v2` output.

    Official taps collapse to "formula"/"cask"; third-party taps are returned as
    their tap path.

    Args:
        text: Command stdout (v2 object, or the v1 list of formulae).

    Returns:
        The source tag, or None when the payload is missing or ambiguous.
    """
    data = extract_first_json_value(text)
    if isinstance(data, list):
        data = {"formulae": data}
    if not isinstance(data, dict):
        return None

    formulae = data.get("formulae")
    casks = data.get("casks")
    formulae = formulae if isinstance(formulae, list) else []
    casks = casks if isinstance(casks, list) else []

    if formulae and casks:
        return None

    if casks:
        tap = _tap_of(casks[0])
        return tap if tap and tap != _CASK_TAP else SOURCE_CASK

    if formulae:
        tap = _tap_of(formulae[0])
        return tap if tap and tap != _CORE_TAP else SOURCE_FORMULA

    return None
