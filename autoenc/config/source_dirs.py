import os
from pathlib import Path
from typing import List, Optional, Tuple, Union

HOME_PLACEHOLDER = "{user.home}"
SOURCE_DIR_DELIMITER = ";"
STATUS_OK = "✓"
STATUS_MISSING = "✗"
STATUS_NOT_DIR = "≠"
STATUS_NO_ACCESS = "⚡"


def _strip_wrapping_quotes(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ('"', "'"):
        return trimmed[1:-1]
    return trimmed


def expand_home(entry: str, home: Optional[str] = None) -> str:
    """Expands the {user.home} placeholder and a leading ~ in one entry."""
    home_dir = home if home is not None else str(Path.home())
    expanded = entry.replace(HOME_PLACEHOLDER, home_dir)
    if expanded == "~" or expanded.startswith("~/") or expanded.startswith("~\\"):
        expanded = home_dir + expanded[1:]
    return expanded


def split_source_dirs(value: Union[str, List[str], None]) -> List[str]:
    """Splits a ';'-delimited string (or flattens a list of such strings)."""
    if value is None:
        return []
    raw = [value] if isinstance(value, str) else list(value)
    parts: List[str] = []
    for item in raw:
        if item is None:
            continue
        parts.extend(str(item).split(SOURCE_DIR_DELIMITER))
    return parts


def dedupe_preserve_order(entries: List[str]) -> List[str]:
    seen = set()
    deduped: List[str] = []
    for entry in entries:
        if entry not in seen:
            seen.add(entry)
            deduped.append(entry)
    return deduped


def normalize_source_dir_entries(
    value: Union[str, List[str], None],
    home: Optional[str] = None,
) -> List[str]:
    normalized: List[str] = []
    for part in split_source_dirs(value):
        cleaned = _strip_wrapping_quotes(part)
        if cleaned:
            normalized.append(expand_home(cleaned, home=home))
    return dedupe_preserve_order(normalized)


def _has_read_access(path: Path) -> bool:
    return os.access(path, os.R_OK | os.X_OK)


def evaluate_source_dirs(entries: List[str]) -> Tuple[List[Path], List[Tuple[str, str]]]:
    """Checks every configured root; returns usable roots plus a status line per entry."""
    valid_dirs: List[Path] = []
    status_entries: List[Tuple[str, str]] = []

    for entry in entries:
        path = Path(entry)
        if not path.exists():
            status_entries.append((STATUS_MISSING, entry))
            continue
        if not path.is_dir():
            status_entries.append((STATUS_NOT_DIR, entry))
            continue
        if not _has_read_access(path):
            status_entries.append((STATUS_NO_ACCESS, entry))
            continue
        status_entries.append((STATUS_OK, entry))
        valid_dirs.append(path)

    return valid_dirs, status_entries


def build_source_dir_lines(status_entries: List[Tuple[str, str]]) -> List[str]:
    lines: List[str] = []
    for idx, (status, entry) in enumerate(status_entries):
        style = "green" if status == STATUS_OK else "red"
        lines.append(f"  [{style}]{status}[/] {idx + 1}. {entry}")
    return lines
