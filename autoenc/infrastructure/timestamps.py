import os
from datetime import datetime
from pathlib import Path

CLI_TIMESTAMP_FORMAT = "%m %d %Y %H:%M"


def read_mtime_ns(path: Path) -> int:
    return os.stat(path).st_mtime_ns


def apply_mtime_ns(path: Path, mtime_ns: int) -> None:
    """Sets the last-modified time of path, keeping its access time."""
    atime_ns = os.stat(path).st_atime_ns
    os.utime(path, ns=(atime_ns, mtime_ns))


def parse_cli_timestamp(value: str) -> datetime:
    """Parses 'MM dd yyyy HH:mm' in local time, e.g. '07 04 2021 18:30'."""
    try:
        return datetime.strptime(" ".join(value.split()), CLI_TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise ValueError(f"Invalid date/time {value!r}, expected 'MM dd yyyy HH:mm'") from exc


def set_last_modified(path: Path, when: datetime) -> None:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    apply_mtime_ns(path, int(when.timestamp()) * 1_000_000_000)
