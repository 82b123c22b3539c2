"""Readiness probe: defers work on a file until nobody else is writing it.

Large clips copied from removable media are still being written when the
create event arrives. The probe keeps trying to open the file exclusively and
sleeps a fixed interval while it is reported as in use. There is no upper
bound on the number of retries.

- Windows: ``open()`` itself fails with a sharing or lock violation.
- POSIX: an exclusive non-blocking ``flock`` fails with ``BlockingIOError``
  while another process holds a lock on the file.
"""

import logging
import time
from pathlib import Path
from typing import Callable

from autoenc.infrastructure.platform_utils import IS_WINDOWS

if not IS_WINDOWS:
    import fcntl

# ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
_WINDOWS_IN_USE_ERRORS = {32, 33}

DEFAULT_POLL_INTERVAL_S = 1.0


def is_in_use_error(exc: OSError) -> bool:
    """True when the failure means another process still has the file."""
    if isinstance(exc, BlockingIOError):
        return True
    return getattr(exc, "winerror", None) in _WINDOWS_IN_USE_ERRORS


def open_exclusive(path: Path) -> None:
    """Opens path for exclusive read and closes it again."""
    with open(path, "rb") as fh:
        if not IS_WINDOWS:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


class ReadinessProber:
    """Blocks until a file can be opened exclusively."""

    def __init__(
        self,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        opener: Callable[[Path], None] = open_exclusive,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.poll_interval_s = poll_interval_s
        self._opener = opener
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    def wait_until_available(self, path: Path) -> int:
        """Returns the number of in-use retries before the file became available.

        Any open failure other than "in use" propagates on the first attempt.
        """
        retries = 0
        while True:
            try:
                self._opener(path)
                return retries
            except OSError as exc:
                if not is_in_use_error(exc):
                    raise
                retries += 1
                self.logger.debug(f"Waiting for {path} (in use, retry {retries})")
                self._sleep(self.poll_interval_s)
