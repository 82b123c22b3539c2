"""Watch tree manager: the only owner of the directory <-> watch handle maps.

Both maps are private. Callers ask for registrations and lookups; they never
get the dictionaries themselves, and every mutation updates both sides so
the maps stay mutual inverses.
"""

import logging
from pathlib import Path
from typing import Dict, Hashable, List, Optional, TYPE_CHECKING

from autoenc.domain.events import DirectoryRegistered, DirectoryUnregistered, ScanFinished
from autoenc.infrastructure.event_bus import EventBus
from autoenc.infrastructure.file_scanner import FileScanner

if TYPE_CHECKING:
    from autoenc.infrastructure.notifications import WatchService


class WatchTreeManager:
    """Registers and unregisters directory watches recursively.

    Args:
        watch_service: Notification service that hands out watch handles.
        file_scanner: Walks trees and recognises candidates and archive dirs.
        event_bus: Optional bus for DirectoryRegistered/Unregistered events.
    """

    def __init__(
        self,
        watch_service: "WatchService",
        file_scanner: FileScanner,
        event_bus: Optional[EventBus] = None,
    ):
        self.watch_service = watch_service
        self.file_scanner = file_scanner
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)

        self._handles_by_path: Dict[Path, Hashable] = {}
        self._paths_by_handle: Dict[Hashable, Path] = {}

    def _publish(self, event) -> None:
        if self.event_bus:
            self.event_bus.publish(event)

    # ---- queries ----

    def resolve(self, handle: Hashable) -> Optional[Path]:
        return self._paths_by_handle.get(handle)

    def handle_for(self, path: Path) -> Optional[Hashable]:
        return self._handles_by_path.get(Path(path))

    def is_watched(self, path: Path) -> bool:
        return Path(path) in self._handles_by_path

    def watched_paths(self) -> List[Path]:
        return sorted(self._handles_by_path)

    def __len__(self) -> int:
        return len(self._handles_by_path)

    # ---- mutations ----

    def register_tree(self, root: Path) -> List[Path]:
        """Watches root and every non-archive directory below it.

        Returns candidate files in discovery order. Filesystem errors
        propagate; directories registered before the error stay registered.
        """
        root = Path(root)
        candidates: List[Path] = []
        registered = 0
        for directory, files in self.file_scanner.walk(root):
            if directory not in self._handles_by_path:
                self.register_dir(directory)
                registered += 1
            candidates.extend(files)

        self.logger.debug(f"Scan of {root}: registered={registered}, candidates={len(candidates)}")
        self._publish(ScanFinished(root=root, directories_registered=registered, candidates_found=len(candidates)))
        return candidates

    def register_dir(self, path: Path):
        path = Path(path)
        self.logger.debug(f"WATCH: {path}")
        handle = self.watch_service.register(path)
        self._handles_by_path[path] = handle
        self._paths_by_handle[handle] = path
        self._publish(DirectoryRegistered(path=path))
        return handle

    def unregister_dir(self, path: Path) -> bool:
        """Cancels the watch for path; False if path was not watched."""
        path = Path(path)
        handle = self._handles_by_path.pop(path, None)
        if handle is None:
            return False
        try:
            self.watch_service.cancel(handle)
        finally:
            self._paths_by_handle.pop(handle, None)
        self.logger.debug(f"UNWATCH: {path}")
        self._publish(DirectoryUnregistered(path=path))
        return True

    def invalidate(self, handle: Hashable) -> Optional[Path]:
        """Drops a handle the notification service reported as no longer valid."""
        path = self._paths_by_handle.pop(handle, None)
        if path is not None and self._handles_by_path.get(path) is handle:
            del self._handles_by_path[path]
        self.watch_service.cancel(handle)
        if path is not None:
            self.logger.debug(f"WATCH_INVALID: {path}")
            self._publish(DirectoryUnregistered(path=path, invalidated=True))
        return path

    def close(self) -> None:
        """Cancels every watch and forgets all directories."""
        for handle in list(self._paths_by_handle):
            self.watch_service.cancel(handle)
        self._handles_by_path.clear()
        self._paths_by_handle.clear()
