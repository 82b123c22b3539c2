"""Directory change notifications with signaled watch handles.

The watchdog Observer delivers raw events on its own thread. This module turns
them into a pull-style service for the single coordinating thread:

- every watched directory gets a ``WatchHandle``; the observer itself only
  holds one recursive schedule per top-most registered directory, and raw
  events are routed to the handle of the directory that contains the entry
- events are queued per handle; a handle is put on the ready queue once, when
  its first event arrives, and stays signaled until ``reset()``
- ``take()`` blocks until a handle is signaled, ``poll_events()`` drains it
- ``reset()`` re-arms the handle and reports whether it is still valid

Entries in directories that were never registered (the archive directory, for
one) are seen by the recursive schedule but have no handle and are dropped.

Per-handle buffers are bounded; when a buffer is full the excess events are
collapsed into a single OVERFLOW event. Overflowed events are lost.

The observer thread only touches the routing index and the pending buffers
(under ``_lock``). Observer calls are made outside ``_lock``: watchdog
dispatches events while holding its own lock.
"""

import logging
import os
import queue
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from autoenc.domain.models import WatchEvent, WatchEventKind

DEFAULT_MAX_PENDING_EVENTS = 512

# Only creations and deletions are watched; moves are reported as a pair of both
WATCHED_EVENT_TYPES = [
    FileCreatedEvent,
    DirCreatedEvent,
    FileDeletedEvent,
    DirDeletedEvent,
    FileMovedEvent,
    DirMovedEvent,
]


class WatchServiceClosed(Exception):
    """Raised by a blocking wait when the service has been closed."""


class WatchHandle:
    """Opaque token for the subscription on one directory."""

    def __init__(self, path: Path):
        self.path = path
        self.real_path = Path(os.path.realpath(path))
        self.valid = True
        # Root of the recursive schedule this directory is covered by
        self._anchor: Optional[Path] = None

    def __repr__(self) -> str:
        state = "valid" if self.valid else "cancelled"
        return f"WatchHandle({str(self.path)!r}, {state})"


class _RoutingEventHandler(FileSystemEventHandler):
    """Forwards every raw watchdog event to the service for routing."""

    def __init__(self, service: "WatchService"):
        super().__init__()
        self._service = service

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._service._on_fs_event(event)


class WatchService:
    """Pull-style wrapper around a watchdog Observer.

    Args:
        observer_factory: Builds the observer; defaults to the platform Observer.
        max_pending_events: Buffer size per handle before events overflow.
        poll_timeout_s: How often a blocked take() checks for close().
    """

    def __init__(
        self,
        observer_factory: Callable[[], BaseObserver] = Observer,
        max_pending_events: int = DEFAULT_MAX_PENDING_EVENTS,
        poll_timeout_s: float = 0.5,
    ):
        self._observer = observer_factory()
        self._event_handler = _RoutingEventHandler(self)
        self.max_pending_events = max_pending_events
        self.poll_timeout_s = poll_timeout_s
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        # Both the registered and the resolved path of every live handle
        self._handles_by_dir: Dict[Path, WatchHandle] = {}
        self._anchors: Dict[Path, ObservedWatch] = {}
        self._anchor_members: Dict[Path, Set[WatchHandle]] = {}
        self._pending: Dict[WatchHandle, List[WatchEvent]] = {}
        self._signaled: Set[WatchHandle] = set()
        self._ready: "queue.Queue[Optional[WatchHandle]]" = queue.Queue()
        self._closed = False
        self._started = False

    # ---- lifecycle ----

    def start(self) -> None:
        if self._started:
            return
        self._observer.start()
        self._started = True

    def close(self) -> None:
        """Stops the observer and wakes any blocked take()."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._ready.put(None)
        if self._started:
            self._observer.stop()
            self._observer.join(timeout=5)
        self.logger.debug("Watch service closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "WatchService":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # ---- registration ----

    def register(self, path: Path) -> WatchHandle:
        """Watches one directory for created and deleted entries.

        Directories below an already watched one share its recursive schedule.
        A directory above existing schedules takes them over.
        """
        if self._closed:
            raise WatchServiceClosed()
        path = Path(path)
        if not path.is_dir():
            if not path.exists():
                raise FileNotFoundError(f"No such directory: {path}")
            raise NotADirectoryError(f"Not a directory: {path}")

        handle = WatchHandle(path)
        with self._lock:
            anchor = self._covering_anchor(path)
            if anchor is not None:
                self._attach(handle, anchor)
                return handle

        watch = self._observer.schedule(
            self._event_handler,
            str(path),
            recursive=True,
            event_filter=WATCHED_EVENT_TYPES,
        )
        superseded: List[ObservedWatch] = []
        with self._lock:
            members: Set[WatchHandle] = set()
            for nested in [a for a in self._anchors if path in a.parents]:
                superseded.append(self._anchors.pop(nested))
                members |= self._anchor_members.pop(nested)
            self._anchors[path] = watch
            self._anchor_members[path] = set()
            for member in members:
                self._attach(member, path)
            self._attach(handle, path)
        for old_watch in superseded:
            self._unschedule(old_watch)
        self.logger.debug(f"Scheduled recursive watch on {path}")
        return handle

    def cancel(self, handle: WatchHandle) -> None:
        """Stops delivering events for handle and forgets its queued events."""
        watch = None
        with self._lock:
            handle.valid = False
            self._signaled.discard(handle)
            self._pending.pop(handle, None)
            for key in (handle.path, handle.real_path):
                if self._handles_by_dir.get(key) is handle:
                    del self._handles_by_dir[key]
            anchor = handle._anchor
            handle._anchor = None
            if anchor is not None:
                members = self._anchor_members.get(anchor, set())
                members.discard(handle)
                if not members:
                    self._anchor_members.pop(anchor, None)
                    watch = self._anchors.pop(anchor, None)
        if watch is not None:
            self._unschedule(watch)

    def _covering_anchor(self, path: Path) -> Optional[Path]:
        for anchor in self._anchors:
            if anchor == path or anchor in path.parents:
                return anchor
        return None

    def _attach(self, handle: WatchHandle, anchor: Path) -> None:
        handle._anchor = anchor
        self._anchor_members[anchor].add(handle)
        self._handles_by_dir[handle.path] = handle
        self._handles_by_dir[handle.real_path] = handle

    def _unschedule(self, watch: ObservedWatch) -> None:
        try:
            self._observer.unschedule(watch)
        except KeyError:
            # Observer already dropped it (stopped, or its root was deleted)
            self.logger.debug(f"Watch on {watch.path} was not scheduled")

    # ---- consumer side ----

    def take(self) -> WatchHandle:
        """Blocks until a handle is signaled."""
        while True:
            if self._closed:
                raise WatchServiceClosed()
            try:
                handle = self._ready.get(timeout=self.poll_timeout_s)
            except queue.Empty:
                continue
            if handle is None:
                # Leave the wake-up marker for other waiters
                self._ready.put(None)
                raise WatchServiceClosed()
            return handle

    def poll_events(self, handle: WatchHandle) -> List[WatchEvent]:
        """Removes and returns the events pending for handle."""
        with self._lock:
            return self._pending.pop(handle, [])

    def reset(self, handle: WatchHandle) -> bool:
        """Re-arms handle; False if it was cancelled or its directory is gone."""
        with self._lock:
            valid = handle.valid and not self._closed and handle.path.is_dir()
            if not valid:
                handle.valid = False
                self._signaled.discard(handle)
                self._pending.pop(handle, None)
                return False
            if self._pending.get(handle):
                # Events arrived while it was being processed: stay signaled
                self._ready.put(handle)
            else:
                self._signaled.discard(handle)
            return True

    # ---- producer side (observer thread) ----

    def _route(self, raw_path, kind: WatchEventKind, routed: Dict[WatchHandle, List[WatchEvent]]) -> None:
        if not raw_path:
            return
        path = Path(os.fsdecode(raw_path))
        handle = self._handles_by_dir.get(path.parent)
        if handle is not None:
            routed.setdefault(handle, []).append(WatchEvent(kind=kind, name=path.name))

    def _on_fs_event(self, event: FileSystemEvent) -> None:
        routed: Dict[WatchHandle, List[WatchEvent]] = {}
        with self._lock:
            if self._closed:
                return
            if event.event_type == "created":
                self._route(event.src_path, WatchEventKind.CREATE, routed)
            elif event.event_type == "deleted":
                self._route(event.src_path, WatchEventKind.DELETE, routed)
                # A watched directory itself went away: signal its handle
                # without events so the consumer's reset() finds it invalid
                gone = self._handles_by_dir.get(Path(os.fsdecode(event.src_path)))
                if gone is not None:
                    routed.setdefault(gone, [])
            elif event.event_type == "moved":
                self._route(event.src_path, WatchEventKind.DELETE, routed)
                self._route(event.dest_path, WatchEventKind.CREATE, routed)
            for handle, events in routed.items():
                self._enqueue(handle, events)

    def _enqueue(self, handle: WatchHandle, events: List[WatchEvent]) -> None:
        if not handle.valid:
            return
        pending = self._pending.setdefault(handle, [])
        for watch_event in events:
            if pending and pending[-1].kind == WatchEventKind.OVERFLOW:
                continue
            if len(pending) >= self.max_pending_events:
                pending.append(WatchEvent(kind=WatchEventKind.OVERFLOW))
                continue
            pending.append(watch_event)
        if handle not in self._signaled:
            self._signaled.add(handle)
            self._ready.put(handle)
