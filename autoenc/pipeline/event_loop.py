"""Event loop: the single thread of control for scanning, dispatch and publishing.

WAITING      blocked in WatchService.take()
DISPATCHING  handling the batch of events for one signaled handle
STOPPED      the wait was interrupted (service closed or Ctrl+C)

A publish runs to completion before the next event is looked at, so at most
one encode is in flight. Overflowed notifications are logged and dropped;
there is no rescan to recover them.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from autoenc.domain.events import OverflowDetected
from autoenc.domain.models import LoopState, PublishResult, WatchEvent, WatchEventKind
from autoenc.infrastructure.event_bus import EventBus
from autoenc.infrastructure.notifications import WatchService, WatchServiceClosed
from autoenc.pipeline.publisher import Publisher
from autoenc.pipeline.watch_tree import WatchTreeManager


class EventLoop:
    def __init__(
        self,
        watch_service: WatchService,
        watch_tree: WatchTreeManager,
        publisher: Publisher,
        event_bus: Optional[EventBus] = None,
    ):
        self.watch_service = watch_service
        self.watch_tree = watch_tree
        self.publisher = publisher
        self.event_bus = event_bus
        self.state = LoopState.WAITING
        self.logger = logging.getLogger(__name__)

    def start(self, roots: Iterable[Path]) -> List[PublishResult]:
        """Registers every root and publishes files that were already there.

        Errors propagate: a failed startup scan is fatal.
        """
        results: List[PublishResult] = []
        for root in roots:
            candidates = self.watch_tree.register_tree(Path(root))
            self.logger.info(f"Watching {root}: {len(candidates)} existing candidate(s)")
            for file in candidates:
                results.append(self.publisher.publish(file))
        return results

    def run(self) -> None:
        """Processes notifications until the wait is interrupted."""
        self.logger.debug("Event loop started")
        while self.run_once():
            pass
        self.logger.info("Event loop stopped")

    def run_once(self) -> bool:
        """Handles one signaled directory. Returns False once STOPPED."""
        self.state = LoopState.WAITING
        try:
            handle = self.watch_service.take()
        except (WatchServiceClosed, KeyboardInterrupt):
            self.state = LoopState.STOPPED
            return False

        self.state = LoopState.DISPATCHING
        directory = self.watch_tree.resolve(handle)
        if directory is None:
            stale = self.watch_service.poll_events(handle)
            self.logger.debug(f"WatchKey not recognized: {handle} ({len(stale)} events discarded)")
            self.state = LoopState.WAITING
            return True

        for event in self.watch_service.poll_events(handle):
            self._dispatch(directory, event)

        if not self.watch_service.reset(handle):
            self.watch_tree.invalidate(handle)

        self.state = LoopState.WAITING
        return True

    def stop(self) -> None:
        """Closes the notification service; a blocked run() returns."""
        self.watch_service.close()

    def _dispatch(self, directory: Path, event: WatchEvent) -> None:
        if event.kind == WatchEventKind.OVERFLOW:
            self.logger.warning(f"OVERFLOW: events lost for {directory}")
            if self.event_bus:
                self.event_bus.publish(OverflowDetected(directory=directory))
            return

        child = directory / event.name
        try:
            if event.kind == WatchEventKind.CREATE:
                self._on_created(child)
            elif event.kind == WatchEventKind.DELETE:
                self.watch_tree.unregister_dir(child)
        except OSError:
            self.logger.exception(f"Failed to handle {event.kind.value} for {child}")

    def _on_created(self, child: Path) -> None:
        if child.is_dir():
            candidates = self.watch_tree.register_tree(child)
            self.logger.debug(f"Directory was created: {child} ({len(candidates)} candidate(s))")
            for file in candidates:
                self.publisher.publish(file)
        else:
            self.logger.debug(f"File was created: {child}")
            self.publisher.publish(child)
