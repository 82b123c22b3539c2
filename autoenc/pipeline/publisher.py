"""Publish pipeline: encode one source file, publish the output, archive the original.

Order of filesystem effects for a source ``clip.MOV``:

1. encoder writes ``clip.MOV.encoding.tmp``
2. the temp file is renamed to ``clip.m4v`` (mtime copied from the source)
3. ``clip.MOV`` is moved into ``originals/`` (mtime kept)

The output is published before the original is archived. If the process dies
between 2 and 3 the next run finds ``clip.m4v`` and skips the file, so the
encode is never repeated; only the archive move is left undone.
"""

import errno
import logging
import os
from pathlib import Path
from typing import Optional

from autoenc.config.models import AppConfig
from autoenc.domain.events import (
    EncodeFinished,
    EncodeStarted,
    PublishCompleted,
    PublishFailed,
    PublishSkipped,
)
from autoenc.domain.models import EncodeJob, PublishResult, PublishStatus
from autoenc.infrastructure.command_builder import EncoderCommandBuilder
from autoenc.infrastructure.event_bus import EventBus
from autoenc.infrastructure.file_scanner import FileScanner
from autoenc.infrastructure.platform_utils import IS_WINDOWS
from autoenc.infrastructure.process_runner import ProcessRunner
from autoenc.infrastructure.readiness import ReadinessProber
from autoenc.infrastructure.timestamps import apply_mtime_ns, read_mtime_ns

# Hard links unsupported on the filesystem or across the two paths
NO_HARD_LINK_ERRNOS = (errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EXDEV)


def move_no_replace(source: Path, destination: Path) -> Path:
    """Moves source to destination, never replacing an existing destination.

    On POSIX the file is hard-linked under the new name, which fails if the
    name is taken, and the old name is removed afterwards. Rename on Windows
    refuses an existing destination by itself. Filesystems without hard links
    fall back to a checked rename, which is best effort only.
    """
    if IS_WINDOWS:
        os.rename(source, destination)
        return destination
    try:
        os.link(source, destination)
    except OSError as exc:
        if exc.errno not in NO_HARD_LINK_ERRNOS:
            raise
        if destination.exists():
            raise FileExistsError(errno.EEXIST, "Destination already exists", str(destination))
        os.rename(source, destination)
        return destination
    os.unlink(source)
    return destination


class Publisher:
    """Runs the encode -> rename -> archive sequence for one file at a time."""

    def __init__(
        self,
        config: AppConfig,
        file_scanner: FileScanner,
        prober: ReadinessProber,
        command_builder: EncoderCommandBuilder,
        runner: ProcessRunner,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config
        self.file_scanner = file_scanner
        self.prober = prober
        self.command_builder = command_builder
        self.runner = runner
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)

    def _publish_event(self, event) -> None:
        if self.event_bus:
            self.event_bus.publish(event)

    def target_path_for(self, source: Path) -> Path:
        stem = source.name[: -len(self.file_scanner.source_extension)]
        return source.with_name(f"{stem}{self.config.encoder.output_extension}")

    def temp_path_for(self, source: Path) -> Path:
        return source.with_name(f"{source.name}{self.config.encoder.temp_suffix}")

    def should_commit(self, exit_code: int) -> bool:
        """Whether the encoder output gets published for this exit code."""
        if exit_code == 0:
            return True
        return not self.config.encoder.abort_on_failure

    def publish(self, source: Path) -> PublishResult:
        source = Path(source)
        if not self.file_scanner.is_candidate(source):
            return PublishResult(source_path=source, status=PublishStatus.IGNORED, reason="not a candidate")

        target = self.target_path_for(source)
        if target.exists():
            self.logger.debug(f"File already exists: {target}")
            self._publish_event(PublishSkipped(source_path=source, target_path=target))
            return PublishResult(source_path=source, status=PublishStatus.SKIPPED, reason="target exists")

        retries = self.prober.wait_until_available(source)
        if retries:
            self.logger.info(f"{source.name} became available after {retries} retries")

        job = EncodeJob(
            source_path=source,
            temp_path=self.temp_path_for(source),
            target_path=target,
        )
        job.command = self.command_builder.build(job.source_path, job.temp_path)

        self.logger.info(f"ENCODE_START: {source}")
        self._publish_event(EncodeStarted(job=job))
        job.exit_code = self.runner.execute(job.command)
        self._publish_event(EncodeFinished(job=job))

        if job.exit_code != 0:
            self.logger.warning(f"Encoder exited with code {job.exit_code}: {job.command}")

        if not self.should_commit(job.exit_code):
            if job.temp_path.exists():
                job.temp_path.unlink()
            message = f"Encoder exited with code {job.exit_code}; original left in place"
            self.logger.error(f"{source}: {message}")
            self._publish_event(PublishFailed(job=job, error_message=message))
            return PublishResult(source_path=source, status=PublishStatus.FAILED, job=job, reason=message)

        # Read from the original while it is still in place
        mtime_ns = read_mtime_ns(source)

        move_no_replace(job.temp_path, target)
        apply_mtime_ns(target, mtime_ns)

        archive_dir = source.parent / self.config.archive_dir_name
        archive_dir.mkdir(parents=True, exist_ok=True)
        archived = move_no_replace(source, archive_dir / source.name)
        apply_mtime_ns(archived, mtime_ns)

        self.logger.debug(f"target mtime_ns={read_mtime_ns(target)} archived mtime_ns={read_mtime_ns(archived)}")
        self.logger.info(f"Finished with exit code {job.exit_code}: {target.name} (original -> {archived})")
        self._publish_event(PublishCompleted(job=job, archived_path=archived))
        return PublishResult(source_path=source, status=PublishStatus.PUBLISHED, job=job)
