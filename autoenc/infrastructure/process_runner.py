import io
import logging
import shlex
import subprocess
import sys
import threading
import time
from typing import IO, List, Optional, Union

from autoenc.infrastructure.platform_utils import IS_WINDOWS

_CHUNK_SIZE = 8192


class ProcessRunner:
    """Runs the external encoder and waits for it to exit.

    Both output pipes are drained on their own thread so the child never
    blocks on a full pipe. Output is discarded unless forward_output is set,
    in which case it is copied to this process' stdout/stderr. The drain
    threads are joined before execute() returns.
    """

    def __init__(
        self,
        forward_output: bool = False,
        stdout: Optional[IO] = None,
        stderr: Optional[IO] = None,
    ):
        self.forward_output = forward_output
        self._stdout = stdout
        self._stderr = stderr
        self.logger = logging.getLogger(__name__)

    def _split(self, command: str) -> Union[str, List[str]]:
        # CreateProcess parses the command line itself on Windows
        if IS_WINDOWS:
            return command
        return shlex.split(command)

    def execute(self, command: str) -> int:
        """Spawns the command and returns its exit code."""
        args = self._split(command)
        if not args:
            raise ValueError("Encoder command is empty")

        start_time = time.monotonic()
        process = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        drains = [
            threading.Thread(
                target=self._drain,
                args=(process.stdout, self._stdout or sys.stdout),
                daemon=True,
                name=f"drain-stdout-{process.pid}",
            ),
            threading.Thread(
                target=self._drain,
                args=(process.stderr, self._stderr or sys.stderr),
                daemon=True,
                name=f"drain-stderr-{process.pid}",
            ),
        ]
        for thread in drains:
            thread.start()

        try:
            exit_code = process.wait()
        except BaseException:
            # Interrupted while waiting (Ctrl+C): do not leave the encoder behind
            process.kill()
            process.wait()
            raise
        finally:
            for thread in drains:
                thread.join()

        elapsed = time.monotonic() - start_time
        self.logger.debug(f"PROCESS_END: pid={process.pid} code={exit_code} elapsed={elapsed:.2f}s")
        return exit_code

    def _drain(self, stream: Optional[IO[bytes]], sink: IO) -> None:
        if stream is None:
            return
        try:
            while True:
                chunk = stream.read1(_CHUNK_SIZE) if hasattr(stream, "read1") else stream.read(_CHUNK_SIZE)
                if not chunk:
                    break
                if self.forward_output:
                    self._forward(sink, chunk)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Stopped draining encoder output: {e}")
        finally:
            stream.close()

    @staticmethod
    def _forward(sink: IO, chunk: bytes) -> None:
        if isinstance(sink, io.TextIOBase):
            sink.write(chunk.decode(errors="replace"))
        else:
            sink.write(chunk)
        sink.flush()
