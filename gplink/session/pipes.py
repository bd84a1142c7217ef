from __future__ import annotations

from collections.abc import Callable, Sequence
import logging
import os
import re
import select
import subprocess
import time

from gplink.errors import ExternalProcessError, StuckError

LOGGER = logging.getLogger(__name__)

EXIT_GRACE_SECONDS = 3.0
TERMINATE_GRACE_SECONDS = 2.0
READ_BLOCK = 4096


class DiagnosticReader:
    """Bounded reads from gnuplot's merged stdout/stderr pipe.

    Bytes read past a marker are kept for the next call, so a checkpoint
    never eats the start of the following response.
    """

    def __init__(self, fd: int) -> None:
        self._fd = fd
        self._buffer = bytearray()
        self.closed = False

    @property
    def pending(self) -> bytes:
        return bytes(self._buffer)

    def _fill(self, deadline: float, what: str) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise StuckError(f"gnuplot didn't respond while waiting for {what}")
        ready, _, _ = select.select([self._fd], [], [], remaining)
        if not ready:
            raise StuckError(f"gnuplot didn't respond for {remaining:.1f}s while waiting for {what}")
        chunk = os.read(self._fd, READ_BLOCK)
        if not chunk:
            self.closed = True
            raise ExternalProcessError(
                "the gnuplot process seems to have died",
                diagnostics=self._buffer.decode("utf-8", "replace"),
            )
        self._buffer.extend(chunk)

    def read_until(self, marker: bytes, timeout: float) -> bytes:
        """Everything before `marker`; the marker and the rest of its line are consumed."""

        deadline = time.monotonic() + timeout
        while True:
            at = self._buffer.find(marker)
            if at >= 0:
                end = self._buffer.find(b"\n", at + len(marker))
                if end >= 0:
                    text = bytes(self._buffer[:at])
                    del self._buffer[: end + 1]
                    return text
            self._fill(deadline, "the checkpoint marker")

    def read_match(self, pattern: re.Pattern[bytes], timeout: float) -> re.Match[bytes]:
        """Read until `pattern` matches; the match and everything before it are consumed."""

        deadline = time.monotonic() + timeout
        while True:
            match = pattern.search(bytes(self._buffer))
            if match is not None:
                del self._buffer[: match.end()]
                return match
            self._fill(deadline, "the gnuplot banner")


class GnuplotProcess:
    """One gnuplot child: commands and data on stdin, diagnostics on a merged stdout/stderr pipe."""

    def __init__(self, argv: Sequence[str], *, popen: Callable[..., subprocess.Popen] = subprocess.Popen) -> None:
        try:
            self._proc = popen(
                list(argv),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
            )
        except OSError as exc:
            raise ExternalProcessError(f"couldn't run {argv[0]!r} (is gnuplot in your PATH?)") from exc
        self.argv = list(argv)
        self.reader = DiagnosticReader(self._proc.stdout.fileno())
        LOGGER.debug("started %s (pid %s)", " ".join(self.argv), self._proc.pid)

    @property
    def pid(self) -> int:
        return self._proc.pid

    def write(self, data: bytes) -> None:
        try:
            self._proc.stdin.write(data)
            self._proc.stdin.flush()
        except (BrokenPipeError, ValueError) as exc:
            raise ExternalProcessError("the gnuplot process closed its input pipe") from exc

    def read_until(self, marker: bytes, timeout: float) -> bytes:
        return self.reader.read_until(marker, timeout)

    def read_match(self, pattern: re.Pattern[bytes], timeout: float) -> re.Match[bytes]:
        return self.reader.read_match(pattern, timeout)

    def stop(self, *, graceful: bool = True) -> int | None:
        """Ask gnuplot to exit, then terminate, then kill; returns the exit status."""

        proc = self._proc
        if proc.poll() is None and graceful:
            try:
                self.write(b"exit\n")
            except ExternalProcessError:
                pass
        try:
            proc.wait(timeout=EXIT_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            proc.terminate()
            try:
                proc.wait(timeout=TERMINATE_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
        for stream in (proc.stdin, proc.stdout):
            if stream is not None:
                stream.close()
        LOGGER.debug("stopped gnuplot pid %s with status %s", proc.pid, proc.returncode)
        return proc.returncode
