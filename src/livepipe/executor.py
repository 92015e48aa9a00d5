"""Shell command invocations fed from a capture buffer."""

import io
import logging
import os
import signal
import subprocess
import threading
from typing import IO

from livepipe.buffer import CHUNK_SIZE, CaptureBuffer, Notifier, ReplayReader
from livepipe.config import DEFAULT_BUFFER_SIZE
from livepipe.exceptions import CaptureError

logger = logging.getLogger(__name__)

# How long the stdin feeder sleeps between cancellation checks while idle.
FEED_POLL_INTERVAL = 0.1


class Invocation:
    """One run of a command line against the captured input.

    Owns its output buffer. ``cancel`` never waits for the process; the
    waiter thread reaps it and sets ``finished``.
    """

    def __init__(self, command: str, buffer: CaptureBuffer, reader: ReplayReader) -> None:
        self.command = command
        self.buffer = buffer
        self.reader = reader
        self.returncode: int | None = None
        self.launch_error: OSError | None = None
        self.finished = threading.Event()
        self._process: subprocess.Popen[bytes] | None = None
        self._cancelled = threading.Event()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def status(self) -> str:
        """Short human-readable state for the status line."""
        if self.launch_error is not None:
            return "failed to start"
        if not self.finished.is_set():
            return "running"
        if self.returncode is not None and self.returncode < 0:
            return f"killed by signal {-self.returncode}"
        return f"exit {self.returncode}"

    def cancel(self) -> None:
        """Kill the process group and stop collecting. Safe to call repeatedly."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self.buffer.stop()

        proc = self._process
        if proc is None:
            return
        if self.finished.is_set():
            # Once the leader is reaped its PGID may belong to another session.
            # Background jobs that outlived the shell are left alone.
            logger.debug("%r already exited, not signalling", self.command)
            return
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError as e:
            logger.warning("could not kill %r (pid %d): %s", self.command, proc.pid, e)
        logger.debug("cancelled %r (pid %d)", self.command, proc.pid)

    def _start_threads(self, proc: "subprocess.Popen[bytes]", notifier: Notifier | None) -> None:
        self._process = proc
        threads = (
            threading.Thread(target=self._collect, args=(proc.stdout,), name=f"collect-{proc.pid}"),
            threading.Thread(target=self._feed, args=(proc.stdin,), name=f"feed-{proc.pid}"),
            threading.Thread(target=self._wait, args=(proc, notifier), name=f"wait-{proc.pid}"),
        )
        for thread in threads:
            thread.daemon = True
            thread.start()

    def _collect(self, stream: IO[bytes] | None) -> None:
        """Collect the merged stdout/stderr pipe into the output buffer."""
        if stream is None:
            return
        try:
            self.buffer.collect(stream)
        except CaptureError as e:
            logger.debug("output of %r: %s", self.command, e)
        finally:
            # Closing the read end makes a still-writing child see EPIPE.
            stream.close()

    def _feed(self, stream: IO[bytes] | None) -> None:
        """Copy the replayed input into the process's stdin."""
        if stream is None:
            return
        try:
            while not self._cancelled.is_set():
                chunk = self.reader.read(CHUNK_SIZE)
                if chunk is None:
                    self.reader.wait(timeout=FEED_POLL_INTERVAL)
                    continue
                if not chunk:
                    break
                stream.write(chunk)
                stream.flush()
        except (BrokenPipeError, ConnectionResetError):
            # The command stopped reading its input (e.g. `head`).
            logger.debug("%r closed its stdin after %d bytes", self.command, self.reader.position)
        finally:
            try:
                stream.close()
            except OSError:
                pass

    def _wait(self, proc: "subprocess.Popen[bytes]", notifier: Notifier | None) -> None:
        self.returncode = proc.wait()
        self.finished.set()
        logger.debug("%r finished: %s", self.command, self.status)
        if notifier is not None:
            notifier.notify()


class Executor:
    """Starts shell command invocations whose output lands in capture buffers."""

    def __init__(
        self,
        shell: str = "bash",
        capacity: int = DEFAULT_BUFFER_SIZE,
        notifier: Notifier | None = None,
    ) -> None:
        self._shell = shell
        self._capacity = capacity
        self._notifier = notifier

    @property
    def shell(self) -> str:
        return self._shell

    def start(self, reader: ReplayReader, command: str) -> Invocation:
        """Run ``command`` through the shell with ``reader`` as its stdin.

        A launch failure is written into the output buffer as text instead of
        being raised.
        """
        buffer = CaptureBuffer(self._capacity, notifier=self._notifier)
        invocation = Invocation(command, buffer, reader)

        try:
            proc = subprocess.Popen(
                [self._shell, "-c", command],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("failed to start %r: %s", command, e)
            invocation.launch_error = e
            buffer.collect(io.BytesIO(f"livepipe: {e}".encode("utf-8", errors="replace")))
            invocation.finished.set()
            return invocation

        logger.info("started %r (pid %d)", command, proc.pid)
        invocation._start_threads(proc, self._notifier)
        return invocation
