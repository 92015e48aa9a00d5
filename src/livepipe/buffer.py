"""Append-only capture buffers, replay readers, and the wake-up channel."""

import enum
import logging
import mmap
import queue
import threading
from typing import IO

from livepipe.config import DEFAULT_BUFFER_SIZE
from livepipe.exceptions import CaptureError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class Notifier:
    """Coalescing wake-up channel from collector threads to the render loop.

    At most one notification is ever pending. Posting while one is pending
    is a no-op, so producers never block on a slow consumer.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[None] = queue.Queue(maxsize=1)

    def notify(self) -> None:
        """Post a "changed" notification."""
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a notification is pending. Return False on timeout."""
        try:
            self._queue.get(timeout=timeout)
        except queue.Empty:
            return False
        return True


class BufferState(enum.Enum):
    """Collection state of a capture buffer."""

    COLLECTING = "collecting"
    DONE = "done"
    FULL = "full"
    FAILED = "failed"
    STOPPED = "stopped"


class CaptureBuffer:
    """Fixed-capacity byte store with one producer and many snapshot readers.

    Bytes in ``[0, count)`` never change once written and ``count`` only grows,
    so readers only need a consistent ``count`` to get a stable view.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_BUFFER_SIZE,
        notifier: Notifier | None = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.chunk_size = chunk_size
        self.error: CaptureError | None = None
        # Anonymous mapping: pages are only backed once written.
        self._storage = mmap.mmap(-1, capacity)
        self._view = memoryview(self._storage)
        self._count = 0
        self._lines = 0
        self._state = BufferState.COLLECTING
        self._cond = threading.Condition()
        self._stop = threading.Event()
        self._notifier = notifier

    @property
    def count(self) -> int:
        """Number of valid bytes."""
        with self._cond:
            return self._count

    @property
    def line_count(self) -> int:
        """Number of newline characters collected so far."""
        with self._cond:
            return self._lines

    @property
    def state(self) -> BufferState:
        with self._cond:
            return self._state

    @property
    def done(self) -> bool:
        """Whether collection has reached a terminal state."""
        return self.state is not BufferState.COLLECTING

    @property
    def full(self) -> bool:
        return self.state is BufferState.FULL

    def __len__(self) -> int:
        return self.count

    def collect(self, source: IO[bytes]) -> None:
        """Read ``source`` into the free region until EOF, full, stopped, or error.

        Raises:
            CaptureError: If reading from ``source`` fails.
        """
        readinto = getattr(source, "readinto1", None) or source.readinto
        while True:
            if self._stop.is_set():
                self._finish(BufferState.STOPPED)
                return
            # Only this thread moves count, so reading it unlocked is safe here.
            start = self._count
            if start >= self.capacity:
                self._finish(BufferState.FULL)
                return

            end = min(start + self.chunk_size, self.capacity)
            try:
                n = readinto(self._view[start:end])
            except OSError as e:
                error = CaptureError(f"read failed after {start} bytes: {e}", captured=start)
                self._finish(BufferState.FAILED, error=error)
                raise error from e

            if self._stop.is_set():
                self._finish(BufferState.STOPPED)
                return
            if not n:
                self._finish(BufferState.DONE)
                return

            newlines = self._view[start : start + n].tobytes().count(b"\n")
            with self._cond:
                self._count += n
                self._lines += newlines
                self._cond.notify_all()
            self._post()

    def collect_in_background(self, source: IO[bytes], name: str = "capture") -> threading.Thread:
        """Run :meth:`collect` on a daemon thread; read errors land on ``error``."""

        def _run() -> None:
            try:
                self.collect(source)
            except CaptureError as e:
                logger.error("%s: %s", name, e)

        thread = threading.Thread(target=_run, name=name, daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Ask the collector to drop further data at the next chunk boundary."""
        self._stop.set()

    def snapshot(self) -> memoryview:
        """Return a read-only view of the valid bytes at this instant."""
        with self._cond:
            count = self._count
        return self._view[:count].toreadonly()

    def getvalue(self) -> bytes:
        """Return a copy of the valid bytes."""
        return self.snapshot().tobytes()

    def new_reader(self) -> "ReplayReader":
        """Return a reader positioned at the start of the buffer."""
        return ReplayReader(self)

    def wait(self, offset: int, timeout: float | None = None) -> bool:
        """Block until more than ``offset`` bytes exist or collection ended.

        Meant for consumer threads; the render loop never calls this.
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: self._count > offset or self._state is not BufferState.COLLECTING,
                timeout,
            )

    def wait_finished(self, timeout: float | None = None) -> bool:
        """Block until collection reaches a terminal state."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._state is not BufferState.COLLECTING, timeout
            )

    def _extent(self) -> tuple[int, bool]:
        with self._cond:
            return self._count, self._state is not BufferState.COLLECTING

    def _finish(self, state: BufferState, error: CaptureError | None = None) -> None:
        with self._cond:
            self._state = state
            self.error = error
            self._cond.notify_all()
        logger.debug("capture finished: %s after %d bytes", state.value, self._count)
        self._post()

    def _post(self) -> None:
        if self._notifier is not None:
            self._notifier.notify()


class ReplayReader:
    """Non-blocking cursor over a capture buffer, always starting at offset 0.

    ``read`` returns ``None`` while the cursor has caught up with a buffer that
    is still collecting, and ``b""`` once the buffer is finished and fully read.
    """

    def __init__(self, buffer: CaptureBuffer) -> None:
        self._buffer = buffer
        self._cursor = 0

    @property
    def position(self) -> int:
        return self._cursor

    def read(self, size: int = -1) -> bytes | None:
        """Return the bytes available past the cursor without blocking."""
        count, finished = self._buffer._extent()
        available = count - self._cursor
        if available == 0:
            return b"" if finished else None
        if size == 0:
            return b""
        if size > 0:
            available = min(available, size)

        start = self._cursor
        chunk = self._buffer._view[start : start + available].tobytes()
        self._cursor += available
        return chunk

    def wait(self, timeout: float | None = None) -> bool:
        """Block until data past the cursor exists or the buffer finished."""
        return self._buffer.wait(self._cursor, timeout)
