"""Turn captured bytes into preview rows and a status line."""

import itertools
import unicodedata
from collections.abc import Iterator

from livepipe.buffer import BufferState, CaptureBuffer
from livepipe.executor import Invocation

TAB_WIDTH = 8
PLACEHOLDER = "?"
SCAN_CHUNK = 64 * 1024


def iter_lines(data: bytes | memoryview, limit: int | None = None) -> Iterator[bytes]:
    """Yield newline-separated lines of ``data``, each cut to ``limit`` bytes.

    Scans ``data`` a chunk at a time so only the consumed prefix is copied.
    """
    view = memoryview(data)
    pending = bytearray()
    for offset in range(0, len(view), SCAN_CHUNK):
        chunk = view[offset : offset + SCAN_CHUNK].tobytes()
        pos = 0
        while True:
            newline = chunk.find(b"\n", pos)
            if newline < 0:
                pending += chunk[pos:]
                if limit is not None and len(pending) > limit:
                    del pending[limit:]
                break
            pending += chunk[pos:newline]
            if limit is not None:
                del pending[limit:]
            yield bytes(pending)
            pending.clear()
            pos = newline + 1
    if pending:
        yield bytes(pending)


def expand_line(text: str, width: int) -> str:
    """Lay ``text`` out as terminal cells, clipped to ``width``.

    Tabs advance to the next multiple of 8; other control characters take a
    single placeholder cell.
    """
    cells: list[str] = []
    column = 0
    for ch in text:
        if column >= width:
            break
        if ch == "\t":
            spaces = min(TAB_WIDTH - column % TAB_WIDTH, width - column)
            cells.append(" " * spaces)
            column += spaces
        elif unicodedata.category(ch) == "Cc":
            cells.append(PLACEHOLDER)
            column += 1
        else:
            cells.append(ch)
            column += 1
    return "".join(cells)


def render_lines(
    data: bytes | memoryview, width: int, height: int, skip: int = 0
) -> list[str]:
    """Return at most ``height`` rows of ``data`` starting at line ``skip``."""
    if width <= 0 or height <= 0:
        return []
    # A cell never takes more than 4 bytes of UTF-8.
    lines = iter_lines(data, limit=width * 4)
    return [
        expand_line(line.decode("utf-8", errors="replace"), width)
        for line in itertools.islice(lines, skip, skip + height)
    ]


def format_size(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KiB"
    return f"{n / (1024 * 1024):.1f} MiB"


def status_line(buffer: CaptureBuffer, invocation: Invocation | None = None) -> str:
    """Describe the active source, its size, and whether it hit capacity."""
    state = buffer.state
    if invocation is None:
        source = "reading input" if state is BufferState.COLLECTING else "input"
    else:
        source = invocation.status

    lines = buffer.line_count
    parts = [
        source,
        f"{lines} line{'' if lines == 1 else 's'}",
        format_size(buffer.count),
    ]
    if state is BufferState.FULL:
        parts.append("full")
    elif state is BufferState.FAILED:
        parts.append("read error")
    return "  ".join(parts)
