"""Tests for preview rendering and the status line."""

import io
from unittest.mock import patch

from livepipe.buffer import CaptureBuffer
from livepipe.executor import Invocation
from livepipe.render import (
    expand_line,
    format_size,
    iter_lines,
    render_lines,
    status_line,
)


class TestIterLines:
    def test_splits_on_newlines(self) -> None:
        assert list(iter_lines(b"a\nb\nc")) == [b"a", b"b", b"c"]

    def test_trailing_newline_adds_no_empty_line(self) -> None:
        assert list(iter_lines(b"a\nb\n")) == [b"a", b"b"]

    def test_keeps_blank_lines(self) -> None:
        assert list(iter_lines(b"a\n\nb\n")) == [b"a", b"", b"b"]

    def test_empty_input(self) -> None:
        assert list(iter_lines(b"")) == []

    def test_accepts_memoryview(self) -> None:
        assert list(iter_lines(memoryview(b"x\ny"))) == [b"x", b"y"]

    def test_truncates_long_lines(self) -> None:
        assert list(iter_lines(b"abcdefgh\nij", limit=3)) == [b"abc", b"ij"]

    def test_lines_spanning_scan_chunks(self) -> None:
        with patch("livepipe.render.SCAN_CHUNK", 3):
            lines = list(iter_lines(b"hello\nworld\n!"))
        assert lines == [b"hello", b"world", b"!"]

    def test_truncation_across_scan_chunks(self) -> None:
        with patch("livepipe.render.SCAN_CHUNK", 2):
            lines = list(iter_lines(b"abcdefgh\nxy", limit=4))
        assert lines == [b"abcd", b"xy"]


class TestExpandLine:
    def test_plain_text(self) -> None:
        assert expand_line("hello", 80) == "hello"

    def test_tab_expands_to_next_stop(self) -> None:
        assert expand_line("a\tb", 80) == "a" + " " * 7 + "b"

    def test_tab_at_stop_is_full_width(self) -> None:
        assert expand_line("\tx", 80) == " " * 8 + "x"
        assert expand_line("12345678\tx", 80) == "12345678" + " " * 8 + "x"

    def test_clips_to_width(self) -> None:
        assert expand_line("abcdef", 3) == "abc"

    def test_tab_clipped_to_width(self) -> None:
        assert expand_line("ab\tc", 4) == "ab  "

    def test_control_characters_take_one_cell(self) -> None:
        assert expand_line("a\x1bb\rc\x7f", 80) == "a?b?c?"

    def test_unicode_is_one_cell_per_character(self) -> None:
        assert expand_line("żółw", 3) == "żół"


class TestRenderLines:
    def test_renders_rows(self) -> None:
        assert render_lines(b"one\ntwo\n", width=80, height=10) == ["one", "two"]

    def test_clips_height(self) -> None:
        data = b"".join(b"%d\n" % i for i in range(100))
        assert render_lines(data, width=80, height=3) == ["0", "1", "2"]

    def test_skip_scrolls(self) -> None:
        data = b"".join(b"%d\n" % i for i in range(100))
        assert render_lines(data, width=80, height=2, skip=50) == ["50", "51"]

    def test_clips_width(self) -> None:
        assert render_lines(b"abcdefghij\n", width=4, height=1) == ["abcd"]

    def test_invalid_utf8_is_replaced(self) -> None:
        assert render_lines(b"ok\xff\n", width=80, height=1) == ["ok�"]

    def test_empty_window(self) -> None:
        assert render_lines(b"data\n", width=0, height=10) == []
        assert render_lines(b"data\n", width=10, height=0) == []

    def test_expands_tabs(self) -> None:
        assert render_lines(b"a\tb\n", width=80, height=1) == ["a       b"]


class TestFormatSize:
    def test_bytes(self) -> None:
        assert format_size(512) == "512 B"

    def test_kibibytes(self) -> None:
        assert format_size(2048) == "2.0 KiB"

    def test_mebibytes(self) -> None:
        assert format_size(3 * 1024 * 1024) == "3.0 MiB"


class TestStatusLine:
    def test_input_source(self, make_input) -> None:
        status = status_line(make_input(b"a\nb\nc\n"))
        assert status.startswith("input")
        assert "3 lines" in status
        assert "6 B" in status

    def test_single_line(self, make_input) -> None:
        status = status_line(make_input(b"a\n"))
        assert "1 line " in status
        assert "lines" not in status

    def test_input_still_reading(self) -> None:
        assert status_line(CaptureBuffer(capacity=16)).startswith("reading input")

    def test_full_marker(self) -> None:
        buffer = CaptureBuffer(capacity=4)
        buffer.collect(io.BytesIO(b"abcdef"))
        assert status_line(buffer).endswith("full")

    def test_invocation_states(self, make_input) -> None:
        source = make_input(b"")
        buffer = CaptureBuffer(capacity=16)
        invocation = Invocation("cat", buffer, source.new_reader())
        assert status_line(buffer, invocation).startswith("running")

        invocation.returncode = 2
        invocation.finished.set()
        assert status_line(buffer, invocation).startswith("exit 2")

    def test_killed_invocation(self, make_input) -> None:
        invocation = Invocation("cat", CaptureBuffer(capacity=16), make_input(b"").new_reader())
        invocation.returncode = -9
        invocation.finished.set()
        assert invocation.status == "killed by signal 9"
