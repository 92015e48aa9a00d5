"""Shared test fixtures."""

import io
from collections.abc import Callable
from pathlib import Path

import pytest

from livepipe.buffer import CaptureBuffer
from livepipe.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Settings using /bin/sh and a small capture capacity."""
    return Settings(shell="/bin/sh", buffer_size=1024 * 1024)


@pytest.fixture
def make_input() -> Callable[..., CaptureBuffer]:
    """Factory for fully collected input buffers."""

    def _make(data: bytes, capacity: int = 1024 * 1024) -> CaptureBuffer:
        buffer = CaptureBuffer(capacity)
        buffer.collect(io.BytesIO(data))
        return buffer

    return _make


@pytest.fixture
def tmp_home(tmp_path: Path) -> Path:
    """Path for a temporary ~/.livepipe directory (not created)."""
    return tmp_path / ".livepipe"
