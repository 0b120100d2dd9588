"""Pytest configuration and fixtures.

This module provides common fixtures used across all tests.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from clipvault.core.logging import setup_logging
from clipvault.services.media.blob import SourceFile

# Setup logging for tests
setup_logging()


@pytest.fixture
def make_video(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing placeholder video files.

    The bytes are not a decodable video; tests that need media
    processing mock the ffmpeg layer.

    Returns:
        Function (name, size) -> path
    """

    def _make(name: str = "clip.mp4", size: int = 2048) -> Path:
        path = tmp_path / name
        path.write_bytes(b"\x00" * size)
        return path

    return _make


@pytest.fixture
def video_source(make_video) -> SourceFile:
    """SourceFile for a 2 KiB placeholder mp4."""
    return SourceFile.from_path(make_video("clip.mp4", 2048))
