"""Type-safe FFmpeg wrapper using ffmpeg-python SDK.

This module provides a typed interface for the FFmpeg operations the
upload client needs: probing, single-frame extraction and re-encoding.
Streams are built with ffmpeg-python and executed as asyncio subprocesses
so they can be bounded by a timeout and killed on cancellation.

Usage:
    >>> wrapper = FFmpegWrapper()
    >>> info = await wrapper.probe(video_path)
    >>> stream = wrapper.extract_frame(video_path, frame_path, seek_seconds=3.0)
    >>> await wrapper.run(stream, timeout=30)
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import ffmpeg

from clipvault.core.logging import get_logger

logger = get_logger(__name__)


class FFmpegError(Exception):
    """FFmpeg operation failed."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        """Initialize FFmpeg error.

        Args:
            message: Error message
            stderr: FFmpeg stderr output
        """
        self.stderr = stderr
        super().__init__(message)


class FFmpegTimeoutError(FFmpegError):
    """FFmpeg did not finish within the allowed time."""


@dataclass
class ProbeResult:
    """Result of probing a media file.

    Attributes:
        duration: Duration in seconds
        width: Video width (if video stream exists)
        height: Video height (if video stream exists)
        fps: Frames per second (if video stream exists)
        has_video: Whether file has video stream
        has_audio: Whether file has audio stream
        format_name: Container format name
        bit_rate: Overall bit rate
    """

    duration: float
    width: int | None
    height: int | None
    fps: float | None
    has_video: bool
    has_audio: bool
    format_name: str
    bit_rate: int | None


class FFmpegWrapper:
    """Type-safe wrapper for FFmpeg operations.

    Example:
        >>> wrapper = FFmpegWrapper()
        >>> info = await wrapper.probe("/path/to/video.mp4")
        >>> print(f"Duration: {info.duration}s")
    """

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        overwrite: bool = True,
    ) -> None:
        """Initialize FFmpeg wrapper.

        Args:
            ffmpeg_binary: ffmpeg executable
            ffprobe_binary: ffprobe executable
            overwrite: Whether to overwrite output files
        """
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.overwrite = overwrite

    async def probe(self, input_path: Path | str) -> ProbeResult:
        """Probe a media file for information.

        Args:
            input_path: Path to media file

        Returns:
            ProbeResult with file information

        Raises:
            FFmpegError: If probing fails
        """
        try:
            probe_data = await asyncio.to_thread(
                ffmpeg.probe, str(input_path), cmd=self.ffprobe_binary
            )
        except ffmpeg.Error as e:
            raise FFmpegError(
                f"Failed to probe {input_path}",
                stderr=e.stderr.decode(errors="replace") if e.stderr else None,
            ) from e
        except FileNotFoundError as e:
            raise FFmpegError(f"{self.ffprobe_binary} not found") from e

        return self.parse_probe(probe_data)

    @staticmethod
    def parse_probe(probe_data: dict[str, Any]) -> ProbeResult:
        """Convert raw ffprobe JSON into a ProbeResult.

        Args:
            probe_data: Output of ffprobe -show_format -show_streams

        Returns:
            Parsed ProbeResult
        """
        format_info = probe_data.get("format", {})
        duration = float(format_info.get("duration", 0) or 0)
        format_name = format_info.get("format_name", "unknown")
        bit_rate_str = format_info.get("bit_rate")
        bit_rate = int(bit_rate_str) if bit_rate_str else None

        streams = probe_data.get("streams", [])
        video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
        audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

        width = None
        height = None
        fps = None

        if video_stream:
            width = video_stream.get("width")
            height = video_stream.get("height")
            # "30/1" or "30000/1001"
            fps_str = video_stream.get("r_frame_rate", "0/1")
            if "/" in fps_str:
                num, den = fps_str.split("/")
                fps = float(num) / float(den) if float(den) != 0 else 0
            # Stream duration covers containers without a format duration
            if not duration and video_stream.get("duration"):
                duration = float(video_stream["duration"])

        return ProbeResult(
            duration=duration,
            width=width,
            height=height,
            fps=fps,
            has_video=video_stream is not None,
            has_audio=audio_stream is not None,
            format_name=format_name,
            bit_rate=bit_rate,
        )

    def extract_frame(
        self,
        video_path: Path | str,
        output_path: Path | str,
        seek_seconds: float = 1.0,
        size: tuple[int, int] | None = None,
    ) -> ffmpeg.nodes.OutputStream:
        """Extract a single frame from video.

        Args:
            video_path: Path to input video
            output_path: Path to output image (format from extension)
            seek_seconds: Time to seek to
            size: Optional output size (width, height)

        Returns:
            FFmpeg output stream
        """
        stream = ffmpeg.input(str(video_path), ss=seek_seconds)
        if size:
            stream = stream.filter("scale", size[0], size[1])
        stream = stream.output(str(output_path), vframes=1)

        if self.overwrite:
            stream = stream.overwrite_output()

        return stream

    def compress_video(
        self,
        input_path: Path | str,
        output_path: Path | str,
        size: tuple[int, int],
        duration: float,
        video_bitrate: int,
        fps: int = 30,
        vcodec: str = "libx264",
        acodec: str = "aac",
        preset: str = "veryfast",
        with_audio: bool = True,
    ) -> ffmpeg.nodes.OutputStream:
        """Re-encode a video at a new size, frame rate and bitrate.

        Args:
            input_path: Path to input video
            output_path: Path to output video
            size: Output size (width, height)
            duration: Output duration limit in seconds
            video_bitrate: Target video bitrate in bit/s
            fps: Output frame rate
            vcodec: Video encoder
            acodec: Audio encoder
            preset: Encoding preset
            with_audio: Keep the source audio track

        Returns:
            FFmpeg output stream
        """
        source = ffmpeg.input(str(input_path))
        video = source.video.filter("scale", size[0], size[1]).filter("fps", fps=fps)

        output_kwargs: dict[str, Any] = {
            "vcodec": vcodec,
            "b:v": video_bitrate,
            "preset": preset,
            "pix_fmt": "yuv420p",
            "movflags": "+faststart",
            "t": duration,
        }

        if with_audio:
            output_kwargs["acodec"] = acodec
            stream = ffmpeg.output(video, source.audio, str(output_path), **output_kwargs)
        else:
            output_kwargs["an"] = None
            stream = ffmpeg.output(video, str(output_path), **output_kwargs)

        if self.overwrite:
            stream = stream.overwrite_output()

        return stream

    def get_command(self, stream: ffmpeg.nodes.OutputStream) -> list[str]:
        """Get the FFmpeg command line arguments.

        Args:
            stream: FFmpeg output stream

        Returns:
            List of command line arguments
        """
        result: list[str] = ffmpeg.compile(stream, cmd=self.ffmpeg_binary)
        return result

    async def run(self, stream: ffmpeg.nodes.OutputStream, timeout: float | None = None) -> None:
        """Execute an FFmpeg stream as a subprocess.

        The subprocess is killed if the timeout expires or the calling
        task is cancelled.

        Args:
            stream: FFmpeg output stream to execute
            timeout: Max seconds to wait (None = unbounded)

        Raises:
            FFmpegTimeoutError: If the timeout expires
            FFmpegError: If execution fails
        """
        args = self.get_command(stream)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FFmpegError(f"{self.ffmpeg_binary} not found") from e

        try:
            _, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout)
        except TimeoutError as e:
            logger.warning("FFmpeg command timed out", timeout=timeout)
            raise FFmpegTimeoutError(f"FFmpeg did not finish within {timeout}s") from e
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            stderr = stderr_bytes.decode(errors="replace") if stderr_bytes else "Unknown error"
            logger.error("FFmpeg command failed", returncode=process.returncode, stderr=stderr[-500:])
            raise FFmpegError(f"FFmpeg execution failed: {stderr[-500:]}", stderr=stderr)


# Singleton instance
_wrapper: FFmpegWrapper | None = None


def get_ffmpeg_wrapper() -> FFmpegWrapper:
    """Get the singleton FFmpeg wrapper instance."""
    global _wrapper
    if _wrapper is None:
        from clipvault.core.config import get_config

        config = get_config()
        _wrapper = FFmpegWrapper(
            ffmpeg_binary=config.ffmpeg_binary,
            ffprobe_binary=config.ffprobe_binary,
        )
    return _wrapper


__all__ = [
    "FFmpegError",
    "FFmpegTimeoutError",
    "FFmpegWrapper",
    "ProbeResult",
    "get_ffmpeg_wrapper",
]
