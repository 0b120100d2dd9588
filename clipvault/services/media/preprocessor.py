"""Media preprocessing before upload.

Derives auxiliary artifacts from a source video without touching it:
- a JPEG preview thumbnail fitted inside a small box
- an optional size-reduced re-encode

Decode resources (ffmpeg subprocesses, temporary files) are always
released, whether the operation succeeds, fails, times out or is
cancelled.
"""

import asyncio
import math
import shutil
import tempfile
import uuid
from io import BytesIO
from pathlib import Path

from PIL import Image

from clipvault.config.upload import CompressionConfig, ThumbnailConfig, UploadPipelineConfig
from clipvault.core.exceptions import CompressionError, ExtractionError
from clipvault.core.logging import get_logger
from clipvault.services.media.blob import MediaBlob, SourceFile
from clipvault.services.media.ffmpeg import (
    FFmpegError,
    FFmpegWrapper,
    ProbeResult,
    get_ffmpeg_wrapper,
)

logger = get_logger(__name__)


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Size a raster to fit inside a box while preserving aspect ratio.

    Args:
        width: Source width
        height: Source height
        max_width: Box width
        max_height: Box height

    Returns:
        (width, height) touching the box on at least one side
    """
    scale = min(max_width / width, max_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def scaled_dimensions(width: int, height: int, quality: float) -> tuple[int, int]:
    """Scale both dimensions by sqrt(quality), rounded to even pixels.

    Quality 0.5 keeps ~71% per dimension, i.e. ~50% of the pixel area.
    H.264 with yuv420p needs even dimensions.
    """
    factor = math.sqrt(quality)

    def _even(value: float) -> int:
        return max(2, int(round(value / 2)) * 2)

    return _even(width * factor), _even(height * factor)


class MediaPreprocessor:
    """Extract thumbnails and re-encode videos ahead of upload.

    Example:
        >>> preprocessor = MediaPreprocessor()
        >>> thumbnail = await preprocessor.extract_thumbnail(source)
        >>> smaller = await preprocessor.compress(source, quality=0.5)
        >>> preprocessor.cleanup(smaller)
    """

    def __init__(
        self,
        config: UploadPipelineConfig | None = None,
        ffmpeg_wrapper: FFmpegWrapper | None = None,
    ) -> None:
        """Initialize MediaPreprocessor.

        Args:
            config: Pipeline configuration (thumbnail and compression sections are used)
            ffmpeg_wrapper: FFmpeg wrapper for media operations
        """
        config = config or UploadPipelineConfig()
        self.thumbnail_config: ThumbnailConfig = config.thumbnail
        self.compression_config: CompressionConfig = config.compression
        self.ffmpeg = ffmpeg_wrapper or get_ffmpeg_wrapper()
        self._work_dir: Path | None = None

    # ------------------------------------------------------------------
    # Thumbnail
    # ------------------------------------------------------------------

    async def extract_thumbnail(
        self,
        source: SourceFile,
        probe: ProbeResult | None = None,
    ) -> MediaBlob:
        """Capture a representative frame as a JPEG.

        The frame is taken at a fixed fraction of the duration (10% by
        default) and fitted inside the configured box.

        Args:
            source: Source video
            probe: Result of an earlier probe() of the same file, if any

        Returns:
            In-memory JPEG blob

        Raises:
            ExtractionError: If the file cannot be decoded or no frame is
                captured within the configured wait
        """
        timeout = self.thumbnail_config.timeout_seconds
        try:
            return await asyncio.wait_for(self._extract_thumbnail(source, probe), timeout)
        except TimeoutError as e:
            raise ExtractionError(
                f"No frame captured within {timeout}s",
                file_name=source.name,
            ) from e

    async def _extract_thumbnail(self, source: SourceFile, probe: ProbeResult | None) -> MediaBlob:
        cfg = self.thumbnail_config
        if probe is None:
            probe = await self._probe(source, ExtractionError)
        if not probe.has_video or not probe.width or not probe.height:
            raise ExtractionError("Source has no decodable video stream", file_name=source.name)

        size = fit_within(probe.width, probe.height, cfg.max_width, cfg.max_height)
        seek_seconds = max(probe.duration, 0.0) * cfg.seek_fraction

        with tempfile.TemporaryDirectory(prefix="clipvault-thumb-") as tmp:
            frame_path = Path(tmp) / "frame.png"
            stream = self.ffmpeg.extract_frame(
                video_path=source.path,
                output_path=frame_path,
                seek_seconds=seek_seconds,
                size=size,
            )
            try:
                await self.ffmpeg.run(stream)
            except FFmpegError as e:
                raise ExtractionError(
                    "Frame extraction failed", file_name=source.name, stderr=e.stderr
                ) from e

            if not frame_path.exists() or frame_path.stat().st_size == 0:
                raise ExtractionError("No frame captured", file_name=source.name)

            try:
                data = self._encode_jpeg(frame_path, size)
            except OSError as e:
                raise ExtractionError(f"Cannot encode thumbnail: {e}", file_name=source.name) from e

        logger.debug(
            "Thumbnail extracted",
            file=source.name,
            size=f"{size[0]}x{size[1]}",
            seek_seconds=round(seek_seconds, 3),
            bytes=len(data),
        )
        return MediaBlob.from_bytes(
            data,
            name=f"{Path(source.name).stem}-thumbnail.jpg",
            content_type="image/jpeg",
        )

    def _encode_jpeg(self, frame_path: Path, size: tuple[int, int]) -> bytes:
        with Image.open(frame_path) as frame:
            image = frame.convert("RGB")
        if image.size != size:
            image = image.resize(size, Image.Resampling.LANCZOS)

        buffer = BytesIO()
        image.save(buffer, "JPEG", quality=self.thumbnail_config.jpeg_quality)
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Compression
    # ------------------------------------------------------------------

    async def compress(
        self,
        source: SourceFile,
        quality: float | None = None,
        probe: ProbeResult | None = None,
    ) -> MediaBlob:
        """Re-encode a video at reduced dimensions and bitrate.

        Quality is a request, not a size target: both dimensions are
        scaled by sqrt(quality) and the video bitrate is set to
        quality * bitrate_per_quality. The output may be larger than the
        source for already well-compressed input.

        Args:
            source: Source video
            quality: Requested quality in (0, 1] (default: configured default)
            probe: Result of an earlier probe() of the same file, if any

        Returns:
            Blob backed by a temporary file; release with cleanup()

        Raises:
            CompressionError: If the re-encode cannot start, fails or
                produces no output
        """
        cfg = self.compression_config
        if quality is None:
            quality = cfg.default_quality
        if not 0.0 < quality <= 1.0:
            raise CompressionError(
                "Quality must be in (0, 1]", file_name=source.name, quality=quality
            )

        if probe is None:
            probe = await self._probe(source, CompressionError)
        if not probe.has_video or not probe.width or not probe.height:
            raise CompressionError(
                "Source has no decodable video stream", file_name=source.name, quality=quality
            )
        if probe.duration <= 0:
            raise CompressionError(
                "Source reports no duration", file_name=source.name, quality=quality
            )

        size = scaled_dimensions(probe.width, probe.height, quality)
        bitrate = int(quality * cfg.bitrate_per_quality)
        output_path = self._ensure_work_dir() / f"{uuid.uuid4().hex}.{cfg.container}"

        stream = self.ffmpeg.compress_video(
            input_path=source.path,
            output_path=output_path,
            size=size,
            duration=probe.duration,
            video_bitrate=bitrate,
            fps=cfg.fps,
            vcodec=cfg.video_codec,
            acodec=cfg.audio_codec,
            preset=cfg.preset,
            with_audio=probe.has_audio,
        )

        logger.info(
            "Compressing video",
            file=source.name,
            quality=quality,
            size=f"{size[0]}x{size[1]}",
            bitrate=bitrate,
            duration=probe.duration,
        )

        try:
            await self.ffmpeg.run(stream, timeout=cfg.timeout_seconds)
        except FFmpegError as e:
            output_path.unlink(missing_ok=True)
            raise CompressionError(
                f"Re-encode failed: {e}", file_name=source.name, quality=quality, stderr=e.stderr
            ) from e
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise

        if not output_path.exists() or output_path.stat().st_size == 0:
            output_path.unlink(missing_ok=True)
            raise CompressionError(
                "Re-encode produced no output", file_name=source.name, quality=quality
            )

        blob = MediaBlob(
            name=f"{Path(source.name).stem}.{cfg.container}",
            content_type=cfg.content_type,
            size_bytes=output_path.stat().st_size,
            path=output_path,
        )
        logger.info(
            "Video compressed",
            file=source.name,
            original_bytes=source.size_bytes,
            compressed_bytes=blob.size_bytes,
        )
        return blob

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def probe(self, source: SourceFile) -> ProbeResult:
        """Probe a source file.

        Raises:
            ExtractionError: If the file cannot be decoded
        """
        return await self._probe(source, ExtractionError)

    async def _probe(
        self,
        source: SourceFile,
        error_cls: type[ExtractionError] | type[CompressionError],
    ) -> ProbeResult:
        try:
            return await self.ffmpeg.probe(source.path)
        except FFmpegError as e:
            raise error_cls(
                f"Cannot decode {source.name}", file_name=source.name, stderr=e.stderr
            ) from e

    def _ensure_work_dir(self) -> Path:
        if self._work_dir is None or not self._work_dir.exists():
            self._work_dir = Path(tempfile.mkdtemp(prefix="clipvault-"))
        return self._work_dir

    def cleanup(self, blob: MediaBlob) -> None:
        """Delete a blob produced by compress(); other blobs are left alone."""
        if blob.path is None or self._work_dir is None:
            return
        if blob.path.parent == self._work_dir:
            blob.path.unlink(missing_ok=True)

    def close(self) -> None:
        """Remove every temporary file created by this preprocessor."""
        if self._work_dir is not None:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            self._work_dir = None


__all__ = [
    "MediaPreprocessor",
    "fit_within",
    "scaled_dimensions",
]
