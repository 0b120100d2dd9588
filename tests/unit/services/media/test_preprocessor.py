"""Tests for MediaPreprocessor."""

import asyncio
from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from clipvault.config.upload import ThumbnailConfig, UploadPipelineConfig
from clipvault.core.exceptions import CompressionError, ExtractionError
from clipvault.services.media.blob import MediaBlob
from clipvault.services.media.ffmpeg import FFmpegError, ProbeResult
from clipvault.services.media.preprocessor import (
    MediaPreprocessor,
    fit_within,
    scaled_dimensions,
)


def _probe(
    width: int | None = 1920,
    height: int | None = 1080,
    duration: float = 20.0,
    has_audio: bool = True,
) -> ProbeResult:
    return ProbeResult(
        duration=duration,
        width=width,
        height=height,
        fps=30.0,
        has_video=width is not None,
        has_audio=has_audio,
        format_name="mp4",
        bit_rate=None,
    )


@pytest.fixture
def mock_ffmpeg() -> MagicMock:
    """FFmpeg wrapper whose run() writes plausible output files."""
    wrapper = MagicMock()
    wrapper.probe = AsyncMock(return_value=_probe())

    async def fake_run(stream, timeout=None):
        if wrapper.extract_frame.called:
            output = Path(wrapper.extract_frame.call_args.kwargs["output_path"])
            Image.new("RGB", (400, 225), "red").save(output, "PNG")
        if wrapper.compress_video.called:
            output = Path(wrapper.compress_video.call_args.kwargs["output_path"])
            output.write_bytes(b"\x01" * 512)

    wrapper.run = AsyncMock(side_effect=fake_run)
    return wrapper


@pytest.fixture
def preprocessor(mock_ffmpeg: MagicMock):
    """MediaPreprocessor over the mocked wrapper."""
    processor = MediaPreprocessor(ffmpeg_wrapper=mock_ffmpeg)
    yield processor
    processor.close()


class TestGeometry:
    """Tests for sizing helpers."""

    @pytest.mark.unit
    def test_fit_within_landscape(self) -> None:
        """Test a 16:9 frame touches the box width."""
        assert fit_within(1920, 1080, 400, 300) == (400, 225)

    @pytest.mark.unit
    def test_fit_within_portrait(self) -> None:
        """Test a 9:16 frame touches the box height."""
        assert fit_within(1080, 1920, 400, 300) == (169, 300)

    @pytest.mark.unit
    def test_fit_within_upscales_small_frames(self) -> None:
        """Test small sources are scaled up to the box."""
        assert fit_within(160, 120, 400, 300) == (400, 300)

    @pytest.mark.unit
    def test_scaled_dimensions_half_quality(self) -> None:
        """Test quality 0.5 keeps ~71% per side, rounded to even."""
        assert scaled_dimensions(1920, 1080, 0.5) == (1358, 764)

    @pytest.mark.unit
    def test_scaled_dimensions_full_quality(self) -> None:
        """Test quality 1.0 keeps the size."""
        assert scaled_dimensions(1280, 720, 1.0) == (1280, 720)

    @pytest.mark.unit
    def test_scaled_dimensions_minimum(self) -> None:
        """Test tiny outputs never go below 2 pixels."""
        assert scaled_dimensions(2, 2, 0.01) == (2, 2)


class TestExtractThumbnail:
    """Tests for extract_thumbnail."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_extracts_jpeg_in_box(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test a JPEG fitted inside the default box is returned."""
        thumbnail = await preprocessor.extract_thumbnail(video_source)

        assert isinstance(thumbnail, MediaBlob)
        assert thumbnail.content_type == "image/jpeg"
        assert thumbnail.name == "clip-thumbnail.jpg"
        assert thumbnail.data is not None
        assert thumbnail.size_bytes == len(thumbnail.data)

        with Image.open(BytesIO(thumbnail.data)) as image:
            assert image.format == "JPEG"
            assert image.size == (400, 225)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reuses_given_probe(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test an earlier probe result is used instead of probing again."""
        await preprocessor.extract_thumbnail(video_source, probe=_probe(width=640, height=480, duration=50.0))

        mock_ffmpeg.probe.assert_not_awaited()
        call_kwargs = mock_ffmpeg.extract_frame.call_args.kwargs
        assert call_kwargs["size"] == (400, 300)
        assert call_kwargs["seek_seconds"] == pytest.approx(5.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_seeks_to_ten_percent(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test the frame is captured at 10% of the duration."""
        await preprocessor.extract_thumbnail(video_source)

        call_kwargs = mock_ffmpeg.extract_frame.call_args.kwargs
        assert call_kwargs["seek_seconds"] == pytest.approx(2.0)
        assert call_kwargs["size"] == (400, 225)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_source_is_untouched(self, preprocessor, video_source) -> None:
        """Test the source file keeps its bytes."""
        before = video_source.path.read_bytes()

        await preprocessor.extract_thumbnail(video_source)

        assert video_source.path.read_bytes() == before

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_undecodable_source(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test probe failures raise ExtractionError."""
        mock_ffmpeg.probe.side_effect = FFmpegError("Failed to probe", stderr="moov atom not found")

        with pytest.raises(ExtractionError) as exc_info:
            await preprocessor.extract_thumbnail(video_source)

        assert exc_info.value.file_name == "clip.mp4"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_video_stream(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test audio-only sources cannot produce a thumbnail."""
        mock_ffmpeg.probe.return_value = _probe(width=None, height=None)

        with pytest.raises(ExtractionError, match="no decodable video"):
            await preprocessor.extract_thumbnail(video_source)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_frame_written(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test a successful run without output is still an error."""
        mock_ffmpeg.run.side_effect = None

        with pytest.raises(ExtractionError, match="No frame captured"):
            await preprocessor.extract_thumbnail(video_source)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bounded_wait(self, mock_ffmpeg, video_source) -> None:
        """Test a hung decode is abandoned after the configured wait."""

        async def hang(stream, timeout=None):
            await asyncio.sleep(10)

        mock_ffmpeg.run.side_effect = hang
        processor = MediaPreprocessor(
            config=UploadPipelineConfig(thumbnail=ThumbnailConfig(timeout_seconds=0.05)),
            ffmpeg_wrapper=mock_ffmpeg,
        )

        with pytest.raises(ExtractionError, match="No frame captured within"):
            await processor.extract_thumbnail(video_source)


class TestCompress:
    """Tests for compress."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_compress_scales_and_sets_bitrate(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test dimensions, bitrate and duration passed to ffmpeg."""
        blob = await preprocessor.compress(video_source, quality=0.25)

        call_kwargs = mock_ffmpeg.compress_video.call_args.kwargs
        assert call_kwargs["size"] == (960, 540)
        assert call_kwargs["video_bitrate"] == 250_000
        assert call_kwargs["fps"] == 30
        assert call_kwargs["duration"] == 20.0
        assert call_kwargs["with_audio"] is True
        assert mock_ffmpeg.run.call_args.kwargs["timeout"] == 3600.0

        assert blob.name == "clip.mp4"
        assert blob.content_type == "video/mp4"
        assert blob.size_bytes == 512
        assert blob.path is not None and blob.path.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_compress_reuses_given_probe(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test an earlier probe result is used instead of probing again."""
        await preprocessor.compress(video_source, quality=1.0, probe=_probe(width=1280, height=720, duration=8.0))

        mock_ffmpeg.probe.assert_not_awaited()
        call_kwargs = mock_ffmpeg.compress_video.call_args.kwargs
        assert call_kwargs["size"] == (1280, 720)
        assert call_kwargs["duration"] == 8.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_compress_uses_default_quality(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test the configured default quality applies when none is given."""
        await preprocessor.compress(video_source)

        assert mock_ffmpeg.compress_video.call_args.kwargs["video_bitrate"] == 800_000

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("quality", [0.0, -0.5, 1.5])
    async def test_invalid_quality(self, preprocessor, mock_ffmpeg, video_source, quality) -> None:
        """Test out-of-range quality is rejected before probing."""
        with pytest.raises(CompressionError):
            await preprocessor.compress(video_source, quality=quality)

        mock_ffmpeg.probe.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_duration(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test sources without a duration cannot be re-encoded."""
        mock_ffmpeg.probe.return_value = _probe(duration=0.0)

        with pytest.raises(CompressionError, match="no duration"):
            await preprocessor.compress(video_source, quality=0.5)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_encoder_failure_removes_output(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test a failed re-encode leaves no temp file behind."""

        async def fail(stream, timeout=None):
            output = Path(mock_ffmpeg.compress_video.call_args.kwargs["output_path"])
            output.write_bytes(b"partial")
            raise FFmpegError("FFmpeg execution failed", stderr="Unknown encoder")

        mock_ffmpeg.run.side_effect = fail

        with pytest.raises(CompressionError) as exc_info:
            await preprocessor.compress(video_source, quality=0.5)

        output = Path(mock_ffmpeg.compress_video.call_args.kwargs["output_path"])
        assert not output.exists()
        assert exc_info.value.quality == 0.5
        assert exc_info.value.stderr == "Unknown encoder"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_output(self, preprocessor, mock_ffmpeg, video_source) -> None:
        """Test zero-byte output is an error."""

        async def empty(stream, timeout=None):
            Path(mock_ffmpeg.compress_video.call_args.kwargs["output_path"]).touch()

        mock_ffmpeg.run.side_effect = empty

        with pytest.raises(CompressionError, match="no output"):
            await preprocessor.compress(video_source, quality=0.5)


class TestResources:
    """Tests for cleanup and close."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cleanup_removes_compressed_file(self, preprocessor, video_source) -> None:
        """Test cleanup deletes a compress() output."""
        blob = await preprocessor.compress(video_source, quality=0.5)

        preprocessor.cleanup(blob)

        assert blob.path is not None and not blob.path.exists()

    @pytest.mark.unit
    def test_cleanup_ignores_foreign_files(self, preprocessor, video_source) -> None:
        """Test cleanup never deletes the source."""
        preprocessor.cleanup(MediaBlob.from_source(video_source))

        assert video_source.path.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_removes_work_dir(self, preprocessor, video_source) -> None:
        """Test close removes every temporary file."""
        blob = await preprocessor.compress(video_source, quality=0.5)
        work_dir = blob.path.parent

        preprocessor.close()

        assert not work_dir.exists()
