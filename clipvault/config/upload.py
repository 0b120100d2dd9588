"""Upload pipeline configuration models.

This module provides typed Pydantic configuration for the upload pipeline:
- Thumbnail extraction (raster box, seek position, JPEG quality)
- Compression (frame rate, bitrate scale, codecs)
- Object transfer (timeout, streaming chunk size)
"""

from typing import Literal

from pydantic import BaseModel, Field


class ThumbnailConfig(BaseModel):
    """Configuration for preview thumbnail extraction.

    Attributes:
        max_width: Width of the box the thumbnail must fit in
        max_height: Height of the box the thumbnail must fit in
        seek_fraction: Position of the captured frame as a fraction of duration
        jpeg_quality: JPEG quality (1-95, 80 matches a 0.8 canvas quality)
        timeout_seconds: Bounded wait for decode + frame capture
    """

    max_width: int = Field(default=400, ge=16, le=3840, description="Thumbnail box width")
    max_height: int = Field(default=300, ge=16, le=2160, description="Thumbnail box height")
    seek_fraction: float = Field(
        default=0.1, ge=0.0, lt=1.0, description="Frame position as fraction of duration"
    )
    jpeg_quality: int = Field(default=80, ge=1, le=95, description="JPEG quality")
    timeout_seconds: float = Field(
        default=30.0, gt=0, le=600, description="Max wait for a frame"
    )


class CompressionConfig(BaseModel):
    """Configuration for client-side re-encoding.

    Attributes:
        default_quality: Quality used when the caller does not pass one
        fps: Output frame rate
        bitrate_per_quality: Video bitrate (bit/s) at quality 1.0
        video_codec: ffmpeg video encoder
        audio_codec: ffmpeg audio encoder
        container: Output container / file extension
        content_type: MIME type of the output
        preset: x264 encoding preset
        timeout_seconds: Max wall time for a single re-encode
    """

    default_quality: float = Field(default=0.8, gt=0.0, le=1.0, description="Default quality")
    fps: int = Field(default=30, ge=1, le=120, description="Output frame rate")
    bitrate_per_quality: int = Field(
        default=1_000_000, ge=10_000, description="Video bitrate at quality 1.0 (bit/s)"
    )
    video_codec: str = Field(default="libx264", description="Video encoder")
    audio_codec: str = Field(default="aac", description="Audio encoder")
    container: Literal["mp4"] = Field(default="mp4", description="Output container")
    content_type: str = Field(default="video/mp4", description="Output MIME type")
    preset: str = Field(default="veryfast", description="Encoding preset")
    timeout_seconds: float = Field(
        default=3600.0, gt=0, le=86400, description="Max wall time for a re-encode"
    )


class TransportConfig(BaseModel):
    """Configuration for object transfer.

    Attributes:
        timeout_seconds: Overall deadline for one streaming PUT
        chunk_size: Bytes per streamed chunk (progress granularity)
        detail_max_chars: Max characters of a response body kept in errors
    """

    timeout_seconds: float = Field(
        default=300.0, gt=0, le=3600, description="Overall deadline for one PUT"
    )
    chunk_size: int = Field(
        default=256 * 1024, ge=1024, le=64 * 1024 * 1024, description="Stream chunk size"
    )
    detail_max_chars: int = Field(
        default=500, ge=50, le=10_000, description="Response body kept in errors"
    )


class UploadPipelineConfig(BaseModel):
    """Complete upload pipeline configuration.

    All sub-configs have defaults and can be used without explicit configuration.

    Attributes:
        thumbnail: Thumbnail extraction configuration
        compression: Compression configuration
        transport: Object transfer configuration
    """

    thumbnail: ThumbnailConfig = Field(default_factory=ThumbnailConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)


__all__ = [
    "ThumbnailConfig",
    "CompressionConfig",
    "TransportConfig",
    "UploadPipelineConfig",
]
