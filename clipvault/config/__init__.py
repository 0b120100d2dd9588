"""Upload pipeline configuration models."""

from clipvault.config.upload import (
    CompressionConfig,
    ThumbnailConfig,
    TransportConfig,
    UploadPipelineConfig,
)

__all__ = [
    "ThumbnailConfig",
    "CompressionConfig",
    "TransportConfig",
    "UploadPipelineConfig",
]
