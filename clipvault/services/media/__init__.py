"""Media preprocessing services.

This module provides ffmpeg-backed processing of local videos:
- SourceFile / MediaBlob: Local file references and upload payloads
- FFmpegWrapper: Probe, frame extraction and re-encoding streams
- MediaPreprocessor: Thumbnail extraction and client-side compression
"""

from clipvault.services.media.blob import MediaBlob, SourceFile
from clipvault.services.media.ffmpeg import FFmpegError, FFmpegWrapper, ProbeResult
from clipvault.services.media.preprocessor import MediaPreprocessor

__all__ = [
    "MediaBlob",
    "SourceFile",
    "FFmpegError",
    "FFmpegWrapper",
    "ProbeResult",
    "MediaPreprocessor",
]
