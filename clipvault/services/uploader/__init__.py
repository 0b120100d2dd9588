"""Upload services.

This module provides the client-side upload pipeline:
- MetadataCoordinator: Upload authorization and record finalization
- ResilientTransport: Presigned PUT with progress and fallback
- UploadQueueOrchestrator: Sequential batch processing with pause/resume
"""

from clipvault.services.uploader.models import (
    BatchSummary,
    JobStatus,
    JobUpdate,
    SharedMetadata,
    SourceFile,
    UploadJob,
    UploadOptions,
)
from clipvault.services.uploader.coordinator import MetadataCoordinator
from clipvault.services.uploader.transport import ResilientTransport
from clipvault.services.uploader.orchestrator import BatchRun, UploadQueueOrchestrator

__all__ = [
    "BatchRun",
    "BatchSummary",
    "JobStatus",
    "JobUpdate",
    "MetadataCoordinator",
    "ResilientTransport",
    "SharedMetadata",
    "SourceFile",
    "UploadJob",
    "UploadOptions",
    "UploadQueueOrchestrator",
]
