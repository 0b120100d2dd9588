"""Upload pipeline data model.

This module defines the records tracked while a batch of local files
is uploaded:
- SourceFile / MediaBlob: the original file and the bytes actually sent
- UploadJob: per-file state, guarded by a StateMachine
- JobUpdate: immutable snapshot published to observers
- BatchState / BatchSummary: per-batch bookkeeping owned by the orchestrator
"""

import asyncio
import enum
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from clipvault.core.state_machine import StateMachine, create_upload_job_state_machine
from clipvault.services.media.blob import VIDEO_EXTENSIONS, MediaBlob, SourceFile


class JobStatus(str, enum.Enum):
    """Upload job lifecycle status."""

    QUEUED = "queued"  # Created, waiting for its turn
    GENERATING_THUMBNAIL = "generating_thumbnail"
    COMPRESSING = "compressing"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    UPLOADING = "uploading"  # Bytes in flight, progress meaningful
    FINALIZING = "finalizing"  # Creating the record
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class SharedMetadata(BaseModel):
    """Descriptive fields applied to every file of a batch.

    Attributes:
        title: Record title
        description: Record description
        project: Project name
        company_id: Owning company, defaults server-side to the user's company
        tags: Tag names
    """

    title: str = Field(min_length=1, max_length=200, description="Record title")
    description: str = Field(default="", max_length=5000, description="Record description")
    project: str = Field(default="General", description="Project name")
    company_id: str | None = Field(default=None, description="Owning company ID")
    tags: list[str] = Field(default_factory=list, description="Tag names")

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: list[str]) -> list[str]:
        """Drop blank tags and surrounding whitespace."""
        return [t.strip() for t in v if t and t.strip()]


class UploadOptions(BaseModel):
    """Per-batch processing options.

    Attributes:
        compress: Re-encode videos before upload
        quality: Requested quality in [0, 1]; a hint, not a size target
    """

    compress: bool = Field(default=False, description="Re-encode videos before upload")
    quality: float = Field(default=0.8, ge=0.0, le=1.0, description="Compression quality")


@dataclass(frozen=True)
class UploadAuthorization:
    """Write destination issued by the authorization service."""

    destination_url: str
    storage_key: str


@dataclass(frozen=True)
class RecordRef:
    """Reference to a finalized record.

    Attributes:
        id: Record ID
        data: Full record as returned by the service
    """

    id: str
    data: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class SizeInfo:
    """Size bookkeeping sent with finalization."""

    size_bytes: int
    original_size_bytes: int | None = None
    is_compressed: bool = False
    compression_ratio_percent: int = 0

    @classmethod
    def compute(cls, source: SourceFile, candidate: MediaBlob) -> "SizeInfo":
        """Derive size info from the original file and the uploaded blob.

        The ratio is the percentage saved and may be negative when the
        re-encode came out larger.
        """
        if candidate.path == source.path and candidate.data is None:
            return cls(size_bytes=source.size_bytes)

        ratio = 0
        if source.size_bytes > 0:
            ratio = round((1 - candidate.size_bytes / source.size_bytes) * 100)
        return cls(
            size_bytes=candidate.size_bytes,
            original_size_bytes=source.size_bytes,
            is_compressed=True,
            compression_ratio_percent=ratio,
        )


@dataclass(frozen=True)
class JobUpdate:
    """Immutable snapshot of a job, published on every change.

    Attributes:
        job_id: Temporary job ID (stable for the batch)
        file_name: Source file name
        status: Job status at snapshot time
        progress_percent: Current file transfer progress
        aggregate_progress: Whole-batch progress
        failure_reason: Set only when failed
        storage_key: Set once authorized
        thumbnail_key: Set once the thumbnail was stored
        record_id: Set once finalized
        is_compressed: Whether a re-encode replaced the source
        created_at: Snapshot time
    """

    job_id: str
    file_name: str
    status: JobStatus
    progress_percent: float
    aggregate_progress: float
    failure_reason: str | None = None
    storage_key: str | None = None
    thumbnail_key: str | None = None
    record_id: str | None = None
    is_compressed: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class UploadJob:
    """State of one file within a batch.

    Only the orchestrator mutates a job, through the methods below; each
    one validates the status transition so a terminal job can never be
    rewritten.

    Example:
        >>> job = UploadJob(SourceFile.from_path("clip.mp4"))
        >>> job.advance(JobStatus.AWAITING_AUTHORIZATION)
        >>> job.fail("Invalid file type")
    """

    def __init__(self, source_file: SourceFile, job_id: str | None = None) -> None:
        self._id = job_id or f"temp-{uuid.uuid4().hex}"
        self._source_file = source_file
        self._sm: StateMachine = create_upload_job_state_machine()

        self.progress_percent: float = 0.0
        self.derived_thumbnail: MediaBlob | None = None
        self.upload_candidate: MediaBlob = MediaBlob.from_source(source_file)
        self.storage_key: str | None = None
        self.thumbnail_key: str | None = None
        self.failure_reason: str | None = None
        self.finalized_record_ref: RecordRef | None = None
        self.duration_seconds: float | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def source_file(self) -> SourceFile:
        return self._source_file

    @property
    def status(self) -> JobStatus:
        return self._sm.current

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_compressed(self) -> bool:
        return self.upload_candidate.path != self._source_file.path

    def advance(self, status: JobStatus) -> None:
        """Move to a non-terminal stage.

        Raises:
            InvalidTransitionError: If the transition is not allowed
            ValueError: If uploading is entered without a storage key
        """
        if status is JobStatus.UPLOADING and not self.storage_key:
            raise ValueError("storage_key is required before uploading")
        self._sm.transition(status)
        if status is JobStatus.UPLOADING:
            self.progress_percent = 0.0

    def set_progress(self, percent: float) -> float:
        """Record transfer progress; never moves backwards.

        Args:
            percent: Reported percentage

        Returns:
            Progress actually stored

        Raises:
            ValueError: If the job is not uploading
        """
        if self.status is not JobStatus.UPLOADING:
            raise ValueError(f"Progress reported while {self.status.value}")
        clamped = min(max(percent, 0.0), 100.0)
        self.progress_percent = max(self.progress_percent, clamped)
        return self.progress_percent

    def fail(self, reason: str) -> None:
        """Mark the job failed with a human-readable reason."""
        self._sm.transition(JobStatus.FAILED)
        self.failure_reason = reason

    def complete(self, record: RecordRef) -> None:
        """Mark the job completed with its finalized record."""
        self._sm.transition(JobStatus.COMPLETED)
        self.finalized_record_ref = record
        self.progress_percent = 100.0

    def snapshot(self, aggregate_progress: float) -> JobUpdate:
        """Build an immutable update for observers."""
        return JobUpdate(
            job_id=self._id,
            file_name=self._source_file.name,
            status=self.status,
            progress_percent=self.progress_percent,
            aggregate_progress=aggregate_progress,
            failure_reason=self.failure_reason,
            storage_key=self.storage_key,
            thumbnail_key=self.thumbnail_key,
            record_id=self.finalized_record_ref.id if self.finalized_record_ref else None,
            is_compressed=self.is_compressed,
        )

    def __repr__(self) -> str:
        return f"UploadJob(id={self._id!r}, file={self._source_file.name!r}, status={self.status.value})"


@dataclass(frozen=True)
class BatchSummary:
    """Outcome of a finished batch."""

    total: int
    succeeded: int
    failed: int

    @property
    def message(self) -> str:
        return f"{self.succeeded} succeeded / {self.total}"


@dataclass
class BatchState:
    """Bookkeeping for one submitted batch, owned by a single orchestrator.

    Attributes:
        jobs: Jobs in submission (= processing) order
        completed_count: Jobs that reached a terminal state
        succeeded_count: Jobs that reached completed
        pause_requested: A pause will be honored before the next file
        paused: The worker is currently suspended
        resume_waiter: One-shot signal released by resume
    """

    jobs: list[UploadJob]
    completed_count: int = 0
    succeeded_count: int = 0
    pause_requested: bool = False
    paused: bool = False
    resume_waiter: asyncio.Future[None] | None = None

    @property
    def total(self) -> int:
        return len(self.jobs)

    def aggregate_progress(self, current_file_progress: float = 0.0) -> float:
        """Whole-batch progress for the current file's progress."""
        if not self.jobs:
            return 0.0
        done = self.completed_count * 100 + current_file_progress
        return min(done / self.total, 100.0)

    def summary(self) -> BatchSummary:
        return BatchSummary(
            total=self.total,
            succeeded=self.succeeded_count,
            failed=self.completed_count - self.succeeded_count,
        )


__all__ = [
    "VIDEO_EXTENSIONS",
    "JobStatus",
    "TERMINAL_STATUSES",
    "SourceFile",
    "MediaBlob",
    "SharedMetadata",
    "UploadOptions",
    "UploadAuthorization",
    "RecordRef",
    "SizeInfo",
    "JobUpdate",
    "UploadJob",
    "BatchSummary",
    "BatchState",
]
