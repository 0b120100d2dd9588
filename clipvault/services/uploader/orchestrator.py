"""Upload queue orchestrator.

Processes a batch of local files strictly in submission order, one at a
time. Each file goes through thumbnail extraction, optional compression,
authorization, transfer and finalization; every status change is
published as a JobUpdate. A failure is recorded on its job and the batch
moves on to the next file.

Pause is cooperative: it is honored only before the next file starts.
"""

import asyncio
import inspect
import weakref
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

from clipvault.core.exceptions import (
    AuthorizationError,
    BatchInputError,
    CompressionError,
    ExtractionError,
    FinalizationError,
    ThumbnailError,
    TransportError,
    TransportErrorKind,
)
from clipvault.core.logging import get_logger
from clipvault.core.types import UpdateCallback
from clipvault.services.media.ffmpeg import ProbeResult
from clipvault.services.media.preprocessor import MediaPreprocessor
from clipvault.services.uploader.coordinator import MetadataCoordinator
from clipvault.services.uploader.models import (
    BatchState,
    BatchSummary,
    JobStatus,
    JobUpdate,
    SharedMetadata,
    SizeInfo,
    SourceFile,
    UploadJob,
    UploadOptions,
)
from clipvault.services.uploader.transport import ResilientTransport

logger = get_logger(__name__)

# Minimum progress step (percentage points) between published uploading updates
PROGRESS_PUBLISH_STEP = 1.0


class BatchRun:
    """Observable run of one submitted batch.

    Iterating the run starts processing and yields every JobUpdate in
    order. The stream opens with one queued update per job.

    Example:
        >>> run = orchestrator.submit_batch(files, metadata)
        >>> async for update in run:
        ...     print(update.file_name, update.status, update.aggregate_progress)
        >>> print(run.summary.message)
    """

    def __init__(
        self,
        orchestrator: "UploadQueueOrchestrator",
        state: BatchState,
        metadata: SharedMetadata,
        options: UploadOptions,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._metadata = metadata
        self._options = options
        self._on_update = on_update
        self._queue: asyncio.Queue[JobUpdate | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self.state = state
        self.summary: BatchSummary | None = None

        for job in state.jobs:
            self.publish(job.snapshot(0.0))

    @property
    def jobs(self) -> tuple[UploadJob, ...]:
        return tuple(self.state.jobs)

    @property
    def is_finished(self) -> bool:
        return self.summary is not None

    def publish(self, update: JobUpdate) -> None:
        """Append an update to the stream."""
        self._queue.put_nowait(update)

    def finish(self, summary: BatchSummary | None) -> None:
        """Close the stream."""
        self.summary = summary
        self._queue.put_nowait(None)

    def start(self) -> None:
        """Start processing if it has not started yet."""
        if self._task is None:
            self._task = asyncio.create_task(
                self._orchestrator._run_batch(self, self._metadata, self._options)
            )

    def __aiter__(self) -> AsyncIterator[JobUpdate]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[JobUpdate]:
        self.start()
        assert self._task is not None
        try:
            while True:
                update = await self._queue.get()
                if update is None:
                    break
                if self._on_update is not None:
                    result = self._on_update(update)
                    if inspect.isawaitable(result):
                        await result
                yield update
            await self._task
        finally:
            if not self._task.done():
                self._task.cancel()
                # A task cancelled before its first step never runs its own cleanup
                self._orchestrator._release(self.state)

    async def run(self) -> BatchSummary:
        """Process the whole batch and return its summary."""
        async for _ in self:
            pass
        assert self.summary is not None
        return self.summary


class UploadQueueOrchestrator:
    """Sequence per-file upload work and publish job state.

    A single orchestrator runs at most one batch at a time and owns that
    batch's state exclusively.

    Example:
        >>> orchestrator = UploadQueueOrchestrator(coordinator, transport, preprocessor)
        >>> run = orchestrator.submit_batch(
        ...     ["a.mp4", "b.mov"],
        ...     SharedMetadata(title="Site walk"),
        ...     UploadOptions(compress=True, quality=0.6),
        ... )
        >>> summary = await run.run()
    """

    def __init__(
        self,
        coordinator: MetadataCoordinator,
        transport: ResilientTransport,
        preprocessor: MediaPreprocessor | None = None,
    ) -> None:
        """Initialize UploadQueueOrchestrator.

        Args:
            coordinator: Authorization / finalization client
            transport: Object transfer
            preprocessor: Thumbnail and compression processor
        """
        self.coordinator = coordinator
        self.transport = transport
        self.preprocessor = preprocessor or MediaPreprocessor()
        self._state: BatchState | None = None

        logger.info("UploadQueueOrchestrator initialized")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit_batch(
        self,
        files: Sequence[SourceFile | Path | str],
        metadata: SharedMetadata,
        options: UploadOptions | None = None,
        on_update: UpdateCallback | None = None,
    ) -> BatchRun:
        """Create the jobs of a batch and return its observable run.

        Args:
            files: Local files, in processing order
            metadata: Descriptive fields applied to every file
            options: Compression options
            on_update: Called with every update while the run is consumed

        Returns:
            BatchRun to iterate (or run()) to process the batch

        Raises:
            BatchInputError: If the list is empty, a file is missing, or
                another batch is still active
        """
        if not files:
            raise BatchInputError("At least one file is required")
        if self._state is not None:
            raise BatchInputError("Another batch is still in progress")

        sources: list[SourceFile] = []
        for item in files:
            if isinstance(item, SourceFile):
                sources.append(item)
                continue
            try:
                sources.append(SourceFile.from_path(item))
            except FileNotFoundError as e:
                raise BatchInputError(str(e), context={"file": str(item)}) from e

        state = BatchState(jobs=[UploadJob(source) for source in sources])
        self._state = state

        logger.info(
            "Batch submitted",
            files=state.total,
            compress=(options.compress if options else False),
        )
        run = BatchRun(self, state, metadata, options or UploadOptions(), on_update)
        # Dropping a run that was never consumed frees the orchestrator
        weakref.finalize(run, self._release, state).atexit = False
        return run

    def pause(self, cancel_in_flight: bool = False) -> bool:
        """Request a pause before the next file starts.

        Args:
            cancel_in_flight: Also cancel the current transfer so the
                current file fails fast instead of running to completion

        Returns:
            True if a batch is active
        """
        state = self._state
        if state is None:
            return False

        state.pause_requested = True
        logger.info("Pause requested", cancel_in_flight=cancel_in_flight)
        if cancel_in_flight:
            self.transport.cancel()
        return True

    def resume(self) -> bool:
        """Clear a pause request and release the waiting worker.

        Returns:
            True if a pause was in effect; False means this was a no-op
        """
        state = self._state
        if state is None or not (state.pause_requested or state.paused):
            return False

        state.pause_requested = False
        waiter = state.resume_waiter
        state.resume_waiter = None
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

        logger.info("Batch resumed")
        return True

    @property
    def is_paused(self) -> bool:
        return self._state is not None and self._state.paused

    @property
    def pause_requested(self) -> bool:
        return self._state is not None and self._state.pause_requested

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run_batch(
        self,
        run: BatchRun,
        metadata: SharedMetadata,
        options: UploadOptions,
    ) -> None:
        state = run.state
        summary: BatchSummary | None = None
        try:
            for index, job in enumerate(state.jobs):
                await self._wait_if_paused(state, job)
                await self._process_job(job, run, metadata, options)

                state.completed_count += 1
                if job.status is JobStatus.COMPLETED:
                    state.succeeded_count += 1
                run.publish(job.snapshot(state.aggregate_progress()))

                logger.info(
                    "Job finished",
                    job_id=job.id,
                    file=job.source_file.name,
                    status=job.status.value,
                    position=f"{index + 1}/{state.total}",
                )

            summary = state.summary()
            logger.info(
                "Batch finished",
                summary=summary.message,
                succeeded=summary.succeeded,
                failed=summary.failed,
            )
        finally:
            self._release(state)
            run.finish(summary)

    def _release(self, state: BatchState) -> None:
        """Forget a batch so the next one can be submitted."""
        if self._state is state:
            self._state = None
            logger.debug("Batch state released", jobs=state.total)

    async def _wait_if_paused(self, state: BatchState, next_job: UploadJob) -> None:
        if not state.pause_requested:
            return

        state.paused = True
        state.resume_waiter = asyncio.get_running_loop().create_future()
        logger.info("Batch paused", next_job=next_job.id, file=next_job.source_file.name)
        try:
            await state.resume_waiter
        finally:
            state.paused = False
            state.resume_waiter = None

    async def _process_job(
        self,
        job: UploadJob,
        run: BatchRun,
        metadata: SharedMetadata,
        options: UploadOptions,
    ) -> None:
        log = logger.bind(job_id=job.id, file=job.source_file.name)
        try:
            await self._run_stages(job, run, metadata, options)
        except AuthorizationError as e:
            log.error("Authorization failed", error=str(e))
            job.fail(str(e))
        except TransportError as e:
            log.error("Transfer failed", kind=e.kind.value, error=e.detail)
            job.fail(str(e))
        except FinalizationError as e:
            log.error("Finalization failed", error=str(e))
            job.fail(str(e))
        except Exception as e:
            log.error("Job failed unexpectedly", error=str(e), exc_info=True)
            if not job.is_terminal:
                job.fail(f"Unexpected error: {e}")
        finally:
            if job.is_compressed:
                self.preprocessor.cleanup(job.upload_candidate)

    async def _run_stages(
        self,
        job: UploadJob,
        run: BatchRun,
        metadata: SharedMetadata,
        options: UploadOptions,
    ) -> None:
        state = run.state
        source = job.source_file
        log = logger.bind(job_id=job.id, file=source.name)

        def publish() -> None:
            # Finalizing keeps the transfer's 100% so the aggregate never drops
            run.publish(job.snapshot(state.aggregate_progress(job.progress_percent)))

        # 1. Thumbnail (best-effort); the probe is shared with compression
        probe: ProbeResult | None = None
        if source.is_video:
            job.advance(JobStatus.GENERATING_THUMBNAIL)
            publish()
            try:
                probe = await self.preprocessor.probe(source)
                job.duration_seconds = probe.duration or None
            except ExtractionError as e:
                log.warning("Probe failed", error=str(e))
            try:
                job.derived_thumbnail = await self.preprocessor.extract_thumbnail(
                    source, probe=probe
                )
            except ThumbnailError as e:
                log.warning("Thumbnail extraction failed, continuing without", error=str(e))

        # 2. Compression (falls back to the original)
        if options.compress and source.is_video:
            job.advance(JobStatus.COMPRESSING)
            publish()
            try:
                job.upload_candidate = await self.preprocessor.compress(
                    source, options.quality, probe=probe
                )
            except CompressionError as e:
                log.warning("Compression failed, uploading original", error=str(e))

        # 3. Authorization
        job.advance(JobStatus.AWAITING_AUTHORIZATION)
        publish()
        candidate = job.upload_candidate
        authorization = await self.coordinator.authorize(
            candidate.name, candidate.content_type, candidate.size_bytes
        )
        job.storage_key = authorization.storage_key

        # 4. Thumbnail transfer (best-effort)
        if job.derived_thumbnail is not None:
            job.thumbnail_key = await self._upload_thumbnail(job)

        # 5. Transfer
        job.advance(JobStatus.UPLOADING)
        publish()
        last_published = 0.0

        def on_progress(percent: float) -> None:
            nonlocal last_published
            if job.status is not JobStatus.UPLOADING:
                return
            applied = job.set_progress(percent)
            if applied - last_published >= PROGRESS_PUBLISH_STEP or (
                applied >= 100.0 and last_published < 100.0
            ):
                last_published = applied
                publish()

        await self.transport.send(candidate, authorization.destination_url, on_progress)

        # 6. Finalization
        job.advance(JobStatus.FINALIZING)
        publish()
        record = await self.coordinator.finalize(
            job.storage_key,
            metadata,
            SizeInfo.compute(source, candidate),
            thumbnail_key=job.thumbnail_key,
            duration_seconds=job.duration_seconds,
        )
        job.complete(record)
        log.info("Record finalized", record_id=record.id, storage_key=job.storage_key)

    async def _upload_thumbnail(self, job: UploadJob) -> str | None:
        thumbnail = job.derived_thumbnail
        assert thumbnail is not None and job.storage_key is not None
        try:
            authorization = await self.coordinator.authorize_thumbnail(
                job.storage_key, thumbnail.content_type
            )
            await self.transport.send(thumbnail, authorization.destination_url)
        except TransportError as e:
            if e.kind is TransportErrorKind.CANCELLED:
                raise
            logger.warning("Thumbnail upload failed, dropping it", job_id=job.id, error=str(e))
        except AuthorizationError as e:
            logger.warning("Thumbnail authorization failed, dropping it", job_id=job.id, error=str(e))
        else:
            return authorization.storage_key

        job.derived_thumbnail = None
        return None


__all__ = [
    "BatchRun",
    "UploadQueueOrchestrator",
    "PROGRESS_PUBLISH_STEP",
]
