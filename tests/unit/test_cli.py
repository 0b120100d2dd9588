"""Tests for the clipvault command line."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from clipvault.cli import build_parser, format_update, main, run_upload
from clipvault.core.exceptions import BatchInputError, ExtractionError
from clipvault.services.uploader.models import (
    BatchSummary,
    JobStatus,
    JobUpdate,
    RecordRef,
    UploadAuthorization,
)
from clipvault.services.uploader.orchestrator import UploadQueueOrchestrator


class TestParser:
    """Tests for argument parsing."""

    @pytest.mark.unit
    def test_upload_arguments(self) -> None:
        """Test every upload option is parsed."""
        args = build_parser().parse_args(
            [
                "upload",
                "a.mp4",
                "b.mov",
                "--title",
                "Site walk",
                "--project",
                "Tower B",
                "--company-id",
                "c-1",
                "--tag",
                "roof",
                "--tag",
                "safety",
                "--compress",
                "--quality",
                "0.5",
            ]
        )

        assert [str(f) for f in args.files] == ["a.mp4", "b.mov"]
        assert args.title == "Site walk"
        assert args.project == "Tower B"
        assert args.company_id == "c-1"
        assert args.tags == ["roof", "safety"]
        assert args.compress is True
        assert args.quality == 0.5

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """Test optional arguments default sensibly."""
        args = build_parser().parse_args(["upload", "a.mp4", "--title", "T"])

        assert args.description == ""
        assert args.project == "General"
        assert args.tags == []
        assert args.compress is False
        assert args.quality == 0.8

    @pytest.mark.unit
    def test_title_required(self) -> None:
        """Test a missing title exits with usage error."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["upload", "a.mp4"])

        assert exc_info.value.code == 2

    @pytest.mark.unit
    def test_quality_out_of_range(self) -> None:
        """Test quality outside (0, 1] is rejected."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["upload", "a.mp4", "--title", "T", "--quality", "0"])


class TestFormatUpdate:
    """Tests for format_update."""

    @staticmethod
    def _update(status: JobStatus, **kwargs) -> JobUpdate:
        defaults = {"progress_percent": 0.0, "aggregate_progress": 50.0}
        defaults.update(kwargs)
        return JobUpdate(job_id="temp-1", file_name="a.mp4", status=status, **defaults)

    @pytest.mark.unit
    def test_uploading(self) -> None:
        """Test uploading lines show transfer progress."""
        line = format_update(self._update(JobStatus.UPLOADING, progress_percent=42.4))

        assert line == "[ 50.0%] a.mp4: uploading 42%"

    @pytest.mark.unit
    def test_completed(self) -> None:
        """Test completed lines show the record ID."""
        line = format_update(self._update(JobStatus.COMPLETED, record_id="rec-1"))

        assert line.endswith("a.mp4: completed (record rec-1)")

    @pytest.mark.unit
    def test_failed(self) -> None:
        """Test failed lines show the reason."""
        line = format_update(self._update(JobStatus.FAILED, failure_reason="Invalid file type"))

        assert line.endswith("a.mp4: failed - Invalid file type")


class TestRunUpload:
    """Tests for run_upload."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_prints_updates_and_summary(self, make_video, capsys) -> None:
        """Test a batch runs and its summary is printed."""
        coordinator = MagicMock()
        coordinator.authorize = AsyncMock(
            return_value=UploadAuthorization("https://bucket.example.com/put", "videos/a.mp4")
        )
        coordinator.finalize = AsyncMock(return_value=RecordRef(id="rec-1"))
        transport = MagicMock()
        transport.send = AsyncMock()
        preprocessor = MagicMock()
        preprocessor.probe = AsyncMock(side_effect=ExtractionError("Cannot decode"))
        preprocessor.extract_thumbnail = AsyncMock(side_effect=ExtractionError("Cannot decode"))
        orchestrator = UploadQueueOrchestrator(coordinator, transport, preprocessor)

        args = build_parser().parse_args(
            ["upload", str(make_video("a.mp4")), "--title", "T", "--tag", "roof"]
        )
        summary = await run_upload(args, orchestrator)

        assert summary == BatchSummary(total=1, succeeded=1, failed=0)
        metadata = coordinator.finalize.await_args.args[1]
        assert metadata.title == "T"
        assert metadata.tags == ["roof"]

        out = capsys.readouterr().out.splitlines()
        assert out[0].endswith("a.mp4: queued")
        assert "completed (record rec-1)" in out[-2]
        assert out[-1] == "1 succeeded / 1"


class TestMain:
    """Tests for main exit codes."""

    @pytest.fixture
    def fake_container(self):
        """Replace the global container and its shutdown."""
        with (
            patch("clipvault.core.container.container", MagicMock()) as mock_container,
            patch("clipvault.core.container.shutdown_container", AsyncMock()) as shutdown,
        ):
            yield mock_container, shutdown

    @pytest.mark.unit
    def test_success_exit_code(self, fake_container) -> None:
        """Test exit code 0 when every job completed."""
        _, shutdown = fake_container
        with patch(
            "clipvault.cli.run_upload",
            AsyncMock(return_value=BatchSummary(total=2, succeeded=2, failed=0)),
        ):
            assert main(["upload", "a.mp4", "--title", "T"]) == 0

        shutdown.assert_awaited_once()

    @pytest.mark.unit
    def test_failed_job_exit_code(self, fake_container) -> None:
        """Test exit code 1 when any job failed."""
        with patch(
            "clipvault.cli.run_upload",
            AsyncMock(return_value=BatchSummary(total=2, succeeded=1, failed=1)),
        ):
            assert main(["upload", "a.mp4", "--title", "T"]) == 1

    @pytest.mark.unit
    def test_bad_input_exit_code(self, fake_container, capsys) -> None:
        """Test exit code 2 when the batch is rejected."""
        _, shutdown = fake_container
        with patch(
            "clipvault.cli.run_upload",
            AsyncMock(side_effect=BatchInputError("Not a file: a.mp4")),
        ):
            assert main(["upload", "a.mp4", "--title", "T"]) == 2

        assert "Not a file: a.mp4" in capsys.readouterr().err
        shutdown.assert_awaited_once()
