"""Tests for clipvault.core.logging module."""

import pytest
import structlog

from clipvault.core.logging import add_app_context, get_logger, setup_logging


@pytest.mark.unit
def test_setup_logging():
    """Test that setup_logging configures structlog."""
    setup_logging()

    logger = structlog.get_logger()
    assert logger is not None
    # Logger can be LazyProxy or BoundLogger depending on when it's accessed
    assert hasattr(logger, "info")
    assert hasattr(logger, "error")


@pytest.mark.unit
def test_get_logger():
    """Test get_logger returns configured logger."""
    setup_logging()

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "error")


@pytest.mark.unit
def test_get_logger_without_name():
    """Test get_logger works without explicit name."""
    setup_logging()

    logger = get_logger()
    assert hasattr(logger, "warning")


@pytest.mark.unit
def test_add_app_context():
    """Test the processor stamps app name and environment."""
    event_dict = add_app_context(None, "info", {"event": "hello"})

    assert event_dict["app"] == "ClipVault"
    assert event_dict["env"] in ("development", "staging", "production")
    assert event_dict["event"] == "hello"


@pytest.mark.unit
def test_logger_with_context():
    """Test logging with bound context variables."""
    setup_logging()

    logger = get_logger("test").bind(job_id="temp-1", file="clip.mp4")

    # This should not raise
    logger.info("Job finished", status="completed")
    logger.warning("Thumbnail extraction failed, continuing without", error="boom")


@pytest.mark.unit
def test_logger_exception_logging():
    """Test logging exceptions with traceback."""
    setup_logging()

    logger = get_logger("test")

    try:
        raise ValueError("Test exception")
    except ValueError:
        logger.exception("Error occurred")
