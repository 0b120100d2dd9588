"""Unit tests for Dependency Injection Container.

Tests cover:
- Container initialization and configuration
- Provider types (Singleton, Factory)
- Sub-container composition
- Testing utilities (overrides)
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from dependency_injector import providers

from clipvault.config.upload import TransportConfig, UploadPipelineConfig
from clipvault.core.config import Config
from clipvault.core.container import (
    container,
    create_api_client,
    create_container,
    shutdown_container,
)
from clipvault.core.exceptions import ConfigError
from clipvault.infrastructure.http_client import HTTPClient
from clipvault.services.media.ffmpeg import FFmpegWrapper
from clipvault.services.uploader.coordinator import MetadataCoordinator
from clipvault.services.uploader.orchestrator import UploadQueueOrchestrator
from clipvault.services.uploader.transport import ResilientTransport


@pytest.fixture
def app_container():
    """Container with a fixed configuration."""
    new_container = create_container()
    new_container.config.override(
        providers.Object(
            Config(
                _env_file=None,
                api_base_url="https://records.example.com",
                api_token="tok",
                transfer_timeout_seconds=42,
                ffmpeg_binary="/opt/ffmpeg",
                ffprobe_binary="/opt/ffprobe",
            )
        )
    )
    yield new_container
    new_container.config.reset_override()


class TestContainerCreation:
    """Tests for container creation and configuration."""

    def test_create_container_returns_container_with_providers(self) -> None:
        """Test that create_container returns a container with expected providers."""
        new_container = create_container()
        assert hasattr(new_container, "config")
        assert hasattr(new_container, "infrastructure")
        assert hasattr(new_container, "configs")
        assert hasattr(new_container, "services")

    def test_global_container_exists(self) -> None:
        """Test that global container is initialized."""
        assert container is not None
        assert hasattr(container, "orchestrator")


class TestInfrastructureContainer:
    """Tests for InfrastructureContainer."""

    def test_api_client_is_singleton(self, app_container) -> None:
        """Test the API client is created once."""
        client = app_container.infrastructure.api_client()

        assert isinstance(client, HTTPClient)
        assert client is app_container.infrastructure.api_client()

    def test_api_client_carries_token(self, app_container) -> None:
        """Test the bearer token and base URL are applied."""
        client = app_container.infrastructure.api_client()

        assert client._client.headers["Authorization"] == "Bearer tok"
        assert str(client._client.base_url).startswith("https://records.example.com")

    def test_ffmpeg_wrapper_uses_configured_binaries(self, app_container) -> None:
        """Test ffmpeg binaries come from config."""
        wrapper = app_container.infrastructure.ffmpeg_wrapper()

        assert isinstance(wrapper, FFmpegWrapper)
        assert wrapper.ffmpeg_binary == "/opt/ffmpeg"
        assert wrapper.ffprobe_binary == "/opt/ffprobe"


class TestConfigContainer:
    """Tests for ConfigContainer."""

    def test_transport_timeout_from_global_config(self, app_container) -> None:
        """Test the transfer deadline follows the global setting."""
        transport_config = app_container.configs.transport_config()

        assert isinstance(transport_config, TransportConfig)
        assert transport_config.timeout_seconds == 42

    def test_pipeline_config_shares_transport(self, app_container) -> None:
        """Test the pipeline config embeds the same transport config."""
        pipeline_config = app_container.configs.pipeline_config()

        assert isinstance(pipeline_config, UploadPipelineConfig)
        assert pipeline_config.transport.timeout_seconds == 42


class TestServiceContainer:
    """Tests for ServiceContainer."""

    def test_orchestrator_is_factory(self, app_container) -> None:
        """Test each call builds a new orchestrator over shared singletons."""
        first = app_container.orchestrator()
        second = app_container.orchestrator()

        assert isinstance(first, UploadQueueOrchestrator)
        assert first is not second
        assert first.transport is second.transport
        assert isinstance(first.transport, ResilientTransport)
        assert isinstance(first.coordinator, MetadataCoordinator)

    def test_override_transport(self, app_container) -> None:
        """Test services can be overridden for tests."""
        mock_transport = MagicMock(spec=ResilientTransport)

        with app_container.services.transport.override(mock_transport):
            orchestrator = app_container.orchestrator()

        assert orchestrator.transport is mock_transport


class TestCreateApiClient:
    """Tests for create_api_client."""

    def test_no_token_in_development(self) -> None:
        """Test a missing token is allowed outside production."""
        client = create_api_client(Config(_env_file=None, app_env="development", api_token=""))

        assert "Authorization" not in client._client.headers

    def test_missing_token_in_production_raises(self) -> None:
        """Test production requires a token."""
        with pytest.raises(ConfigError) as exc_info:
            create_api_client(Config(_env_file=None, app_env="production", api_token=""))

        assert exc_info.value.context["config_key"] == "api_token"


class TestShutdown:
    """Tests for shutdown_container."""

    @pytest.mark.asyncio
    async def test_shutdown_closes_clients(self, app_container) -> None:
        """Test HTTP clients and temp files are released."""
        api_client = MagicMock(spec=HTTPClient)
        api_client.close = AsyncMock()
        storage_client = MagicMock(spec=HTTPClient)
        storage_client.close = AsyncMock()
        preprocessor = MagicMock()

        with (
            app_container.infrastructure.api_client.override(api_client),
            app_container.infrastructure.storage_client.override(storage_client),
            app_container.services.media_preprocessor.override(preprocessor),
        ):
            await shutdown_container(app_container)

        api_client.close.assert_awaited_once()
        storage_client.close.assert_awaited_once()
        preprocessor.close.assert_called_once()
