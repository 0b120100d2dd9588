"""Dependency Injection Container.

This module provides a centralized DI container using dependency-injector.
Lifecycles:
- Singleton: One instance for the entire process (HTTP clients, ffmpeg)
- Factory: New instance every time (orchestrators, one per batch owner)

Usage:
    # In the CLI
    from clipvault.core.container import container

    orchestrator = container.orchestrator()
    summary = await orchestrator.submit_batch(files, metadata).run()

    # In tests
    with container.services.transport.override(mock_transport):
        ...
"""

from dependency_injector import containers, providers

from clipvault.core.config import Config, get_config
from clipvault.core.exceptions import ConfigError
from clipvault.infrastructure.http_client import HTTPClient


def create_api_client(config: Config) -> HTTPClient:
    """Build the HTTP client bound to the record API.

    Args:
        config: Global configuration

    Returns:
        HTTPClient with base URL and bearer token applied

    Raises:
        ConfigError: If no API token is configured in production
    """
    if config.is_production and not config.api_token:
        raise ConfigError("API token is required in production", config_key="api_token")

    headers = {"Accept": "application/json"}
    if config.api_token:
        headers["Authorization"] = f"Bearer {config.api_token}"
    return HTTPClient(
        base_url=config.api_base_url,
        headers=headers,
        timeout=config.http_timeout_seconds,
    )


class InfrastructureContainer(containers.DeclarativeContainer):
    """Infrastructure layer dependencies (HTTP clients, media tooling)."""

    global_config = providers.Dependency(instance_of=Config)

    # ============================================
    # HTTP Clients
    # ============================================

    # Record / authorization API
    api_client = providers.Singleton(
        create_api_client,
        config=global_config,
    )

    # Presigned object-store URLs (absolute, no auth headers)
    storage_client = providers.Singleton(
        "clipvault.infrastructure.http_client.HTTPClient",
        timeout=global_config.provided.transfer_timeout_seconds,
    )

    # ============================================
    # FFmpeg
    # ============================================

    ffmpeg_wrapper = providers.Singleton(
        "clipvault.services.media.ffmpeg.FFmpegWrapper",
        ffmpeg_binary=global_config.provided.ffmpeg_binary,
        ffprobe_binary=global_config.provided.ffprobe_binary,
    )


class ConfigContainer(containers.DeclarativeContainer):
    """Configuration models container.

    Provides typed Pydantic config models for services.
    """

    global_config = providers.Dependency(instance_of=Config)

    transport_config = providers.Singleton(
        "clipvault.config.upload.TransportConfig",
        timeout_seconds=global_config.provided.transfer_timeout_seconds,
    )

    pipeline_config = providers.Singleton(
        "clipvault.config.upload.UploadPipelineConfig",
        transport=transport_config,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Service layer dependencies."""

    infrastructure = providers.DependenciesContainer()
    configs = providers.DependenciesContainer()

    media_preprocessor = providers.Singleton(
        "clipvault.services.media.preprocessor.MediaPreprocessor",
        config=configs.pipeline_config,
        ffmpeg_wrapper=infrastructure.ffmpeg_wrapper,
    )

    transport = providers.Singleton(
        "clipvault.services.uploader.transport.ResilientTransport",
        http=infrastructure.storage_client,
        config=configs.transport_config,
    )

    coordinator = providers.Singleton(
        "clipvault.services.uploader.coordinator.MetadataCoordinator",
        http=infrastructure.api_client,
    )

    # Upload Queue Orchestrator
    orchestrator = providers.Factory(
        "clipvault.services.uploader.orchestrator.UploadQueueOrchestrator",
        coordinator=coordinator,
        transport=transport,
        preprocessor=media_preprocessor,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Root application container.

    Composes all sub-containers and provides the main entry point.
    """

    # Uses get_config() to ensure same instance across the app
    config = providers.Singleton(get_config)

    infrastructure = providers.Container(
        InfrastructureContainer,
        global_config=config,
    )

    configs = providers.Container(
        ConfigContainer,
        global_config=config,
    )

    services = providers.Container(
        ServiceContainer,
        infrastructure=infrastructure,
        configs=configs,
    )

    # ============================================
    # Convenience accessors (shortcuts)
    # ============================================

    orchestrator = providers.Factory(
        lambda svc: svc,
        svc=services.orchestrator,
    )


def create_container() -> ApplicationContainer:
    """Create and configure the application container.

    Returns:
        Configured ApplicationContainer instance
    """
    return ApplicationContainer()


# Global container instance
container = create_container()


async def shutdown_container(target: ApplicationContainer | None = None) -> None:
    """Release resources held by singletons (HTTP connections, temp files).

    Args:
        target: Container to shut down (defaults to the global one)
    """
    target = target or container
    target.services.media_preprocessor().close()
    await target.infrastructure.api_client().close()
    await target.infrastructure.storage_client().close()


__all__ = [
    "ApplicationContainer",
    "ConfigContainer",
    "InfrastructureContainer",
    "ServiceContainer",
    "container",
    "create_api_client",
    "create_container",
    "get_config",
    "shutdown_container",
]
