"""Dependency injection container for Staging Store."""

from dataclasses import dataclass
from typing import Any

import structlog
from opentelemetry import trace

from staging_store.adapters.outbound.drive_client import DriveUploadClient, build_http_client
from staging_store.adapters.outbound.file_resource import FileResourceProvider
from staging_store.adapters.outbound.memory_resource import MemoryResourceProvider
from staging_store.application.coordinator import UploadCoordinator
from staging_store.domain.services.piece_store import ChunkedPieceStore
from staging_store.domain.services.session_negotiator import UploadSessionNegotiator
from staging_store.infrastructure.config import Config, get_config
from staging_store.infrastructure.logging import setup_logging
from staging_store.infrastructure.metrics import get_metrics
from staging_store.infrastructure.tracing import setup_tracing


@dataclass
class Container:
    """Dependency injection container for staging store components."""

    config: Config
    logger: structlog.stdlib.BoundLogger
    tracer: trace.Tracer
    metrics: Any  # StagingStoreMetrics
    piece_store: ChunkedPieceStore
    transport: DriveUploadClient
    coordinator: UploadCoordinator

    _instance: "Container | None" = None

    @classmethod
    def create(cls) -> "Container":
        """Create and initialize the container with all dependencies."""
        if cls._instance is not None:
            return cls._instance

        config = get_config()
        logger = setup_logging()
        tracer = setup_tracing()
        metrics = get_metrics()

        if config.storage.backend == "memory":
            provider = MemoryResourceProvider()
        else:
            provider = FileResourceProvider(config.storage.cache_path)

        piece_store = ChunkedPieceStore(
            provider,
            completed_prefix=config.storage.completed_prefix,
            incomplete_prefix=config.storage.incomplete_prefix,
            metrics=metrics,
        )

        transport = DriveUploadClient(build_http_client(config.upload))
        negotiator = UploadSessionNegotiator(
            transport,
            parent_container=config.upload.parent_container,
            generate_ids=config.upload.generate_ids,
            folder_per_object=config.upload.folder_per_object,
            metrics=metrics,
        )
        coordinator = UploadCoordinator(
            transport,
            negotiator,
            window_size=config.upload.window_size,
            queue_capacity=config.upload.queue_capacity,
            max_retries=config.upload.max_retries,
            metrics=metrics,
            tracer=tracer,
        )

        cls._instance = cls(
            config=config,
            logger=logger,
            tracer=tracer,
            metrics=metrics,
            piece_store=piece_store,
            transport=transport,
            coordinator=coordinator,
        )

        logger.info(
            "staging_store_container_initialized",
            environment=config.observability.environment,
            storage_backend=config.storage.backend,
            window_size=config.upload.window_size,
        )

        return cls._instance

    @classmethod
    def get(cls) -> "Container":
        """Get the singleton container instance."""
        if cls._instance is None:
            return cls.create()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the container, cancelling uploads and closing the client."""
        if cls._instance is not None:
            cls._instance.coordinator.cancel_all()
            cls._instance.transport.close()
        cls._instance = None


def get_container() -> Container:
    """Get the dependency injection container."""
    return Container.get()
