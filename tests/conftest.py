"""Pytest configuration and shared fixtures for Staging Store tests."""

import pytest
from prometheus_client import CollectorRegistry

from staging_store.adapters.outbound.file_resource import FileResourceProvider
from staging_store.adapters.outbound.memory_resource import MemoryResourceProvider
from staging_store.domain.services.piece_store import ChunkedPieceStore
from staging_store.infrastructure.config import Config, get_config
from staging_store.infrastructure.container import Container
from staging_store.infrastructure.metrics import StagingStoreMetrics
from tests.helpers import FakeTransport


@pytest.fixture(autouse=True)
def reset_container():
    """Reset the DI container before each test."""
    Container.reset()
    get_config.cache_clear()
    yield
    Container.reset()
    get_config.cache_clear()


@pytest.fixture
def test_config() -> Config:
    """Provide a test configuration."""
    return Config()


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry) -> StagingStoreMetrics:
    """Provide metrics bound to a private registry."""
    return StagingStoreMetrics(registry=registry)


@pytest.fixture
def memory_provider() -> MemoryResourceProvider:
    return MemoryResourceProvider()


@pytest.fixture
def file_provider(tmp_path) -> FileResourceProvider:
    return FileResourceProvider(tmp_path / "cache")


@pytest.fixture(params=["memory", "file"])
def provider(request, tmp_path):
    """Run a test against every resource store backend."""
    if request.param == "memory":
        return MemoryResourceProvider()
    return FileResourceProvider(tmp_path / "cache")


@pytest.fixture
def piece_store(provider, metrics) -> ChunkedPieceStore:
    return ChunkedPieceStore(provider, metrics=metrics)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fixed_mime(monkeypatch):
    """Skip libmagic and report every object as video/mp4."""
    monkeypatch.setattr(
        "staging_store.domain.services.session_negotiator.sniff_stream",
        lambda stream: "video/mp4",
    )
    return "video/mp4"


# Pytest markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
