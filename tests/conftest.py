"""Pytest configuration and shared fixtures for checksum tests."""

import os

import pytest
from prometheus_client import CollectorRegistry

from object_checksum.adapters.outbound import InMemoryObjectStore, QueueContinuationTrigger
from object_checksum.domain.services import ChecksumService
from object_checksum.domain.value_objects import ChecksumOptions, DigestAlgorithm
from object_checksum.infrastructure.config import Config, get_config
from object_checksum.infrastructure.container import Container
from object_checksum.infrastructure.metrics import ChecksumMetrics


@pytest.fixture(autouse=True)
def reset_container():
    """Reset the DI container and cached config before each test."""
    Container.reset()
    get_config.cache_clear()
    yield
    Container.reset()
    get_config.cache_clear()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove OBJECT_CHECKSUM_* variables inherited from the shell."""
    for name in list(os.environ):
        if name.startswith("OBJECT_CHECKSUM_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def metrics() -> ChecksumMetrics:
    """Metrics on an isolated registry."""
    return ChecksumMetrics(registry=CollectorRegistry())


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def trigger() -> QueueContinuationTrigger:
    return QueueContinuationTrigger()


@pytest.fixture
def make_service(store, trigger, metrics):
    """Build a service with small parts over the in-memory store."""

    def _make(
        part_size: int = 100,
        buffer_size: int = 32,
        algorithm: DigestAlgorithm = DigestAlgorithm.SHA256,
        **kwargs,
    ) -> ChecksumService:
        options = ChecksumOptions(
            part_size=part_size,
            buffer_size=buffer_size,
            algorithm=algorithm,
            **kwargs,
        )
        return ChecksumService(store, trigger, options=options, metrics=metrics)

    return _make


@pytest.fixture
def sample_data() -> bytes:
    """Deterministic, non-repeating test payload."""
    return bytes((i * 31 + i // 7) % 256 for i in range(1000))


@pytest.fixture
def test_config(tmp_path) -> Config:
    """Configuration backed by a temporary filesystem store."""
    return Config(
        store={"backend": "filesystem", "data_dir": tmp_path / "data"},
        checksum={"part_size": 256, "buffer_size": 64},
        observability={"log_format": "console", "environment": "test"},
        server={"run_continuation_worker": False},
    )


@pytest.fixture
def container(test_config: Config, metrics: ChecksumMetrics) -> Container:
    """Provide a configured container for testing."""
    return Container.create(config=test_config, metrics=metrics)


# Pytest markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "benchmark: mark test as benchmark test")
