"""Shared fixtures."""

import pytest

from docindex.storage import ConnectionProvider, IndexManager, MemoryBackend
from docindex.utils.retry import RetryConfig, RetryPolicy

from tests.elves import Elf, make_registry


@pytest.fixture
def registry():
    return make_registry()


@pytest.fixture
def elf_type(registry):
    return registry.get(Elf)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def fast_retry():
    return RetryPolicy(RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=False))


@pytest.fixture
def index_manager(backend, registry, fast_retry):
    return IndexManager(backend, registry=registry, retry_policy=fast_retry,
                        ready_timeout=0.2, poll_interval=0.01)


@pytest.fixture
def provider(backend, registry):
    return ConnectionProvider(backend=backend, registry=registry)
