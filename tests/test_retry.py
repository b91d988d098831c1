"""Retry policy and error taxonomy tests."""

import pytest

from docindex.errors import BackendError, DocIndexError, IndexNotFound, TransientBackendError
from docindex.utils.retry import RetryConfig, RetryPolicy


class Flaky:
    def __init__(self, failures, error=None):
        self.failures = failures
        self.error = error or TransientBackendError("timeout", operation="search")
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


@pytest.fixture
def policy():
    return RetryPolicy(RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=False))


@pytest.mark.asyncio
async def test_transient_failures_are_retried(policy):
    call = Flaky(failures=2)
    assert await policy.execute(call, operation="search") == "ok"
    assert call.calls == 3


@pytest.mark.asyncio
async def test_retries_are_bounded(policy):
    call = Flaky(failures=5)
    with pytest.raises(TransientBackendError):
        await policy.execute(call, operation="search")
    assert call.calls == 3


@pytest.mark.asyncio
async def test_permanent_failures_are_not_retried(policy):
    call = Flaky(failures=5, error=BackendError("bad query", operation="search"))
    with pytest.raises(BackendError):
        await policy.execute(call, operation="search")
    assert call.calls == 1


def test_backoff_grows_and_is_capped():
    policy = RetryPolicy(RetryConfig(base_delay=0.1, max_delay=0.5, jitter=False))
    assert policy._calculate_delay(0) == pytest.approx(0.1)
    assert policy._calculate_delay(1) == pytest.approx(0.2)
    assert policy._calculate_delay(5) == pytest.approx(0.5)


def test_error_context():
    error = IndexNotFound("Elves", operation="search", record_type="Elf")
    assert isinstance(error, DocIndexError)
    assert error.index_name == "Elves"
    assert error.context == {"operation": "search", "record_type": "Elf"}
    assert str(error) == "Index 'Elves' not found (operation=search, record_type=Elf)"
    assert str(DocIndexError("plain")) == "plain"
    assert issubclass(TransientBackendError, BackendError)
