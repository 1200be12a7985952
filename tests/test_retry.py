"""Tests for the read backoff combinator."""

import pytest

from access_grants.exceptions import ContractRevert, ReadError
from access_grants.ledger.retry import with_retry


class FlakyRead:
    def __init__(self, failures: int, value: object = "ok") -> None:
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"rpc down ({self.calls})")
        return self.value


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_succeeds_on_third_attempt():
    read = FlakyRead(failures=2, value=[1, 2])
    sleep = RecordingSleep()

    result = await with_retry(read, attempts=3, base_delay=1.0, sleep=sleep)

    assert result == [1, 2]
    assert read.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_gives_up_after_three_attempts():
    read = FlakyRead(failures=10)
    sleep = RecordingSleep()

    with pytest.raises(ReadError) as exc_info:
        await with_retry(read, attempts=3, base_delay=0.5, sleep=sleep)

    assert read.calls == 3
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert "rpc down (3)" in exc_info.value.details["error"]
    # no sleep after the final attempt
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_non_transient_errors_are_not_retried():
    calls = 0

    async def reverting() -> None:
        nonlocal calls
        calls += 1
        raise ContractRevert("Transaction rejected by contract", reason="Grant not found")

    with pytest.raises(ContractRevert):
        await with_retry(
            reverting,
            sleep=RecordingSleep(),
            retry_if=lambda exc: not isinstance(exc, ContractRevert),
        )

    assert calls == 1


@pytest.mark.asyncio
async def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        await with_retry(FlakyRead(failures=0), attempts=0)
