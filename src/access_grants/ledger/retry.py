"""Exponential backoff for idempotent ledger reads."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..exceptions import ReadError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 1.0,
    *,
    retry_if: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "ledger read",
) -> T:
    """Run ``fn`` up to ``attempts`` times, sleeping ``base_delay * 2**attempt`` between tries.

    Exceptions rejected by ``retry_if`` propagate immediately. When every
    attempt fails a :class:`ReadError` chained to the last error is raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as exc:
            if retry_if is not None and not retry_if(exc):
                raise
            last_error = exc
            logger.warning(
                "Attempt %d/%d for %s failed: %s", attempt + 1, attempts, description, exc
            )
            if attempt + 1 < attempts:
                await sleep(base_delay * (2**attempt))

    raise ReadError(
        f"{description} failed after {attempts} attempts",
        attempts=attempts,
        details={"error": str(last_error)},
    ) from last_error
