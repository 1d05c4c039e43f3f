from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_timeout(
    factory: Callable[[], Awaitable[T]],
    timeout: float,
    retries: int = 1,
    label: str = "call",
) -> T:
    """Await ``factory()`` bounded by ``timeout`` seconds, retrying ``retries`` times.

    ``factory`` is called again for every attempt. The last failure is re-raised.
    """
    for attempt in range(retries + 1):
        try:
            return await asyncio.wait_for(factory(), timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if attempt == retries:
                raise
            logger.warning("%s attempt %d failed: %r", label, attempt + 1, exc)
    raise AssertionError("unreachable")
