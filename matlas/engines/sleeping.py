"""
Advanced modes of sleeping.
"""
import asyncio
from typing import Iterable, Optional


async def sleep(
        delays: Iterable[Optional[float]],
) -> float:
    """
    Sleep for the shortest of the specified delays, ignoring the unset ones.

    Returns the number of seconds actually slept, i.e. ``0`` if nothing was
    positive. Used e.g. to sleep for the polling interval, but not beyond
    the polling deadline.
    """
    actual = [delay for delay in delays if delay is not None]
    minimal = min(actual) if actual else 0
    if minimal <= 0:
        return 0
    await asyncio.sleep(minimal)
    return minimal
