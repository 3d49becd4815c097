"""Fan-out helpers used by the dashboard aggregation.

``settle_all`` waits for every awaitable and reports each outcome separately;
unlike a plain ``asyncio.gather`` it never lets the first failure cancel or
hide the others. ``with_deadline`` bounds a single awaitable.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of one awaitable: either ``value`` or ``error`` is meaningful."""

    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None

    def value_or(self, default: Any) -> Any:
        return self.value if self.ok else default


async def with_deadline(awaitable: Awaitable[T], seconds: Optional[float]) -> T:
    """Await ``awaitable`` but give up after ``seconds`` (None = no bound)."""
    if seconds is None or seconds <= 0:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=seconds)


async def settle_all(awaitables: Iterable[Awaitable[T]]) -> List[Settled[T]]:
    """Run all awaitables concurrently and collect every result, in order."""
    tasks = list(awaitables)
    if not tasks:
        return []

    results = await asyncio.gather(*tasks, return_exceptions=True)

    settled: List[Settled[T]] = []
    for result in results:
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            settled.append(Settled(ok=False, error=result))
        else:
            settled.append(Settled(ok=True, value=result))
    return settled
