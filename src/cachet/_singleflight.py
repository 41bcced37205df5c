"""Per-key call collapsing for concurrent cache misses."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

#: Where a value came from: the cache, another caller's call, or our own call.
Origin = Literal["cache", "shared", "work"]


def _mark_retrieved(fut: asyncio.Future[Any]) -> None:
    # Silences "Future exception was never retrieved" when nobody waited.
    if not fut.cancelled():
        fut.exception()


class SingleFlight(Generic[T]):
    """Run at most one *work* call per key at a time.

    Callers arriving while a call for their key is in flight await its
    result instead of starting their own. A failure reaches every waiter and
    is never stored. If the caller doing the work is cancelled, waiters that
    were not cancelled themselves retry from the cache lookup.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._calls: dict[str, asyncio.Future[T]] = {}

    def __len__(self) -> int:
        return len(self._calls)

    async def run(
        self,
        key: str,
        *,
        lookup: Callable[[str], T | None],
        store: Callable[[str, T], None],
        work: Callable[[], Awaitable[T]],
    ) -> tuple[T, Origin]:
        while True:
            hit = lookup(key)
            if hit is not None:
                return hit, "cache"

            async with self._lock:
                # Re-check: a call may have completed while we queued.
                hit = lookup(key)
                if hit is not None:
                    return hit, "cache"
                pending = self._calls.get(key)
                if pending is None:
                    pending = asyncio.get_running_loop().create_future()
                    pending.add_done_callback(_mark_retrieved)
                    self._calls[key] = pending
                    break

            try:
                # Shielded: a cancelled waiter must not cancel the shared call.
                return await asyncio.shield(pending), "shared"
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if pending.cancelled() and task is not None and not task.cancelling():
                    continue
                raise

        return await self._lead(key, pending, store, work), "work"

    async def _lead(
        self,
        key: str,
        pending: asyncio.Future[T],
        store: Callable[[str, T], None],
        work: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            value = await work()
        except asyncio.CancelledError:
            if not pending.done():
                pending.cancel()
            raise
        except Exception as e:
            if not pending.done():
                pending.set_exception(e)
            raise
        finally:
            # Synchronous so a cancelled leader still releases the key.
            if self._calls.get(key) is pending:
                del self._calls[key]

        # Stored before waiters wake, so a later lookup sees the value.
        try:
            store(key, value)
        finally:
            if not pending.done():
                pending.set_result(value)
        return value
