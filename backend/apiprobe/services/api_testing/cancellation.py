"""Cancellation token carried through the run pipeline."""

import asyncio
from typing import Awaitable, TypeVar

from apiprobe.services.api_testing.errors import RunCancelled

T = TypeVar("T")


class CancellationToken:
    """
    Lets a caller cancel an in-flight run.

    Stages call raise_if_cancelled() between steps; suspension points are
    wrapped in guard(), which cancels the awaited work as soon as the token
    fires instead of waiting for it to finish.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelled("Run was cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await the work unless the token fires first, in which case the work is cancelled."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RunCancelled("Run was cancelled")

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()
                await asyncio.gather(work, return_exceptions=True)

        if work.cancelled():
            raise RunCancelled("Run was cancelled")
        return work.result()
