"""Trailing-edge debounce for async calls with last-call-wins semantics."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Coalesce rapid calls so ``func`` runs once per ``wait_s`` of inactivity.

    Each call cancels the previous one, whether it is still waiting out the
    quiet period or already awaiting ``func``. A superseded caller gets
    ``None``; only the most recent call receives a result.
    """

    def __init__(self, func: Callable[..., Awaitable[T]], wait_s: float):
        self.func = func
        self.wait_s = wait_s
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None

    async def _run(self, args: tuple, kwargs: dict) -> T:
        await asyncio.sleep(self.wait_s)
        return await self.func(*args, **kwargs)

    async def __call__(self, *args: Any, **kwargs: Any) -> Optional[T]:
        self._generation += 1
        generation = self._generation
        self._drop_pending()

        task = asyncio.ensure_future(self._run(args, kwargs))
        self._pending = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation and task.cancelled():
                log.debug("Debounced call superseded (generation %d)", generation)
                return None
            raise
        finally:
            if self._pending is task and task.done():
                self._pending = None

        if generation != self._generation:
            return None
        return result

    def cancel(self) -> None:
        """Drop the pending call, if any; its caller gets None."""
        self._generation += 1
        self._drop_pending()

    def _drop_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()
