"""RequestDeduplicator — one in-flight fetch per key, shared by every concurrent caller."""
import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class RequestDeduplicator:

    def __init__(self):
        self._pending: dict[str, asyncio.Task] = {}

    def pending(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    async def run(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        """
        Await the fetch registered under `key`, starting `producer` if none is.

        Lookup and registration happen without yielding to the event loop, so two
        callers can never start a producer for the same key. Waiters are shielded:
        a caller that is cancelled stops waiting but the shared fetch runs on and
        settles for everyone else. Producer errors reach every waiter unchanged.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(producer())
            self._pending[key] = task
            task.add_done_callback(lambda t: self._settle(key, t))
        else:
            logger.debug("dedup.reuse", key=key)
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if task.cancelled():
            logger.info("dedup.cancelled", key=key)
        elif task.exception() is not None:
            logger.warning("dedup.failed", key=key, error=str(task.exception()))
