"""
Request coalescing (single flight) keyed by barcode.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Tuple

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class _InFlight:
    task: asyncio.Future
    waiters: int = 0


class RequestCoalescer:
    """
    At most one in-flight operation per key.

    Callers arriving while an operation for their key is running await that
    same task and receive its result or exception. The task is shielded, so
    a cancelled caller never cancels the work others are waiting on. The
    entry is released as soon as the task finishes.
    """

    def __init__(self):
        self._inflight: Dict[str, _InFlight] = {}

    async def run(self, key: str, operation: Callable[[], Awaitable[Any]]) -> Tuple[Any, bool]:
        """Run or join the operation for `key`; returns (result, joined)."""
        entry = self._inflight.get(key)
        joined = entry is not None

        if entry is None:
            entry = _InFlight(task=asyncio.ensure_future(operation()))
            self._inflight[key] = entry
            entry.task.add_done_callback(lambda task, k=key, e=entry: self._release(k, e, task))
        else:
            logger.debug("Joining in-flight resolution", key=key, waiters=entry.waiters + 1)

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.task), joined
        finally:
            entry.waiters -= 1

    def in_flight(self, key: str) -> int:
        """Number of callers currently waiting on `key`."""
        entry = self._inflight.get(key)
        return entry.waiters if entry else 0

    def _release(self, key: str, entry: _InFlight, task: asyncio.Future):
        if self._inflight.get(key) is entry:
            del self._inflight[key]

        if task.cancelled():
            return
        # Marks the exception as retrieved
        error = task.exception()
        if error is not None and entry.waiters == 0:
            logger.warning("In-flight operation failed with no waiters", key=key, error=str(error))
