"""In-flight registry — at most one running operation per key.

Two reveals of the same record would both generate a decryption proof
and both submit it; the second submission then loses a race on the
ledger. The registry maps a key (a record id) to the future of the
operation currently running for it. A caller that arrives while one is
pending awaits that future instead of starting its own run.

The marker is acquired through a context manager and always released in
its finally block, so an exception or cancellation mid-operation cannot
leave a key stuck.

Cancelling the owning run does not cancel the callers that joined it.
They are told through OperationCancelledError on the shared future, and
the first of them to wake starts a fresh run that the rest join.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationInFlightError(RuntimeError):
    """Raised by hold() when the key already has a running operation."""


class OperationCancelledError(RuntimeError):
    """Set on the shared future when the owning run was cancelled."""


class InFlightRegistry:
    """Single-flight coordination keyed by record id.

    Usage:
        registry = InFlightRegistry()
        result = await registry.run(record_id, lambda: reveal_once(record_id))
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future] = {}

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    @contextlib.contextmanager
    def hold(self, key: str) -> Iterator[asyncio.Future]:
        """Register an in-flight marker for key for the duration of the block.

        Raises OperationInFlightError if key is already held.
        """
        if key in self._pending:
            raise OperationInFlightError(f"Operation already in flight for {key}")
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            yield future
        finally:
            del self._pending[key]
            if not future.done():
                future.cancel()

    async def run(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation for key, or join the run already in flight."""
        existing = self._pending.get(key)
        while existing is not None:
            logger.info(f"Joining in-flight operation for {key}")
            try:
                return await asyncio.shield(existing)
            except OperationCancelledError:
                logger.info(f"In-flight operation for {key} was cancelled; retrying")
            existing = self._pending.get(key)

        with self.hold(key) as future:
            try:
                result = await operation()
            except asyncio.CancelledError:
                future.set_exception(
                    OperationCancelledError(f"Operation for {key} was cancelled")
                )
                future.exception()
                raise
            except Exception as exc:
                future.set_exception(exc)
                # Marks the exception retrieved; the owner re-raises it below.
                future.exception()
                raise
            future.set_result(result)
            return result
