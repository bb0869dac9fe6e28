"""Cooperative cancellation for backend calls.

An AbortController hands out one AbortSignal. Pause and stop requests abort the
signal; ``race_abort`` runs an awaitable until it finishes, the signal fires, or
the timeout elapses, whichever happens first.
"""

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

from vault_agent.exceptions import StepAbortedError, StepTimeoutError

T = TypeVar("T")


class AbortSignal:
    """Read side of an abort request, checked at every streamed chunk."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until the signal is aborted."""
        await self._event.wait()

    def raise_if_aborted(self) -> None:
        if self.aborted:
            raise StepAbortedError(self.reason or "Aborted")


class AbortController:
    """Owner of an AbortSignal."""

    def __init__(self):
        self.signal = AbortSignal()

    def abort(self, reason: str = "Aborted") -> None:
        """Abort the signal. Later calls keep the first reason."""
        if self.signal.aborted:
            return
        self.signal.reason = reason
        self.signal._event.set()


async def race_abort(
    awaitable: Awaitable[T],
    signal: AbortSignal | None,
    timeout: float | None = None,
) -> T:
    """Await a result unless the signal aborts or the timeout elapses first.

    Args:
        awaitable: The work to run, typically buffering a streamed reply.
        signal: Abort signal; None means the work can only time out.
        timeout: Seconds before giving up; None waits indefinitely.

    Returns:
        The awaitable's result.

    Raises:
        StepAbortedError: The signal fired before the work finished.
        StepTimeoutError: The timeout elapsed before the work finished.
    """
    work = asyncio.ensure_future(awaitable)
    waiters: set[asyncio.Future] = {work}
    abort_waiter = None
    if signal is not None:
        abort_waiter = asyncio.ensure_future(signal.wait())
        waiters.add(abort_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        if abort_waiter is not None:
            abort_waiter.cancel()
        if not work.done():
            work.cancel()

    if work in done:
        return work.result()

    with contextlib.suppress(asyncio.CancelledError):
        await work

    if signal is not None and signal.aborted:
        raise StepAbortedError(signal.reason or "Aborted")
    raise StepTimeoutError(timeout or 0)
