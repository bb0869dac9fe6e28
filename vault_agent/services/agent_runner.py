"""AgentRunner - a dedicated asyncio loop thread for the agent service.

Flask handles requests on worker threads, while the agent service must only be
touched from one event loop. The runner owns that loop and lets request
threads submit work to it.
"""

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CALL_TIMEOUT = 10.0


class AgentRunner:
    """Runs an asyncio event loop in a daemon thread."""

    def __init__(self, name: str = "agent-runner"):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name=name, daemon=True)
        self._pending: set[asyncio.Task] = set()

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()
            logger.info(f"Agent runner thread {self._thread.name} started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and wait for the thread to exit."""
        if self._thread.is_alive():
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run(self, coro: Coroutine[Any, Any, T], timeout: float = DEFAULT_CALL_TIMEOUT) -> T:
        """Run a coroutine on the loop and wait for its result.

        Raises:
            Whatever the coroutine raises, or TimeoutError.
        """
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

    def call(self, fn: Callable[..., T], *args: Any, timeout: float = DEFAULT_CALL_TIMEOUT) -> T:
        """Run a synchronous function on the loop thread and return its result."""

        async def invoke() -> T:
            return fn(*args)

        return self.run(invoke(), timeout)

    def launch(self, coro: Coroutine[Any, Any, Any], timeout: float = DEFAULT_CALL_TIMEOUT) -> None:
        """Schedule a long-running coroutine without waiting for it to finish.

        The coroutine runs up to its first suspension before this returns, so
        a call rejected up front (e.g. InvalidCallerUsageError) is raised here
        rather than lost. Later failures are logged.
        """
        self.run(self._start(coro), timeout)

    async def _start(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        await asyncio.sleep(0)
        if task.done():
            task.result()
            return
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Agent background task failed: {error!r}")
