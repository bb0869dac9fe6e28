"""Tests for AbortController and race_abort."""

import asyncio

import pytest

from vault_agent.cancellation import AbortController, race_abort
from vault_agent.exceptions import StepAbortedError, StepTimeoutError


class TestAbortController:
    def test_abort_sets_signal(self):
        controller = AbortController()

        controller.abort("Paused by user")

        assert controller.signal.aborted
        assert controller.signal.reason == "Paused by user"

    def test_first_reason_wins(self):
        controller = AbortController()

        controller.abort("Paused by user")
        controller.abort("Stopped by user")

        assert controller.signal.reason == "Paused by user"

    def test_raise_if_aborted(self):
        controller = AbortController()
        controller.signal.raise_if_aborted()

        controller.abort()

        with pytest.raises(StepAbortedError, match="Aborted"):
            controller.signal.raise_if_aborted()


class TestRaceAbort:
    """Tests for racing work against abort and timeout."""

    def test_returns_result_when_work_finishes(self):
        async def work():
            await asyncio.sleep(0)
            return "done"

        assert asyncio.run(race_abort(work(), AbortController().signal, timeout=1)) == "done"

    def test_work_errors_propagate(self):
        async def work():
            raise ValueError("bad reply")

        with pytest.raises(ValueError, match="bad reply"):
            asyncio.run(race_abort(work(), None))

    def test_abort_wins(self):
        controller = AbortController()
        cancelled = []

        async def work():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        async def scenario():
            asyncio.get_running_loop().call_later(0.01, controller.abort, "Stopped by user")
            await race_abort(work(), controller.signal, timeout=5)

        with pytest.raises(StepAbortedError, match="Stopped by user"):
            asyncio.run(scenario())
        assert cancelled == [True]

    def test_timeout_wins(self):
        async def work():
            await asyncio.sleep(10)

        with pytest.raises(StepTimeoutError) as exc_info:
            asyncio.run(race_abort(work(), AbortController().signal, timeout=0.05))

        assert exc_info.value.timeout == 0.05
        assert str(exc_info.value) == "Step timed out after 0.05s"

    def test_already_aborted_signal(self):
        controller = AbortController()
        controller.abort("Paused by user")

        async def work():
            await asyncio.sleep(10)

        with pytest.raises(StepAbortedError):
            asyncio.run(race_abort(work(), controller.signal))
