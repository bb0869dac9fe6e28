"""Tests for AgentRunner."""

import asyncio
import threading

import pytest

from vault_agent.exceptions import InvalidCallerUsageError
from vault_agent.services.agent_runner import AgentRunner


@pytest.fixture
def runner():
    """Start a runner and stop it after the test."""
    runner = AgentRunner(name="test-runner")
    runner.start()
    yield runner
    runner.stop()


class TestAgentRunner:
    def test_start_and_stop(self):
        runner = AgentRunner()
        runner.start()
        assert runner.is_running

        runner.stop()

        assert not runner.is_running

    def test_call_runs_on_loop_thread(self, runner):
        name = runner.call(lambda: threading.current_thread().name)

        assert name == "test-runner"

    def test_call_passes_arguments(self, runner):
        assert runner.call(max, 3, 7) == 7

    def test_run_returns_result(self, runner):
        async def add(a, b):
            await asyncio.sleep(0)
            return a + b

        assert runner.run(add(2, 3)) == 5

    def test_run_propagates_errors(self, runner):
        async def fail():
            raise ValueError("nope")

        with pytest.raises(ValueError, match="nope"):
            runner.run(fail())

    def test_launch_raises_immediate_rejection(self, runner):
        async def rejected():
            raise InvalidCallerUsageError("A task is already in progress")

        with pytest.raises(InvalidCallerUsageError):
            runner.launch(rejected())

    def test_launch_returns_before_completion(self, runner):
        finished = threading.Event()

        async def slow():
            await asyncio.sleep(0.05)
            finished.set()

        runner.launch(slow())

        assert not finished.is_set()
        assert finished.wait(2)

    def test_background_failure_is_logged(self, runner, caplog):
        failed = threading.Event()

        async def fail_later():
            await asyncio.sleep(0.01)
            failed.set()
            raise RuntimeError("step exploded")

        runner.launch(fail_later())
        assert failed.wait(2)
        runner.call(lambda: None)
        runner.run(asyncio.sleep(0.01))

        assert "step exploded" in caplog.text
