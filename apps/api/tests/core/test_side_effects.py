"""
Unit tests for the best-effort side effect executor.
"""

import asyncio

import pytest

from app.core.side_effects import BestEffortExecutor


class TestAwaitMode:
    """Effects run before ``run`` returns."""

    @pytest.mark.asyncio
    async def test_effect_completes_before_return(self):
        executor = BestEffortExecutor("await")
        calls = []

        async def effect():
            calls.append("done")

        await executor.run("test", effect)

        assert calls == ["done"]
        assert executor.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        executor = BestEffortExecutor("await")

        async def effect():
            raise RuntimeError("notification store down")

        await executor.run("notify:test", effect)

        assert "notify:test" in caplog.text
        assert "notification store down" in caplog.text


class TestBackgroundMode:
    """Effects are scheduled and tracked until drained."""

    @pytest.mark.asyncio
    async def test_run_returns_before_effect_finishes(self):
        executor = BestEffortExecutor("background")
        release = asyncio.Event()
        calls = []

        async def effect():
            await release.wait()
            calls.append("done")

        await executor.run("test", effect)

        assert calls == []
        assert executor.pending == 1

        release.set()
        await executor.drain()

        assert calls == ["done"]
        assert executor.pending == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_escape_task(self):
        executor = BestEffortExecutor("background")

        async def effect():
            raise RuntimeError("boom")

        await executor.run("test", effect)
        await executor.drain()

        assert executor.pending == 0

    @pytest.mark.asyncio
    async def test_drain_cancels_stragglers(self):
        executor = BestEffortExecutor("background")
        cancelled = asyncio.Event()

        async def effect():
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        await executor.run("slow", effect)
        await asyncio.sleep(0)
        await executor.drain(timeout=0.01)

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self):
        executor = BestEffortExecutor("background")
        await executor.drain()
        assert executor.pending == 0
