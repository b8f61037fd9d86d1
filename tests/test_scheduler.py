"""
tests/test_scheduler.py — Delayed Actions
==========================================
"""

from __future__ import annotations

import asyncio

from rolebot.engine.scheduler import CancellationToken, Scheduler


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


class TestScheduler:
    def test_action_fires_after_delay(self):
        fired: list[str] = []

        async def scenario():
            scheduler = Scheduler()

            async def action():
                fired.append("x")

            handle = scheduler.schedule(0.01, action, name="t")
            assert scheduler.pending == 1
            assert fired == []
            await handle.wait()
            assert handle.done
            assert scheduler.pending == 0

        run_async(scenario())
        assert fired == ["x"]

    def test_factory_runs_only_when_delay_elapses(self):
        state = {"value": "before"}
        seen: list[str] = []

        async def scenario():
            scheduler = Scheduler()

            async def action(value):
                seen.append(value)

            handle = scheduler.schedule(0.01, lambda: action(state["value"]), name="t")
            state["value"] = "after"
            await handle.wait()

        run_async(scenario())
        assert seen == ["after"]

    def test_token_cancels_before_firing(self):
        fired: list[str] = []

        async def scenario():
            scheduler = Scheduler()

            async def action():
                fired.append("x")

            handle = scheduler.schedule(0.01, action, name="t", token=CancellationToken())
            assert handle.cancel()
            await handle.wait()

        run_async(scenario())
        assert fired == []

    def test_tokenless_task_cannot_be_cancelled(self):
        async def scenario():
            scheduler = Scheduler()

            async def action():
                return None

            handle = scheduler.schedule(0, action, name="t")
            assert handle.cancel() is False
            await handle.wait()

        run_async(scenario())

    def test_failing_action_is_logged_not_raised(self, caplog):
        async def scenario():
            scheduler = Scheduler()

            async def action():
                raise RuntimeError("boom")

            await scheduler.schedule(0, action, name="broken").wait()

        run_async(scenario())
        assert "Scheduled action broken failed" in caplog.text

    def test_close_drops_pending_actions(self):
        fired: list[str] = []

        async def scenario():
            scheduler = Scheduler()

            async def action():
                fired.append("x")

            scheduler.schedule(10, action, name="slow")
            await scheduler.close()
            assert scheduler.pending == 0

        run_async(scenario())
        assert fired == []
