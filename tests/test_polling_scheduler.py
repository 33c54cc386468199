"""Unit tests for the fixed-interval polling loop."""

import asyncio
import pytest

from sampling_jobs.core.managers.polling_scheduler import PollingScheduler


class TestPollingScheduler:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PollingScheduler(interval=0)
        with pytest.raises(ValueError):
            PollingScheduler(interval=1, initial_delay=-1)

    @pytest.mark.asyncio
    async def test_ticks_until_terminal(self):
        calls = []

        async def poll():
            calls.append(1)
            return len(calls) == 3

        scheduler = PollingScheduler(interval=0.01, initial_delay=0)
        handle = scheduler.start(poll, name="t")
        await asyncio.wait_for(handle.wait(), 1)
        assert handle.ticks == 3
        assert handle.stopped
        assert handle.done

    @pytest.mark.asyncio
    async def test_errors_in_tick_do_not_stop_loop(self):
        calls = []

        async def poll():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("transient")
            return True

        scheduler = PollingScheduler(interval=0.01, initial_delay=0)
        handle = scheduler.start(poll)
        await asyncio.wait_for(handle.wait(), 1)
        assert handle.ticks == 2

    @pytest.mark.asyncio
    async def test_ticks_never_overlap(self):
        running = 0
        max_running = 0
        calls = 0

        async def poll():
            nonlocal running, max_running, calls
            running += 1
            max_running = max(max_running, running)
            await asyncio.sleep(0.03)
            running -= 1
            calls += 1
            return calls == 3

        scheduler = PollingScheduler(interval=0.005, initial_delay=0)
        handle = scheduler.start(poll)
        await asyncio.wait_for(handle.wait(), 2)
        assert max_running == 1
        assert handle.ticks == 3

    @pytest.mark.asyncio
    async def test_stop_while_sleeping_cancels_loop(self):
        ticked = asyncio.Event()

        async def poll():
            ticked.set()
            return False

        scheduler = PollingScheduler(interval=10, initial_delay=0)
        handle = scheduler.start(poll)
        await asyncio.wait_for(ticked.wait(), 1)
        await asyncio.sleep(0)
        handle.stop()
        await asyncio.wait_for(handle.wait(), 1)
        assert handle.done
        assert handle.ticks == 1

    @pytest.mark.asyncio
    async def test_stop_during_tick_lets_request_finish(self):
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def poll():
            started.set()
            await release.wait()
            finished.append(True)
            return False

        scheduler = PollingScheduler(interval=0.01, initial_delay=0)
        handle = scheduler.start(poll)
        await asyncio.wait_for(started.wait(), 1)
        assert handle.in_flight
        handle.stop()
        release.set()
        await asyncio.wait_for(handle.wait(), 1)
        assert finished == [True]
        assert handle.ticks == 1
        assert not handle._task.cancelled()

    @pytest.mark.asyncio
    async def test_shutdown_stops_all_loops(self):
        async def poll():
            return False

        scheduler = PollingScheduler(interval=10, initial_delay=0)
        first = scheduler.start(poll, name="a")
        second = scheduler.start(poll, name="b")
        assert scheduler.active == 2
        await scheduler.shutdown()
        await asyncio.sleep(0)
        assert first.done and second.done
        assert scheduler.active == 0
