"""
Tick Clock Tests.
"""

import asyncio
import pytest

from backend.app.core.clock import TickClock


def test_handlers_run_in_registration_order(fake_clock):
    clock = TickClock(1.0, time_fn=fake_clock)
    order = []
    clock.add_handler(lambda now: order.append(("first", now)))
    clock.add_handler(lambda now: order.append(("second", now)))
    clock.tick(42.0)
    assert order == [("first", 42.0), ("second", 42.0)]


def test_removed_handler_is_not_called(fake_clock):
    clock = TickClock(1.0, time_fn=fake_clock)
    calls = []
    remove = clock.add_handler(calls.append)
    remove()
    remove()
    clock.tick()
    assert calls == []


@pytest.mark.asyncio
async def test_background_loop_ticks_until_stopped():
    clock = TickClock(0.01)
    calls = []
    clock.add_handler(calls.append)

    clock.start()
    assert clock.running
    await asyncio.sleep(0.1)
    await clock.stop()

    assert not clock.running
    count = len(calls)
    assert count >= 1
    await asyncio.sleep(0.05)
    assert len(calls) == count


@pytest.mark.asyncio
async def test_stop_without_start_is_safe():
    clock = TickClock(0.5)
    await clock.stop()
    assert not clock.running
