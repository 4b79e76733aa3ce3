import asyncio

import pytest

from common.utils.timer_logger import TimerLogger


def test_timer_records_duration():
    async def scenario():
        async with TimerLogger("poll_cycle", {"target": "test"}) as timer:
            await asyncio.sleep(0)
        return timer

    timer = asyncio.run(scenario())
    assert timer.duration is not None
    assert timer.duration >= 0


def test_timer_does_not_swallow_exceptions():
    async def scenario():
        async with TimerLogger("worker_start"):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())


def test_unknown_timer_name_is_rejected():
    with pytest.raises(ValueError):
        TimerLogger("not_a_timer")
