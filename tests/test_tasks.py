"""Tests for the periodic background task helper."""
import asyncio

import pytest

from raidgate.services.tasks import PeriodicTask


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_runs_repeatedly():
    calls = 0

    async def work():
        nonlocal calls
        calls += 1

    task = PeriodicTask("test", 0.01, work)
    task.start()
    await _wait_until(lambda: calls >= 3)
    await task.stop()

    assert task.runs >= 3


@pytest.mark.asyncio
async def test_zero_interval_is_disabled():
    async def work():
        raise AssertionError("should never run")

    task = PeriodicTask("disabled", 0, work)
    task.start()

    assert task.enabled is False
    assert task.running is False
    await task.stop()


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_run():
    started = asyncio.Event()
    finished = False

    async def work():
        nonlocal finished
        started.set()
        await asyncio.sleep(0.05)
        finished = True

    task = PeriodicTask("slow", 0.01, work)
    task.start()
    await started.wait()
    await task.stop()

    assert finished is True
    assert task.running is False


@pytest.mark.asyncio
async def test_no_run_after_stop():
    calls = 0

    async def work():
        nonlocal calls
        calls += 1

    task = PeriodicTask("stopped", 0.01, work)
    task.start()
    await task.stop()
    count = calls
    await asyncio.sleep(0.05)

    assert calls == count
    with pytest.raises(RuntimeError):
        task.start()


@pytest.mark.asyncio
async def test_runs_never_overlap():
    active = 0
    peak = 0

    async def work():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.02)
        active -= 1

    task = PeriodicTask("overlap", 0.001, work)
    task.start()
    await _wait_until(lambda: task.runs >= 3)
    await task.stop()

    assert peak == 1


@pytest.mark.asyncio
async def test_failing_run_does_not_kill_loop(caplog):
    calls = 0

    async def work():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise ValueError("boom")

    task = PeriodicTask("flaky", 0.01, work)
    task.start()
    await _wait_until(lambda: calls >= 2)
    await task.stop()

    assert any("boom" in r.getMessage() for r in caplog.records)
